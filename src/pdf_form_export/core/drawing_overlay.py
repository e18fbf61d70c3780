# SPDX-License-Identifier: Apache-2.0
"""Composite a freehand drawing (PNG) over a PDF page.

The editor's drawing canvas covers the whole page preview, so the image is
stretched to the full page size. Transparent pixels stay transparent.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Union

import pypdfium2 as pdfium  # type: ignore[import-untyped]
from PIL import Image

logger = logging.getLogger(__name__)


class DrawingOverlay:
    """Stamp a raster drawing onto one page of a document."""

    def __init__(self, page_number: int = 1) -> None:
        """Initialize DrawingOverlay.

        Args:
            page_number: Target page (1-indexed).
        """
        if page_number < 1:
            raise ValueError("page_number must be >= 1")
        self._page_number = page_number

    def apply(
        self, pdf: pdfium.PdfDocument, drawing_path: Union[Path, str]
    ) -> bool:
        """Composite the drawing onto the target page.

        Args:
            pdf: Open PDFium document (modified in place).
            drawing_path: Path to the PNG drawing.

        Returns:
            True if the drawing was placed, False if it was skipped because
            the file or the target page does not exist.

        Raises:
            PIL.UnidentifiedImageError: If the file is not a readable image.
            OSError: If the image data is truncated or cannot be read.
        """
        path = Path(drawing_path)
        if not path.exists():
            logger.warning("Drawing %s not found; overlay skipped", path)
            return False
        if self._page_number > len(pdf):
            logger.debug(
                "Drawing targets page %d of %d; overlay skipped",
                self._page_number,
                len(pdf),
            )
            return False

        with Image.open(path) as image:
            image.load()
            pil_image = image.convert("RGBA")

        page = pdf[self._page_number - 1]
        page_width, page_height = page.get_size()

        bitmap = pdfium.PdfBitmap.from_pil(pil_image)
        pdf_image = pdfium.PdfImage.new(pdf)
        pdf_image.set_bitmap(bitmap)
        # Image objects are drawn into the unit square; scale it to the page
        pdf_image.set_matrix(pdfium.PdfMatrix().scale(page_width, page_height))

        page.insert_obj(pdf_image)
        page.gen_content()

        logger.info(
            "Composited %dx%d drawing onto page %d",
            pil_image.width,
            pil_image.height,
            self._page_number,
        )
        return True
