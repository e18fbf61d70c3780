# SPDX-License-Identifier: Apache-2.0
"""Free-form text annotation rendering using pypdfium2.

Annotations are drawn as ordinary text objects in the page content stream
(not as PDF annotation dictionaries), so they survive flattening and
print exactly as placed.
"""

from __future__ import annotations

import ctypes
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Sequence, Union

import pypdfium2 as pdfium  # type: ignore[import-untyped]

from .fonts import FontKey, StandardFontCache, resolve_font_name
from .models import DEFAULT_FONT_SIZE, Annotation, Color

logger = logging.getLogger(__name__)

AnnotationPayload = Union[str, Sequence[Union[Annotation, Mapping[str, Any]]], None]


def _widestring(text: str) -> ctypes.Array:
    """Encode text as a NUL-terminated FPDF_WIDESTRING (UTF-16LE)."""
    encoded = text.encode("utf-16-le") + b"\x00\x00"
    return (ctypes.c_ushort * (len(encoded) // 2)).from_buffer_copy(encoded)


def to_page_coordinates(
    x: float, y: float, page_width: float, page_height: float
) -> tuple[float, float]:
    """Convert a normalized top-left based position to PDF user space.

    The editor measures y downward from the top edge, while PDF space
    measures it upward from the bottom edge.

    Example:
        >>> to_page_coordinates(0.5, 0.0, 600, 800)
        (300.0, 800.0)
    """
    return x * page_width, page_height - (y * page_height)


def parse_annotations(payload: AnnotationPayload) -> list[Any]:
    """Normalize an annotation payload to a list.

    Args:
        payload: JSON text, a list of annotation objects, or None.

    Returns:
        List of annotation objects (empty for None or blank text).

    Raises:
        ValueError: If the JSON is invalid or is not an array.
    """
    if payload is None:
        return []
    if isinstance(payload, str):
        if not payload.strip():
            return []
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Annotations are not valid JSON: {exc}") from exc
        if payload is None:
            return []
    if not isinstance(payload, (list, tuple)):
        raise ValueError(
            f"Annotations must be a JSON array, got {type(payload).__name__}"
        )
    return list(payload)


@dataclass
class RenderReport:
    """Outcome of an annotation rendering pass.

    Attributes:
        rendered: Annotations drawn onto a page
        skipped: Annotations ignored (page out of range or empty text)
        failed: Annotations that raised and were isolated
    """

    rendered: int = 0
    skipped: int = 0
    failed: int = 0


class AnnotationRenderer:
    """Draw styled, centered text annotations onto PDF pages.

    Example:
        >>> pdf = pdfium.PdfDocument("form.pdf")
        >>> renderer = AnnotationRenderer()
        >>> renderer.render(pdf, [{"text": "Approved", "x": 0.5, "y": 0.1}])
        >>> pdf.save("annotated.pdf")
    """

    def __init__(
        self,
        font_table: Optional[Mapping[FontKey, str]] = None,
        default_font_size: float = DEFAULT_FONT_SIZE,
        isolate_errors: bool = True,
    ) -> None:
        """Initialize AnnotationRenderer.

        Args:
            font_table: (family, bold, italic) -> standard font name.
                If None, uses the standard table.
            default_font_size: Font size for annotations that omit one.
            isolate_errors: If True, a failing annotation is logged and the
                rest are still drawn. If False, the first failure propagates.
        """
        self._font_table = font_table
        self._default_font_size = default_font_size
        self._isolate_errors = isolate_errors

    def render(
        self, pdf: pdfium.PdfDocument, annotations: AnnotationPayload
    ) -> RenderReport:
        """Render annotations onto the document in input order.

        Args:
            pdf: Open PDFium document (modified in place).
            annotations: Annotation payload (JSON text, list, or None).

        Returns:
            RenderReport with per-outcome counts.

        Raises:
            ValueError: If the payload is malformed.
        """
        report = RenderReport()
        items = parse_annotations(annotations)
        if not items:
            return report

        fonts = StandardFontCache(pdf)
        pages: dict[int, pdfium.PdfPage] = {}

        for index, item in enumerate(items):
            try:
                drawn = self._render_one(pdf, fonts, pages, item)
            except Exception as exc:
                if not self._isolate_errors:
                    raise
                logger.warning("Skipping annotation #%d: %s", index, exc)
                report.failed += 1
                continue

            if drawn:
                report.rendered += 1
            else:
                report.skipped += 1

        # Regenerate each touched page's content stream once at the end
        for page in pages.values():
            page.gen_content()

        logger.info(
            "Rendered %d annotations (%d skipped, %d failed)",
            report.rendered,
            report.skipped,
            report.failed,
        )
        return report

    def _render_one(
        self,
        pdf: pdfium.PdfDocument,
        fonts: StandardFontCache,
        pages: dict[int, pdfium.PdfPage],
        item: Union[Annotation, Mapping[str, Any]],
    ) -> bool:
        if isinstance(item, Annotation):
            annotation = item
        else:
            annotation = Annotation.from_dict(dict(item), self._default_font_size)

        if annotation.page_number > len(pdf):
            logger.debug(
                "Annotation %s targets page %d of %d; ignored",
                annotation.id,
                annotation.page_number,
                len(pdf),
            )
            return False
        if not annotation.text:
            return False

        page_index = annotation.page_number - 1
        page = pages.get(page_index)
        if page is None:
            page = pdf[page_index]
            pages[page_index] = page

        page_width, page_height = page.get_size()
        abs_x, abs_y = to_page_coordinates(
            annotation.x, annotation.y, page_width, page_height
        )

        font_name = resolve_font_name(
            annotation.font_family,
            annotation.bold,
            annotation.italic,
            table=self._font_table,
        )
        font_handle = fonts.load(font_name)

        # Center horizontally on the click point; y stays on the baseline
        text_width = fonts.text_width(annotation.text, font_handle, annotation.font_size)
        x_pos = abs_x - text_width / 2
        y_pos = abs_y

        logger.debug(
            "Annotation %s: %r at (%.2f, %.2f) on page %d with %s %.1fpt",
            annotation.id,
            annotation.text,
            x_pos,
            y_pos,
            annotation.page_number,
            font_name,
            annotation.font_size,
        )

        self._insert_text(
            pdf,
            page,
            annotation.text,
            font_handle,
            annotation.font_size,
            annotation.rgb,
            x_pos,
            y_pos,
        )
        return True

    @staticmethod
    def _insert_text(
        pdf: pdfium.PdfDocument,
        page: pdfium.PdfPage,
        text: str,
        font_handle: ctypes.c_void_p,
        font_size: float,
        color: Color,
        x_pos: float,
        y_pos: float,
    ) -> None:
        """Insert a single-line text object with its baseline at (x_pos, y_pos)."""
        text_obj = pdfium.raw.FPDFPageObj_CreateTextObj(
            pdf.raw, font_handle, ctypes.c_float(font_size)
        )
        if not text_obj:
            raise RuntimeError("PDFium could not create a text object")

        if not pdfium.raw.FPDFText_SetText(text_obj, _widestring(text)):
            pdfium.raw.FPDFPageObj_Destroy(text_obj)
            raise RuntimeError(f"PDFium could not set text {text!r}")

        r, g, b = color.to_rgb255()
        pdfium.raw.FPDFPageObj_SetFillColor(text_obj, r, g, b, 255)

        pdfium.raw.FPDFPageObj_Transform(
            text_obj,
            ctypes.c_double(1.0),
            ctypes.c_double(0.0),
            ctypes.c_double(0.0),
            ctypes.c_double(1.0),
            ctypes.c_double(x_pos),
            ctypes.c_double(y_pos),
        )

        pdfium.raw.FPDFPage_InsertObject(page.raw, text_obj)
