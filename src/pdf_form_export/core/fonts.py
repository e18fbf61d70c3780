# SPDX-License-Identifier: Apache-2.0
"""Standard font selection and text measurement.

Annotations can only use the base-14 PDF fonts, which every viewer ships,
so no font program has to be embedded. The family x bold x italic choice is
a table lookup.
"""

from __future__ import annotations

import ctypes
from typing import Mapping, Optional

import pypdfium2 as pdfium  # type: ignore[import-untyped]

FontKey = tuple[str, bool, bool]

DEFAULT_FAMILY = "helvetica"

# (family, bold, italic) -> standard PDF font name
STANDARD_FONT_TABLE: dict[FontKey, str] = {
    ("helvetica", False, False): "Helvetica",
    ("helvetica", True, False): "Helvetica-Bold",
    ("helvetica", False, True): "Helvetica-Oblique",
    ("helvetica", True, True): "Helvetica-BoldOblique",
    ("times", False, False): "Times-Roman",
    ("times", True, False): "Times-Bold",
    ("times", False, True): "Times-Italic",
    ("times", True, True): "Times-BoldItalic",
    ("courier", False, False): "Courier",
    ("courier", True, False): "Courier-Bold",
    ("courier", False, True): "Courier-Oblique",
    ("courier", True, True): "Courier-BoldOblique",
}


def resolve_font_name(
    family: Optional[str],
    bold: bool = False,
    italic: bool = False,
    table: Optional[Mapping[FontKey, str]] = None,
) -> str:
    """Pick the standard font for a family and style.

    Args:
        family: Font family name, matched case-insensitively.
        bold: Bold flag.
        italic: Italic flag.
        table: Lookup table; defaults to STANDARD_FONT_TABLE.

    Returns:
        Standard PDF font name. Unknown families resolve to Helvetica.
    """
    table = table if table is not None else STANDARD_FONT_TABLE
    family_key = (family or DEFAULT_FAMILY).strip().lower()
    key = (family_key, bool(bold), bool(italic))
    if key in table:
        return table[key]
    return table.get(
        (DEFAULT_FAMILY, bool(bold), bool(italic)),
        STANDARD_FONT_TABLE[(DEFAULT_FAMILY, bool(bold), bool(italic))],
    )


class StandardFontCache:
    """Loads standard fonts into one PDFium document and measures text.

    Font handles belong to the document they were loaded into, so a cache
    must not outlive or be shared across documents.
    """

    def __init__(self, pdf: pdfium.PdfDocument) -> None:
        self._pdf = pdf
        self._fonts: dict[str, ctypes.c_void_p] = {}

    def load(self, font_name: str) -> ctypes.c_void_p:
        """Load a standard PDF font.

        Args:
            font_name: Standard font name (e.g., "Helvetica", "Times-Roman")

        Returns:
            Font handle.

        Raises:
            ValueError: If PDFium does not recognize the font name.
        """
        if font_name in self._fonts:
            return self._fonts[font_name]

        font_handle = pdfium.raw.FPDFText_LoadStandardFont(
            self._pdf.raw, font_name.encode("utf-8")
        )
        if not font_handle:
            raise ValueError(f"Unable to load standard font: {font_name}")

        self._fonts[font_name] = font_handle
        return font_handle

    @staticmethod
    def text_width(text: str, font_handle: ctypes.c_void_p, font_size: float) -> float:
        """Sum the glyph advances of text at the given size, in points.

        Characters the font has no metrics for add nothing.
        """
        size = ctypes.c_float(font_size)
        advance = ctypes.c_float()

        def advance_of(codepoint: int) -> float:
            found = pdfium.raw.FPDFFont_GetGlyphWidth(
                font_handle, codepoint, size, ctypes.byref(advance)
            )
            return advance.value if found else 0.0

        return sum((advance_of(codepoint) for codepoint in map(ord, text)), 0.0)
