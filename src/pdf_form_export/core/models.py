# SPDX-License-Identifier: Apache-2.0
"""Data models for templates, drafts and text annotations.

Annotations arrive from the editor UI as JSON objects with camelCase keys.
Positions are normalized to the page (0-1, origin at the top-left) and are
converted to PDF user space (origin at the bottom-left) at render time.
"""

from __future__ import annotations

import string
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

DEFAULT_FONT_FAMILY = "Helvetica"
DEFAULT_FONT_SIZE = 12.0
DEFAULT_COLOR = "#000000"

_HEX_DIGITS = frozenset(string.hexdigits)

_TRUE_STRINGS = frozenset({"true", "1", "yes", "on"})
_FALSE_STRINGS = frozenset({"false", "0", "no", "off", ""})


def _as_flag(value: Any, name: str) -> bool:
    """Read a style flag sent either as a JSON boolean or as text."""
    if value is None or isinstance(value, bool):
        return bool(value)
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"Annotation {name} must be a boolean, got {value!r}")


@dataclass(frozen=True)
class Color:
    """RGB color with normalized components.

    Attributes:
        r: Red component (0.0-1.0)
        g: Green component (0.0-1.0)
        b: Blue component (0.0-1.0)
    """

    r: float = 0.0
    g: float = 0.0
    b: float = 0.0

    @classmethod
    def from_hex(cls, value: Optional[str]) -> Color:
        """Parse a ``#RRGGBB`` string.

        Anything that is not exactly a ``#`` followed by six hex digits
        yields black.
        """
        if not isinstance(value, str) or len(value) != 7 or not value.startswith("#"):
            return cls()
        digits = value[1:]
        if not all(ch in _HEX_DIGITS for ch in digits):
            return cls()
        return cls(
            r=int(digits[0:2], 16) / 255.0,
            g=int(digits[2:4], 16) / 255.0,
            b=int(digits[4:6], 16) / 255.0,
        )

    def to_rgb255(self) -> tuple[int, int, int]:
        """Convert to 0-255 integer components (PDFium fill color format)."""
        return (
            int(round(self.r * 255)),
            int(round(self.g * 255)),
            int(round(self.b * 255)),
        )


@dataclass
class Annotation:
    """A free-form text annotation placed by the user.

    Attributes:
        id: Client-side identifier
        text: Text to draw
        x: Normalized horizontal position (0 = left edge)
        y: Normalized vertical position (0 = top edge)
        font_size: Font size in points
        font_family: Font family name (Helvetica, Times or Courier)
        color: Hex RGB string (``#RRGGBB``)
        bold: Bold style flag
        italic: Italic style flag
        page_number: Target page (1-indexed)
    """

    text: str
    x: float
    y: float
    id: Optional[str] = None
    font_size: float = DEFAULT_FONT_SIZE
    font_family: str = DEFAULT_FONT_FAMILY
    color: str = DEFAULT_COLOR
    bold: bool = False
    italic: bool = False
    page_number: int = 1

    def to_dict(self) -> dict[str, Any]:
        """Convert to the editor's JSON representation."""
        return {
            "id": self.id,
            "text": self.text,
            "x": self.x,
            "y": self.y,
            "fontSize": self.font_size,
            "fontFamily": self.font_family,
            "color": self.color,
            "bold": self.bold,
            "italic": self.italic,
            "pageNumber": self.page_number,
        }

    @classmethod
    def from_dict(
        cls,
        data: dict[str, Any],
        default_font_size: float = DEFAULT_FONT_SIZE,
    ) -> Annotation:
        """Create from the editor's JSON representation.

        Missing keys take their defaults. A non-positive page number is
        treated as page 1.

        Raises:
            TypeError: If data is not a JSON object.
            ValueError: If a numeric or boolean field cannot be converted.
        """
        if not isinstance(data, dict):
            raise TypeError(f"Annotation must be an object, got {type(data).__name__}")

        font_size = data.get("fontSize")
        page_number = int(data.get("pageNumber") or 1)
        return cls(
            id=data.get("id"),
            text=str(data.get("text") or ""),
            x=float(data.get("x") or 0.0),
            y=float(data.get("y") or 0.0),
            font_size=float(font_size) if font_size is not None else default_font_size,
            font_family=data.get("fontFamily") or DEFAULT_FONT_FAMILY,
            color=data.get("color") or DEFAULT_COLOR,
            bold=_as_flag(data.get("bold"), "bold"),
            italic=_as_flag(data.get("italic"), "italic"),
            page_number=page_number if page_number > 0 else 1,
        )

    @property
    def rgb(self) -> Color:
        """Parsed text color (black when malformed)."""
        return Color.from_hex(self.color)


@dataclass
class Template:
    """An uploaded PDF form template.

    Attributes:
        id: Template identifier
        stored_path: Path of the stored PDF file
        has_form_fields: Whether the PDF contains AcroForm fields
        title: Display title
    """

    id: str
    stored_path: str
    has_form_fields: bool = False
    title: str = ""


@dataclass
class Draft:
    """A saved, versioned fill of a template.

    Drafts are never mutated; saving again creates a new version.

    Attributes:
        id: Draft identifier (also names the export file)
        template_id: Identifier of the template being filled
        version: Version number, increasing per user and template
        form_data: Field name -> JSON value
        annotations: Raw annotation objects from the editor
        drawing_path: Path of the PNG drawing overlay
    """

    id: str
    template_id: str
    version: int = 1
    form_data: dict[str, Any] = field(default_factory=dict)
    annotations: Optional[list[dict[str, Any]]] = None
    drawing_path: Optional[str] = None


def next_draft_version(existing_versions: Iterable[int]) -> int:
    """Return the version number for a newly saved draft.

    Args:
        existing_versions: Versions already saved for the same user and template.

    Returns:
        One more than the highest existing version, or 1 if there are none.
    """
    return max(existing_versions, default=0) + 1
