# SPDX-License-Identifier: Apache-2.0
"""Template inspection: page count and fillable form fields."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Union

import pikepdf  # type: ignore[import-untyped]

from .form_filler import iter_form_fields

logger = logging.getLogger(__name__)


@dataclass
class FieldInfo:
    """Summary of one form field."""

    name: str
    field_type: str
    settable: bool


@dataclass
class TemplateInfo:
    """Result of inspecting a template PDF."""

    page_count: int
    fields: list[FieldInfo] = field(default_factory=list)

    @property
    def has_form_fields(self) -> bool:
        return bool(self.fields)

    @property
    def field_names(self) -> list[str]:
        return [info.name for info in self.fields]


def inspect_template(pdf_path: Union[Path, str]) -> TemplateInfo:
    """Read a template's page count and AcroForm fields.

    Args:
        pdf_path: Path to the template PDF.

    Returns:
        TemplateInfo for the document.

    Raises:
        FileNotFoundError: If the file does not exist.
        pikepdf.PdfError: If the file is not a readable PDF.
    """
    path = Path(pdf_path)
    if not path.exists():
        raise FileNotFoundError(f"PDF file not found: {path}")

    with pikepdf.open(path) as pdf:
        fields = [
            FieldInfo(
                name=form_field.name,
                field_type=form_field.field_type,
                settable=form_field.is_settable,
            )
            for form_field in iter_form_fields(pdf)
        ]
        return TemplateInfo(page_count=len(pdf.pages), fields=fields)


def detect_form_fields(pdf_path: Union[Path, str]) -> bool:
    """Return whether a template exposes fillable fields.

    Unreadable files are reported as having no fields so that an upload
    can still be stored.
    """
    try:
        return inspect_template(pdf_path).has_form_fields
    except pikepdf.PdfError as exc:
        logger.warning("Could not read form fields from %s: %s", pdf_path, exc)
        return False
