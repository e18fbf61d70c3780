# SPDX-License-Identifier: Apache-2.0
"""Core PDF processing modules."""

from .annotation_renderer import (
    AnnotationRenderer,
    RenderReport,
    parse_annotations,
    to_page_coordinates,
)
from .drawing_overlay import DrawingOverlay
from .fonts import STANDARD_FONT_TABLE, StandardFontCache, resolve_font_name
from .form_filler import FillReport, FormField, FormFiller, coerce_field_value, iter_form_fields
from .models import Annotation, Color, Draft, Template, next_draft_version
from .template_inspector import FieldInfo, TemplateInfo, detect_form_fields, inspect_template

__all__ = [
    "Annotation",
    "AnnotationRenderer",
    "Color",
    "Draft",
    "DrawingOverlay",
    "FieldInfo",
    "FillReport",
    "FormField",
    "FormFiller",
    "RenderReport",
    "STANDARD_FONT_TABLE",
    "StandardFontCache",
    "Template",
    "TemplateInfo",
    "coerce_field_value",
    "detect_form_fields",
    "inspect_template",
    "iter_form_fields",
    "next_draft_version",
    "parse_annotations",
    "resolve_font_name",
    "to_page_coordinates",
]
