# SPDX-License-Identifier: Apache-2.0
"""AcroForm field filling and flattening using pikepdf.

Field values are written into the field dictionaries directly, then qpdf
regenerates the appearance streams and flattens every widget into the page
content. Fields that are missing from the payload keep their current value.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from io import BytesIO
from typing import Any, Iterator, Mapping, Optional

import pikepdf  # type: ignore[import-untyped]

logger = logging.getLogger(__name__)

# Field flag bits (PDF 32000-1, 12.7.4.2)
FF_PUSHBUTTON = 1 << 16

CHECKED_VALUE = "Yes"
UNCHECKED_VALUE = "Off"

FLATTEN_MODES = frozenset({"all", "print", "screen"})

_JSON_WHITESPACE = " \t\n\r"


@dataclass(frozen=True)
class RawJsonValue:
    """A decoded JSON value together with its source text.

    Attributes:
        value: The decoded Python value
        raw: The value's text exactly as it appeared in the payload
    """

    value: Any
    raw: str


def _skip_whitespace(text: str, index: int) -> int:
    while index < len(text) and text[index] in _JSON_WHITESPACE:
        index += 1
    return index


def parse_form_data_json(text: str) -> dict[str, Any]:
    """Decode a JSON object, keeping each member's literal text.

    Each member value is returned as a RawJsonValue so that numbers like
    ``10.50`` or ``1e3`` are written to the form as typed. A top-level
    ``null`` or blank text yields an empty mapping.

    Raises:
        ValueError: If the text is not valid JSON or not an object.
    """
    decoder = json.JSONDecoder()
    index = _skip_whitespace(text, 0)
    if index == len(text):
        return {}
    if text[index] != "{":
        value = json.loads(text)
        if value is None:
            return {}
        raise ValueError(f"Form data must be a JSON object, got {type(value).__name__}")

    result: dict[str, Any] = {}
    index = _skip_whitespace(text, index + 1)
    if text.startswith("}", index):
        index += 1
    else:
        while True:
            if not text.startswith('"', index):
                raise json.JSONDecodeError(
                    "Expecting property name enclosed in double quotes", text, index
                )
            key, index = decoder.raw_decode(text, index)
            index = _skip_whitespace(text, index)
            if not text.startswith(":", index):
                raise json.JSONDecodeError("Expecting ':' delimiter", text, index)
            start = _skip_whitespace(text, index + 1)
            value, end = decoder.raw_decode(text, start)
            result[key] = RawJsonValue(value=value, raw=text[start:end])

            index = _skip_whitespace(text, end)
            if text.startswith(",", index):
                index = _skip_whitespace(text, index + 1)
                continue
            if text.startswith("}", index):
                index += 1
                break
            raise json.JSONDecodeError("Expecting ',' delimiter", text, index)

    if _skip_whitespace(text, index) != len(text):
        raise json.JSONDecodeError("Extra data", text, index)
    return result


def coerce_field_value(value: Any) -> str:
    """Convert a JSON value into the string written to a form field.

    ``True`` becomes "Yes" and ``False`` becomes "Off". Strings pass
    through unchanged, numbers keep their literal text, and anything else
    is written as raw JSON. Values decoded by parse_form_data_json keep
    the exact text of the payload.
    """
    if isinstance(value, RawJsonValue):
        if isinstance(value.value, (bool, str)):
            return coerce_field_value(value.value)
        return value.raw
    if value is True:
        return CHECKED_VALUE
    if value is False:
        return UNCHECKED_VALUE
    if isinstance(value, str):
        return value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (int, float)):
        return json.dumps(value)
    return json.dumps(value, ensure_ascii=False, separators=(",", ":"), default=_json_default)


def _json_default(value: Any) -> Any:
    if isinstance(value, RawJsonValue):
        return value.value
    if isinstance(value, Decimal):
        return float(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


@dataclass
class FormField:
    """A terminal AcroForm field and its widget annotations.

    Attributes:
        name: Fully qualified field name (partial names joined with ".")
        field_type: Field type without the leading slash ("Tx", "Btn", "Ch", "Sig")
        flags: Field flags (/Ff), inherited from ancestors when absent
        obj: The field dictionary
        widgets: Widget annotation dictionaries that display the field
    """

    name: str
    field_type: str
    flags: int
    obj: pikepdf.Dictionary
    widgets: list[pikepdf.Dictionary] = field(default_factory=list)

    @property
    def is_button(self) -> bool:
        return self.field_type == "Btn"

    @property
    def is_settable(self) -> bool:
        """Whether a value can be written to this field."""
        if self.field_type == "Btn":
            return not self.flags & FF_PUSHBUTTON
        return self.field_type in ("Tx", "Ch")

    def on_states(self) -> list[str]:
        """Appearance state names other than Off, across all widgets."""
        states: list[str] = []
        for widget in self.widgets:
            for state in _appearance_states(widget):
                if state != UNCHECKED_VALUE and state not in states:
                    states.append(state)
        return states


@dataclass
class FillReport:
    """Outcome of a form fill."""

    fields_total: int = 0
    fields_filled: int = 0
    skipped: list[str] = field(default_factory=list)
    flattened: bool = False


def _appearance_states(widget: pikepdf.Dictionary) -> list[str]:
    appearance = widget.get("/AP")
    if appearance is None:
        return []
    normal = appearance.get("/N")
    if not isinstance(normal, pikepdf.Dictionary):
        return []
    return [str(key)[1:] for key in normal.keys()]


def iter_form_fields(pdf: pikepdf.Pdf) -> Iterator[FormField]:
    """Yield every terminal field of the document's AcroForm.

    Args:
        pdf: Open pikepdf document.

    Yields:
        FormField for each field that has no named children.
    """
    acroform = pdf.Root.get("/AcroForm")
    if acroform is None:
        return
    fields = acroform.get("/Fields")
    if fields is None:
        return

    seen: set[tuple[int, int]] = set()
    for node in fields:
        yield from _walk_field(node, "", "", 0, seen)


def _walk_field(
    node: pikepdf.Dictionary,
    parent_name: str,
    inherited_type: str,
    inherited_flags: int,
    seen: set[tuple[int, int]],
) -> Iterator[FormField]:
    if node.is_indirect:
        if node.objgen in seen:
            return
        seen.add(node.objgen)

    partial = node.get("/T")
    if partial is not None:
        name = f"{parent_name}.{partial}" if parent_name else str(partial)
    else:
        name = parent_name

    field_type = str(node.get("/FT", "/" + inherited_type if inherited_type else ""))
    field_type = field_type.lstrip("/")
    flags = int(node.get("/Ff", inherited_flags))

    kids = node.get("/Kids")
    children = [kid for kid in kids if "/T" in kid] if kids is not None else []
    if children:
        for kid in children:
            yield from _walk_field(kid, name, field_type, flags, seen)
        return

    if kids is not None:
        widgets = [kid for kid in kids if "/T" not in kid]
    else:
        widgets = [node]
    yield FormField(name=name, field_type=field_type, flags=flags, obj=node, widgets=widgets)


class FormFiller:
    """Fill AcroForm fields from a JSON object and flatten the form.

    Example:
        >>> filler = FormFiller()
        >>> output, report = filler.process_bytes(template_bytes, {"name": "Jane"})
        >>> report.fields_filled
        1
    """

    def __init__(self, flatten_mode: str = "all") -> None:
        """Initialize FormFiller.

        Args:
            flatten_mode: qpdf flattening mode ("all", "print" or "screen").
        """
        if flatten_mode not in FLATTEN_MODES:
            raise ValueError(f"flatten_mode must be one of {sorted(FLATTEN_MODES)}")
        self._flatten_mode = flatten_mode

    def fill(self, pdf: pikepdf.Pdf, form_data: Mapping[str, Any]) -> FillReport:
        """Write payload values into matching fields without flattening.

        Args:
            pdf: Open pikepdf document.
            form_data: Field name -> JSON value.

        Returns:
            FillReport describing matched and skipped fields.
        """
        report = FillReport()
        for form_field in iter_form_fields(pdf):
            report.fields_total += 1
            if form_field.name not in form_data:
                continue

            if not form_field.is_settable:
                report.skipped.append(form_field.name)
                continue

            value = coerce_field_value(form_data[form_field.name])
            try:
                if form_field.is_button:
                    self._set_button_value(form_field, value)
                else:
                    form_field.obj.V = pikepdf.String(value)
            except Exception as exc:
                logger.debug("Skipping field %s: %s", form_field.name, exc)
                report.skipped.append(form_field.name)
                continue
            report.fields_filled += 1

        return report

    def flatten(self, pdf: pikepdf.Pdf) -> None:
        """Regenerate field appearances and merge all widgets into page content."""
        acroform = pdf.Root.get("/AcroForm")
        if acroform is not None:
            acroform.NeedAppearances = True
        pdf.generate_appearance_streams()
        pdf.flatten_annotations(mode=self._flatten_mode)

    def fill_and_flatten(
        self, pdf: pikepdf.Pdf, form_data: Mapping[str, Any]
    ) -> FillReport:
        """Fill matching fields, then flatten if the form has any fields.

        Flattening happens even when no payload key matched a field. A
        document without fields is left untouched.
        """
        report = self.fill(pdf, form_data)
        if report.fields_total == 0:
            return report

        self.flatten(pdf)
        report.flattened = True
        logger.info(
            "Filled %d of %d form fields (%d skipped)",
            report.fields_filled,
            report.fields_total,
            len(report.skipped),
        )
        return report

    def process_bytes(
        self, pdf_bytes: bytes, form_data: Optional[Mapping[str, Any]]
    ) -> tuple[bytes, FillReport]:
        """Fill and flatten a PDF given as bytes.

        Returns:
            Tuple of (output bytes, report). The input bytes are returned
            unchanged when the document has no form fields.
        """
        with pikepdf.open(BytesIO(pdf_bytes)) as pdf:
            report = self.fill_and_flatten(pdf, form_data or {})
            if not report.flattened:
                return pdf_bytes, report

            output = BytesIO()
            pdf.save(output)
            return output.getvalue(), report

    @staticmethod
    def _set_button_value(form_field: FormField, value: str) -> None:
        """Select a checkbox or radio state and sync the widgets' /AS."""
        on_states = form_field.on_states()
        if value == UNCHECKED_VALUE:
            state = UNCHECKED_VALUE
        elif value in on_states:
            state = value
        elif value == CHECKED_VALUE and len(on_states) <= 1:
            state = on_states[0] if on_states else CHECKED_VALUE
        else:
            raise ValueError(f"{value!r} is not an appearance state of {form_field.name}")

        state_name = pikepdf.Name("/" + state)
        form_field.obj.V = state_name
        for widget in form_field.widgets:
            states = _appearance_states(widget)
            if not states:
                continue
            if state in states:
                widget.AS = state_name
            else:
                widget.AS = pikepdf.Name("/" + UNCHECKED_VALUE)
