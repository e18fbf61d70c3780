# SPDX-License-Identifier: Apache-2.0
"""Tests for AcroForm filling and flattening."""

from __future__ import annotations

import json
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable

import pikepdf
import pytest

from pdf_form_export.core.form_filler import (
    FormFiller,
    RawJsonValue,
    coerce_field_value,
    iter_form_fields,
    parse_form_data_json,
)


def _widget_count(pdf: pikepdf.Pdf) -> int:
    count = 0
    for page in pdf.pages:
        for annot in page.obj.get("/Annots", pikepdf.Array()):
            if annot.get("/Subtype") == pikepdf.Name.Widget:
                count += 1
    return count


class TestCoerceFieldValue:
    """Tests for JSON value coercion."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (True, "Yes"),
            (False, "Off"),
            ("Jane", "Jane"),
            ("", ""),
            (5, "5"),
            (1.5, "1.5"),
            (Decimal("10.50"), "10.50"),
            (None, "null"),
            ([1, 2], "[1,2]"),
            ({"a": 1}, '{"a":1}'),
        ],
    )
    def test_coercion_table(self, value: Any, expected: str) -> None:
        """Each JSON kind maps to its field text."""
        assert coerce_field_value(value) == expected

    def test_raw_value_keeps_literal_text(self) -> None:
        """A decoded number is written exactly as it was typed."""
        assert coerce_field_value(RawJsonValue(value=10.5, raw="10.50")) == "10.50"
        assert coerce_field_value(RawJsonValue(value=1000.0, raw="1e3")) == "1e3"

    def test_raw_booleans_and_strings_use_their_value(self) -> None:
        """Booleans still map to Yes/Off and strings lose their quotes."""
        assert coerce_field_value(RawJsonValue(value=True, raw="true")) == "Yes"
        assert coerce_field_value(RawJsonValue(value="aé", raw='"a\\u00e9"')) == "aé"


class TestParseFormDataJson:
    """Tests for decoding form data JSON text."""

    def test_numbers_keep_their_literal_text(self) -> None:
        """10.50 and 1e3 survive decoding and coercion unchanged."""
        data = parse_form_data_json('{"price": 10.50, "count": 1e3, "small": -2.500E-1}')

        coerced = {name: coerce_field_value(value) for name, value in data.items()}
        assert coerced == {"price": "10.50", "count": "1e3", "small": "-2.500E-1"}

    def test_other_kinds(self) -> None:
        """Booleans, strings, null and containers coerce like plain values."""
        text = '{"agree": true, "off": false, "name": "Jane", "none": null, "obj": {"k": [1, 2]}}'

        data = parse_form_data_json(text)
        coerced = {name: coerce_field_value(value) for name, value in data.items()}
        assert coerced == {
            "agree": "Yes",
            "off": "Off",
            "name": "Jane",
            "none": "null",
            "obj": '{"k": [1, 2]}',
        }

    def test_decoded_values_match_json(self) -> None:
        """The wrapped values equal what json.loads returns."""
        text = ' {\n "a" : 1 ,"b":[true, null], "c": "x"}\n'

        data = parse_form_data_json(text)
        assert {name: value.value for name, value in data.items()} == json.loads(text)

    def test_later_duplicate_key_wins(self) -> None:
        """Duplicate members resolve the way json.loads resolves them."""
        data = parse_form_data_json('{"a": 1, "a": 2.0}')
        assert coerce_field_value(data["a"]) == "2.0"

    @pytest.mark.parametrize("text", ["", "   ", "null", " null\n", "{}", "{ }"])
    def test_empty_payloads(self, text: str) -> None:
        """Blank text, null and an empty object all mean no values."""
        assert parse_form_data_json(text) == {}

    @pytest.mark.parametrize(
        "text",
        ['{"a": 1', '{"a" 1}', '{a: 1}', '{"a": 1,}', '{"a": 1} x', '{"a": 01}', "nope"],
    )
    def test_invalid_json_raises(self, text: str) -> None:
        """Malformed text raises ValueError (JSONDecodeError is a subclass)."""
        with pytest.raises(ValueError):
            parse_form_data_json(text)

    @pytest.mark.parametrize("text", ["[1, 2]", '"text"', "3", "true"])
    def test_non_object_raises(self, text: str) -> None:
        """Only a JSON object (or null) is accepted."""
        with pytest.raises(ValueError, match="JSON object"):
            parse_form_data_json(text)


class TestIterFormFields:
    """Tests for AcroForm traversal."""

    def test_lists_terminal_fields(self, form_pdf: Path) -> None:
        """Text and checkbox fields are found with their types."""
        with pikepdf.open(form_pdf) as pdf:
            fields = {f.name: f for f in iter_form_fields(pdf)}

            assert set(fields) == {"name", "agree"}
            assert fields["name"].field_type == "Tx"
            assert fields["agree"].field_type == "Btn"
            # Appearance states are read from the live document
            assert fields["agree"].on_states() == ["Yes"]

    def test_qualified_names(self, tmp_path: Path) -> None:
        """Kids with /T are joined to the parent name with a dot."""
        pdf = pikepdf.new()
        pdf.add_blank_page()
        child = pdf.make_indirect(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Annot,
                Subtype=pikepdf.Name.Widget,
                T=pikepdf.String("first"),
                Rect=pikepdf.Array([0, 0, 10, 10]),
            )
        )
        parent = pdf.make_indirect(
            pikepdf.Dictionary(
                FT=pikepdf.Name.Tx,
                T=pikepdf.String("person"),
                Kids=pikepdf.Array([child]),
            )
        )
        child.Parent = parent
        pdf.Root.AcroForm = pikepdf.Dictionary(Fields=pikepdf.Array([parent]))

        fields = list(iter_form_fields(pdf))

        assert [f.name for f in fields] == ["person.first"]
        assert fields[0].field_type == "Tx"

    def test_no_acroform(self) -> None:
        """A document without a form yields nothing."""
        pdf = pikepdf.new()
        pdf.add_blank_page()
        assert list(iter_form_fields(pdf)) == []


class TestFormFiller:
    """Tests for FormFiller."""

    def test_fill_sets_values(self, form_pdf: Path) -> None:
        """Text gets a string value and the checkbox its on state."""
        with pikepdf.open(form_pdf) as pdf:
            report = FormFiller().fill(pdf, {"name": "Jane", "agree": True})
            fields = {f.name: f for f in iter_form_fields(pdf)}

            assert report.fields_total == 2
            assert report.fields_filled == 2
            assert str(fields["name"].obj.V) == "Jane"
            assert fields["agree"].obj.V == pikepdf.Name("/Yes")
            assert fields["agree"].obj.AS == pikepdf.Name("/Yes")

    def test_unchecked_checkbox(self, form_pdf: Path) -> None:
        """False turns the checkbox off."""
        with pikepdf.open(form_pdf) as pdf:
            FormFiller().fill(pdf, {"agree": False})
            fields = {f.name: f for f in iter_form_fields(pdf)}
            assert fields["agree"].obj.V == pikepdf.Name("/Off")
            assert fields["agree"].obj.AS == pikepdf.Name("/Off")

    def test_unknown_button_state_is_skipped(self, form_pdf: Path) -> None:
        """A value that names no appearance state leaves the checkbox alone."""
        with pikepdf.open(form_pdf) as pdf:
            report = FormFiller().fill(pdf, {"agree": "Maybe"})
            assert report.fields_filled == 0
            assert report.skipped == ["agree"]

    def test_unmatched_keys_ignored(self, form_pdf: Path) -> None:
        """Payload keys without a field are ignored; absent fields keep values."""
        with pikepdf.open(form_pdf) as pdf:
            report = FormFiller().fill(pdf, {"nickname": "J"})
            fields = {f.name: f for f in iter_form_fields(pdf)}
            assert report.fields_filled == 0
            assert report.skipped == []
            assert "/V" not in fields["name"].obj

    def test_pushbutton_skipped(self, form_pdf_builder: Callable[..., Path]) -> None:
        """Push buttons cannot hold a value."""
        path = form_pdf_builder("buttons.pdf", with_pushbutton=True)
        with pikepdf.open(path) as pdf:
            report = FormFiller().fill(pdf, {"submit": "go"})
            assert report.skipped == ["submit"]

    def test_process_bytes_flattens(
        self, form_pdf: Path, tmp_path: Path, page_text: Callable[[Path, int], str]
    ) -> None:
        """Filled values end up in the page content and widgets are gone."""
        output, report = FormFiller().process_bytes(
            form_pdf.read_bytes(), {"name": "Jane", "agree": True}
        )
        out_path = tmp_path / "out.pdf"
        out_path.write_bytes(output)

        assert report.flattened is True
        assert "Jane" in page_text(out_path, 0)
        with pikepdf.open(out_path) as pdf:
            assert _widget_count(pdf) == 0

    def test_flattens_without_matches(self, form_pdf: Path) -> None:
        """Flattening happens whenever the form has fields."""
        output, report = FormFiller().process_bytes(form_pdf.read_bytes(), {})
        assert report.flattened is True
        assert output != form_pdf.read_bytes()

    def test_no_fields_is_noop(self, blank_pdf: Callable[..., Path]) -> None:
        """Without fields the input bytes come back unchanged."""
        data = blank_pdf().read_bytes()
        output, report = FormFiller().process_bytes(data, {"name": "Jane"})
        assert output == data
        assert report.fields_total == 0
        assert report.flattened is False

    def test_invalid_flatten_mode(self) -> None:
        """Unknown flatten modes are rejected."""
        with pytest.raises(ValueError):
            FormFiller(flatten_mode="everything")
