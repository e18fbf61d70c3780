# SPDX-License-Identifier: Apache-2.0
"""Shared fixtures: test PDFs and drawings are generated per test."""

from __future__ import annotations

from io import BytesIO
from pathlib import Path
from typing import Callable

import pikepdf  # type: ignore[import-untyped]
import pypdfium2 as pdfium  # type: ignore[import-untyped]
import pytest
from PIL import Image

LETTER = (612.0, 792.0)


def _save_pdfium(pdf: pdfium.PdfDocument) -> bytes:
    buffer = BytesIO()
    pdf.save(buffer)
    return buffer.getvalue()


def _appearance_stream(pdf: pikepdf.Pdf, content: bytes) -> pikepdf.Stream:
    stream = pdf.make_stream(content)
    stream.Type = pikepdf.Name.XObject
    stream.Subtype = pikepdf.Name.Form
    stream.BBox = pikepdf.Array([0, 0, 14, 14])
    return stream


def build_form_pdf(path: Path, with_checkbox: bool = True, with_pushbutton: bool = False) -> Path:
    """Write a one-page AcroForm with a text field "name" and checkbox "agree"."""
    pdf = pikepdf.new()
    pdf.add_blank_page(page_size=LETTER)
    page = pdf.pages[0]

    helv = pdf.make_indirect(
        pikepdf.Dictionary(
            Type=pikepdf.Name.Font,
            Subtype=pikepdf.Name.Type1,
            BaseFont=pikepdf.Name.Helvetica,
            Encoding=pikepdf.Name.WinAnsiEncoding,
        )
    )

    fields = []
    text_field = pdf.make_indirect(
        pikepdf.Dictionary(
            Type=pikepdf.Name.Annot,
            Subtype=pikepdf.Name.Widget,
            FT=pikepdf.Name.Tx,
            T=pikepdf.String("name"),
            Rect=pikepdf.Array([72, 700, 300, 720]),
            F=4,
            DA=pikepdf.String("/Helv 12 Tf 0 g"),
            P=page.obj,
        )
    )
    fields.append(text_field)

    if with_checkbox:
        checkbox = pdf.make_indirect(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Annot,
                Subtype=pikepdf.Name.Widget,
                FT=pikepdf.Name.Btn,
                T=pikepdf.String("agree"),
                Rect=pikepdf.Array([72, 650, 86, 664]),
                F=4,
                V=pikepdf.Name.Off,
                AS=pikepdf.Name.Off,
                AP=pikepdf.Dictionary(
                    N=pikepdf.Dictionary(
                        {
                            "/Yes": _appearance_stream(pdf, b"0 g 2 2 10 10 re f"),
                            "/Off": _appearance_stream(pdf, b""),
                        }
                    )
                ),
                P=page.obj,
            )
        )
        fields.append(checkbox)

    if with_pushbutton:
        button = pdf.make_indirect(
            pikepdf.Dictionary(
                Type=pikepdf.Name.Annot,
                Subtype=pikepdf.Name.Widget,
                FT=pikepdf.Name.Btn,
                Ff=1 << 16,
                T=pikepdf.String("submit"),
                Rect=pikepdf.Array([72, 600, 150, 620]),
                F=4,
                P=page.obj,
            )
        )
        fields.append(button)

    page.obj.Annots = pdf.make_indirect(pikepdf.Array(fields))
    pdf.Root.AcroForm = pdf.make_indirect(
        pikepdf.Dictionary(
            Fields=pikepdf.Array(fields),
            DA=pikepdf.String("/Helv 0 Tf 0 g"),
            DR=pikepdf.Dictionary(Font=pikepdf.Dictionary(Helv=helv)),
        )
    )
    pdf.save(path)
    pdf.close()
    return path


@pytest.fixture
def blank_pdf(tmp_path: Path) -> Callable[..., Path]:
    """Factory for PDFs with empty pages and no form fields."""

    def build(
        name: str = "blank.pdf",
        pages: int = 1,
        width: float = LETTER[0],
        height: float = LETTER[1],
    ) -> Path:
        pdf = pdfium.PdfDocument.new()
        for _ in range(pages):
            pdf.new_page(width, height)
        path = tmp_path / name
        path.write_bytes(_save_pdfium(pdf))
        pdf.close()
        return path

    return build


@pytest.fixture
def form_pdf(tmp_path: Path) -> Path:
    """Template with a text field "name" and a checkbox "agree"."""
    return build_form_pdf(tmp_path / "form.pdf")


@pytest.fixture
def drawing_png(tmp_path: Path) -> Path:
    """Half-transparent red 40x30 PNG."""
    path = tmp_path / "drawing.png"
    Image.new("RGBA", (40, 30), (255, 0, 0, 128)).save(path, format="PNG")
    return path


@pytest.fixture
def page_text() -> Callable[[Path, int], str]:
    """Return a function extracting the text of one page (0-indexed)."""

    def extract(path: Path, page_index: int = 0) -> str:
        pdf = pdfium.PdfDocument(path)
        try:
            page = pdf[page_index]
            textpage = page.get_textpage()
            text: str = textpage.get_text_bounded()
            textpage.close()
            page.close()
            return text
        finally:
            pdf.close()

    return extract


@pytest.fixture
def form_pdf_builder(tmp_path: Path) -> Callable[..., Path]:
    """Factory for form templates with optional checkbox and push button."""

    def build(
        name: str = "form.pdf", with_checkbox: bool = True, with_pushbutton: bool = False
    ) -> Path:
        return build_form_pdf(
            tmp_path / name, with_checkbox=with_checkbox, with_pushbutton=with_pushbutton
        )

    return build
