"""Unit test conftest: in-memory documents, no Google APIs required."""

from __future__ import annotations

import io

import pytest


@pytest.fixture
def sample_docx_bytes() -> bytes:
    """Generate a 3-paragraph DOCX file in memory."""
    docx = pytest.importorskip("docx")
    doc = docx.Document()
    doc.add_paragraph("First paragraph of the document.")
    doc.add_paragraph("Second paragraph with more detail.")
    doc.add_paragraph("Third and final paragraph.")
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def empty_docx_bytes() -> bytes:
    """Generate a valid DOCX with no paragraphs containing text."""
    docx = pytest.importorskip("docx")
    doc = docx.Document()
    buf = io.BytesIO()
    doc.save(buf)
    return buf.getvalue()


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """Generate a 1-page PDF with 3 lines via fpdf2."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", size=12)
    pdf.cell(text="Line one of the PDF document.")
    pdf.ln()
    pdf.cell(text="Line two with additional content.")
    pdf.ln()
    pdf.cell(text="Line three concludes the page.")
    return bytes(pdf.output())


@pytest.fixture
def multi_page_pdf_bytes() -> bytes:
    """Generate a 3-page PDF for page order verification."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.set_font("Helvetica", size=12)
    for i in range(1, 4):
        pdf.add_page()
        pdf.cell(text=f"Content on page {i}.")
    return bytes(pdf.output())


@pytest.fixture
def empty_pdf_bytes() -> bytes:
    """Generate a 1-page PDF with no text content."""
    fpdf = pytest.importorskip("fpdf")
    pdf = fpdf.FPDF()
    pdf.add_page()
    return bytes(pdf.output())


def make_xlsx(sheets: dict[str, list[list[object]]]) -> bytes:
    openpyxl = pytest.importorskip("openpyxl")
    wb = openpyxl.Workbook()
    wb.remove(wb.active)
    for name, rows in sheets.items():
        ws = wb.create_sheet(title=name)
        for row in rows:
            ws.append(row)
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.fixture
def two_sheet_xlsx_bytes() -> bytes:
    """Workbook with Sheet1 and Sheet2, in that order."""
    return make_xlsx(
        {
            "Sheet1": [["Name", "Age"], ["Alice", 30], ["Bob", 25]],
            "Sheet2": [["Product", "Price"], ["Widget, large", 9.5]],
        }
    )


@pytest.fixture
def google_doc_structure() -> dict[str, object]:
    """A Docs API ``documents.get`` body with two paragraphs and a table."""
    return {
        "documentId": "gdoc1",
        "revisionId": "rev-7",
        "body": {
            "content": [
                {"sectionBreak": {}},
                {
                    "paragraph": {
                        "elements": [
                            {"textRun": {"content": "Hello "}},
                            {"textRun": {"content": "world.\n"}},
                        ]
                    }
                },
                {
                    "table": {
                        "tableRows": [
                            {
                                "tableCells": [
                                    {"content": [{"paragraph": {"elements": [{"textRun": {"content": "A1\n"}}]}}]},
                                    {"content": [{"paragraph": {"elements": [{"textRun": {"content": "B1\n"}}]}}]},
                                ]
                            }
                        ]
                    }
                },
                {
                    "paragraph": {
                        "elements": [
                            {"inlineObjectElement": {"inlineObjectId": "img1"}},
                            {"textRun": {"content": "Second paragraph.\n"}},
                        ]
                    }
                },
            ]
        },
    }
