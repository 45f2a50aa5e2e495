from __future__ import annotations

from enum import StrEnum, auto

from fpdf import FPDF, XPos, YPos

from readme_forge.exceptions import UnsupportedFormatError

HEADING_SIZES = {1: 18, 2: 15, 3: 13}
BODY_SIZE = 11
LINE_HEIGHT = 6


class ExportFormat(StrEnum):
    MD = auto()
    TXT = auto()
    PDF = auto()


def export_markdown(text: str) -> bytes:
    """Markdown and plain text exports are the edited buffer, byte for byte."""
    return text.encode("utf-8")


def _latin1(text: str) -> str:
    # core PDF fonts only cover latin-1
    return text.encode("latin-1", "ignore").decode("latin-1")


def export_pdf(text: str, *, title: str | None = None) -> bytes:
    """Render a Markdown document to PDF.

    Headings get a bold, larger font, fenced code blocks a monospace one;
    everything else is written as wrapped body text. This is a readable
    rendering, not a Markdown engine.

    Args:
        text (str): the document
        title (str | None): optional document title stored in the PDF metadata

    Returns:
        bytes: the PDF file content
    """
    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    if title:
        pdf.set_title(_latin1(title))
    pdf.add_page()

    in_code = False
    for raw in text.splitlines():
        line = _latin1(raw)
        if line.strip().startswith("```"):
            in_code = not in_code
            continue
        if in_code:
            pdf.set_font("Courier", "", BODY_SIZE - 1)
        elif line.startswith("#"):
            level = len(line) - len(line.lstrip("#"))
            pdf.set_font("Helvetica", "B", HEADING_SIZES.get(level, BODY_SIZE + 1))
            line = line.lstrip("#").strip()
        else:
            pdf.set_font("Helvetica", "", BODY_SIZE)

        if not line.strip():
            pdf.ln(LINE_HEIGHT / 2)
            continue
        pdf.multi_cell(0, LINE_HEIGHT, line, new_x=XPos.LMARGIN, new_y=YPos.NEXT)

    return bytes(pdf.output())


def export_document(text: str, fmt: str | ExportFormat, *, title: str | None = None) -> bytes:
    """Convert `text` to the requested export format.

    Raises:
        UnsupportedFormatError: for anything other than md, txt or pdf
    """
    try:
        kind = ExportFormat(str(fmt).lower().lstrip("."))
    except ValueError as e:
        raise UnsupportedFormatError(fmt=str(fmt), message=f"Unsupported export format: {fmt}") from e
    if kind is ExportFormat.PDF:
        return export_pdf(text, title=title)
    return export_markdown(text)


def format_from_suffix(suffix: str) -> ExportFormat:
    """Guess the export format from an output file suffix, defaulting to Markdown."""
    try:
        return ExportFormat(suffix.lower().lstrip("."))
    except ValueError:
        return ExportFormat.MD
