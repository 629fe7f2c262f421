"""Export a novel's chapters as plain text or PDF.

The PDF helpers normalise text for the Latin-1 core fonts and wrap long
lines manually so FPDF never has to break an unbreakable run itself.
"""
from __future__ import annotations

import textwrap
import unicodedata
from typing import Optional

from fpdf import FPDF

from .jobs import GenerationJob

EXPORT_FORMATS = ("txt", "pdf")


class ExportError(RuntimeError):
    """Raised when a novel cannot be exported."""


_PDF_LATIN1_REPLACEMENTS = {
    ord("\u2010"): "-",  # hyphen
    ord("\u2011"): "-",  # non-breaking hyphen
    ord("\u2013"): "-",  # en dash
    ord("\u2014"): "-",  # em dash
    ord("\u2212"): "-",  # minus sign
    ord("\u2018"): "'",
    ord("\u2019"): "'",
    ord("\u201A"): "'",
    ord("\u201C"): '"',
    ord("\u201D"): '"',
    ord("\u201E"): '"',
    ord("\u00AB"): '"',
    ord("\u00BB"): '"',
    ord("\u2026"): "...",  # ellipsis
    ord("\u00A0"): " ",  # non-breaking space
    ord("\u2009"): " ",  # thin space
    ord("\u202F"): " ",  # narrow no-break space
    ord("\u200B"): "",  # zero-width space
    ord("\ufeff"): "",  # BOM
}


def _clean(value: Optional[str]) -> str:
    if not value:
        return ""
    return str(value).strip()


def export_filename(job: GenerationJob, fmt: str) -> str:
    stem = "".join(ch if ch.isalnum() or ch in "-_" else "_" for ch in job.title.strip()) or "novel"
    return f"{stem[:80]}.{fmt}"


def export_novel_to_txt(job: GenerationJob, *, include_outline: bool = False) -> str:
    """Return the novel as a single UTF-8 friendly text blob."""

    lines: list[str] = [_clean(job.title) or "Untitled Novel"]
    outline_text = _clean(job.outline.current)
    if include_outline and outline_text:
        lines.extend(["", "Outline:", outline_text])

    for record in job.chapters:
        lines.extend(["", f"Chapter {record.index}", ""])
        lines.append(_clean(record.content) or "(No draft text available.)")

    if not job.chapters:
        lines.extend(["", "(No chapters have been drafted yet.)"])

    return "\n".join(lines).rstrip() + "\n"


def _pdf_safe_text(text: str) -> str:
    normalized = unicodedata.normalize("NFKC", text or "")
    normalized = normalized.replace("\t", " ")
    replaced = normalized.translate(_PDF_LATIN1_REPLACEMENTS)
    return replaced.encode("latin-1", "replace").decode("latin-1")


def _pdf_wrapped_text(text: str, *, width: int = 100) -> str:
    safe_text = _pdf_safe_text(text)
    wrapped_lines = []
    for raw_line in safe_text.splitlines():
        if not raw_line:
            wrapped_lines.append("")
            continue
        chunks = textwrap.wrap(raw_line, width=width, break_long_words=True, break_on_hyphens=False)
        wrapped_lines.extend(chunks or [""])
    return "\n".join(wrapped_lines)


def _write(pdf: FPDF, width: float, height: float, text: str) -> None:
    sanitized = _pdf_wrapped_text(text)
    if not sanitized:
        return
    pdf.set_x(pdf.l_margin)
    pdf.multi_cell(width, height, sanitized)


def export_novel_to_pdf(job: GenerationJob, *, include_outline: bool = False) -> bytes:
    """Render the novel as PDF bytes, one chapter per page."""

    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.set_left_margin(15)
    pdf.set_right_margin(15)
    effective_width = pdf.w - pdf.l_margin - pdf.r_margin

    pdf.add_page()
    pdf.set_font("Times", "B", 18)
    _write(pdf, effective_width, 10, _clean(job.title) or "Untitled Novel")
    pdf.ln(4)

    outline_text = _clean(job.outline.current)
    if include_outline and outline_text:
        pdf.set_font("Times", "", 12)
        _write(pdf, effective_width, 6, "Outline:")
        pdf.ln(2)
        _write(pdf, effective_width, 6, outline_text)

    for record in job.chapters:
        pdf.add_page()
        pdf.set_font("Times", "B", 14)
        _write(pdf, effective_width, 10, f"Chapter {record.index}")
        pdf.ln(2)

        pdf.set_font("Times", "", 12)
        content = _clean(record.content) or "(No draft text available.)"
        for paragraph in content.split("\n\n"):
            cleaned = paragraph.strip()
            if not cleaned:
                continue
            _write(pdf, effective_width, 6.5, cleaned)
            pdf.ln(1.5)

    try:
        return bytes(pdf.output())
    except (RuntimeError, ValueError) as exc:
        raise ExportError(f"Unable to export PDF: {exc}") from exc


__all__ = [
    "EXPORT_FORMATS",
    "ExportError",
    "export_filename",
    "export_novel_to_pdf",
    "export_novel_to_txt",
]
