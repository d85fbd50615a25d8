"""Word (.docx) rendering of drafts, RFI documents, RFP responses and Form 470 responses.

Section text is light markdown: ``#``/``##``/``###`` headings, ``-``/``*``
bullets, ``1.`` numbered items, ``**bold**`` and ``*italic*`` runs.
Renderers return bytes; the CLI writes them atomically with write_output().
"""

from __future__ import annotations

import io
import os
import re
import tempfile
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from pathlib import Path

import typer
from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH

from rfpdesk.db.models import CompanyInfo, Project, Question
from rfpdesk.generate.templates import FORM470_SECTIONS, sections_for

RESPONSE_DAYS = 14

_NUMBERED_RE = re.compile(r"^\d+[.)]\s+")
_RUN_RE = re.compile(r"(\*\*\*(.+?)\*\*\*|\*\*(.+?)\*\*|\*(.+?)\*|([^*]+))")


# ------------------------------------------------------------------
# Markdown → docx helpers
# ------------------------------------------------------------------


def _add_formatted_text(paragraph, text: str) -> None:
    """Add *text* to *paragraph*, honouring ``***``, ``**`` and ``*`` emphasis."""
    for match in _RUN_RE.finditer(text):
        if match.group(2):
            run = paragraph.add_run(match.group(2))
            run.bold = True
            run.italic = True
        elif match.group(3):
            paragraph.add_run(match.group(3)).bold = True
        elif match.group(4):
            paragraph.add_run(match.group(4)).italic = True
        elif match.group(5):
            paragraph.add_run(match.group(5))


def _add_markdown(doc, text: str, base_level: int = 1) -> None:
    """Append markdown-ish *text*; its headings nest below *base_level*."""
    for line in text.split("\n"):
        stripped = line.strip()
        if not stripped or stripped in ("---", "***", "___"):
            continue
        if stripped.startswith("#"):
            hashes = len(stripped) - len(stripped.lstrip("#"))
            level = min(base_level + hashes, 9)
            doc.add_heading(stripped[hashes:].strip(), level=level)
        elif stripped.startswith(("- ", "* ", "• ")):
            _add_formatted_text(doc.add_paragraph(style="List Bullet"), stripped[2:].strip())
        elif _NUMBERED_RE.match(stripped):
            _add_formatted_text(
                doc.add_paragraph(style="List Number"), _NUMBERED_RE.sub("", stripped, count=1)
            )
        else:
            _add_formatted_text(doc.add_paragraph(), stripped)


def _add_info_table(doc, rows: Iterable[tuple[str, str]]) -> None:
    rows = list(rows)
    table = doc.add_table(rows=len(rows), cols=2)
    table.style = "Table Grid"
    for index, (label, value) in enumerate(rows):
        label_cell, value_cell = table.rows[index].cells
        label_cell.text = ""
        label_cell.paragraphs[0].add_run(label).bold = True
        value_cell.text = value


def _add_title(doc, title: str, subtitle: str) -> None:
    heading = doc.add_heading(title, level=0)
    heading.alignment = WD_ALIGN_PARAGRAPH.CENTER
    sub = doc.add_paragraph()
    sub.alignment = WD_ALIGN_PARAGRAPH.CENTER
    sub.add_run(subtitle).bold = True
    doc.core_properties.title = f"{title}: {subtitle}"


def _add_questions(doc, questions: list[Question], with_answers: bool) -> None:
    """Numbered questions grouped by category, answers underneath when present."""
    groups: dict[str, list[Question]] = {}
    for q in questions:
        groups.setdefault(q.category or "General", []).append(q)
    number = 0
    for category, items in groups.items():
        if len(groups) > 1 or category != "General":
            doc.add_heading(category, level=2)
        for q in items:
            number += 1
            p = doc.add_paragraph()
            p.add_run(f"{number}. ").bold = True
            _add_formatted_text(p, q.question_text)
            if q.required:
                p.add_run(" (required)").italic = True
            if with_answers:
                if q.answer and q.answer.strip():
                    _add_markdown(doc, q.answer, base_level=2)
                else:
                    doc.add_paragraph().add_run("No answer provided.").italic = True


def _save(doc) -> bytes:
    buffer = io.BytesIO()
    doc.save(buffer)
    return buffer.getvalue()


def _ordered_sections(
    sections: Mapping[str, str], layout: tuple[tuple[str, str], ...]
) -> list[tuple[str, str, str]]:
    """Return ``(key, heading, text)`` in layout order, then any extra keys."""
    known = {key for key, _ in layout}
    ordered = [(key, heading, sections.get(key, "")) for key, heading in layout if sections.get(key)]
    for key, text in sections.items():
        if key not in known and text:
            ordered.append((key, key.replace("_", " ").title(), text))
    return ordered


# ------------------------------------------------------------------
# Renderers
# ------------------------------------------------------------------


def render_draft(
    project: Project, sections: Mapping[str, str], version: int | None = None
) -> bytes:
    """Render a project's saved draft sections."""
    doc = Document()
    kind = "Request for Information" if project.project_type == "RFI" else "Proposal"
    _add_title(doc, f"{kind} Draft", project.name)
    info = [("Project", project.name), ("Type", project.project_type)]
    if project.organization_name:
        info.append(("Organization", project.organization_name))
    if version is not None:
        info.append(("Draft version", str(version)))
    info.append(("Exported", date.today().isoformat()))
    _add_info_table(doc, info)
    for _key, heading, text in _ordered_sections(sections, sections_for(project.project_type)):
        doc.add_heading(heading, level=1)
        _add_markdown(doc, text)
    return _save(doc)


def render_rfi(
    project: Project,
    sections: Mapping[str, str],
    questions: list[Question],
    company: CompanyInfo | None = None,
    issue_date: date | None = None,
) -> bytes:
    """Render the RFI document sent to vendors; questions go under Information Requested."""
    issue_date = issue_date or date.today()
    doc = Document()
    _add_title(doc, "Request for Information", project.name)
    contact = ""
    if company is not None:
        contact = ", ".join(v for v in (company.company_name, company.email, company.phone) if v)
    _add_info_table(
        doc,
        [
            ("Issuing Organization", project.organization_name or "Not specified"),
            ("Issue Date", issue_date.strftime("%B %d, %Y")),
            (
                "Response Due Date",
                (issue_date + timedelta(days=RESPONSE_DAYS)).strftime("%B %d, %Y"),
            ),
            ("Contact", contact or "Not specified"),
        ],
    )
    for key, heading, text in _ordered_sections(sections, sections_for("RFI")):
        doc.add_heading(heading, level=1)
        _add_markdown(doc, text)
        if key == "information_requested" and questions:
            _add_questions(doc, questions, with_answers=False)
    if questions and not sections.get("information_requested"):
        doc.add_heading("Information Requested", level=1)
        _add_questions(doc, questions, with_answers=False)
    return _save(doc)


def render_rfp_response(
    project: Project,
    sections: Mapping[str, str],
    questions: list[Question],
    company: CompanyInfo | None = None,
) -> bytes:
    """Render the proposal response, with answered questions as an appendix."""
    doc = Document()
    _add_title(doc, "Proposal Response", project.name)
    info = [("Prepared for", project.organization_name or "Not specified")]
    if company is not None and company.company_name:
        info.append(("Prepared by", company.company_name))
    info.append(("Date", date.today().strftime("%B %d, %Y")))
    _add_info_table(doc, info)
    for _key, heading, text in _ordered_sections(sections, sections_for("RFP")):
        doc.add_heading(heading, level=1)
        _add_markdown(doc, text)
    if questions:
        doc.add_page_break()
        doc.add_heading("Questionnaire Responses", level=1)
        _add_questions(doc, questions, with_answers=True)
    return _save(doc)


def render_form470(
    project: Project,
    sections: Mapping[str, str],
    questions: list[Question],
    company: CompanyInfo | None = None,
) -> bytes:
    """Render a vendor response to an E-Rate FCC Form 470."""
    doc = Document()
    _add_title(doc, "E-Rate Form 470 Response", project.name)
    info = [
        ("Applicant", project.organization_name or "Not specified"),
        ("Funding Program", "Universal Service Schools and Libraries Program (E-Rate)"),
        ("Response Date", date.today().strftime("%B %d, %Y")),
    ]
    if company is not None and company.company_name:
        info.append(("Service Provider", company.company_name))
        if company.email or company.phone:
            info.append(("Contact", ", ".join(v for v in (company.email, company.phone) if v)))
    _add_info_table(doc, info)
    for _key, heading, text in _ordered_sections(sections, FORM470_SECTIONS):
        doc.add_heading(heading, level=1)
        _add_markdown(doc, text)
    if questions:
        doc.add_heading("Responses to Applicant Questions", level=1)
        _add_questions(doc, questions, with_answers=True)
    return _save(doc)


# ------------------------------------------------------------------
# Writing to disk (CLI export)
# ------------------------------------------------------------------


def validate_output_path(output: str, allowed_base: Path | None = None) -> Path:
    """Resolve an --output value to the file that will be written.

    Absolute paths are taken as given. Relative paths must stay inside
    *allowed_base* (default: CWD) once ``..`` segments are resolved.

    Raises:
        ValueError: If a relative path escapes *allowed_base*.
    """
    requested = Path(output)
    if requested.is_absolute():
        return requested.resolve()

    base = (allowed_base or Path.cwd()).resolve()
    target = (base / requested).resolve()
    if target != base and base not in target.parents:
        raise ValueError(
            f"Path traversal: '{output}' would be written outside '{base}'."
        )
    return target


def check_overwrite(path: Path, yes: bool) -> bool:
    """True when *path* may be written: it is new, --yes was given, or the user agrees."""
    if yes or not path.exists():
        return True
    return typer.confirm(f"  {path.name} already exists. Overwrite?", default=False)


def write_output(path: Path, content: bytes) -> None:
    """Replace *path* with *content* in one rename so readers never see a partial file."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tempfile.NamedTemporaryFile(dir=path.parent, suffix=".tmp", delete=False) as tmp:
        tmp.write(content)
    try:
        os.replace(tmp.name, path)
    except OSError:
        Path(tmp.name).unlink(missing_ok=True)
        raise
