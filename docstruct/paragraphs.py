from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from lxml import etree

from .diagnostics import DiagnosticLog, warn
from .style_reader import StyleTable, TabStop, parse_styles, parse_tabs
from .units import parse_int
from .xml_query import XmlQuery

# generated tables of contents sit inside w:sdt blocks
_BODY_PARAGRAPHS = "//w:body/w:p | //w:body/w:sdt/w:sdtContent/w:p"
_RUN_TEXT = ".//w:r/w:t | .//w:r/w:tab"


@dataclass(frozen=True)
class ParagraphRecord:
    index: int
    text: str
    style_id: str | None = None
    num_id: str | None = None
    level: int | None = None
    has_toc_field: bool = False
    tab_stops: tuple[TabStop, ...] = ()
    alignment: str | None = None

    @property
    def is_numbered(self) -> bool:
        return self.num_id is not None

    @property
    def is_blank(self) -> bool:
        return not self.text.strip()


def records_from_body(
    body_root: etree._Element | None,
    styles: StyleTable | None = None,
    log: DiagnosticLog | None = None,
    query: XmlQuery | None = None,
) -> list[ParagraphRecord]:
    if body_root is None:
        return []
    q = query or XmlQuery(log=log)
    records: list[ParagraphRecord] = []
    for node in q.select(_BODY_PARAGRAPHS, body_root):
        index = len(records)
        try:
            record = _paragraph_record(q, node, index, styles)
        except Exception as exc:
            warn(log, "structure", f"unreadable paragraph ({exc})", paragraph_index=index)
            record = ParagraphRecord(index=index, text="")
        records.append(record)
    if log is not None:
        log.paragraph_count = len(records)
    return records


def records_from_docx(
    path: str | Path,
    styles: StyleTable | None = None,
    log: DiagnosticLog | None = None,
) -> list[ParagraphRecord]:
    from docx import Document

    docx_path = Path(path)
    if not docx_path.is_file():
        raise FileNotFoundError(f"docx not found: {docx_path}")
    document = Document(str(docx_path))
    query = XmlQuery(log=log)
    if styles is None:
        styles = parse_styles(document.styles.element, log=log, query=query)
    return records_from_body(document.element, styles=styles, log=log, query=query)


def _paragraph_record(
    q: XmlQuery,
    node: etree._Element,
    index: int,
    styles: StyleTable | None,
) -> ParagraphRecord:
    p_pr = q.select_one("w:pPr", node)
    style_id = q.attr(q.select_one("w:pStyle", p_pr), "val")
    num_id, level = _direct_numbering(q, p_pr)
    if num_id is None and style_id and styles is not None:
        resolved = styles.resolve_effective(style_id, "paragraph")
        if resolved is not None and resolved.paragraph.numbering is not None:
            ref = resolved.paragraph.numbering
            num_id = ref.num_id
            if level is None:
                level = ref.level
    # numId 0 switches numbering off, including numbering inherited from the style
    if not num_id or num_id == "0":
        num_id, level = None, None
    elif level is None:
        level = 0
    return ParagraphRecord(
        index=index,
        text=_paragraph_text(q, node),
        style_id=style_id,
        num_id=num_id,
        level=level,
        has_toc_field=_has_toc_field(q, node),
        tab_stops=parse_tabs(q, p_pr),
        alignment=q.attr(q.select_one("w:jc", p_pr), "val"),
    )


def _direct_numbering(q: XmlQuery, p_pr: etree._Element | None) -> tuple[str | None, int | None]:
    num_pr = q.select_one("w:numPr", p_pr)
    if num_pr is None:
        return None, None
    num_id = q.attr(q.select_one("w:numId", num_pr), "val") or None
    level = parse_int(q.attr(q.select_one("w:ilvl", num_pr), "val"))
    return num_id, level


def _paragraph_text(q: XmlQuery, node: etree._Element) -> str:
    parts: list[str] = []
    for elem in q.select(_RUN_TEXT, node):
        if q.local_name(elem) == "tab":
            parts.append("\t")
        else:
            parts.append(elem.text or "")
    return "".join(parts)


def _has_toc_field(q: XmlQuery, node: etree._Element) -> bool:
    for instr in q.select(".//w:instrText", node):
        if (instr.text or "").strip().upper().startswith("TOC"):
            return True
    for simple in q.select(".//w:fldSimple", node):
        if (q.attr(simple, "instr") or "").strip().upper().startswith("TOC"):
            return True
    return False
