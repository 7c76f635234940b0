from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from zipfile import BadZipFile, ZipFile

from lxml import etree

from .diagnostics import DiagnosticLog, warn

PART_PATHS = {
    "styles": "word/styles.xml",
    "numbering": "word/numbering.xml",
    "document": "word/document.xml",
    "theme": "word/theme/theme1.xml",
    "settings": "word/settings.xml",
}


@dataclass
class DocumentParts:
    styles: etree._Element | None = None
    numbering: etree._Element | None = None
    document: etree._Element | None = None
    theme: etree._Element | None = None
    settings: etree._Element | None = None
    source: Path | None = None

    def missing(self) -> list[str]:
        return [name for name in PART_PATHS if getattr(self, name) is None]

    @classmethod
    def from_xml(
        cls,
        styles: str | bytes | None = None,
        numbering: str | bytes | None = None,
        document: str | bytes | None = None,
        theme: str | bytes | None = None,
        settings: str | bytes | None = None,
        log: DiagnosticLog | None = None,
    ) -> "DocumentParts":
        raw = {
            "styles": styles,
            "numbering": numbering,
            "document": document,
            "theme": theme,
            "settings": settings,
        }
        return cls(**{name: parse_part(name, data, log) for name, data in raw.items()})


def xml_parser() -> etree.XMLParser:
    return etree.XMLParser(resolve_entities=False, no_network=True, huge_tree=False)


def parse_part(
    name: str,
    data: str | bytes | None,
    log: DiagnosticLog | None = None,
) -> etree._Element | None:
    if data is None:
        return None
    if isinstance(data, str):
        data = data.encode("utf-8")
    try:
        return etree.fromstring(data, parser=xml_parser())
    except etree.XMLSyntaxError as exc:
        warn(log, "missing_part", f"{name} part is not well-formed XML ({exc})")
        return None


def load_parts(path: str | Path, log: DiagnosticLog | None = None) -> DocumentParts:
    docx_path = Path(path)
    if not docx_path.exists():
        raise FileNotFoundError(f"docx not found: {docx_path}")
    if not docx_path.is_file():
        raise IsADirectoryError(f"docx path is not a file: {docx_path}")
    parts = DocumentParts(source=docx_path)
    try:
        with ZipFile(docx_path) as archive:
            names = set(archive.namelist())
            for name, member in PART_PATHS.items():
                if member not in names:
                    continue
                setattr(parts, name, parse_part(name, archive.read(member), log))
    except BadZipFile as exc:
        raise ValueError(f"invalid docx file: {docx_path}") from exc
    return parts
