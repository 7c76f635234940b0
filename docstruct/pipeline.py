from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from time import perf_counter
from typing import Callable, Iterable, Mapping, Sequence

from . import config
from .diagnostics import DiagnosticLog, warn, write_log
from .numbering import NumberingTable, parse_numbering
from .package import DocumentParts, load_parts
from .paragraphs import ParagraphRecord, records_from_body
from .reconstruct import DocumentTree, reconstruct
from .structure import StructureModel, analyze_structure
from .style_reader import StyleTable, parse_styles
from .stylesheet import synthesize
from .theme_reader import DocumentSettings, ThemeInfo, parse_settings, parse_theme
from .xml_query import XmlQuery

SCHEMA_VERSION = "1.0"
_REQUIRED_PARTS = ("styles", "numbering", "document")


class MissingPartsError(ValueError):
    pass


@dataclass
class ConversionResult:
    styles: StyleTable
    numbering: NumberingTable
    theme: ThemeInfo
    settings: DocumentSettings
    paragraphs: list[ParagraphRecord]
    structure: StructureModel
    tree: DocumentTree
    stylesheet: str
    diagnostics: DiagnosticLog

    def meta(self) -> dict[str, object]:
        log = self.diagnostics
        return {
            "source": str(log.source) if log.source is not None else None,
            "styles_count": log.style_count,
            "abstract_numbering_count": log.abstract_numbering_count,
            "numbering_instance_count": log.numbering_instance_count,
            "paragraph_count": log.paragraph_count,
            "missing_parts": list(log.missing_parts),
            "used_fallback_stylesheet": log.used_fallback_stylesheet,
            "warnings": [
                {
                    "rule": warning.rule,
                    "reason": warning.reason,
                    "style_id": warning.style_id,
                    "num_id": warning.num_id,
                    "paragraph_index": warning.paragraph_index,
                }
                for warning in log.warnings
            ],
        }


@dataclass
class BatchItem:
    path: Path
    result: ConversionResult | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.result is not None


class DocumentConverter:
    def __init__(
        self,
        write_log: bool = True,
        log_retention_days: int | None = None,
        namespaces: Mapping[str, str] | None = None,
    ) -> None:
        self.write_log = write_log
        self.log_retention_days = log_retention_days
        self.namespaces = namespaces
        self._last_log: DiagnosticLog | None = None

    @property
    def last_log(self) -> DiagnosticLog | None:
        return self._last_log

    def convert_parts(
        self,
        parts: DocumentParts,
        paragraphs: Sequence[ParagraphRecord] | None = None,
    ) -> ConversionResult:
        log = DiagnosticLog(source=parts.source)
        return self._run(log, lambda: parts, paragraphs)

    def convert_docx(self, path: str | Path) -> ConversionResult:
        docx_path = Path(path)
        log = DiagnosticLog(source=docx_path)
        return self._run(log, lambda: load_parts(docx_path, log=log), None)

    def convert_batch(self, paths: Iterable[str | Path]) -> list[BatchItem]:
        items: list[BatchItem] = []
        for path in paths:
            item = BatchItem(path=Path(path))
            try:
                item.result = self.convert_docx(item.path)
            except Exception as exc:
                item.error = str(exc)
            items.append(item)
        return items

    def export_json(
        self,
        result: ConversionResult,
        output_path: str | Path | None = None,
    ) -> Path:
        if output_path is None:
            config.ensure_base_dirs()
            output = config.DEFAULT_OUTPUT_PATH
        else:
            output = Path(output_path)
            output.parent.mkdir(parents=True, exist_ok=True)
        payload = {
            "schema_version": SCHEMA_VERSION,
            "structure": result.structure.to_dict(),
            "tree": result.tree.to_dict(),
            "meta": result.meta(),
        }
        with output.open("w", encoding="utf-8") as handle:
            json.dump(payload, handle, ensure_ascii=False, indent=2)
        return output

    def _run(
        self,
        log: DiagnosticLog,
        load_parts_fn: Callable[[], DocumentParts],
        paragraphs: Sequence[ParagraphRecord] | None,
    ) -> ConversionResult:
        started = perf_counter()
        self._last_log = log
        try:
            parts = load_parts_fn()
            result = self._convert(parts, paragraphs, log)
        except Exception as exc:
            log.error = str(exc)
            log.elapsed_sec = perf_counter() - started
            self._flush(log)
            raise
        log.elapsed_sec = perf_counter() - started
        self._flush(log)
        return result

    def _convert(
        self,
        parts: DocumentParts,
        paragraphs: Sequence[ParagraphRecord] | None,
        log: DiagnosticLog,
    ) -> ConversionResult:
        for name in parts.missing():
            log.missing_parts.append(name)
            warn(log, "missing_part", f"{name} part is missing, defaults used")
        if all(getattr(parts, name) is None for name in _REQUIRED_PARTS):
            raise MissingPartsError("styles, numbering and document parts are all missing")
        query = XmlQuery(namespaces=self.namespaces, log=log)
        styles = parse_styles(parts.styles, log=log, query=query)
        theme = parse_theme(parts.theme, log=log, query=query)
        settings = parse_settings(parts.settings, body_root=parts.document, log=log, query=query)
        numbering = parse_numbering(parts.numbering, log=log, query=query)
        if paragraphs is None:
            records = records_from_body(parts.document, styles=styles, log=log, query=query)
        else:
            records = list(paragraphs)
            log.paragraph_count = len(records)
        _check_numbering_refs(records, numbering, log)
        structure = analyze_structure(records, styles=styles, log=log)
        tree = reconstruct(records, structure, numbering=numbering)
        stylesheet = synthesize(styles, numbering, theme, settings, log=log)
        return ConversionResult(
            styles=styles,
            numbering=numbering,
            theme=theme,
            settings=settings,
            paragraphs=records,
            structure=structure,
            tree=tree,
            stylesheet=stylesheet,
            diagnostics=log,
        )

    def _flush(self, log: DiagnosticLog) -> None:
        if not self.write_log:
            return
        write_log(log)
        if self.log_retention_days is not None:
            config.cleanup_logs(self.log_retention_days)


def _check_numbering_refs(
    records: Sequence[ParagraphRecord],
    numbering: NumberingTable,
    log: DiagnosticLog,
) -> None:
    for record in records:
        if record.num_id is None:
            continue
        if numbering.effective_level(record.num_id, record.level) is None:
            warn(
                log,
                "unresolved_numbering",
                f"no numbering level {record.level} for numId {record.num_id!r}",
                num_id=record.num_id,
                paragraph_index=record.index,
            )
