from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from . import config


@dataclass
class WarningEntry:
    rule: str
    reason: str
    style_id: str | None = None
    num_id: str | None = None
    paragraph_index: int | None = None


@dataclass
class DiagnosticLog:
    source: Path | None = None
    start_time: datetime = field(default_factory=datetime.now)
    warnings: list[WarningEntry] = field(default_factory=list)
    missing_parts: list[str] = field(default_factory=list)
    style_count: int = 0
    abstract_numbering_count: int = 0
    numbering_instance_count: int = 0
    paragraph_count: int = 0
    used_fallback_stylesheet: bool = False
    error: str | None = None
    elapsed_sec: float | None = None

    def warn(
        self,
        rule: str,
        reason: str,
        style_id: str | None = None,
        num_id: str | None = None,
        paragraph_index: int | None = None,
    ) -> None:
        self.warnings.append(
            WarningEntry(
                rule=rule,
                reason=reason,
                style_id=style_id,
                num_id=num_id,
                paragraph_index=paragraph_index,
            )
        )

    def rules(self) -> list[str]:
        return [warning.rule for warning in self.warnings]


def warn(
    log: DiagnosticLog | None,
    rule: str,
    reason: str,
    style_id: str | None = None,
    num_id: str | None = None,
    paragraph_index: int | None = None,
) -> None:
    if log is None:
        return
    log.warn(
        rule,
        reason,
        style_id=style_id,
        num_id=num_id,
        paragraph_index=paragraph_index,
    )


def format_log(log: DiagnosticLog) -> list[str]:
    lines = [
        f"source: {log.source if log.source is not None else 'in-memory'}",
        f"elapsed_sec: {log.elapsed_sec:.3f}"
        if log.elapsed_sec is not None
        else "elapsed_sec: unknown",
        f"styles_count: {log.style_count}",
        f"abstract_numbering_count: {log.abstract_numbering_count}",
        f"numbering_instance_count: {log.numbering_instance_count}",
        f"paragraph_count: {log.paragraph_count}",
    ]
    if log.missing_parts:
        lines.append(f"missing_parts: {', '.join(log.missing_parts)}")
    if log.used_fallback_stylesheet:
        lines.append("stylesheet: fallback")
    if log.error:
        lines.append(f"error: {log.error}")
    lines.append(f"warnings_count: {len(log.warnings)}")
    for warning in log.warnings:
        parts = [f"rule={warning.rule}", f"reason={warning.reason}"]
        if warning.style_id:
            parts.append(f"style_id={warning.style_id}")
        if warning.num_id:
            parts.append(f"num_id={warning.num_id}")
        if warning.paragraph_index is not None:
            parts.append(f"paragraph_index={warning.paragraph_index}")
        lines.append("warning: " + " ".join(parts))
    return lines


def write_log(log: DiagnosticLog) -> Path:
    config.ensure_base_dirs()
    log_path = config.build_log_path(log.start_time)
    log_path.write_text("\n".join(format_log(log)) + "\n", encoding="utf-8")
    return log_path
