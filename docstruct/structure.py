from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Iterable, Sequence

from . import config
from .diagnostics import DiagnosticLog, warn
from .paragraphs import ParagraphRecord
from .style_reader import StyleTable, TabStop


class ScanState(str, Enum):
    SCANNING = "scanning"
    IN_TOC = "in_toc"


class PatternKind(str, Enum):
    WORD_FOR_WORD = "word_for_word"
    WORD_COMMA = "word_comma"
    WORD_PARENTHESIS = "word_parenthesis"


@dataclass(frozen=True)
class PatternRule:
    pattern_kind: PatternKind
    matcher: re.Pattern[str]
    min_occurrences: int = config.PATTERN_MIN_OCCURRENCES

    def matches(self, text: str) -> bool:
        return self.matcher.match(text) is not None


PATTERN_RULES: tuple[PatternRule, ...] = (
    PatternRule(PatternKind.WORD_FOR_WORD, re.compile(r"^\w+\s+for\s+.+$", re.IGNORECASE)),
    PatternRule(PatternKind.WORD_COMMA, re.compile(r"^\w+,\s*.*$")),
    PatternRule(PatternKind.WORD_PARENTHESIS, re.compile(r"^\w+\s+\([^)]+\)\s*.*$")),
)

LEADER_CHARS = {
    "dot": ".",
    "hyphen": "-",
    "underscore": "_",
    "heavy": "=",
    "middleDot": "·",
}

_TOC_ENTRY_PATTERN = re.compile(r"^(?P<text>.*?\S)[.\s…·]*[.\s…·](?P<page>\d+)\s*$")
_TOC_HEADING_PATTERN = re.compile(r"^\s*(table\s+of\s+)?contents\s*:?\s*$", re.IGNORECASE)
_TOC_STYLE_LEVEL_PATTERN = re.compile(r"toc\s*(\d)", re.IGNORECASE)
_DOT_RUN_PATTERN = re.compile(r"\.{3,}|…")
_HEADING_STYLE_PATTERN = re.compile(r"^(heading|title)", re.IGNORECASE)
_NON_WORD_PATTERN = re.compile(r"[^\w\s]")


@dataclass(frozen=True)
class TocEntry:
    paragraph_index: int
    level: int
    text: str
    page_number: int | None = None
    leader: str | None = None
    target_paragraph_index: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "paragraph_index": self.paragraph_index,
            "level": self.level,
            "text": self.text,
            "page_number": self.page_number,
            "leader": self.leader,
            "target_paragraph_index": self.target_paragraph_index,
        }


@dataclass(frozen=True)
class ListItem:
    paragraph_index: int
    level: int
    is_special: bool = False
    pattern_kind: PatternKind | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "paragraph_index": self.paragraph_index,
            "level": self.level,
            "is_special": self.is_special,
            "pattern_kind": self.pattern_kind.value if self.pattern_kind else None,
        }


@dataclass
class ListGroup:
    num_id: str
    items: list[ListItem] = field(default_factory=list)

    @property
    def last_level(self) -> int:
        return self.items[-1].level if self.items else 0

    def to_dict(self) -> dict[str, object]:
        return {"num_id": self.num_id, "items": [item.to_dict() for item in self.items]}


@dataclass(frozen=True)
class PatternMatch:
    pattern_kind: PatternKind
    occurrence_count: int
    examples: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "pattern_kind": self.pattern_kind.value,
            "occurrence_count": self.occurrence_count,
            "examples": list(self.examples),
        }


@dataclass
class StructureModel:
    has_toc: bool = False
    toc_entries: list[TocEntry] = field(default_factory=list)
    lists: list[ListGroup] = field(default_factory=list)
    special_patterns: list[PatternMatch] = field(default_factory=list)
    toc_leader: str | None = None

    def promoted_kinds(self) -> set[PatternKind]:
        return {match.pattern_kind for match in self.special_patterns}

    def match_special(self, text: str) -> PatternKind | None:
        return match_promoted(text, self.promoted_kinds())

    def to_dict(self) -> dict[str, object]:
        return {
            "has_toc": self.has_toc,
            "toc_leader": self.toc_leader,
            "toc_entries": [entry.to_dict() for entry in self.toc_entries],
            "lists": [group.to_dict() for group in self.lists],
            "special_patterns": [match.to_dict() for match in self.special_patterns],
        }


def analyze_structure(
    paragraphs: Sequence[ParagraphRecord],
    styles: StyleTable | None = None,
    log: DiagnosticLog | None = None,
    rules: Iterable[PatternRule] = PATTERN_RULES,
) -> StructureModel:
    rule_table = tuple(rules)
    model = StructureModel(special_patterns=collect_patterns(paragraphs, rule_table))
    promoted = model.promoted_kinds()
    state = ScanState.SCANNING
    current: ListGroup | None = None

    for record in paragraphs:
        try:
            state, is_toc_entry = _scan_toc(model, state, record, styles)
            if is_toc_entry:
                continue
            current = _scan_list(model, current, record, promoted, rule_table)
        except Exception as exc:
            warn(log, "structure", f"paragraph skipped ({exc})", paragraph_index=record.index)
    if model.toc_leader is None:
        model.toc_leader = next(
            (entry.leader for entry in model.toc_entries if entry.leader),
            None,
        )
    model.toc_entries = link_toc_targets(model.toc_entries, paragraphs, styles)
    return model


def collect_patterns(
    paragraphs: Sequence[ParagraphRecord],
    rules: Sequence[PatternRule] = PATTERN_RULES,
) -> list[PatternMatch]:
    counts: dict[PatternKind, int] = {}
    examples: dict[PatternKind, list[str]] = {}
    for record in paragraphs:
        line = first_line(record.text)
        if not line:
            continue
        rule = _first_matching_rule(line, rules)
        if rule is None:
            continue
        counts[rule.pattern_kind] = counts.get(rule.pattern_kind, 0) + 1
        bucket = examples.setdefault(rule.pattern_kind, [])
        if len(bucket) < config.PATTERN_MAX_EXAMPLES:
            bucket.append(line)
    promoted: list[PatternMatch] = []
    for rule in rules:
        count = counts.get(rule.pattern_kind, 0)
        if count >= rule.min_occurrences:
            promoted.append(
                PatternMatch(
                    pattern_kind=rule.pattern_kind,
                    occurrence_count=count,
                    examples=tuple(examples[rule.pattern_kind]),
                )
            )
    return promoted


def match_promoted(
    text: str,
    promoted: set[PatternKind],
    rules: Sequence[PatternRule] = PATTERN_RULES,
) -> PatternKind | None:
    line = first_line(text)
    if not line or not promoted:
        return None
    rule = _first_matching_rule(line, rules)
    if rule is None or rule.pattern_kind not in promoted:
        return None
    return rule.pattern_kind


def parse_toc_entry(text: str) -> tuple[str, int] | None:
    match = _TOC_ENTRY_PATTERN.match(text.strip())
    if not match:
        return None
    title = match.group("text").rstrip(". \t…·")
    if not title:
        return None
    return title, int(match.group("page"))


def link_toc_targets(
    entries: Sequence[TocEntry],
    paragraphs: Sequence[ParagraphRecord],
    styles: StyleTable | None = None,
) -> list[TocEntry]:
    if not entries:
        return []
    toc_end = max(entry.paragraph_index for entry in entries)
    body = [record for record in paragraphs if record.index > toc_end and not record.is_blank]
    headings = [record for record in body if _is_heading(record, styles)]
    linked: list[TocEntry] = []
    cursor = toc_end
    for entry in entries:
        target = _find_target(entry.text, headings, cursor)
        if target is None:
            target = _find_target(entry.text, body, cursor)
        if target is None:
            linked.append(entry)
            continue
        cursor = target
        linked.append(replace(entry, target_paragraph_index=target))
    return linked


def normalize_title(text: str) -> str:
    return " ".join(_NON_WORD_PATTERN.sub("", text.lower()).split())


def _find_target(text: str, candidates: Sequence[ParagraphRecord], after: int) -> int | None:
    wanted = normalize_title(text)
    if not wanted:
        return None
    for record in candidates:
        if record.index <= after:
            continue
        found = normalize_title(record.text)
        if found and (wanted in found or found in wanted):
            return record.index
    return None


def _is_heading(record: ParagraphRecord, styles: StyleTable | None) -> bool:
    if not record.style_id:
        return False
    if _HEADING_STYLE_PATTERN.match(record.style_id):
        return True
    if styles is None:
        return False
    resolved = styles.resolve_effective(record.style_id, "paragraph")
    return resolved is not None and resolved.paragraph.outline_level is not None


def toc_level(style_id: str | None) -> int:
    if style_id:
        match = _TOC_STYLE_LEVEL_PATTERN.search(style_id)
        if match:
            return int(match.group(1))
    return 1


def leader_char(tabs: Iterable[TabStop]) -> str | None:
    for tab in tabs:
        if tab.kind not in ("right", "end"):
            continue
        char = LEADER_CHARS.get(tab.leader or "")
        if char:
            return char
    return None


def first_line(text: str | None) -> str:
    if not text:
        return ""
    return text.split("\n")[0].strip()


def is_toc_trigger(record: ParagraphRecord) -> bool:
    if record.has_toc_field:
        return True
    if record.style_id and "toc" in record.style_id.lower():
        return True
    return bool(_TOC_HEADING_PATTERN.match(record.text or ""))


def _scan_toc(
    model: StructureModel,
    state: ScanState,
    record: ParagraphRecord,
    styles: StyleTable | None,
) -> tuple[ScanState, bool]:
    if state == ScanState.SCANNING:
        if not is_toc_trigger(record):
            return state, False
        model.has_toc = True
        state = ScanState.IN_TOC
    if len(model.toc_entries) >= config.TOC_EXIT_MIN_ENTRIES and _ends_toc(record):
        return ScanState.SCANNING, False
    parsed = parse_toc_entry(record.text or "")
    if parsed is None:
        return state, False
    title, page = parsed
    leader = leader_char(record.tab_stops) or _style_leader(record.style_id, styles)
    if leader is None and _DOT_RUN_PATTERN.search(record.text):
        leader = "."
    model.toc_entries.append(
        TocEntry(
            paragraph_index=record.index,
            level=toc_level(record.style_id),
            text=title,
            page_number=page,
            leader=leader,
        )
    )
    return state, True


def _ends_toc(record: ParagraphRecord) -> bool:
    return record.is_blank or record.style_id in (None, "Normal")


def _style_leader(style_id: str | None, styles: StyleTable | None) -> str | None:
    if not style_id or styles is None:
        return None
    resolved = styles.resolve_effective(style_id, "paragraph")
    if resolved is None:
        return None
    return leader_char(resolved.paragraph.tabs)


def _scan_list(
    model: StructureModel,
    current: ListGroup | None,
    record: ParagraphRecord,
    promoted: set[PatternKind],
    rules: Sequence[PatternRule],
) -> ListGroup | None:
    if record.num_id is not None:
        level = record.level if record.level is not None else 0
        if current is None or current.num_id != record.num_id:
            current = ListGroup(num_id=record.num_id)
            model.lists.append(current)
        current.items.append(ListItem(paragraph_index=record.index, level=level))
        return current
    if current is None or record.is_blank:
        return current
    kind = match_promoted(record.text, promoted, rules)
    if kind is None:
        return None
    current.items.append(
        ListItem(
            paragraph_index=record.index,
            level=current.last_level,
            is_special=True,
            pattern_kind=kind,
        )
    )
    return current


def _first_matching_rule(line: str, rules: Iterable[PatternRule]) -> PatternRule | None:
    for rule in rules:
        if rule.matches(line):
            return rule
    return None
