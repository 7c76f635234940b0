from __future__ import annotations

import re
from dataclasses import dataclass, field, replace

from lxml import etree

from . import config
from .diagnostics import DiagnosticLog, warn
from .style_reader import (
    Indentation,
    RunFormatting,
    TabStop,
    parse_paragraph_properties,
    parse_run_properties,
)
from .units import parse_int
from .xml_query import XmlQuery

_PLACEHOLDER_PATTERN = re.compile(r"%([1-9])")
_CSS_COUNTER_STYLES = {
    "decimal": "decimal",
    "decimalZero": "decimal-leading-zero",
    "lowerLetter": "lower-alpha",
    "upperLetter": "upper-alpha",
    "lowerRoman": "lower-roman",
    "upperRoman": "upper-roman",
    "bullet": "disc",
    "none": "none",
    "aiueo": "hiragana",
    "aiueoFullWidth": "hiragana",
    "iroha": "hiragana-iroha",
    "irohaFullWidth": "hiragana-iroha",
    "ideographDigital": "cjk-ideographic",
    "japaneseCounting": "japanese-informal",
}
_BULLET_GLYPHS = {
    "": "•",
    "": "▪",
    "": "□",
    "": "➢",
    "": "❖",
    "": "✓",
    "": "➤",
    "o": "◦",
    "": "•",
}
_ROMAN_NUMERALS = (
    (1000, "M"),
    (900, "CM"),
    (500, "D"),
    (400, "CD"),
    (100, "C"),
    (90, "XC"),
    (50, "L"),
    (40, "XL"),
    (10, "X"),
    (9, "IX"),
    (5, "V"),
    (4, "IV"),
    (1, "I"),
)


@dataclass(frozen=True)
class PatternToken:
    level_ref: int
    literal_before: str = ""
    literal_after: str = ""
    separator: str = ""


@dataclass(frozen=True)
class LevelDef:
    level: int
    format: str = "decimal"
    text_pattern: str = "%1."
    alignment: str = "left"
    indentation: Indentation = field(default_factory=Indentation)
    start: int = 1
    restart_after_level: int | None = None
    suffix: str = "tab"
    is_legal: bool = False
    tentative: bool = False
    paragraph_style: str | None = None
    run: RunFormatting = field(default_factory=RunFormatting)
    tabs: tuple[TabStop, ...] = ()


@dataclass(frozen=True)
class AbstractNumbering:
    abstract_id: str
    multi_level_type: str | None = None
    levels: tuple[LevelDef | None, ...] = (None,) * config.MAX_NUMBERING_LEVELS

    def level(self, index: int) -> LevelDef | None:
        if not 0 <= index < len(self.levels):
            return None
        return self.levels[index]

    def defined_levels(self) -> list[int]:
        return [index for index, level in enumerate(self.levels) if level is not None]


@dataclass(frozen=True)
class LevelOverride:
    level: int
    start_override: int | None = None
    level_def: LevelDef | None = None


@dataclass(frozen=True)
class NumberingInstance:
    num_id: str
    abstract_id: str
    overrides: tuple[LevelOverride | None, ...] = (None,) * config.MAX_NUMBERING_LEVELS

    def override(self, index: int) -> LevelOverride | None:
        if not 0 <= index < len(self.overrides):
            return None
        return self.overrides[index]


@dataclass(frozen=True)
class EffectiveLevel:
    num_id: str
    abstract_id: str
    level: int
    format: str
    text_pattern: str
    tokens: tuple[PatternToken, ...]
    alignment: str
    indentation: Indentation
    start: int
    restart_after_level: int | None
    suffix: str
    is_legal: bool
    run: RunFormatting
    tabs: tuple[TabStop, ...]
    source: str = "abstract"

    @property
    def is_bullet(self) -> bool:
        return self.format == "bullet"

    @property
    def counter_style(self) -> str:
        return css_counter_style(self.format)

    @property
    def bullet_glyph(self) -> str:
        return bullet_glyph(self.text_pattern)


@dataclass
class NumberingTable:
    abstracts: dict[str, AbstractNumbering] = field(default_factory=dict)
    instances: dict[str, NumberingInstance] = field(default_factory=dict)

    def effective_level(self, num_id: str | None, level: int | None) -> EffectiveLevel | None:
        if num_id is None or level is None:
            return None
        if not 0 <= level < config.MAX_NUMBERING_LEVELS:
            return None
        instance = self.instances.get(num_id)
        if instance is None:
            return None
        abstract = self.abstracts.get(instance.abstract_id)
        if abstract is None:
            return None
        base = abstract.level(level)
        source = "abstract"
        override = instance.override(level)
        if override is not None and override.level_def is not None:
            base = override.level_def
            source = "override"
        if base is None:
            return None
        if override is not None and override.start_override is not None:
            base = replace(base, start=override.start_override)
            if source == "abstract":
                source = "start_override"
        return EffectiveLevel(
            num_id=num_id,
            abstract_id=abstract.abstract_id,
            level=level,
            format=base.format,
            text_pattern=base.text_pattern,
            tokens=parse_text_pattern(base.text_pattern),
            alignment=base.alignment,
            indentation=base.indentation,
            start=base.start,
            restart_after_level=base.restart_after_level,
            suffix=base.suffix,
            is_legal=base.is_legal,
            run=base.run,
            tabs=base.tabs,
            source=source,
        )

    def levels_for(self, num_id: str) -> list[EffectiveLevel]:
        levels: list[EffectiveLevel] = []
        for index in range(config.MAX_NUMBERING_LEVELS):
            effective = self.effective_level(num_id, index)
            if effective is not None:
                levels.append(effective)
        return levels

    def sorted_num_ids(self) -> list[str]:
        return sorted(self.instances, key=_id_sort_key)


class NumberingSequenceTracker:
    def __init__(self, table: NumberingTable) -> None:
        self.table = table
        self._counters: dict[str, dict[int, int]] = {}

    def next_marker(self, num_id: str | None, level: int | None) -> "NumberMarker | None":
        effective = self.table.effective_level(num_id, level)
        if effective is None:
            return None
        counters = self._counters.setdefault(effective.num_id, {})
        self._restart_deeper_levels(effective.num_id, effective.level, counters)
        current = counters.get(effective.level)
        value = effective.start if current is None else current + 1
        counters[effective.level] = value
        if effective.is_bullet:
            text = effective.bullet_glyph
        else:
            text = self._render(effective, counters)
        return NumberMarker(value=value, text=text, format=effective.format)

    def _restart_deeper_levels(self, num_id: str, level: int, counters: dict[int, int]) -> None:
        for deeper in [index for index in counters if index > level]:
            effective = self.table.effective_level(num_id, deeper)
            restart_after = effective.restart_after_level if effective is not None else None
            if restart_after == 0:
                continue
            # w:lvlRestart is 1-based: restart after a level at or above it appears
            if restart_after is None or level < restart_after:
                del counters[deeper]

    def _render(self, effective: EffectiveLevel, counters: dict[int, int]) -> str:
        if not effective.tokens:
            return effective.text_pattern
        parts: list[str] = []
        for token in effective.tokens:
            ref = token.level_ref - 1
            ref_level = self.table.effective_level(effective.num_id, ref)
            value = counters.get(ref)
            if value is None:
                value = ref_level.start if ref_level is not None else 1
            fmt = ref_level.format if ref_level is not None else effective.format
            if effective.is_legal and ref != effective.level:
                fmt = "decimal"
            parts.append(token.literal_before)
            parts.append(format_number(value, fmt))
            parts.append(token.separator)
            parts.append(token.literal_after)
        return "".join(parts)


@dataclass(frozen=True)
class NumberMarker:
    value: int
    text: str
    format: str


def parse_numbering(
    root: etree._Element | None,
    log: DiagnosticLog | None = None,
    query: XmlQuery | None = None,
) -> NumberingTable:
    table = NumberingTable()
    if root is None:
        return table
    q = query or XmlQuery(log=log)
    for node in q.select("//w:abstractNum", root):
        try:
            abstract = _parse_abstract(q, node, log)
        except Exception as exc:
            warn(log, "numbering", f"failed to parse abstractNum ({exc})")
            continue
        if abstract is not None:
            table.abstracts[abstract.abstract_id] = abstract
    for node in q.select("//w:num", root):
        try:
            instance = _parse_instance(q, node, log)
        except Exception as exc:
            warn(log, "numbering", f"failed to parse num ({exc})", num_id=q.attr(node, "numId"))
            continue
        if instance is None:
            continue
        if instance.abstract_id not in table.abstracts:
            warn(
                log,
                "unresolved_numbering",
                f"abstractNumId {instance.abstract_id!r} is not defined",
                num_id=instance.num_id,
            )
        table.instances[instance.num_id] = instance
    if log is not None:
        log.abstract_numbering_count = len(table.abstracts)
        log.numbering_instance_count = len(table.instances)
    return table


def parse_level(q: XmlQuery, node: etree._Element) -> LevelDef:
    index = parse_int(q.attr(node, "ilvl"))
    if index is None or not 0 <= index < config.MAX_NUMBERING_LEVELS:
        raise ValueError(f"invalid ilvl {q.attr(node, 'ilvl')!r}")
    start = parse_int(q.attr(q.select_one("w:start", node), "val"))
    restart = parse_int(q.attr(q.select_one("w:lvlRestart", node), "val"))
    text_elem = q.select_one("w:lvlText", node)
    text_pattern = q.attr(text_elem, "val")
    if text_pattern is None:
        text_pattern = "" if text_elem is not None else f"%{index + 1}."
    p_pr = parse_paragraph_properties(q, q.select_one("w:pPr", node))
    return LevelDef(
        level=index,
        format=q.attr(q.select_one("w:numFmt", node), "val") or "decimal",
        text_pattern=text_pattern,
        alignment=q.attr(q.select_one("w:lvlJc", node), "val") or "left",
        indentation=p_pr.indentation,
        start=start if start is not None else 1,
        restart_after_level=restart,
        suffix=q.attr(q.select_one("w:suff", node), "val") or "tab",
        is_legal=bool(q.on_off(q.select_one("w:isLgl", node))),
        tentative=(q.attr(node, "tentative") or "").lower() in {"1", "true", "on"},
        paragraph_style=q.attr(q.select_one("w:pStyle", node), "val"),
        run=parse_run_properties(q, q.select_one("w:rPr", node)),
        tabs=p_pr.tabs,
    )


def parse_text_pattern(text: str) -> tuple[PatternToken, ...]:
    matches = list(_PLACEHOLDER_PATTERN.finditer(text or ""))
    tokens: list[PatternToken] = []
    for position, match in enumerate(matches):
        is_first = position == 0
        is_last = position == len(matches) - 1
        next_start = len(text) if is_last else matches[position + 1].start()
        between = text[match.end():next_start]
        tokens.append(
            PatternToken(
                level_ref=int(match.group(1)),
                literal_before=text[: match.start()] if is_first else "",
                literal_after=between if is_last else "",
                separator="" if is_last else between,
            )
        )
    return tuple(tokens)


def css_counter_style(word_format: str | None) -> str:
    if not word_format:
        return "decimal"
    return _CSS_COUNTER_STYLES.get(word_format, "decimal")


def bullet_glyph(text_pattern: str | None) -> str:
    text = text_pattern or ""
    return _BULLET_GLYPHS.get(text, text)


def format_number(value: int, word_format: str | None) -> str:
    fmt = word_format or "decimal"
    if fmt == "none":
        return ""
    if fmt == "bullet":
        return _BULLET_GLYPHS[""]
    if fmt == "decimalZero":
        return f"{value:02d}"
    if fmt in {"lowerLetter", "upperLetter"} and value > 0:
        # Word repeats the letter: 27 -> "aa"
        letter = chr(ord("a") + (value - 1) % 26) * ((value - 1) // 26 + 1)
        return letter if fmt == "lowerLetter" else letter.upper()
    if fmt in {"lowerRoman", "upperRoman"} and value > 0:
        roman = _to_roman(value)
        return roman.lower() if fmt == "lowerRoman" else roman
    return str(value)


def _to_roman(value: int) -> str:
    parts: list[str] = []
    remaining = value
    for amount, numeral in _ROMAN_NUMERALS:
        while remaining >= amount:
            parts.append(numeral)
            remaining -= amount
    return "".join(parts)


def _parse_abstract(
    q: XmlQuery,
    node: etree._Element,
    log: DiagnosticLog | None,
) -> AbstractNumbering | None:
    abstract_id = q.attr(node, "abstractNumId")
    if not abstract_id:
        warn(log, "numbering", "abstractNum without abstractNumId skipped")
        return None
    levels: list[LevelDef | None] = [None] * config.MAX_NUMBERING_LEVELS
    for lvl_node in q.select("w:lvl", node):
        try:
            level = parse_level(q, lvl_node)
        except Exception as exc:
            warn(log, "numbering", f"abstractNum {abstract_id}: level skipped ({exc})")
            continue
        levels[level.level] = level
    return AbstractNumbering(
        abstract_id=abstract_id,
        multi_level_type=q.attr(q.select_one("w:multiLevelType", node), "val"),
        levels=tuple(levels),
    )


def _parse_instance(
    q: XmlQuery,
    node: etree._Element,
    log: DiagnosticLog | None,
) -> NumberingInstance | None:
    num_id = q.attr(node, "numId")
    if not num_id:
        warn(log, "numbering", "num without numId skipped")
        return None
    abstract_id = q.attr(q.select_one("w:abstractNumId", node), "val")
    if not abstract_id:
        warn(log, "numbering", "num without abstractNumId skipped", num_id=num_id)
        return None
    overrides: list[LevelOverride | None] = [None] * config.MAX_NUMBERING_LEVELS
    for override_node in q.select("w:lvlOverride", node):
        index = parse_int(q.attr(override_node, "ilvl"))
        if index is None or not 0 <= index < config.MAX_NUMBERING_LEVELS:
            warn(log, "numbering", "lvlOverride with invalid ilvl skipped", num_id=num_id)
            continue
        start_override = parse_int(q.attr(q.select_one("w:startOverride", override_node), "val"))
        level_def = None
        lvl_node = q.select_one("w:lvl", override_node)
        if lvl_node is not None:
            try:
                level_def = replace(parse_level(q, lvl_node), level=index)
            except Exception as exc:
                warn(log, "numbering", f"override level skipped ({exc})", num_id=num_id)
        overrides[index] = LevelOverride(
            level=index,
            start_override=start_override,
            level_def=level_def,
        )
    return NumberingInstance(num_id=num_id, abstract_id=abstract_id, overrides=tuple(overrides))


def _id_sort_key(value: str) -> tuple[int, int, str]:
    number = parse_int(value)
    if number is None:
        return (1, 0, value)
    return (0, number, value)
