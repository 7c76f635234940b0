from __future__ import annotations

from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import Iterable, Mapping

from lxml import etree

from . import config
from .diagnostics import DiagnosticLog, warn
from .units import parse_int
from .xml_query import XmlQuery

STYLE_KINDS = ("paragraph", "character", "table", "numbering")
BORDER_SIDES = ("top", "left", "bottom", "right", "between", "insideH", "insideV")


@dataclass(frozen=True)
class FontSpec:
    ascii: str | None = None
    hAnsi: str | None = None
    eastAsia: str | None = None
    cs: str | None = None
    ascii_theme: str | None = None
    hAnsi_theme: str | None = None
    eastAsia_theme: str | None = None
    cs_theme: str | None = None

    def preferred_name(self) -> str | None:
        return self.ascii or self.hAnsi or self.eastAsia or self.cs

    def is_empty(self) -> bool:
        return all(getattr(self, name) is None for name in self.__dataclass_fields__)

    def apply_theme(self, theme_map: Mapping[str, str] | None) -> "FontSpec":
        if not theme_map:
            return self
        return replace(
            self,
            ascii=_resolve_theme_font(theme_map, self.ascii_theme) or self.ascii,
            hAnsi=_resolve_theme_font(theme_map, self.hAnsi_theme) or self.hAnsi,
            eastAsia=_resolve_theme_font(theme_map, self.eastAsia_theme) or self.eastAsia,
            cs=_resolve_theme_font(theme_map, self.cs_theme) or self.cs,
        )


@dataclass(frozen=True)
class RunFormatting:
    fonts: FontSpec = field(default_factory=FontSpec)
    size_half_points: int | None = None
    bold: bool | None = None
    italic: bool | None = None
    color: str | None = None
    underline: str | None = None
    highlight: str | None = None


@dataclass(frozen=True)
class Indentation:
    left: int | None = None
    right: int | None = None
    first_line: int | None = None
    hanging: int | None = None


@dataclass(frozen=True)
class Spacing:
    before: int | None = None
    after: int | None = None
    line: int | None = None
    line_rule: str | None = None


@dataclass(frozen=True)
class Border:
    value: str | None = None
    size: int | None = None
    color: str | None = None
    space: int | None = None

    def is_visible(self) -> bool:
        return self.value not in (None, "nil", "none")


@dataclass(frozen=True)
class Shading:
    value: str | None = None
    color: str | None = None
    fill: str | None = None


@dataclass(frozen=True)
class TabStop:
    position: int
    kind: str
    leader: str | None = None


@dataclass(frozen=True)
class NumberingRef:
    num_id: str
    level: int = 0


@dataclass(frozen=True)
class ParagraphFormatting:
    alignment: str | None = None
    indentation: Indentation = field(default_factory=Indentation)
    spacing: Spacing = field(default_factory=Spacing)
    borders: Mapping[str, Border] = field(default_factory=lambda: MappingProxyType({}))
    shading: Shading | None = None
    tabs: tuple[TabStop, ...] = ()
    numbering: NumberingRef | None = None
    outline_level: int | None = None


@dataclass(frozen=True)
class StyleRecord:
    style_id: str
    kind: str
    name: str
    based_on: str | None = None
    is_default: bool = False
    run: RunFormatting = field(default_factory=RunFormatting)
    paragraph: ParagraphFormatting = field(default_factory=ParagraphFormatting)
    table_borders: Mapping[str, Border] = field(default_factory=lambda: MappingProxyType({}))


@dataclass
class StyleTable:
    paragraph: dict[str, StyleRecord] = field(default_factory=dict)
    character: dict[str, StyleRecord] = field(default_factory=dict)
    table: dict[str, StyleRecord] = field(default_factory=dict)
    numbering: dict[str, StyleRecord] = field(default_factory=dict)
    defaults: StyleRecord = field(
        default_factory=lambda: StyleRecord(style_id="", kind="paragraph", name="docDefaults")
    )
    log: DiagnosticLog | None = field(default=None, repr=False, compare=False)

    def by_kind(self, kind: str) -> dict[str, StyleRecord]:
        if kind not in STYLE_KINDS:
            raise ValueError(f"unknown style kind: {kind!r}")
        return getattr(self, kind)

    def get(self, style_id: str, kind: str | None = None) -> StyleRecord | None:
        kinds = (kind,) if kind is not None else STYLE_KINDS
        for name in kinds:
            record = self.by_kind(name).get(style_id)
            if record is not None:
                return record
        return None

    def default_style(self, kind: str = "paragraph") -> StyleRecord | None:
        for record in self.by_kind(kind).values():
            if record.is_default:
                return record
        return None

    def count(self) -> int:
        return sum(len(self.by_kind(kind)) for kind in STYLE_KINDS)

    def resolve_effective(
        self,
        style_id: str,
        kind: str | None = None,
        include_defaults: bool = False,
    ) -> StyleRecord | None:
        target = self.get(style_id, kind)
        if target is None:
            return None
        chain = collect_style_chain(self, target, log=self.log)
        if include_defaults:
            chain.insert(0, self.defaults)
        run = RunFormatting()
        paragraph = ParagraphFormatting()
        table_borders: Mapping[str, Border] = MappingProxyType({})
        for style in chain:
            run = merge_run(run, style.run)
            paragraph = merge_paragraph(paragraph, style.paragraph)
            table_borders = _merge_borders(table_borders, style.table_borders)
        return replace(target, run=run, paragraph=paragraph, table_borders=table_borders)


def parse_styles(
    root: etree._Element | None,
    log: DiagnosticLog | None = None,
    query: XmlQuery | None = None,
) -> StyleTable:
    q = query or XmlQuery(log=log)
    table = StyleTable(log=log)
    if root is None:
        return table
    table.defaults = _parse_doc_defaults(q, root)
    for node in q.select("//w:style", root):
        try:
            record = _parse_style_node(q, node)
        except Exception as exc:
            warn(log, "style_node", f"failed to parse style ({exc})", style_id=q.attr(node, "styleId"))
            continue
        if record is None:
            warn(log, "style_node", "style without styleId skipped")
            continue
        table.by_kind(record.kind)[record.style_id] = record
    if log is not None:
        log.style_count = table.count()
    return table


def collect_style_chain(
    table: StyleTable,
    target: StyleRecord,
    log: DiagnosticLog | None = None,
) -> list[StyleRecord]:
    visited: set[str] = set()
    chain: list[StyleRecord] = []
    current: StyleRecord | None = target
    while current is not None:
        if current.style_id in visited:
            warn(log, "based_on", f"basedOn cycle at {current.style_id!r}", style_id=target.style_id)
            break
        if len(chain) >= config.BASED_ON_MAX_HOPS:
            warn(log, "based_on", "basedOn chain too long, truncated", style_id=target.style_id)
            break
        visited.add(current.style_id)
        chain.append(current)
        parent_id = current.based_on
        if parent_id is None:
            break
        parent = table.by_kind(target.kind).get(parent_id)
        if parent is None:
            other = table.get(parent_id)
            if other is not None:
                reason = f"basedOn {parent_id!r} is a {other.kind} style"
            else:
                reason = f"basedOn {parent_id!r} does not exist"
            warn(log, "based_on", reason, style_id=current.style_id)
        current = parent
    chain.reverse()
    return chain


def merge_run(base: RunFormatting, override: RunFormatting) -> RunFormatting:
    return RunFormatting(
        fonts=_merge_fonts(base.fonts, override.fonts),
        size_half_points=_pick(override.size_half_points, base.size_half_points),
        bold=_pick(override.bold, base.bold),
        italic=_pick(override.italic, base.italic),
        color=_pick(override.color, base.color),
        underline=_pick(override.underline, base.underline),
        highlight=_pick(override.highlight, base.highlight),
    )


def merge_paragraph(base: ParagraphFormatting, override: ParagraphFormatting) -> ParagraphFormatting:
    return ParagraphFormatting(
        alignment=_pick(override.alignment, base.alignment),
        indentation=Indentation(
            left=_pick(override.indentation.left, base.indentation.left),
            right=_pick(override.indentation.right, base.indentation.right),
            first_line=_pick(override.indentation.first_line, base.indentation.first_line),
            hanging=_pick(override.indentation.hanging, base.indentation.hanging),
        ),
        spacing=Spacing(
            before=_pick(override.spacing.before, base.spacing.before),
            after=_pick(override.spacing.after, base.spacing.after),
            line=_pick(override.spacing.line, base.spacing.line),
            line_rule=_pick(override.spacing.line_rule, base.spacing.line_rule),
        ),
        borders=_merge_borders(base.borders, override.borders),
        shading=_pick(override.shading, base.shading),
        tabs=_merge_tabs(base.tabs, override.tabs),
        numbering=_pick(override.numbering, base.numbering),
        outline_level=_pick(override.outline_level, base.outline_level),
    )


def parse_run_properties(q: XmlQuery, r_pr: etree._Element | None) -> RunFormatting:
    if r_pr is None:
        return RunFormatting()
    fonts = FontSpec()
    r_fonts = q.select_one("w:rFonts", r_pr)
    if r_fonts is not None:
        fonts = FontSpec(
            ascii=q.attr(r_fonts, "ascii"),
            hAnsi=q.attr(r_fonts, "hAnsi"),
            eastAsia=q.attr(r_fonts, "eastAsia"),
            cs=q.attr(r_fonts, "cs"),
            ascii_theme=q.attr(r_fonts, "asciiTheme"),
            hAnsi_theme=q.attr(r_fonts, "hAnsiTheme"),
            eastAsia_theme=q.attr(r_fonts, "eastAsiaTheme"),
            cs_theme=q.attr(r_fonts, "cstheme"),
        )
    size = parse_int(q.attr(q.select_one("w:sz", r_pr), "val"))
    color = None
    color_elem = q.select_one("w:color", r_pr)
    color_val = q.attr(color_elem, "val")
    if color_val and color_val.lower() != "auto":
        color = f"#{color_val.upper()}"
    underline = None
    u_elem = q.select_one("w:u", r_pr)
    if u_elem is not None:
        underline = q.attr(u_elem, "val") or "single"
    highlight = q.attr(q.select_one("w:highlight", r_pr), "val")
    return RunFormatting(
        fonts=fonts,
        size_half_points=size,
        bold=q.on_off(q.select_one("w:b", r_pr)),
        italic=q.on_off(q.select_one("w:i", r_pr)),
        color=color,
        underline=underline,
        highlight=highlight,
    )


def parse_paragraph_properties(q: XmlQuery, p_pr: etree._Element | None) -> ParagraphFormatting:
    if p_pr is None:
        return ParagraphFormatting()
    alignment = q.attr(q.select_one("w:jc", p_pr), "val")
    ind = q.select_one("w:ind", p_pr)
    indentation = Indentation()
    if ind is not None:
        indentation = Indentation(
            left=parse_int(q.attr(ind, "left") or q.attr(ind, "start")),
            right=parse_int(q.attr(ind, "right") or q.attr(ind, "end")),
            first_line=parse_int(q.attr(ind, "firstLine")),
            hanging=parse_int(q.attr(ind, "hanging")),
        )
    spacing = Spacing()
    spacing_elem = q.select_one("w:spacing", p_pr)
    if spacing_elem is not None:
        spacing = Spacing(
            before=parse_int(q.attr(spacing_elem, "before")),
            after=parse_int(q.attr(spacing_elem, "after")),
            line=parse_int(q.attr(spacing_elem, "line")),
            line_rule=q.attr(spacing_elem, "lineRule"),
        )
    shading = None
    shd = q.select_one("w:shd", p_pr)
    if shd is not None:
        shading = Shading(
            value=q.attr(shd, "val"),
            color=q.attr(shd, "color"),
            fill=q.attr(shd, "fill"),
        )
    numbering = None
    num_pr = q.select_one("w:numPr", p_pr)
    if num_pr is not None:
        num_id = q.attr(q.select_one("w:numId", num_pr), "val")
        if num_id:
            level = parse_int(q.attr(q.select_one("w:ilvl", num_pr), "val"))
            numbering = NumberingRef(num_id=num_id, level=level or 0)
    return ParagraphFormatting(
        alignment=alignment,
        indentation=indentation,
        spacing=spacing,
        borders=parse_borders(q, q.select_one("w:pBdr", p_pr)),
        shading=shading,
        tabs=parse_tabs(q, p_pr),
        numbering=numbering,
        outline_level=parse_int(q.attr(q.select_one("w:outlineLvl", p_pr), "val")),
    )


def parse_borders(q: XmlQuery, container: etree._Element | None) -> Mapping[str, Border]:
    borders: dict[str, Border] = {}
    if container is None:
        return MappingProxyType(borders)
    for side in BORDER_SIDES:
        elem = q.select_one(f"w:{side}", container)
        if elem is None:
            continue
        borders[side] = Border(
            value=q.attr(elem, "val"),
            size=parse_int(q.attr(elem, "sz")),
            color=q.attr(elem, "color"),
            space=parse_int(q.attr(elem, "space")),
        )
    return MappingProxyType(borders)


def parse_tabs(q: XmlQuery, p_pr: etree._Element | None) -> tuple[TabStop, ...]:
    tabs: list[TabStop] = []
    for tab in q.select("w:tabs/w:tab", p_pr):
        position = parse_int(q.attr(tab, "pos"))
        kind = q.attr(tab, "val")
        if position is None or not kind:
            continue
        leader = q.attr(tab, "leader")
        tabs.append(TabStop(position=position, kind=kind, leader=leader))
    return tuple(tabs)


def _parse_style_node(q: XmlQuery, node: etree._Element) -> StyleRecord | None:
    style_id = q.attr(node, "styleId")
    if not style_id:
        return None
    kind = q.attr(node, "type") or "paragraph"
    if kind not in STYLE_KINDS:
        raise ValueError(f"unsupported style type {kind!r}")
    name = q.attr(q.select_one("w:name", node), "val") or style_id
    based_on = q.attr(q.select_one("w:basedOn", node), "val")
    default_flag = q.attr(node, "default")
    return StyleRecord(
        style_id=style_id,
        kind=kind,
        name=name,
        based_on=based_on,
        is_default=default_flag in {"1", "true", "on"},
        run=parse_run_properties(q, q.select_one("w:rPr", node)),
        paragraph=parse_paragraph_properties(q, q.select_one("w:pPr", node)),
        table_borders=parse_borders(q, q.select_one("w:tblPr/w:tblBorders", node)),
    )


def _parse_doc_defaults(q: XmlQuery, root: etree._Element) -> StyleRecord:
    r_pr_default = q.select_one("w:docDefaults/w:rPrDefault/w:rPr", root)
    p_pr_default = q.select_one("w:docDefaults/w:pPrDefault/w:pPr", root)
    return StyleRecord(
        style_id="",
        kind="paragraph",
        name="docDefaults",
        run=parse_run_properties(q, r_pr_default),
        paragraph=parse_paragraph_properties(q, p_pr_default),
    )


def _pick(value, fallback):
    return value if value is not None else fallback


def _merge_fonts(base: FontSpec, override: FontSpec) -> FontSpec:
    # a slot set on the child replaces the inherited name and theme token together
    values: dict[str, str | None] = {}
    for slot in ("ascii", "hAnsi", "eastAsia", "cs"):
        theme_slot = f"{slot}_theme"
        source = override
        if getattr(override, slot) is None and getattr(override, theme_slot) is None:
            source = base
        values[slot] = getattr(source, slot)
        values[theme_slot] = getattr(source, theme_slot)
    return FontSpec(**values)


def _merge_borders(base: Mapping[str, Border], override: Mapping[str, Border]) -> Mapping[str, Border]:
    if not override:
        return base
    merged = dict(base)
    merged.update(override)
    return MappingProxyType(merged)


def _merge_tabs(base: Iterable[TabStop], override: Iterable[TabStop]) -> tuple[TabStop, ...]:
    by_position = {tab.position: tab for tab in base}
    for tab in override:
        if tab.kind == "clear":
            by_position.pop(tab.position, None)
        else:
            by_position[tab.position] = tab
    return tuple(by_position[pos] for pos in sorted(by_position))


def _resolve_theme_font(theme_map: Mapping[str, str], token: str | None) -> str | None:
    if token is None:
        return None
    return theme_map.get(token)
