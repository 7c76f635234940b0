from __future__ import annotations

import re
import zlib
from fractions import Fraction
from typing import Iterable, Mapping

from . import config
from .diagnostics import DiagnosticLog, warn
from .numbering import EffectiveLevel, NumberingTable
from .style_reader import (
    Border,
    ParagraphFormatting,
    RunFormatting,
    StyleRecord,
    StyleTable,
)
from .structure import LEADER_CHARS, leader_char
from .theme_reader import DocumentSettings, ThemeInfo
from .units import eighths_to_pt, format_number, format_pt, half_points_to_pt, twips_to_pt

CLASS_PREFIXES = {
    "paragraph": "docx-p-",
    "character": "docx-c-",
    "table": "docx-t-",
}

FALLBACK_STYLESHEET = """\
body {
  font-family: Calibri, sans-serif;
  font-size: 11pt;
  line-height: 1.15;
}

h1, h2, h3 {
  font-family: "Calibri Light", sans-serif;
  color: #2F5496;
}

h1 {
  font-size: 16pt;
}

h2 {
  font-size: 13pt;
}

h3 {
  font-size: 12pt;
}

p {
  margin: 0 0 8pt 0;
}

table {
  border-collapse: collapse;
  width: 100%;
}

td, th {
  border: 1px solid #000000;
  padding: 4pt;
}

.docx-toc-entry {
  display: flex;
  align-items: baseline;
}

.docx-toc-leader {
  flex: 1 1 auto;
  border-bottom: 1px dotted #000000;
  margin: 0 4pt;
}

ol.docx-numbered-list {
  list-style-type: decimal;
  padding-left: 2.5em;
}

ul.docx-bullet-list {
  list-style-type: disc;
  padding-left: 2.5em;
}
    try:
        return _synthesize(
            styles or StyleTable(),
            numbering or NumberingTable(),
            theme or ThemeInfo(),
            settings or DocumentSettings(),
        )
    except Exception as exc:
        warn(log, "stylesheet", f"stylesheet generation failed, using fallback ({exc})")
        if log is not None:
            log.used_fallback_stylesheet = True
        return FALLBACK_STYLESHEET


def class_name_for(style_id: str) -> str:
    slug = _NON_ALNUM.sub("-", style_id.casefold()).strip("-")
    return slug or "style"


def class_names(style_ids: Iterable[str]) -> dict[str, str]:
    names: dict[str, str] = {}
    taken: set[str] = set()
    ids = sorted(set(style_ids))
    slugs = {style_id: class_name_for(style_id) for style_id in ids}
    counts: dict[str, int] = {}
    for slug in slugs.values():
        counts[slug] = counts.get(slug, 0) + 1
    for style_id in ids:
        name = slugs[style_id]
        if counts[name] > 1 or name in taken:
            name = f"{name}-{zlib.crc32(style_id.encode('utf-8')):08x}"
        taken.add(name)
        names[style_id] = name
    return names


def counter_name(num_id: str, level: int) -> str:
    return f"docx-num-{class_name_for(num_id)}-{level}"


def css_string(text: str) -> str:
    escaped = text.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\A ")
    return f'"{escaped}"'


def marker_content(effective: EffectiveLevel, numbering: NumberingTable) -> str:
    if effective.is_bullet:
        return css_string(effective.bullet_glyph)
    if not effective.tokens:
        return css_string(effective.text_pattern)
    parts: list[str] = []
    for token in effective.tokens:
        ref = token.level_ref - 1
        referenced = numbering.effective_level(effective.num_id, ref)
        style = referenced.counter_style if referenced is not None else effective.counter_style
        if effective.is_legal and ref != effective.level:
            style = "decimal"
        if token.literal_before:
            parts.append(css_string(token.literal_before))
        parts.append(f"counter({counter_name(effective.num_id, ref)}, {style})")
        if token.separator:
            parts.append(css_string(token.separator))
        if token.literal_after:
            parts.append(css_string(token.literal_after))
    return " ".join(parts)


def run_declarations(run: RunFormatting, theme: ThemeInfo) -> Declarations:
    declarations: Declarations = []
    family = run.fonts.apply_theme(theme.font_map()).preferred_name()
    if family:
        declarations.append(("font-family", f"{css_string(family)}, sans-serif"))
    size = format_pt(half_points_to_pt(run.size_half_points))
    if size:
        declarations.append(("font-size", size))
    if run.bold is not None:
        declarations.append(("font-weight", "bold" if run.bold else "normal"))
    if run.italic is not None:
        declarations.append(("font-style", "italic" if run.italic else "normal"))
    if run.color:
        declarations.append(("color", run.color))
    if run.underline:
        declarations.append(
            ("text-decoration", "none" if run.underline == "none" else "underline")
        )
    highlight = _HIGHLIGHT_COLORS.get(run.highlight or "")
    if highlight:
        declarations.append(("background-color", highlight))
    return declarations


def paragraph_declarations(paragraph: ParagraphFormatting) -> Declarations:
    declarations: Declarations = []
    alignment = _ALIGNMENTS.get(paragraph.alignment or "")
    if alignment:
        declarations.append(("text-align", alignment))
    indentation = paragraph.indentation
    _append_length(declarations, "margin-left", indentation.left)
    _append_length(declarations, "margin-right", indentation.right)
    if indentation.hanging is not None:
        _append_length(declarations, "text-indent", -indentation.hanging)
    else:
        _append_length(declarations, "text-indent", indentation.first_line)
    spacing = paragraph.spacing
    _append_length(declarations, "margin-top", spacing.before)
    _append_length(declarations, "margin-bottom", spacing.after)
    if spacing.line is not None:
        if spacing.line_rule in (None, "auto"):
            # auto line spacing is in 240ths of a line
            ratio = round(Fraction(spacing.line, 240), 3)
            declarations.append(("line-height", format_number(ratio)))
        else:
            _append_length(declarations, "line-height", spacing.line)
    declarations.extend(border_declarations(paragraph.borders))
    shading = paragraph.shading
    if shading is not None and shading.fill and shading.fill.lower() != "auto":
        declarations.append(("background-color", f"#{shading.fill.upper()}"))
    return declarations


def border_declarations(borders: Mapping[str, Border]) -> Declarations:
    declarations: Declarations = []
    for side in _CSS_SIDES:
        border = borders.get(side)
        if border is None:
            continue
        declarations.append((f"border-{side}", border_value(border)))
    return declarations


def border_value(border: Border) -> str:
    if not border.is_visible():
        return "none"
    width = format_pt(eighths_to_pt(border.size)) or "1pt"
    style = _BORDER_STYLES.get(border.value or "", "solid")
    color = "#000000"
    if border.color and border.color.lower() != "auto":
        color = f"#{border.color.upper()}"
    return f"{width} {style} {color}"


def _synthesize(
    styles: StyleTable,
    numbering: NumberingTable,
    theme: ThemeInfo,
    settings: DocumentSettings,
) -> str:
    blocks: list[str] = []
    blocks.extend(_document_rules(styles, theme, settings))
    for kind, prefix in CLASS_PREFIXES.items():
        blocks.extend(_style_rules(styles, kind, prefix, theme))
    blocks.extend(_numbering_rules(numbering, theme))
    blocks.extend(_toc_rules(styles))
    blocks.extend(_list_container_rules())
    return "\n".join(blocks)


def _document_rules(
    styles: StyleTable,
    theme: ThemeInfo,
    settings: DocumentSettings,
) -> list[str]:
    defaults = styles.defaults.run
    body: Declarations = []
    family = defaults.fonts.apply_theme(theme.font_map()).preferred_name() or theme.minor_font
    body.append(("font-family", f"{css_string(family)}, sans-serif"))
    size = defaults.size_half_points or config.DEFAULT_FONT_SIZE_HALF_POINTS
    body.append(("font-size", format_pt(half_points_to_pt(size))))
    if defaults.color:
        body.append(("color", defaults.color))
    body.extend(paragraph_declarations(styles.defaults.paragraph))
    body.append(("tab-size", format_pt(twips_to_pt(settings.default_tab_stop))))
    margins = settings.page_margins
    page: Declarations = [
        ("size", f"{format_pt(twips_to_pt(margins.page_width))} {format_pt(twips_to_pt(margins.page_height))}"),
        (
            "margin",
            " ".join(
                format_pt(twips_to_pt(value))
                for value in (margins.top, margins.right, margins.bottom, margins.left)
            ),
        ),
    ]
    return [_rule("@page", page), _rule("body", body)]


def _style_rules(
    styles: StyleTable,
    kind: str,
    prefix: str,
    theme: ThemeInfo,
) -> list[str]:
    records = styles.by_kind(kind)
    names = class_names(records)
    blocks: list[str] = []
    for style_id in sorted(records):
        resolved = styles.resolve_effective(style_id, kind)
        if resolved is None:
            continue
        selector = f".{prefix}{names[style_id]}"
        declarations = run_declarations(resolved.run, theme)
        if kind != "character":
            declarations.extend(paragraph_declarations(resolved.paragraph))
        if declarations:
            blocks.append(_rule(selector, declarations))
        if kind == "table":
            blocks.extend(_table_rules(selector, resolved))
    return blocks


def _table_rules(selector: str, record: StyleRecord) -> list[str]:
    borders = record.table_borders
    if not borders:
        return []
    blocks = [_rule(selector, [("border-collapse", "collapse"), *border_declarations(borders)])]
    cell: Declarations = []
    inside_h = borders.get("insideH")
    inside_v = borders.get("insideV")
    if inside_h is not None:
        value = border_value(inside_h)
        cell.extend([("border-top", value), ("border-bottom", value)])
    if inside_v is not None:
        value = border_value(inside_v)
        cell.extend([("border-left", value), ("border-right", value)])
    if cell:
        blocks.append(_rule(f"{selector} td, {selector} th", cell))
    return blocks


def _numbering_rules(numbering: NumberingTable, theme: ThemeInfo) -> list[str]:
    blocks: list[str] = []
    resets: list[str] = []
    for num_id in numbering.sorted_num_ids():
        levels = numbering.levels_for(num_id)
        for effective in levels:
            resets.append(f"{counter_name(num_id, effective.level)} {effective.start - 1}")
        for effective in levels:
            blocks.extend(_level_rules(effective, levels, numbering, theme))
    if resets:
        blocks.insert(0, _rule("body", [("counter-reset", " ".join(resets))]))
    return blocks


def _level_rules(
    effective: EffectiveLevel,
    levels: list[EffectiveLevel],
    numbering: NumberingTable,
    theme: ThemeInfo,
) -> list[str]:
    num_id = effective.num_id
    selector = f'[data-num-id="{num_id}"][data-num-level="{effective.level}"]'
    item: Declarations = [("display", "block"), ("position", "relative")]
    indentation = effective.indentation
    _append_length(item, "margin-left", indentation.left)
    if indentation.hanging is not None:
        _append_length(item, "text-indent", -indentation.hanging)
    else:
        _append_length(item, "text-indent", indentation.first_line)
    item.append(("counter-increment", counter_name(num_id, effective.level)))
    deeper = [
        f"{counter_name(num_id, other.level)} {other.start - 1}"
        for other in levels
        if other.level > effective.level and _restarts_after(other, effective.level)
    ]
    if deeper:
        item.append(("counter-reset", " ".join(deeper)))
    marker: Declarations = [("content", marker_content(effective, numbering))]
    alignment = _ALIGNMENTS.get(effective.alignment)
    if alignment:
        marker.append(("text-align", alignment))
    if effective.suffix == "tab":
        marker.append(("padding-right", "0.5em"))
    elif effective.suffix == "space":
        marker.append(("padding-right", "0.25em"))
    marker.extend(run_declarations(effective.run, theme))
    return [_rule(selector, item), _rule(f"{selector}::before", marker)]


def _restarts_after(level: EffectiveLevel, parent_level: int) -> bool:
    restart = level.restart_after_level
    if restart is None:
        return True
    if restart == 0:
        return False
    return parent_level < restart


def _toc_rules(styles: StyleTable) -> list[str]:
    leader = LEADER_CHARS["dot"]
    blocks = [
        _rule(".docx-toc", [("display", "block")]),
        _rule(
            ".docx-toc-entry",
            [("display", "flex"), ("align-items", "baseline"), ("white-space", "nowrap")],
        ),
        _rule(".docx-toc-text", [("flex", "0 1 auto"), ("overflow", "hidden")]),
        _rule(".docx-toc-pagenum", [("flex", "0 0 auto"), ("text-align", "right")]),
    ]
    for level in range(1, config.TOC_MAX_LEVEL + 1):
        style = styles.resolve_effective(f"TOC{level}", "paragraph")
        indent = None
        if style is not None:
            indent = style.paragraph.indentation.left
            if level == 1:
                leader = leader_char(style.paragraph.tabs) or leader
        if indent is None:
            indent = (level - 1) * config.TOC_LEVEL_INDENT_TWIPS
        blocks.append(
            _rule(f".docx-toc-level-{level}", [("margin-left", format_pt(twips_to_pt(indent)))])
        )
    blocks.append(
        _rule(
            ".docx-toc-leader",
            [("flex", "1 1 auto"), ("overflow", "hidden"), ("margin", "0 4pt")],
        )
    )
    blocks.append(
        _rule(".docx-toc-leader::before", [("content", css_string(leader * _LEADER_REPEAT))])
    )
    return blocks


def _list_container_rules() -> list[str]:
    return [
        _rule(
            "ol.docx-list, ul.docx-list",
            [("list-style-type", "none"), ("margin", "0"), ("padding-left", "0")],
        ),
        _rule(".docx-special", [("display", "block")]),
    ]


def _append_length(declarations: Declarations, prop: str, twips: int | None) -> None:
    value = format_pt(twips_to_pt(twips))
    if value is not None:
        declarations.append((prop, value))


def _rule(selector: str, declarations: Declarations) -> str:
    lines = [f"{selector} {{"]
    lines.extend(f"  {prop}: {value};" for prop, value in declarations)
    lines.append("}")
    return "\n".join(lines) + "\n"
