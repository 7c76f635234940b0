from __future__ import annotations

from dataclasses import dataclass, field

from lxml import etree

from . import config
from .diagnostics import DiagnosticLog, warn
from .units import parse_int
from .xml_query import XmlQuery


@dataclass(frozen=True)
class ThemeInfo:
    colors: dict[str, str] = field(default_factory=dict)
    major_font: str = config.DEFAULT_MAJOR_FONT
    minor_font: str = config.DEFAULT_MINOR_FONT
    major_east_asia: str | None = None
    minor_east_asia: str | None = None

    def font_map(self) -> dict[str, str]:
        mapping = {
            "majorAscii": self.major_font,
            "majorHAnsi": self.major_font,
            "majorBidi": self.major_font,
            "minorAscii": self.minor_font,
            "minorHAnsi": self.minor_font,
            "minorBidi": self.minor_font,
        }
        if self.major_east_asia:
            mapping["majorEastAsia"] = self.major_east_asia
        if self.minor_east_asia:
            mapping["minorEastAsia"] = self.minor_east_asia
        return mapping

    def color(self, role: str) -> str | None:
        return self.colors.get(role)


@dataclass(frozen=True)
class PageMargins:
    top: int = config.DEFAULT_PAGE_MARGINS_TWIPS["top"]
    bottom: int = config.DEFAULT_PAGE_MARGINS_TWIPS["bottom"]
    left: int = config.DEFAULT_PAGE_MARGINS_TWIPS["left"]
    right: int = config.DEFAULT_PAGE_MARGINS_TWIPS["right"]
    header: int = config.DEFAULT_PAGE_MARGINS_TWIPS["header"]
    footer: int = config.DEFAULT_PAGE_MARGINS_TWIPS["footer"]
    gutter: int = config.DEFAULT_PAGE_MARGINS_TWIPS["gutter"]
    page_width: int = config.DEFAULT_PAGE_SIZE_TWIPS[0]
    page_height: int = config.DEFAULT_PAGE_SIZE_TWIPS[1]
    orientation: str = "portrait"


@dataclass(frozen=True)
class DocumentSettings:
    default_tab_stop: int = config.DEFAULT_TAB_STOP_TWIPS
    character_spacing: str = "normal"
    do_not_hyphenate_caps: bool = False
    rtl_gutter: bool = False
    page_margins: PageMargins = field(default_factory=PageMargins)


def parse_theme(
    root: etree._Element | None,
    log: DiagnosticLog | None = None,
    query: XmlQuery | None = None,
) -> ThemeInfo:
    if root is None:
        return ThemeInfo()
    q = query or XmlQuery(log=log)
    colors: dict[str, str] = {}
    for node in q.select("//a:clrScheme/a:*", root):
        try:
            value = _color_value(q, node)
        except Exception as exc:
            warn(log, "theme", f"unreadable color {q.local_name(node)} ({exc})")
            continue
        if value:
            colors[q.local_name(node)] = value
    scheme = q.select_one("//a:fontScheme", root)
    major, major_ea = _scheme_fonts(q, q.select_one("a:majorFont", scheme))
    minor, minor_ea = _scheme_fonts(q, q.select_one("a:minorFont", scheme))
    return ThemeInfo(
        colors=colors,
        major_font=major or config.DEFAULT_MAJOR_FONT,
        minor_font=minor or config.DEFAULT_MINOR_FONT,
        major_east_asia=major_ea,
        minor_east_asia=minor_ea,
    )


def parse_settings(
    root: etree._Element | None,
    body_root: etree._Element | None = None,
    log: DiagnosticLog | None = None,
    query: XmlQuery | None = None,
) -> DocumentSettings:
    q = query or XmlQuery(log=log)
    page_margins = _parse_page_margins(q, body_root, log)
    if root is None:
        return DocumentSettings(page_margins=page_margins)
    default_tab_stop = parse_int(q.attr(q.select_one("//w:defaultTabStop", root), "val"))
    if default_tab_stop is None:
        default_tab_stop = config.DEFAULT_TAB_STOP_TWIPS
    character_spacing = (
        q.attr(q.select_one("//w:characterSpacingControl", root), "val") or "normal"
    )
    return DocumentSettings(
        default_tab_stop=default_tab_stop,
        character_spacing=character_spacing,
        do_not_hyphenate_caps=bool(q.on_off(q.select_one("//w:doNotHyphenateCaps", root))),
        rtl_gutter=bool(q.on_off(q.select_one("//w:rtlGutter", root))),
        page_margins=page_margins,
    )


def _parse_page_margins(
    q: XmlQuery,
    body_root: etree._Element | None,
    log: DiagnosticLog | None,
) -> PageMargins:
    sections = q.select("//w:sectPr", body_root)
    if not sections:
        return PageMargins()
    sect_pr = sections[-1]
    values: dict[str, object] = {}
    pg_mar = q.select_one("w:pgMar", sect_pr)
    for key in config.DEFAULT_PAGE_MARGINS_TWIPS:
        raw = q.attr(pg_mar, key)
        parsed = parse_int(raw)
        if raw is not None and parsed is None:
            warn(log, "settings", f"invalid page margin {key}={raw!r}")
        if parsed is not None:
            values[key] = parsed
    pg_sz = q.select_one("w:pgSz", sect_pr)
    width = parse_int(q.attr(pg_sz, "w"))
    height = parse_int(q.attr(pg_sz, "h"))
    if width is not None:
        values["page_width"] = width
    if height is not None:
        values["page_height"] = height
    orientation = q.attr(pg_sz, "orient")
    if orientation:
        values["orientation"] = orientation
    return PageMargins(**values)


def _scheme_fonts(q: XmlQuery, elem: etree._Element | None) -> tuple[str | None, str | None]:
    if elem is None:
        return None, None
    latin = q.select_one("a:latin", elem)
    east_asia = q.select_one("a:ea", elem)
    latin_face = latin.get("typeface") if latin is not None else None
    ea_face = east_asia.get("typeface") if east_asia is not None else None
    return latin_face or None, ea_face or None


def _color_value(q: XmlQuery, node: etree._Element) -> str | None:
    srgb = q.select_one("a:srgbClr", node)
    if srgb is not None and srgb.get("val"):
        return "#" + srgb.get("val").upper()
    sys_clr = q.select_one("a:sysClr", node)
    if sys_clr is not None and sys_clr.get("lastClr"):
        return "#" + sys_clr.get("lastClr").upper()
    return None
