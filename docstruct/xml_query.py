from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType

from lxml import etree

from . import config
from .diagnostics import DiagnosticLog, warn


class XmlQuery:
    def __init__(
        self,
        namespaces: Mapping[str, str] | None = None,
        log: DiagnosticLog | None = None,
    ) -> None:
        self.namespaces = MappingProxyType(
            dict(config.OOXML_NAMESPACES if namespaces is None else namespaces)
        )
        self.log = log
        self._compiled: dict[str, etree.XPath] = {}

    def select(self, expression: str, node: etree._Element | None) -> list[etree._Element]:
        if node is None:
            return []
        try:
            result = self._xpath(expression)(node)
        except (etree.XPathError, TypeError, ValueError) as exc:
            warn(self.log, "query", f"{expression!r} failed ({exc})")
            return []
        if not isinstance(result, list):
            warn(self.log, "query", f"{expression!r} returned {type(result).__name__}")
            return []
        return [item for item in result if isinstance(item, etree._Element)]

    def select_one(self, expression: str, node: etree._Element | None) -> etree._Element | None:
        nodes = self.select(expression, node)
        return nodes[0] if nodes else None

    def text(self, expression: str, node: etree._Element | None) -> str:
        return "".join(elem.text or "" for elem in self.select(expression, node))

    def attr(self, elem: etree._Element | None, name: str, prefix: str = "w") -> str | None:
        if elem is None:
            return None
        return elem.get(self.attr_name(name, prefix))

    def on_off(self, elem: etree._Element | None) -> bool | None:
        if elem is None:
            return None
        val = self.attr(elem, "val")
        if val is None:
            return True
        return val.lower() not in {"0", "false", "off"}

    def attr_name(self, name: str, prefix: str = "w") -> str:
        return f"{{{self.namespaces[prefix]}}}{name}"

    def local_name(self, elem: etree._Element) -> str:
        return etree.QName(elem).localname

    def _xpath(self, expression: str) -> etree.XPath:
        compiled = self._compiled.get(expression)
        if compiled is None:
            compiled = etree.XPath(expression, namespaces=dict(self.namespaces))
            self._compiled[expression] = compiled
        return compiled
