import unittest

from lxml import etree

from docstruct.diagnostics import DiagnosticLog
from docstruct.theme_reader import PageMargins, parse_settings, parse_theme


THEME_XML = """<a:theme xmlns:a="http://schemas.openxmlformats.org/drawingml/2006/main" name="Office Theme">
  <a:themeElements>
    <a:clrScheme name="Office">
      <a:dk1><a:sysClr val="windowText" lastClr="000000"/></a:dk1>
      <a:lt1><a:sysClr val="window" lastClr="ffffff"/></a:lt1>
      <a:accent1><a:srgbClr val="4472c4"/></a:accent1>
      <a:hlink/>
    </a:clrScheme>
    <a:fontScheme name="Office">
      <a:majorFont>
        <a:latin typeface="Cambria"/>
        <a:ea typeface="MS Mincho"/>
      </a:majorFont>
      <a:minorFont>
        <a:latin typeface="Georgia"/>
        <a:ea typeface=""/>
      </a:minorFont>
    </a:fontScheme>
  </a:themeElements>
</a:theme>
"""

SETTINGS_XML = """<w:settings xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:defaultTabStop w:val="708"/>
  <w:characterSpacingControl w:val="doNotCompress"/>
  <w:doNotHyphenateCaps/>
  <w:rtlGutter w:val="0"/>
</w:settings>
"""

BODY_XML = """<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:body>
    <w:p>
      <w:pPr>
        <w:sectPr><w:pgMar w:top="100" w:bottom="100" w:left="100" w:right="100"/></w:sectPr>
      </w:pPr>
    </w:p>
    <w:sectPr>
      <w:pgSz w:w="16838" w:h="11906" w:orient="landscape"/>
      <w:pgMar w:top="1134" w:bottom="1134" w:left="bad" w:right="850" w:header="708" w:footer="708" w:gutter="0"/>
    </w:sectPr>
  </w:body>
</w:document>
"""


class ThemeReaderTests(unittest.TestCase):
    def test_parse_colors_and_fonts(self) -> None:
        theme = parse_theme(etree.fromstring(THEME_XML.encode("utf-8")))
        self.assertEqual(theme.color("dk1"), "#000000")
        self.assertEqual(theme.color("lt1"), "#FFFFFF")
        self.assertEqual(theme.color("accent1"), "#4472C4")
        self.assertIsNone(theme.color("hlink"))
        self.assertEqual(theme.major_font, "Cambria")
        self.assertEqual(theme.minor_font, "Georgia")
        self.assertEqual(theme.major_east_asia, "MS Mincho")
        self.assertIsNone(theme.minor_east_asia)

    def test_font_map(self) -> None:
        theme = parse_theme(etree.fromstring(THEME_XML.encode("utf-8")))
        font_map = theme.font_map()
        self.assertEqual(font_map["minorHAnsi"], "Georgia")
        self.assertEqual(font_map["majorAscii"], "Cambria")
        self.assertEqual(font_map["majorEastAsia"], "MS Mincho")
        self.assertNotIn("minorEastAsia", font_map)

    def test_missing_theme_uses_defaults(self) -> None:
        theme = parse_theme(None)
        self.assertEqual(theme.major_font, "Calibri Light")
        self.assertEqual(theme.minor_font, "Calibri")
        self.assertEqual(theme.colors, {})


class SettingsReaderTests(unittest.TestCase):
    def test_parse_settings(self) -> None:
        settings = parse_settings(etree.fromstring(SETTINGS_XML.encode("utf-8")))
        self.assertEqual(settings.default_tab_stop, 708)
        self.assertEqual(settings.character_spacing, "doNotCompress")
        self.assertTrue(settings.do_not_hyphenate_caps)
        self.assertFalse(settings.rtl_gutter)
        self.assertEqual(settings.page_margins, PageMargins())

    def test_missing_settings_use_defaults(self) -> None:
        settings = parse_settings(None)
        self.assertEqual(settings.default_tab_stop, 720)
        self.assertEqual(settings.character_spacing, "normal")
        self.assertEqual(settings.page_margins.top, 1440)
        self.assertEqual(settings.page_margins.page_width, 12240)

    def test_page_margins_from_last_section(self) -> None:
        log = DiagnosticLog()
        settings = parse_settings(
            None,
            body_root=etree.fromstring(BODY_XML.encode("utf-8")),
            log=log,
        )
        margins = settings.page_margins
        self.assertEqual(margins.top, 1134)
        self.assertEqual(margins.right, 850)
        self.assertEqual(margins.left, 1440)
        self.assertEqual(margins.header, 708)
        self.assertEqual(margins.page_width, 16838)
        self.assertEqual(margins.orientation, "landscape")
        self.assertEqual(log.rules(), ["settings"])


if __name__ == "__main__":
    unittest.main()
