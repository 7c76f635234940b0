import tempfile
import unittest
from pathlib import Path

from docx import Document
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from lxml import etree

from docstruct.diagnostics import DiagnosticLog
from docstruct.paragraphs import ParagraphRecord, records_from_body, records_from_docx
from docstruct.structure import analyze_structure
from docstruct.style_reader import parse_styles


BODY_XML = """<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:body>
    <w:p>
      <w:pPr><w:pStyle w:val="Title"/><w:jc w:val="center"/></w:pPr>
      <w:r><w:t>Annual </w:t></w:r><w:r><w:t>Report</w:t></w:r>
    </w:p>
    <w:sdt>
      <w:sdtContent>
        <w:p>
          <w:r><w:fldChar w:fldCharType="begin"/></w:r>
          <w:r><w:instrText xml:space="preserve"> TOC \\o "1-3" \\h </w:instrText></w:r>
          <w:r><w:fldChar w:fldCharType="separate"/></w:r>
        </w:p>
        <w:p>
          <w:pPr>
            <w:pStyle w:val="TOC1"/>
            <w:tabs><w:tab w:val="right" w:leader="dot" w:pos="9350"/></w:tabs>
          </w:pPr>
          <w:r><w:t>Introduction</w:t></w:r><w:r><w:tab/><w:t>3</w:t></w:r>
        </w:p>
      </w:sdtContent>
    </w:sdt>
    <w:p>
      <w:pPr><w:numPr><w:ilvl w:val="1"/><w:numId w:val="7"/></w:numPr></w:pPr>
      <w:r><w:t>Second level</w:t></w:r>
    </w:p>
    <w:p>
      <w:pPr><w:pStyle w:val="ListHeading"/><w:numPr><w:numId w:val="0"/></w:numPr></w:pPr>
      <w:r><w:t>Numbering switched off</w:t></w:r>
    </w:p>
    <w:p>
      <w:pPr><w:pStyle w:val="ListHeading"/></w:pPr>
      <w:r><w:t>Numbered by style</w:t></w:r>
    </w:p>
    <w:p>
      <w:pPr><w:numPr><w:numId w:val="2"/></w:numPr></w:pPr>
      <w:r><w:delText>gone</w:delText></w:r><w:r><w:t>No level</w:t></w:r>
    </w:p>
    <w:tbl><w:tr><w:tc><w:p><w:r><w:t>cell</w:t></w:r></w:p></w:tc></w:tr></w:tbl>
    <w:p/>
    <w:sectPr/>
  </w:body>
</w:document>
"""

STYLES_XML = """<w:styles xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:style w:type="paragraph" w:styleId="ListHeading">
    <w:name w:val="List Heading"/>
    <w:pPr><w:numPr><w:ilvl w:val="2"/><w:numId w:val="9"/></w:numPr></w:pPr>
  </w:style>
</w:styles>
"""


class RecordsFromBodyTests(unittest.TestCase):
    def setUp(self) -> None:
        self.log = DiagnosticLog()
        styles = parse_styles(etree.fromstring(STYLES_XML.encode("utf-8")))
        self.records = records_from_body(
            etree.fromstring(BODY_XML.encode("utf-8")),
            styles=styles,
            log=self.log,
        )

    def test_body_and_content_control_paragraphs_in_order(self) -> None:
        texts = [record.text for record in self.records]
        self.assertEqual(
            texts,
            [
                "Annual Report",
                "",
                "Introduction\t3",
                "Second level",
                "Numbering switched off",
                "Numbered by style",
                "No level",
                "",
            ],
        )
        self.assertEqual([record.index for record in self.records], list(range(8)))
        self.assertEqual(self.log.paragraph_count, 8)

    def test_style_and_alignment(self) -> None:
        title = self.records[0]
        self.assertEqual(title.style_id, "Title")
        self.assertEqual(title.alignment, "center")
        self.assertFalse(title.is_numbered)

    def test_toc_field_and_tabs(self) -> None:
        self.assertTrue(self.records[1].has_toc_field)
        self.assertFalse(self.records[2].has_toc_field)
        tab = self.records[2].tab_stops[0]
        self.assertEqual((tab.kind, tab.leader, tab.position), ("right", "dot", 9350))

    def test_numbering_references(self) -> None:
        self.assertEqual((self.records[3].num_id, self.records[3].level), ("7", 1))
        self.assertIsNone(self.records[4].num_id)
        self.assertEqual((self.records[5].num_id, self.records[5].level), ("9", 2))
        self.assertEqual((self.records[6].num_id, self.records[6].level), ("2", 0))

    def test_blank_paragraph(self) -> None:
        self.assertTrue(self.records[7].is_blank)
        self.assertIsNone(self.records[7].level)

    def test_missing_body(self) -> None:
        self.assertEqual(records_from_body(None), [])


STYLE_LIST_XML = """<w:styles xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:style w:type="paragraph" w:styleId="ListNumber">
    <w:name w:val="List Number"/>
    <w:pPr><w:numPr><w:numId w:val="4"/></w:numPr></w:pPr>
  </w:style>
</w:styles>
"""

STYLE_LIST_BODY_XML = """<w:document xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:body>
    <w:p><w:pPr><w:pStyle w:val="ListNumber"/></w:pPr><w:r><w:t>Top</w:t></w:r></w:p>
    <w:p>
      <w:pPr><w:pStyle w:val="ListNumber"/><w:numPr><w:ilvl w:val="1"/></w:numPr></w:pPr>
      <w:r><w:t>Nested</w:t></w:r>
    </w:p>
    <w:p>
      <w:pPr><w:pStyle w:val="ListNumber"/><w:numPr><w:ilvl w:val="1"/><w:numId w:val="0"/></w:numPr></w:pPr>
      <w:r><w:t>Off</w:t></w:r>
    </w:p>
  </w:body>
</w:document>
"""


class StyleNumberingTests(unittest.TestCase):
    def setUp(self) -> None:
        styles = parse_styles(etree.fromstring(STYLE_LIST_XML.encode("utf-8")))
        self.records = records_from_body(
            etree.fromstring(STYLE_LIST_BODY_XML.encode("utf-8")),
            styles=styles,
        )

    def test_paragraph_level_overrides_style_level(self) -> None:
        self.assertEqual((self.records[0].num_id, self.records[0].level), ("4", 0))
        self.assertEqual((self.records[1].num_id, self.records[1].level), ("4", 1))

    def test_zero_num_id_suppresses_style_numbering(self) -> None:
        off = self.records[2]
        self.assertFalse(off.is_numbered)
        self.assertIsNone(off.level)

    def test_style_driven_sublist_is_nested(self) -> None:
        model = analyze_structure(self.records)
        self.assertEqual(len(model.lists), 1)
        self.assertEqual([item.level for item in model.lists[0].items], [0, 1])


class RecordsFromDocxTests(unittest.TestCase):
    def test_records_from_python_docx_file(self) -> None:
        document = Document()
        document.add_paragraph("Heading text", style="Heading 1")
        toc_paragraph = document.add_paragraph()
        begin = OxmlElement("w:fldChar")
        begin.set(qn("w:fldCharType"), "begin")
        toc_paragraph.add_run()._r.append(begin)
        instr = OxmlElement("w:instrText")
        instr.text = ' TOC \\o "1-3" '
        toc_paragraph.add_run()._r.append(instr)
        document.add_paragraph("Overview\t4")
        item = document.add_paragraph("First item")
        num_pr = item._p.get_or_add_pPr().get_or_add_numPr()
        num_pr.get_or_add_ilvl().val = 0
        num_pr.get_or_add_numId().val = 5

        with tempfile.TemporaryDirectory() as tmpdir:
            path = Path(tmpdir) / "sample.docx"
            document.save(str(path))
            records = records_from_docx(path)

        self.assertIsInstance(records[0], ParagraphRecord)
        self.assertEqual(records[0].style_id, "Heading1")
        self.assertEqual(records[0].text, "Heading text")
        self.assertTrue(records[1].has_toc_field)
        self.assertEqual(records[2].text, "Overview\t4")
        self.assertEqual((records[3].num_id, records[3].level), ("5", 0))

    def test_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            with self.assertRaises(FileNotFoundError):
                records_from_docx(Path(tmpdir) / "missing.docx")


if __name__ == "__main__":
    unittest.main()
