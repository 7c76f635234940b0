import unittest

from lxml import etree

from docstruct.numbering import parse_numbering
from docstruct.paragraphs import ParagraphRecord
from docstruct.reconstruct import (
    ListItemNode,
    ListNode,
    ParagraphNode,
    SpecialParagraphNode,
    TocNode,
    reconstruct,
)
from docstruct.structure import PatternKind, analyze_structure


NUMBERING_XML = """<w:numbering xmlns:w="http://schemas.openxmlformats.org/wordprocessingml/2006/main">
  <w:abstractNum w:abstractNumId="0">
    <w:lvl w:ilvl="0"><w:start w:val="1"/><w:numFmt w:val="decimal"/><w:lvlText w:val="%1."/></w:lvl>
    <w:lvl w:ilvl="1"><w:start w:val="1"/><w:numFmt w:val="lowerLetter"/><w:lvlText w:val="%2)"/></w:lvl>
    <w:lvl w:ilvl="2"><w:start w:val="1"/><w:numFmt w:val="lowerRoman"/><w:lvlText w:val="%3."/></w:lvl>
  </w:abstractNum>
  <w:num w:numId="1"><w:abstractNumId w:val="0"/></w:num>
  <w:num w:numId="2"><w:abstractNumId w:val="0"/></w:num>
</w:numbering>
"""


def _records(*rows: dict) -> list[ParagraphRecord]:
    return [ParagraphRecord(index=index, **row) for index, row in enumerate(rows)]


def _numbering():
    return parse_numbering(etree.fromstring(NUMBERING_XML.encode("utf-8")))


def _build(records: list[ParagraphRecord], numbering=None):
    return reconstruct(records, analyze_structure(records), numbering)


class NestedListTests(unittest.TestCase):
    def test_sublist_hangs_off_previous_item(self) -> None:
        records = _records(
            {"text": "First", "num_id": "1", "level": 0},
            {"text": "First.a", "num_id": "1", "level": 1},
            {"text": "Second", "num_id": "1", "level": 0},
        )
        tree = _build(records)
        self.assertEqual(len(tree.blocks), 1)
        root = tree.blocks[0]
        self.assertIsInstance(root, ListNode)
        self.assertEqual(len(root.items), 2)
        first, second = root.items
        self.assertEqual(first.text, "First")
        self.assertIsNotNone(first.children)
        self.assertEqual([item.text for item in first.children.items], ["First.a"])
        self.assertEqual(first.children.level, 1)
        self.assertIsNone(second.children)

    def test_markers_follow_numbering(self) -> None:
        records = _records(
            {"text": "A", "num_id": "1", "level": 0},
            {"text": "A.a", "num_id": "1", "level": 1},
            {"text": "A.a.i", "num_id": "1", "level": 2},
            {"text": "A.b", "num_id": "1", "level": 1},
            {"text": "B", "num_id": "1", "level": 0},
            {"text": "B.a", "num_id": "1", "level": 1},
        )
        tree = _build(records, _numbering())
        root = tree.blocks[0]
        self.assertEqual(root.format, "decimal")
        self.assertEqual([item.marker for item in root.items], ["1.", "2."])
        a_children = root.items[0].children
        self.assertEqual([item.marker for item in a_children.items], ["a)", "b)"])
        self.assertEqual(a_children.format, "lowerLetter")
        self.assertEqual(a_children.items[0].children.items[0].marker, "i.")
        self.assertEqual(root.items[1].children.items[0].marker, "a)")

    def test_orphan_deeper_item_stays_in_list(self) -> None:
        records = _records(
            {"text": "Starts deep", "num_id": "1", "level": 2},
            {"text": "Top", "num_id": "1", "level": 0},
        )
        root = _build(records).blocks[0]
        self.assertEqual(root.level, 2)
        self.assertEqual([item.text for item in root.items], ["Starts deep", "Top"])

    def test_separate_instances_make_separate_lists(self) -> None:
        records = _records(
            {"text": "x", "num_id": "1", "level": 0},
            {"text": "y", "num_id": "2", "level": 0},
        )
        tree = _build(records, _numbering())
        self.assertEqual([block.num_id for block in tree.lists()], ["1", "2"])
        self.assertEqual(tree.lists()[1].items[0].marker, "1.")

    def test_unresolved_numbering_has_no_marker(self) -> None:
        records = _records({"text": "x", "num_id": "77", "level": 0})
        item = _build(records, _numbering()).blocks[0].items[0]
        self.assertIsInstance(item, ListItemNode)
        self.assertIsNone(item.marker)
        self.assertIsNone(item.format)


class BlockOrderTests(unittest.TestCase):
    def test_toc_paragraphs_and_lists_in_document_order(self) -> None:
        records = _records(
            {"text": "Report"},
            {"text": "", "has_toc_field": True},
            {"text": "Scope....2", "style_id": "TOC1"},
            {"text": "Budget....4", "style_id": "TOC2"},
            {"text": "Scope", "style_id": "Heading1"},
            {"text": "Goal", "num_id": "1", "level": 0},
            {"text": ""},
            {"text": "Goal two", "num_id": "1", "level": 0},
            {"text": "Closing words."},
        )
        tree = _build(records)
        kinds = [type(block).__name__ for block in tree.blocks]
        self.assertEqual(
            kinds,
            ["ParagraphNode", "ParagraphNode", "TocNode", "ParagraphNode", "ListNode", "ParagraphNode"],
        )
        self.assertIsInstance(tree.toc, TocNode)
        self.assertEqual([entry.text for entry in tree.toc.entries], ["Scope", "Budget"])
        self.assertEqual([entry.level for entry in tree.toc.entries], [1, 2])
        self.assertEqual(tree.toc.entries[0].page_number, 2)
        self.assertEqual([entry.target_paragraph_index for entry in tree.toc.entries], [4, None])
        self.assertEqual(tree.to_dict()["toc"]["entries"][0]["target_paragraph_index"], 4)
        self.assertEqual(len(tree.lists()[0].items), 2)

    def test_special_paragraphs(self) -> None:
        records = _records(
            {"text": "Item", "num_id": "1", "level": 0},
            {"text": "Rationale for item"},
            {"text": "Heading"},
            {"text": "Rationale for heading"},
        )
        tree = _build(records)
        list_node, heading, special = tree.blocks
        self.assertIsInstance(list_node.items[1], SpecialParagraphNode)
        self.assertEqual(list_node.items[1].pattern_kind, PatternKind.WORD_FOR_WORD)
        self.assertIsInstance(heading, ParagraphNode)
        self.assertIsInstance(special, SpecialParagraphNode)
        self.assertEqual(special.paragraph_index, 3)

    def test_to_dict(self) -> None:
        records = _records(
            {"text": "Item", "num_id": "1", "level": 0},
            {"text": "Sub", "num_id": "1", "level": 1},
        )
        data = _build(records, _numbering()).to_dict()
        self.assertIsNone(data["toc"])
        block = data["blocks"][0]
        self.assertEqual(block["type"], "list")
        item = block["items"][0]
        self.assertEqual((item["type"], item["marker"]), ("list_item", "1."))
        self.assertEqual(item["children"]["items"][0]["marker"], "a)")

    def test_empty_document(self) -> None:
        tree = _build([])
        self.assertEqual(tree.blocks, [])
        self.assertIsNone(tree.toc)


if __name__ == "__main__":
    unittest.main()
