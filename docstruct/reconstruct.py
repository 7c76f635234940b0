from __future__ import annotations

from dataclasses import dataclass, field
from typing import Sequence, Union

from .numbering import NumberingSequenceTracker, NumberingTable
from .paragraphs import ParagraphRecord
from .structure import ListGroup, PatternKind, StructureModel, TocEntry


@dataclass
class ParagraphNode:
    paragraph_index: int
    text: str
    style_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "paragraph",
            "paragraph_index": self.paragraph_index,
            "text": self.text,
            "style_id": self.style_id,
        }


@dataclass
class SpecialParagraphNode:
    paragraph_index: int
    text: str
    pattern_kind: PatternKind

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "special",
            "paragraph_index": self.paragraph_index,
            "text": self.text,
            "pattern_kind": self.pattern_kind.value,
        }


@dataclass
class ListItemNode:
    paragraph_index: int
    text: str
    level: int
    marker: str | None = None
    format: str | None = None
    children: ListNode | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "list_item",
            "paragraph_index": self.paragraph_index,
            "text": self.text,
            "level": self.level,
            "marker": self.marker,
            "format": self.format,
            "children": self.children.to_dict() if self.children is not None else None,
        }


@dataclass
class ListNode:
    num_id: str
    level: int
    format: str | None = None
    items: list[Union[ListItemNode, SpecialParagraphNode]] = field(default_factory=list)

    def last_item(self) -> ListItemNode | None:
        for item in reversed(self.items):
            if isinstance(item, ListItemNode):
                return item
        return None

    def to_dict(self) -> dict[str, object]:
        return {
            "type": "list",
            "num_id": self.num_id,
            "level": self.level,
            "format": self.format,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class TocLine:
    paragraph_index: int
    level: int
    text: str
    leader: str | None = None
    page_number: int | None = None
    target_paragraph_index: int | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "paragraph_index": self.paragraph_index,
            "level": self.level,
            "text": self.text,
            "leader": self.leader,
            "page_number": self.page_number,
            "target_paragraph_index": self.target_paragraph_index,
        }


@dataclass
class TocNode:
    entries: list[TocLine] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        return {"type": "toc", "entries": [entry.to_dict() for entry in self.entries]}


Block = Union[ParagraphNode, SpecialParagraphNode, ListNode, TocNode]


@dataclass
class DocumentTree:
    blocks: list[Block] = field(default_factory=list)
    toc: TocNode | None = None

    def lists(self) -> list[ListNode]:
        return [block for block in self.blocks if isinstance(block, ListNode)]

    def to_dict(self) -> dict[str, object]:
        return {
            "blocks": [block.to_dict() for block in self.blocks],
            "toc": self.toc.to_dict() if self.toc is not None else None,
        }


def reconstruct(
    paragraphs: Sequence[ParagraphRecord],
    structure: StructureModel,
    numbering: NumberingTable | None = None,
) -> DocumentTree:
    by_index = {record.index: record for record in paragraphs}
    tracker = NumberingSequenceTracker(numbering) if numbering is not None else None
    group_starts: dict[int, ListGroup] = {}
    consumed: set[int] = set()
    for group in structure.lists:
        if not group.items:
            continue
        indices = [item.paragraph_index for item in group.items]
        group_starts[indices[0]] = group
        consumed.update(indices)
        # blank paragraphs between items stay inside the list
        consumed.update(
            index
            for index in range(indices[0], indices[-1] + 1)
            if index in by_index and by_index[index].is_blank
        )
    toc = _toc_node(structure.toc_entries)
    toc_start = structure.toc_entries[0].paragraph_index if structure.toc_entries else None
    consumed.update(entry.paragraph_index for entry in structure.toc_entries)
    promoted = structure.promoted_kinds()

    tree = DocumentTree(toc=toc)
    for record in paragraphs:
        if record.index == toc_start and toc is not None:
            tree.blocks.append(toc)
            continue
        group = group_starts.get(record.index)
        if group is not None:
            tree.blocks.append(_list_node(group, by_index, numbering, tracker))
            continue
        if record.index in consumed:
            continue
        kind = structure.match_special(record.text) if promoted else None
        if kind is not None:
            tree.blocks.append(
                SpecialParagraphNode(paragraph_index=record.index, text=record.text, pattern_kind=kind)
            )
        else:
            tree.blocks.append(
                ParagraphNode(paragraph_index=record.index, text=record.text, style_id=record.style_id)
            )
    return tree


def _toc_node(entries: Sequence[TocEntry]) -> TocNode | None:
    if not entries:
        return None
    return TocNode(
        entries=[
            TocLine(
                paragraph_index=entry.paragraph_index,
                level=entry.level,
                text=entry.text,
                leader=entry.leader,
                page_number=entry.page_number,
                target_paragraph_index=entry.target_paragraph_index,
            )
            for entry in entries
        ]
    )


def _list_node(
    group: ListGroup,
    by_index: dict[int, ParagraphRecord],
    numbering: NumberingTable | None,
    tracker: NumberingSequenceTracker | None,
) -> ListNode:
    first_level = group.items[0].level
    root = ListNode(
        num_id=group.num_id,
        level=first_level,
        format=_level_format(numbering, group.num_id, first_level),
    )
    stack = [root]
    for item in group.items:
        record = by_index.get(item.paragraph_index)
        text = record.text if record is not None else ""
        if item.is_special and item.pattern_kind is not None:
            stack[-1].items.append(
                SpecialParagraphNode(
                    paragraph_index=item.paragraph_index,
                    text=text,
                    pattern_kind=item.pattern_kind,
                )
            )
            continue
        while len(stack) > 1 and stack[-1].level > item.level:
            stack.pop()
        target = stack[-1]
        if item.level > target.level:
            parent = target.last_item()
            # an orphan deeper item with no parent stays in the current list
            if parent is not None:
                if parent.children is None:
                    parent.children = ListNode(
                        num_id=group.num_id,
                        level=item.level,
                        format=_level_format(numbering, group.num_id, item.level),
                    )
                target = parent.children
                stack.append(target)
        marker = tracker.next_marker(group.num_id, item.level) if tracker is not None else None
        target.items.append(
            ListItemNode(
                paragraph_index=item.paragraph_index,
                text=text,
                level=item.level,
                marker=marker.text if marker is not None else None,
                format=marker.format if marker is not None else None,
            )
        )
    return root


def _level_format(numbering: NumberingTable | None, num_id: str, level: int) -> str | None:
    if numbering is None:
        return None
    effective = numbering.effective_level(num_id, level)
    return effective.format if effective is not None else None
