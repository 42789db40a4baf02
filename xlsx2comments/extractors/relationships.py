"""
OOXML Relationship Resolver
===========================

Connects the loosely linked parts of a spreadsheet package so that every
comment part can be attributed to the worksheet it annotates.

Part Graph
----------
A workbook never names the owner of a comment part directly. The link is
spread over four parts::

    xl/workbook.xml                       <sheet name="Budget" r:id="rId2"/>
    xl/_rels/workbook.xml.rels            rId2 -> worksheets/sheet5.xml
    xl/worksheets/_rels/sheet5.xml.rels   rId1 -> ../threadedComments/threadedComment1.xml
    xl/threadedComments/threadedComment1.xml

Authors of threaded comments live in yet another part (xl/persons/person.xml),
keyed by an opaque person id.

Resolution Order
----------------
1. persons: person id -> Person (optional part)
2. sheet_name_by_rel_id: r:id -> sheet name (from xl/workbook.xml)
3. rel_id_by_sheet_part: worksheet part path -> r:id (from workbook rels)
4. for every worksheet part present in the container, its own rels file is
   read and comment parts are mapped to the sheet name obtained by composing
   maps 2 and 3.

Fallbacks
---------
Real files are inconsistently linked. A comment part that no worksheet rels
file points at is attributed by its numeric file suffix N: first the manifest
sheet declared with r:id "rIdN", then a synthesised "SheetN". Nothing is ever
dropped for lack of an owner.
"""

import logging
import posixpath
import re
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from xlsx2comments.exceptions import UnresolvedReferenceError
from xlsx2comments.extractors.data_types import (
    UNKNOWN_AUTHOR,
    UNKNOWN_SHEET,
    Person,
    SheetDescriptor,
)
from xlsx2comments.extractors.util.xml_parts import (
    R_ID,
    get_local_attr,
    iter_local,
    read_optional_xml,
    read_required_xml,
)
from xlsx2comments.extractors.util.zip_context import ZipContext

logger = logging.getLogger(__name__)

PACKAGE_RELS_PART = "_rels/.rels"
DEFAULT_WORKBOOK_PART = "xl/workbook.xml"
DEFAULT_PERSONS_PART = "xl/persons/person.xml"

_WORKSHEET_PART_RE = re.compile(r"(?:^|/)worksheets/sheet(\d+)\.xml$")
_THREADED_PART_RE = re.compile(r"threadedComments/threadedComment(\d*)\.xml$")
# Excel writes xl/commentsN.xml, openpyxl writes xl/comments/commentN.xml
_LEGACY_PART_RE = re.compile(r"(?:^|/)comments(?:/comment)?\d*\.xml$")
_TRAILING_NUMBER_RE = re.compile(r"(\d+)\.xml$")


@dataclass(frozen=True)
class Relationship:
    id: str
    type: str
    target: str
    external: bool = False

    @property
    def type_name(self) -> str:
        """Last path segment of the relationship type URI."""
        return self.type.rsplit("/", 1)[-1]


def rels_path_for(part: str) -> str:
    """Path of the relationship part that describes `part`."""
    folder, name = posixpath.split(part)
    return posixpath.join(folder, "_rels", f"{name}.rels")


def source_part_for(rels_path: str) -> str:
    """Part described by a relationship part; the inverse of `rels_path_for`."""
    folder, name = posixpath.split(rels_path)
    return posixpath.join(posixpath.dirname(folder), name.removesuffix(".rels"))


def resolve_target(source_part: str, target: str) -> str:
    """Turn a relationship Target into a container part name.

    Targets are either absolute within the package ("/xl/worksheets/sheet1.xml")
    or relative to the folder of the source part ("../threadedComments/x.xml").
    """
    target = target.replace("\\", "/")
    if target.startswith("/"):
        return posixpath.normpath(target.lstrip("/"))
    folder = posixpath.dirname(source_part)
    return posixpath.normpath(posixpath.join(folder, target))


def parse_relationships(root: ET.Element | None) -> list[Relationship]:
    if root is None:
        return []
    relationships = []
    for element in iter_local(root, "Relationship"):
        relationships.append(
            Relationship(
                id=element.get("Id", ""),
                type=element.get("Type", ""),
                target=element.get("Target", ""),
                external=element.get("TargetMode", "") == "External",
            )
        )
    return relationships


def is_threaded_comment_part(path: str) -> bool:
    return "/_rels/" not in path and bool(_THREADED_PART_RE.search(path))


def is_legacy_comment_part(path: str) -> bool:
    return "/_rels/" not in path and bool(_LEGACY_PART_RE.search(path))


def part_number(path: str) -> int | None:
    """Numeric suffix of a part file name ("threadedComment3.xml" -> 3)."""
    match = _TRAILING_NUMBER_RE.search(path)
    if not match:
        return None
    return int(match.group(1))


def find_workbook_part(ctx: ZipContext) -> str:
    """Locate the main workbook part via the package relationships."""
    for rel in parse_relationships(read_optional_xml(ctx, PACKAGE_RELS_PART)):
        if rel.type_name == "officeDocument" and not rel.external:
            part = resolve_target("", rel.target)
            if ctx.exists(part):
                return part
    return DEFAULT_WORKBOOK_PART


def load_persons(ctx: ZipContext, path: str) -> dict[str, Person]:
    root = read_optional_xml(ctx, path)
    if root is None:
        return {}
    persons: dict[str, Person] = {}
    for element in iter_local(root, "person"):
        person_id = element.get("id", "")
        persons[person_id] = Person(
            id=person_id,
            display_name=element.get("displayName") or UNKNOWN_AUTHOR,
            user_id=element.get("userId", ""),
        )
    logger.debug(f"Loaded {len(persons)} persons from [{path}]")
    return persons


def load_sheet_descriptors(workbook_root: ET.Element) -> list[SheetDescriptor]:
    sheets = []
    for index, element in enumerate(iter_local(workbook_root, "sheet"), start=1):
        sheets.append(
            SheetDescriptor(
                sheet_id=element.get("sheetId", ""),
                name=element.get("name") or f"Sheet{index}",
                relationship_id=element.get(R_ID) or get_local_attr(element, "id"),
            )
        )
    return sheets


@dataclass
class RelationshipResolver:
    """Cross-reference maps for one workbook container.

    Build it with `RelationshipResolver.build(ctx)`; instances are owned by a
    single extraction call and never shared.
    """

    workbook_part: str = DEFAULT_WORKBOOK_PART
    persons: dict[str, Person] = field(default_factory=dict)
    sheets: list[SheetDescriptor] = field(default_factory=list)
    sheet_name_by_rel_id: dict[str, str] = field(default_factory=dict)
    rel_id_by_sheet_part: dict[str, str] = field(default_factory=dict)
    # comment part path -> owning sheet name
    threaded_owner: dict[str, str] = field(default_factory=dict)
    legacy_owner: dict[str, str] = field(default_factory=dict)

    @classmethod
    def build(cls, ctx: ZipContext) -> "RelationshipResolver":
        """
        Read the manifest, relationship parts and persons table of `ctx`.

        Raises:
            ContainerError: If the workbook part is missing.
            MalformedXmlError: If the workbook part is not well-formed.
        """
        resolver = cls(workbook_part=find_workbook_part(ctx))
        workbook_root = read_required_xml(ctx, resolver.workbook_part)

        workbook_rels = parse_relationships(
            read_optional_xml(ctx, rels_path_for(resolver.workbook_part))
        )

        persons_part = DEFAULT_PERSONS_PART
        for rel in workbook_rels:
            if rel.type_name == "person" and not rel.external:
                persons_part = resolve_target(resolver.workbook_part, rel.target)
                break
        resolver.persons = load_persons(ctx, persons_part)

        resolver.sheets = load_sheet_descriptors(workbook_root)
        for sheet in resolver.sheets:
            if sheet.relationship_id:
                resolver.sheet_name_by_rel_id[sheet.relationship_id] = sheet.name

        for rel in workbook_rels:
            if rel.external:
                continue
            if rel.type_name == "worksheet" or "worksheets/" in rel.target:
                part = resolve_target(resolver.workbook_part, rel.target)
                resolver.rel_id_by_sheet_part[part] = rel.id

        resolver._map_comment_parts(ctx)
        logger.debug(
            f"Resolved {len(resolver.sheets)} sheets, "
            f"{len(resolver.threaded_owner)} threaded and "
            f"{len(resolver.legacy_owner)} legacy comment parts"
        )
        return resolver

    def _worksheet_parts(self, ctx: ZipContext) -> list[str]:
        """Worksheet parts present in the container, ordered by file number."""
        parts = set(ctx.entries_matching(lambda name: bool(_WORKSHEET_PART_RE.search(name))))
        # worksheets linked from the workbook but not named sheetN.xml
        parts.update(part for part in self.rel_id_by_sheet_part if ctx.exists(part))

        def sort_key(part: str) -> tuple[int, str]:
            number = part_number(part)
            return (number if number is not None else 1 << 30, part)

        return sorted(parts, key=sort_key)

    def sheet_name_for_part(self, sheet_part: str) -> str:
        """Manifest name of a worksheet part, or a positional placeholder."""
        rel_id = self.rel_id_by_sheet_part.get(sheet_part)
        if rel_id and rel_id in self.sheet_name_by_rel_id:
            return self.sheet_name_by_rel_id[rel_id]
        number = part_number(sheet_part)
        return f"Sheet{number}" if number is not None else UNKNOWN_SHEET

    def _map_comment_parts(self, ctx: ZipContext) -> None:
        for sheet_part in self._worksheet_parts(ctx):
            rels_root = read_optional_xml(ctx, rels_path_for(sheet_part))
            if rels_root is None:
                continue
            sheet_name = self.sheet_name_for_part(sheet_part)
            for rel in parse_relationships(rels_root):
                if rel.external:
                    continue
                target = resolve_target(sheet_part, rel.target)
                if rel.type_name == "threadedComment" or is_threaded_comment_part(target):
                    self.threaded_owner.setdefault(target, sheet_name)
                elif rel.type_name == "comments" or is_legacy_comment_part(target):
                    self.legacy_owner.setdefault(target, sheet_name)

    def _sheet_by_numeric_suffix(self, part: str) -> str:
        number = part_number(part)
        if number is None:
            raise UnresolvedReferenceError(part, f"No numeric suffix in part name: {part}")
        name = self.sheet_name_by_rel_id.get(f"rId{number}")
        if name is None:
            raise UnresolvedReferenceError(part, f"No manifest sheet with rId{number}")
        return name

    def _owner(self, part: str, owners: dict[str, str]) -> str:
        if part in owners:
            return owners[part]
        try:
            name = self._sheet_by_numeric_suffix(part)
            logger.debug(f"Attributed [{part}] to sheet [{name}] by file number")
            return name
        except UnresolvedReferenceError as exc:
            number = part_number(part)
            name = f"Sheet{number}" if number is not None else UNKNOWN_SHEET
            logger.warning(f"{exc}; using placeholder sheet name [{name}]")
            return name

    def sheet_for_threaded_part(self, part: str) -> str:
        """Owning sheet name of a threaded comment part; never fails."""
        return self._owner(part, self.threaded_owner)

    def sheet_for_legacy_part(self, part: str) -> str:
        """Owning sheet name of a legacy comments part; never fails."""
        return self._owner(part, self.legacy_owner)

    def author_for(self, person_id: str) -> str:
        person = self.persons.get(person_id)
        if person is None:
            return UNKNOWN_AUTHOR
        return person.display_name or UNKNOWN_AUTHOR
