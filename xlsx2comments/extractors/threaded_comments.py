"""
Threaded comment extraction.

Threaded comments (Excel 365) live in ``xl/threadedComments/threadedCommentN.xml``::

    <ThreadedComments xmlns="http://schemas.microsoft.com/office/spreadsheetml/2018/threadedcomments">
      <threadedComment ref="D16" dT="2024-01-15T09:30:00.00" personId="{...}" id="{...}">
        <text>Please double check this figure</text>
      </threadedComment>
      <threadedComment ref="D16" parentId="{...}" personId="{...}" id="{...}">
        <text>Done</text>
      </threadedComment>
    </ThreadedComments>

Replies carry ``parentId`` and are reported as records of their own.
"""

import logging
from dataclasses import dataclass, field
from xml.etree import ElementTree as ET

from xlsx2comments.extractors.data_types import ThreadedCommentRecord
from xlsx2comments.extractors.relationships import (
    RelationshipResolver,
    is_threaded_comment_part,
)
from xlsx2comments.extractors.util.xml_parts import (
    find_local,
    iter_local,
    read_optional_xml,
    text_content,
)
from xlsx2comments.extractors.util.zip_context import ZipContext

logger = logging.getLogger(__name__)


@dataclass
class ThreadedExtraction:
    records: list[ThreadedCommentRecord] = field(default_factory=list)
    # True as soon as one threaded comment part exists, even if it is empty
    has_threaded_comments: bool = False


def _parse_part(
    root: ET.Element, sheet_name: str, resolver: RelationshipResolver
) -> list[ThreadedCommentRecord]:
    records = []
    for element in iter_local(root, "threadedComment"):
        text = text_content(find_local(element, "text")).strip()
        if not text:
            continue
        person_id = element.get("personId", "")
        records.append(
            ThreadedCommentRecord(
                sheet_name=sheet_name,
                cell_address=element.get("ref", ""),
                author_id=person_id,
                author=resolver.author_for(person_id),
                text=text,
                timestamp=element.get("dT", ""),
                parent_id=element.get("parentId", ""),
            )
        )
    return records


def extract_threaded_comments(
    ctx: ZipContext, resolver: RelationshipResolver
) -> ThreadedExtraction:
    """
    Read every threaded comment part of the container, in archive order.

    Parts that cannot be parsed contribute nothing; they still count towards
    `has_threaded_comments` because the subsystem is present in the file.
    """
    parts = ctx.entries_matching(is_threaded_comment_part)
    result = ThreadedExtraction(has_threaded_comments=bool(parts))
    if not parts:
        logger.debug("No threaded comment parts found")
        return result

    for part in parts:
        root = read_optional_xml(ctx, part)
        if root is None:
            continue
        sheet_name = resolver.sheet_for_threaded_part(part)
        records = _parse_part(root, sheet_name, resolver)
        logger.debug(f"Read {len(records)} threaded comments from [{part}] -> [{sheet_name}]")
        result.records.extend(records)

    return result
