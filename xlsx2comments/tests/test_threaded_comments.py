import logging
import unittest

from xlsx2comments.extractors.relationships import RelationshipResolver
from xlsx2comments.extractors.threaded_comments import extract_threaded_comments
from xlsx2comments.extractors.util.zip_context import ZipContext

logger = logging.getLogger(__name__)

tc = unittest.TestCase()

THREADED_PART = "xl/threadedComments/threadedComment1.xml"


def _extract(data: bytes):
    with ZipContext.from_bytes(data) as ctx:
        return extract_threaded_comments(ctx, RelationshipResolver.build(ctx))


def _package(builder, threaded: str, persons: dict[str, str] | None = None) -> bytes:
    extra = {
        "xl/worksheets/_rels/sheet1.xml.rels": builder.rels_part(
            [("rId1", builder.THREADED_TYPE, "../threadedComments/threadedComment1.xml")]
        ),
        THREADED_PART: threaded,
    }
    if persons is not None:
        extra["xl/persons/person.xml"] = builder.persons_part(persons)
    return builder.package(
        sheets=[("Review", "rId1", "xl/worksheets/sheet1.xml")], extra=extra
    )


def test_threaded_comment_with_person(builder) -> None:
    data = _package(
        builder,
        builder.threaded_part(
            {"ref": "D16", "personId": "p1", "text": "Hello", "dT": "2024-01-15T09:30:00.00"}
        ),
        persons={"p1": "Alice"},
    )

    result = _extract(data)

    tc.assertTrue(result.has_threaded_comments)
    tc.assertEqual(1, len(result.records))
    record = result.records[0]
    tc.assertEqual("Review", record.sheet_name)
    tc.assertEqual("D16", record.cell_address)
    tc.assertEqual("p1", record.author_id)
    tc.assertEqual("Alice", record.author)
    tc.assertEqual("Hello", record.text)
    tc.assertEqual("2024-01-15T09:30:00.00", record.timestamp)
    tc.assertEqual(("Review", "D16"), record.key)


def test_unknown_person_resolves_to_unknown_author(builder) -> None:
    data = _package(
        builder,
        builder.threaded_part({"ref": "A1", "personId": "ghost", "text": "Who wrote this?"}),
        persons={"p1": "Alice"},
    )

    tc.assertEqual("Unknown", _extract(data).records[0].author)


def test_missing_persons_part_keeps_comments(builder) -> None:
    data = _package(builder, builder.threaded_part({"ref": "A1", "personId": "p1", "text": "x"}))

    records = _extract(data).records

    tc.assertEqual(1, len(records))
    tc.assertEqual("Unknown", records[0].author)


def test_replies_are_separate_records(builder) -> None:
    data = _package(
        builder,
        builder.threaded_part(
            {"ref": "B2", "personId": "p1", "text": "Is this right?", "id": "{A}"},
            {"ref": "B2", "personId": "p2", "text": "Yes", "parentId": "{A}"},
        ),
        persons={"p1": "Alice", "p2": "Bob"},
    )

    records = _extract(data).records

    tc.assertListEqual(["Alice", "Bob"], [record.author for record in records])
    tc.assertEqual("", records[0].parent_id)
    tc.assertEqual("{A}", records[1].parent_id)


def test_empty_comment_bodies_are_skipped(builder) -> None:
    data = _package(
        builder,
        builder.threaded_part(
            {"ref": "A1", "personId": "p1", "text": "   "},
            {"ref": "A2", "personId": "p1", "text": "kept"},
        ),
    )

    records = _extract(data).records

    tc.assertListEqual(["A2"], [record.cell_address for record in records])


def test_unlinked_part_uses_fallback_sheet_name(builder) -> None:
    data = builder.package(
        sheets=[("Only", "rId1", "xl/worksheets/sheet1.xml")],
        extra={
            "xl/threadedComments/threadedComment4.xml": builder.threaded_part(
                {"ref": "C3", "personId": "p1", "text": "orphan"}
            )
        },
    )

    records = _extract(data).records

    tc.assertEqual(1, len(records))
    tc.assertEqual("Sheet4", records[0].sheet_name)


def test_malformed_part_is_skipped_but_flags_presence(builder) -> None:
    data = _package(builder, "<ThreadedComments><threadedComment")

    result = _extract(data)

    tc.assertTrue(result.has_threaded_comments)
    tc.assertListEqual([], result.records)


def test_no_threaded_parts(builder) -> None:
    data = builder.package(sheets=[("Only", "rId1", "xl/worksheets/sheet1.xml")])

    result = _extract(data)

    tc.assertFalse(result.has_threaded_comments)
    tc.assertListEqual([], result.records)
