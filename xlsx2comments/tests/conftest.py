import io
import zipfile
from typing import Any

import pytest
from openpyxl import Workbook
from openpyxl.comments import Comment

MAIN_NS = "http://schemas.openxmlformats.org/spreadsheetml/2006/main"
REL_NS = "http://schemas.openxmlformats.org/officeDocument/2006/relationships"
PKG_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"
THREADED_NS = "http://schemas.microsoft.com/office/spreadsheetml/2018/threadedcomments"

OFFICE_DOCUMENT_TYPE = f"{REL_NS}/officeDocument"
WORKSHEET_TYPE = f"{REL_NS}/worksheet"
COMMENTS_TYPE = f"{REL_NS}/comments"
THREADED_TYPE = "http://schemas.microsoft.com/office/2017/10/relationships/threadedComment"
PERSON_TYPE = "http://schemas.microsoft.com/office/2017/10/relationships/person"


class WorkbookBuilder:
    """Builds small workbook containers in memory."""

    COMMENTS_TYPE = COMMENTS_TYPE
    PERSON_TYPE = PERSON_TYPE
    THREADED_TYPE = THREADED_TYPE

    def zip_bytes(self, files: dict[str, str | bytes]) -> bytes:
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name, data in files.items():
                zf.writestr(name, data)
        return buffer.getvalue()

    def entries(self, data: bytes) -> dict[str, bytes]:
        with zipfile.ZipFile(io.BytesIO(data)) as zf:
            return {name: zf.read(name) for name in zf.namelist()}

    def rewrite(
        self,
        data: bytes,
        add: dict[str, str | bytes] | None = None,
        remove: tuple[str, ...] = (),
    ) -> bytes:
        files: dict[str, str | bytes] = {
            name: content
            for name, content in self.entries(data).items()
            if name not in remove
        }
        files.update(add or {})
        return self.zip_bytes(files)

    def rels_part(self, relationships: list[tuple[str, str, str]]) -> str:
        body = "".join(
            f'<Relationship Id="{rel_id}" Type="{rel_type}" Target="{target}"/>'
            for rel_id, rel_type, target in relationships
        )
        return (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<Relationships xmlns="{PKG_REL_NS}">{body}</Relationships>'
        )

    def add_relationships(
        self, data: bytes, rels_path: str, relationships: list[tuple[str, str, str]]
    ) -> bytes:
        """Append relationships to a rels part, creating it if needed."""
        existing = self.entries(data).get(rels_path)
        if existing is None:
            return self.rewrite(data, add={rels_path: self.rels_part(relationships)})
        extra = "".join(
            f'<Relationship Id="{rel_id}" Type="{rel_type}" Target="{target}"/>'
            for rel_id, rel_type, target in relationships
        )
        text = existing.decode("utf-8").replace(
            "</Relationships>", f"{extra}</Relationships>"
        )
        return self.rewrite(data, add={rels_path: text})

    def threaded_part(self, *comments: dict[str, str]) -> str:
        body = []
        for index, comment in enumerate(comments):
            attrs = {
                "ref": comment.get("ref", "A1"),
                "personId": comment.get("personId", ""),
                "id": comment.get("id", f"{{C{index}}}"),
            }
            for optional in ("dT", "parentId"):
                if optional in comment:
                    attrs[optional] = comment[optional]
            rendered = " ".join(f'{key}="{value}"' for key, value in attrs.items())
            body.append(
                f"<threadedComment {rendered}><text>{comment.get('text', '')}</text>"
                "</threadedComment>"
            )
        return (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<ThreadedComments xmlns="{THREADED_NS}">{"".join(body)}</ThreadedComments>'
        )

    def persons_part(self, persons: dict[str, str]) -> str:
        body = "".join(
            f'<person displayName="{name}" id="{person_id}" userId="{name}" providerId="None"/>'
            for person_id, name in persons.items()
        )
        return (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<personList xmlns="{THREADED_NS}">{body}</personList>'
        )

    def legacy_part(self, notes: list[tuple[str, list[str]]], authors: list[str]) -> str:
        """Comments part in the layout Excel writes, with one run per text chunk."""
        author_xml = "".join(f"<author>{author}</author>" for author in authors)
        body = []
        for ref, runs in notes:
            run_xml = "".join(
                f'<r><t xml:space="preserve">{run}</t></r>' for run in runs
            )
            body.append(f'<comment ref="{ref}" authorId="0"><text>{run_xml}</text></comment>')
        return (
            '<?xml version="1.0" encoding="UTF-8" standalone="yes"?>'
            f'<comments xmlns="{MAIN_NS}"><authors>{author_xml}</authors>'
            f'<commentList>{"".join(body)}</commentList></comments>'
        )

    def package(
        self,
        sheets: list[tuple[str, str, str]],
        extra: dict[str, str | bytes] | None = None,
        workbook_rels: list[tuple[str, str, str]] | None = None,
    ) -> bytes:
        """
        Bare OOXML package without styles or shared strings.

        Args:
            sheets: (name, r:id, worksheet part) per manifest entry.
            extra: Additional parts, e.g. rels or comment parts.
            workbook_rels: Extra relationships of the workbook part.
        """
        sheet_xml = "".join(
            f'<sheet name="{name}" sheetId="{index}" r:id="{rel_id}"/>'
            for index, (name, rel_id, _) in enumerate(sheets, start=1)
        )
        files: dict[str, str | bytes] = {
            "_rels/.rels": self.rels_part([("rId1", OFFICE_DOCUMENT_TYPE, "xl/workbook.xml")]),
            "xl/workbook.xml": (
                f'<workbook xmlns="{MAIN_NS}" xmlns:r="{REL_NS}"><sheets>{sheet_xml}</sheets></workbook>'
            ),
            "xl/_rels/workbook.xml.rels": self.rels_part(
                [
                    (rel_id, WORKSHEET_TYPE, part.removeprefix("xl/"))
                    for _, rel_id, part in sheets
                ]
                + list(workbook_rels or [])
            ),
        }
        for _, _, part in sheets:
            files[part] = f'<worksheet xmlns="{MAIN_NS}"><sheetData/></worksheet>'
        files.update(extra or {})
        return self.zip_bytes(files)

    def workbook(
        self,
        sheets: dict[str, dict[str, Any]] | None = None,
        notes: dict[tuple[str, str], tuple[str, str]] | None = None,
    ) -> bytes:
        """
        A real workbook written by openpyxl.

        Args:
            sheets: Sheet title -> {cell address: value}, in workbook order.
            notes: (sheet title, cell address) -> (note text, author).
        """
        sheets = sheets or {"Sheet1": {}}
        wb = Workbook()
        for index, (title, cells) in enumerate(sheets.items()):
            ws = wb.active if index == 0 else wb.create_sheet()
            ws.title = title
            for address, value in cells.items():
                ws[address] = value
        for (title, address), (text, author) in (notes or {}).items():
            wb[title][address].comment = Comment(text, author)
        buffer = io.BytesIO()
        wb.save(buffer)
        return buffer.getvalue()

    def with_threaded_comments(
        self,
        data: bytes,
        comments: list[dict[str, str]],
        persons: dict[str, str] | None = None,
        *,
        sheet_number: int = 1,
        part_number: int = 1,
        linked: bool = True,
    ) -> bytes:
        """Add a threaded comment part (and persons table) to an openpyxl workbook."""
        part = f"xl/threadedComments/threadedComment{part_number}.xml"
        add: dict[str, str | bytes] = {part: self.threaded_part(*comments)}
        if persons is not None:
            add["xl/persons/person.xml"] = self.persons_part(persons)
        data = self.rewrite(data, add=add)
        if linked:
            data = self.add_relationships(
                data,
                f"xl/worksheets/_rels/sheet{sheet_number}.xml.rels",
                [
                    (
                        f"rIdThreaded{part_number}",
                        THREADED_TYPE,
                        f"../threadedComments/threadedComment{part_number}.xml",
                    )
                ],
            )
        return data


@pytest.fixture
def builder() -> WorkbookBuilder:
    return WorkbookBuilder()
