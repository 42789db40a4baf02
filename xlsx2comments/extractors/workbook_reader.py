import io
import logging
import zipfile
from typing import Iterator
from xml.etree import ElementTree as ET

from openpyxl import load_workbook
from openpyxl.workbook.workbook import Workbook
from openpyxl.worksheet.worksheet import Worksheet

from xlsx2comments.exceptions import ContainerError, MalformedXmlError
from xlsx2comments.extractors.cell_values import classify_cell, render_value
from xlsx2comments.extractors.data_types import (
    EMPTY_CELL,
    UNREADABLE_CELL,
    CellValue,
)
from xlsx2comments.extractors.relationships import resolve_target, source_part_for
from xlsx2comments.extractors.util.xml_parts import local_name, parse_xml

logger = logging.getLogger(__name__)


def _drop_relationships(data: bytes, rels_path: str, parts: set[str]) -> bytes | None:
    """Rels part without the relationships targeting `parts`, or None if unchanged."""
    try:
        root = parse_xml(data, rels_path)
    except MalformedXmlError:
        return None
    source = source_part_for(rels_path)
    dropped = [
        element
        for element in list(root)
        if local_name(element.tag) == "Relationship"
        and element.get("TargetMode", "") != "External"
        and resolve_target(source, element.get("Target", "")) in parts
    ]
    if not dropped:
        return None
    for element in dropped:
        root.remove(element)
    return ET.tostring(root, encoding="UTF-8", xml_declaration=True)


def without_parts(file_like: io.BytesIO, parts: list[str]) -> io.BytesIO:
    """
    In-memory copy of a workbook with `parts` removed.

    Relationships pointing at a removed part are dropped as well, so a part
    that is linked but absent from the archive can be removed this way too.
    """
    removed = set(parts)
    file_like.seek(0)
    buffer = io.BytesIO()
    with zipfile.ZipFile(file_like) as source, zipfile.ZipFile(
        buffer, "w", compression=zipfile.ZIP_DEFLATED
    ) as target:
        for info in source.infolist():
            if info.filename in removed:
                continue
            data = source.read(info.filename)
            if info.filename.endswith(".rels"):
                data = _drop_relationships(data, info.filename, removed) or data
            target.writestr(info, data)
    file_like.seek(0)
    buffer.seek(0)
    return buffer


def _load(file_like: io.BytesIO, data_only: bool) -> Workbook:
    file_like.seek(0)
    # read_only=False: comments and hyperlinks are only loaded in full mode
    return load_workbook(file_like, read_only=False, data_only=data_only, rich_text=True)


class WorkbookCellReader:
    """
    Schema-aware access to cell values of the primary workbook part.

    The workbook is loaded twice: once with formulas as written and once with
    the cached results Excel stored alongside them. Both loads are independent
    of the raw part parsing used for threaded comments.
    """

    def __init__(self, file_like: io.BytesIO):
        try:
            self._formulas = _load(file_like, data_only=False)
            self._values = _load(file_like, data_only=True)
        except Exception as exc:
            raise ContainerError(
                f"Workbook could not be opened: {exc}", cause=exc
            ) from exc
        file_like.seek(0)

    @classmethod
    def from_bytes(cls, data: bytes) -> "WorkbookCellReader":
        return cls(io.BytesIO(data))

    @property
    def sheet_names(self) -> list[str]:
        return list(self._formulas.sheetnames)

    def worksheets(self) -> Iterator[Worksheet]:
        """Worksheets in workbook order (chart sheets have no cells and are skipped)."""
        yield from self._formulas.worksheets

    def classify(self, sheet_name: str, cell_address: str) -> CellValue:
        """
        Tagged value of one cell.

        Raises:
            KeyError: If the workbook has no sheet called `sheet_name`.
            ValueError: If `cell_address` is not a valid reference.
        """
        # ranges ("A1:B3") are anchored on their top-left cell
        address = cell_address.split(":", 1)[0]
        formula_cell = self._formulas[sheet_name][address]
        value_cell = None
        if sheet_name in self._values.sheetnames:
            value_cell = self._values[sheet_name][address]
        return classify_cell(formula_cell, value_cell)

    def value_as_string(self, sheet_name: str, cell_address: str) -> str:
        """
        Display string of a cell's value for the report.

        Returns EMPTY_CELL for empty cells and unknown sheets, and
        UNREADABLE_CELL if the cell cannot be read; never raises.
        """
        if sheet_name not in self._formulas.sheetnames:
            logger.debug(f"Sheet [{sheet_name}] not in workbook; no cell content")
            return EMPTY_CELL
        try:
            rendered = render_value(self.classify(sheet_name, cell_address))
        except Exception as exc:
            logger.warning(
                f"Could not read cell [{sheet_name}!{cell_address}]: {exc}"
            )
            return UNREADABLE_CELL
        return rendered.strip() or EMPTY_CELL

    def close(self) -> None:
        self._formulas.close()
        self._values.close()
