import io
import logging
from typing import Sequence

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side

from xlsx2comments.extractors.data_types import NormalizedComment

logger = logging.getLogger(__name__)

REPORT_SHEET_TITLE = "Comment_Summary"

# (header, attribute, column width)
BASE_COLUMNS = [
    ("Sheet", "sheet_name", 20),
    ("Cell", "cell_address", 10),
    ("Original cell content", "original_cell_content", 30),
    ("Comment", "comment_text", 50),
    ("Author", "author", 20),
    ("Created", "created_date", 20),
]
TRANSLATION_COLUMN = ("Translated comment", "translated_text", 60)

_HEADER_FONT = Font(bold=True, color="FFFFFFFF", size=12)
_HEADER_FILL = PatternFill(fill_type="solid", fgColor="FF1B5E20")
_HEADER_ALIGNMENT = Alignment(vertical="center", horizontal="center")
_BODY_ALIGNMENT = Alignment(vertical="top", wrap_text=True)
_THIN = Side(style="thin")
_BORDER = Border(top=_THIN, left=_THIN, bottom=_THIN, right=_THIN)


def report_columns(comments: Sequence[NormalizedComment]) -> list[tuple[str, str, int]]:
    """Report columns; the translation column only if something was translated."""
    columns = list(BASE_COLUMNS)
    if any(comment.translated_text for comment in comments):
        columns.append(TRANSLATION_COLUMN)
    return columns


def build_report_workbook(comments: Sequence[NormalizedComment]) -> Workbook:
    wb = Workbook()
    ws = wb.active
    ws.title = REPORT_SHEET_TITLE

    columns = report_columns(comments)
    ws.append([header for header, _, _ in columns])
    for index, (_, _, width) in enumerate(columns, start=1):
        ws.column_dimensions[ws.cell(row=1, column=index).column_letter].width = width
    for cell in ws[1]:
        cell.font = _HEADER_FONT
        cell.fill = _HEADER_FILL
        cell.alignment = _HEADER_ALIGNMENT
    ws.row_dimensions[1].height = 30

    for comment in comments:
        ws.append([getattr(comment, attribute) or "" for _, attribute, _ in columns])
        for cell in ws[ws.max_row]:
            cell.alignment = _BODY_ALIGNMENT
            cell.border = _BORDER

    ws.freeze_panes = "A2"
    return wb


def write_report(comments: Sequence[NormalizedComment]) -> bytes:
    """Styled .xlsx report of `comments` as bytes."""
    wb = build_report_workbook(comments)
    buffer = io.BytesIO()
    wb.save(buffer)
    logger.info("Wrote report with %d comments", len(comments))
    return buffer.getvalue()
