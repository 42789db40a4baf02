"""
Cell value classification and rendering.

openpyxl hands back cell values in many shapes: plain scalars, rich text
objects, formula strings or formula objects, dates, and the odd custom
object. `classify_cell` turns each cell into exactly one of the variants in
`data_types.CellValue` once, and `render_value` maps every variant to a
display string. Nothing downstream inspects raw openpyxl values.
"""

import datetime
import json
import numbers
from typing import Any

from openpyxl.cell.cell import Cell
from openpyxl.cell.rich_text import CellRichText, TextBlock
from openpyxl.worksheet.formula import ArrayFormula, DataTableFormula

from xlsx2comments.extractors.data_types import (
    UNRENDERABLE_VALUE,
    ArrayValue,
    CellValue,
    DateTimeValue,
    EmptyValue,
    FormulaValue,
    HyperlinkValue,
    OpaqueValue,
    RichTextValue,
    ScalarValue,
)

_CELL_VALUE_TYPES = (
    EmptyValue,
    RichTextValue,
    FormulaValue,
    HyperlinkValue,
    DateTimeValue,
    ArrayValue,
    ScalarValue,
    OpaqueValue,
)


def classify_value(value: Any) -> CellValue:
    """Classify a plain cell value (no formula or hyperlink context)."""
    if value is None:
        return EmptyValue()
    if isinstance(value, _CELL_VALUE_TYPES):
        return value
    if isinstance(value, CellRichText):
        runs = []
        for block in value:
            runs.append(block.text if isinstance(block, TextBlock) else str(block))
        return RichTextValue(runs=tuple(runs))
    if isinstance(
        value, (datetime.datetime, datetime.date, datetime.time, datetime.timedelta)
    ):
        return DateTimeValue(value=value)
    if isinstance(value, (str, bool)) or isinstance(value, numbers.Number):
        return ScalarValue(value=value)
    if isinstance(value, (list, tuple)):
        return ArrayValue(items=tuple(classify_value(item) for item in value))
    return OpaqueValue(value=value)


def _formula_text(value: Any) -> str:
    if isinstance(value, ArrayFormula):
        text = value.text or ""
    elif isinstance(value, DataTableFormula):
        text = f"TABLE({value.r1 or ''},{value.r2 or ''})"
    else:
        text = str(value)
    return text[1:] if text.startswith("=") else text


def classify_cell(formula_cell: Cell, value_cell: Cell | None = None) -> CellValue:
    """
    Classify a cell read from a workbook loaded with ``data_only=False``.

    Args:
        formula_cell: The cell holding formulas as written.
        value_cell: The same cell from a ``data_only=True`` load, holding the
            cached formula result. Optional.
    """
    value = formula_cell.value
    if formula_cell.data_type == "f" or isinstance(
        value, (ArrayFormula, DataTableFormula)
    ):
        cached = value_cell.value if value_cell is not None else None
        result = classify_value(cached) if cached is not None else None
        return FormulaValue(formula=_formula_text(value), result=result)

    hyperlink = formula_cell.hyperlink
    if hyperlink is not None:
        target = hyperlink.target or hyperlink.location or ""
        return HyperlinkValue(text=classify_value(value), target=target)

    return classify_value(value)


def _render_datetime(value: Any) -> str:
    if isinstance(value, datetime.datetime):
        return value.strftime("%Y-%m-%d %H:%M:%S")
    if isinstance(value, datetime.date):
        return value.isoformat()
    if isinstance(value, datetime.time):
        return value.strftime("%H:%M:%S")
    return str(value)


def _render_scalar(value: Any) -> str:
    if isinstance(value, bool):
        return "TRUE" if value else "FALSE"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _render_opaque(value: Any) -> str:
    # a type with its own __str__ knows how it wants to be shown
    if type(value).__str__ is not object.__str__:
        try:
            return str(value)
        except Exception:
            pass
    payload = value if isinstance(value, dict) else getattr(value, "__dict__", None)
    if payload is None:
        return UNRENDERABLE_VALUE
    try:
        return json.dumps(payload, default=str, ensure_ascii=False, sort_keys=True)
    except (TypeError, ValueError):
        return UNRENDERABLE_VALUE


def render_value(value: CellValue | None) -> str:
    """Display string for a classified cell value."""
    if value is None or isinstance(value, EmptyValue):
        return ""
    if isinstance(value, RichTextValue):
        return "".join(value.runs)
    if isinstance(value, FormulaValue):
        if value.result is not None and not isinstance(value.result, EmptyValue):
            return render_value(classify_value(value.result))
        return f"={value.formula}"
    if isinstance(value, HyperlinkValue):
        return render_value(classify_value(value.text))
    if isinstance(value, DateTimeValue):
        return _render_datetime(value.value)
    if isinstance(value, ArrayValue):
        return ", ".join(render_value(classify_value(item)) for item in value.items)
    if isinstance(value, ScalarValue):
        return _render_scalar(value.value)
    if isinstance(value, OpaqueValue):
        return _render_opaque(value.value)
    return _render_opaque(value)
