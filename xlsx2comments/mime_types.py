MIME_TYPE_MAPPING = {
    # Office Open XML workbooks
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-excel.sheet.macroEnabled.12": "xlsm",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.template": "xltx",
    "application/vnd.ms-excel.template.macroEnabled.12": "xltm",
    # Rejected before extraction
    "application/vnd.ms-excel": "xls",
    "application/vnd.ms-excel.sheet.binary.macroEnabled.12": "xlsb",
}

SUPPORTED_FILE_TYPES = frozenset({"xlsx", "xlsm", "xltx", "xltm"})

# file type -> name used in the user-facing rejection message
REJECTED_FILE_TYPES = {
    "xls": ".xls (Excel 97-2003 binary workbook)",
    "xlsb": ".xlsb (Excel binary workbook)",
}


def file_type_from_extension(path: str) -> str | None:
    """Lower-case file type derived from the path's extension, if any."""
    name = path.lower().rsplit("/", 1)[-1]
    if "." not in name:
        return None
    return name.rsplit(".", 1)[-1]
