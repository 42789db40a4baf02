"""Comment extractors for Office Open XML workbooks."""
