from xlsx2comments.report.xlsx_report import build_report_workbook, write_report

__all__ = ["build_report_workbook", "write_report"]
