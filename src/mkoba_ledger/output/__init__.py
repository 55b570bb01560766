"""Output generation for workbook and PDF exports."""

from mkoba_ledger.output.excel_writer import ExcelWriter
from mkoba_ledger.output.exporter import (
    ExportBundle,
    build_export,
    build_export_table,
    export_range,
    select_export_months,
)
from mkoba_ledger.output.pdf_writer import PDFWriter

__all__ = [
    "ExcelWriter",
    "ExportBundle",
    "PDFWriter",
    "build_export",
    "build_export_table",
    "export_range",
    "select_export_months",
]
