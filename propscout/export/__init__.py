"""JSON, CSV and Excel export of stored records."""

from propscout.export.formatter import absolute_url, export_csv, export_json, to_nested
from propscout.export.spreadsheet import export_xlsx

__all__ = ["absolute_url", "to_nested", "export_json", "export_csv", "export_xlsx"]
