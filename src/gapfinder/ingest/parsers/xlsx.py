"""XLSX file parser."""

import io
from typing import Any

MAX_ROWS_PER_SHEET = 10000


class XlsxParser:
    """Parse Excel workbooks using openpyxl, one text block per sheet."""

    def parse(self, data: bytes) -> dict[str, Any]:
        import openpyxl

        wb = openpyxl.load_workbook(io.BytesIO(data), read_only=True, data_only=True)
        sheets = []
        truncated = []
        try:
            for sheet_name in wb.sheetnames:
                lines = [f"[Sheet: {sheet_name}]"]
                for row_count, row in enumerate(wb[sheet_name].iter_rows(values_only=True)):
                    if row_count >= MAX_ROWS_PER_SHEET:
                        truncated.append(sheet_name)
                        break
                    cells = [str(v).strip() for v in row if v is not None and str(v).strip()]
                    if cells:
                        lines.append(" | ".join(cells))
                if len(lines) > 1:
                    sheets.append("\n".join(lines))
        finally:
            wb.close()

        metadata: dict[str, Any] = {"source_type": "xlsx", "sheet_count": len(wb.sheetnames)}
        if truncated:
            metadata["truncated_sheets"] = truncated
        return {"content": "\n\n".join(sheets), "metadata": metadata}
