"""Read test case rows from a spreadsheet."""

import logging
from pathlib import Path

from openpyxl import load_workbook

from boostsec.ado_test_reporter.paths import check_input_file

logger = logging.getLogger(__name__)

Row = dict[str, object]


class ExcelParser:
    """Reads the first worksheet, keyed by its header row."""

    def parse(self, path: str | Path) -> list[Row]:
        """Parse a workbook into one dict per data row.

        Blank header cells and completely empty rows are ignored.

        Raises:
            ValueError: If the file is missing, not a regular file, too large
                or has no worksheet

        """
        file_path = Path(path)
        check_input_file(file_path, "Excel")

        workbook = load_workbook(file_path, read_only=True, data_only=True)
        try:
            if not workbook.worksheets:
                raise ValueError(f'Excel file "{file_path}" has no sheets.')
            sheet = workbook.worksheets[0]
            rows = sheet.iter_rows(values_only=True)

            header = next(rows, None)
            if header is None:
                return []
            columns = [str(cell).strip() if cell is not None else "" for cell in header]

            records: list[Row] = []
            for values in rows:
                record = {
                    column: value
                    for column, value in zip(columns, values, strict=False)
                    if column and value is not None and value != ""
                }
                if record:
                    records.append(record)
        finally:
            workbook.close()

        logger.info(f"Read {len(records)} row(s) from {file_path}")
        return records
