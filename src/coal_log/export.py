"""CSV, Excel and local-storage export of coal log tables."""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import pandas as pd
from openpyxl import Workbook
from openpyxl.styles import Alignment, Font, PatternFill
from openpyxl.utils import get_column_letter
from openpyxl.utils.exceptions import IllegalCharacterError

from .config import DEFAULT_CSV_FILENAME, DEFAULT_STORAGE_KEY
from .errors import ExportError
from .storage import LocalStore, PersistedRecord, encode_records, load_records
from .table import TableModel

logger = logging.getLogger(__name__)


def to_csv(table: TableModel) -> str:
    """
    Serialize a table as CSV text.

    Fields are joined with ',' and lines with '\\n'. Values are not quoted or
    escaped, so a cell containing a comma or newline produces a shifted row.
    """
    lines = [','.join(table.headers)]
    lines.extend(','.join(row) for row in table.rows)
    return '\n'.join(lines)


def write_csv(table: TableModel,
              directory: Path,
              filename: str = DEFAULT_CSV_FILENAME,
              encoding: str = 'utf-8') -> Path:
    """
    Write a table to a CSV file.

    Args:
        table: Table to export
        directory: Output directory, created if needed
        filename: Output file name
        encoding: Text encoding

    Returns:
        Path of the written file
    """
    path = Path(directory) / filename
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        # newline='' keeps the '\n' separators exactly as produced
        with open(path, 'w', encoding=encoding, newline='') as f:
            f.write(to_csv(table))
    except (OSError, UnicodeEncodeError, LookupError) as e:
        # LookupError: unknown encoding name
        logger.error(f"Failed to write CSV file {path}: {e}")
        raise ExportError(f"Could not write {path}: {e}") from e

    logger.info(f"CSV file exported to: {path}")
    return path


def _iso_timestamp(moment: datetime) -> str:
    """Format as YYYY-MM-DDTHH:MM:SS.mmmZ in UTC."""
    moment = moment.astimezone(timezone.utc)
    return moment.strftime('%Y-%m-%dT%H:%M:%S.') + f"{moment.microsecond // 1000:03d}Z"


def persist(table: TableModel,
            store: LocalStore,
            key: str = DEFAULT_STORAGE_KEY,
            now: Optional[datetime] = None) -> PersistedRecord:
    """
    Append a snapshot of the table to the persisted collection.

    Unreadable prior data is treated as an empty collection. There is no
    locking: two processes saving at once may lose one record.

    Args:
        table: Table to save
        store: Local key-value store
        key: Storage key holding the collection
        now: Save time, defaults to the current time

    Returns:
        The appended record

    Raises:
        StorageWriteError: If the collection cannot be written back
    """
    now = now or datetime.now(timezone.utc)
    records = load_records(store, key)

    record_id = round(now.timestamp() * 1000)
    if records:
        record_id = max(record_id, max(r.id for r in records) + 1)

    record = PersistedRecord(id=record_id, timestamp=_iso_timestamp(now), data=table)
    records.append(record)
    store.set_item(key, encode_records(records))

    logger.info(f"Saved record {record.id} to '{key}' ({len(records)} records total)")
    return record


class ExcelExporter:
    """Export a coal log table to an Excel workbook."""

    HEADER_FILL = PatternFill(start_color="E6E6E6", end_color="E6E6E6", fill_type="solid")

    def __init__(self, output_path: Path):
        """
        Initialize Excel exporter.

        Args:
            output_path: Path for the output Excel file
        """
        self.output_path = Path(output_path)
        self.workbook = Workbook()

    def export(self, table: TableModel, include_summary: bool = True) -> Path:
        """
        Write the table sheet and, optionally, a numeric summary sheet.

        Args:
            table: Table to export
            include_summary: Whether to add the "Summary" sheet

        Returns:
            Path of the written workbook
        """
        try:
            if "Sheet" in self.workbook.sheetnames:
                self.workbook.remove(self.workbook["Sheet"])

            self._create_table_sheet(table)
            if include_summary:
                self._create_summary_sheet(table)

            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self.workbook.save(str(self.output_path))
        except (OSError, IllegalCharacterError) as e:
            logger.error(f"Failed to export Excel file: {e}")
            raise ExportError(f"Could not write {self.output_path}: {e}") from e

        logger.info(f"Excel file exported to: {self.output_path}")
        return self.output_path

    def _create_table_sheet(self, table: TableModel):
        ws = self.workbook.create_sheet("Coal Log")

        for col, header in enumerate(table.headers, 1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.font = Font(bold=True)
            cell.fill = self.HEADER_FILL
            cell.alignment = Alignment(horizontal="center")

        for row_index, row in enumerate(table.rows, 2):
            for col, value in enumerate(row, 1):
                ws.cell(row=row_index, column=col, value=value)

        for col, header in enumerate(table.headers, 1):
            longest = max([len(header)] + [len(row[col - 1]) for row in table.rows])
            ws.column_dimensions[get_column_letter(col)].width = max(10, longest + 2)

    def _create_summary_sheet(self, table: TableModel):
        ws = self.workbook.create_sheet("Summary")
        ws.cell(row=1, column=1, value="COAL LOG SUMMARY").font = Font(bold=True, size=14)
        ws.cell(row=3, column=1, value="Total Rows:").font = Font(bold=True)
        ws.cell(row=3, column=2, value=len(table))

        summary = numeric_summary(table)
        current_row = 5
        for col, label in enumerate(("Column", "Total", "Average"), 1):
            ws.cell(row=current_row, column=col, value=label).font = Font(bold=True)
        current_row += 1

        for column, stats in summary.iterrows():
            ws.cell(row=current_row, column=1, value=column)
            ws.cell(row=current_row, column=2, value=float(stats['total']))
            ws.cell(row=current_row, column=3, value=round(float(stats['average']), 2))
            current_row += 1


def numeric_summary(table: TableModel) -> pd.DataFrame:
    """
    Total and average of every column whose non-empty cells are all numbers.

    Returns:
        DataFrame indexed by column name with 'total' and 'average' columns
    """
    df = pd.DataFrame(list(table.rows), columns=list(table.headers), dtype=object)
    names, stats = [], []
    for position, column in enumerate(table.headers):
        values = df.iloc[:, position].astype(str).str.strip()
        values = values[values != '']
        if values.empty:
            continue
        numbers = pd.to_numeric(values, errors='coerce')
        if numbers.isna().any():
            continue
        names.append(column)
        stats.append([numbers.sum(), numbers.mean()])

    return pd.DataFrame(stats, index=names, columns=['total', 'average'])
