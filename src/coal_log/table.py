"""Editable grid of coal log cells with a fixed header row."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

logger = logging.getLogger(__name__)

COAL_LOG_HEADERS = (
    'Date', 'Shift', 'Coal Type', 'Tonnage', 'Moisture %',
    'Ash %', 'Sulfur %', 'BTU', 'Inspector',
)


@dataclass(frozen=True)
class TableModel:
    """
    Immutable grid of strings.

    Every mutating operation returns a new model, so a reference to an older
    model (a saved snapshot, a test fixture) never changes underneath.
    """
    headers: Tuple[str, ...]
    rows: Tuple[Tuple[str, ...], ...] = ()

    def __post_init__(self):
        headers = tuple(self.headers)
        if not headers:
            raise ValueError("A table needs at least one header")
        rows = tuple(tuple(row) for row in self.rows)
        for index, row in enumerate(rows):
            if len(row) != len(headers):
                raise ValueError(
                    f"Row {index} has {len(row)} cells, expected {len(headers)}")
        for cell in headers + tuple(c for row in rows for c in row):
            if not isinstance(cell, str):
                raise TypeError(f"Cells must be strings, got {type(cell).__name__}")
        object.__setattr__(self, 'headers', headers)
        object.__setattr__(self, 'rows', rows)

    @classmethod
    def create_empty(cls, headers: Sequence[str]) -> 'TableModel':
        """Create a table with the given headers and no rows."""
        return cls(headers=tuple(headers))

    @property
    def width(self) -> int:
        return len(self.headers)

    def __len__(self) -> int:
        return len(self.rows)

    def _check_row(self, row: int):
        if not 0 <= row < len(self.rows):
            raise IndexError(f"Row index {row} out of range (0..{len(self.rows) - 1})")

    def _check_col(self, col: int):
        if not 0 <= col < self.width:
            raise IndexError(f"Column index {col} out of range (0..{self.width - 1})")

    def cell(self, row: int, col: int) -> str:
        self._check_row(row)
        self._check_col(col)
        return self.rows[row][col]

    def set_cell(self, row: int, col: int, value: str) -> 'TableModel':
        """
        Replace a single cell.

        Args:
            row: Row index, 0 <= row < len(rows)
            col: Column index, 0 <= col < len(headers)
            value: New cell text

        Returns:
            New TableModel with only that cell changed

        Raises:
            IndexError: If either index is out of range
            TypeError: If value is not a string
        """
        self._check_row(row)
        self._check_col(col)
        if not isinstance(value, str):
            raise TypeError(f"Cell value must be a string, got {type(value).__name__}")

        updated = self.rows[row][:col] + (value,) + self.rows[row][col + 1:]
        rows = self.rows[:row] + (updated,) + self.rows[row + 1:]
        logger.debug(f"Cell ({row}, {col}) set to {value!r}")
        return TableModel(self.headers, rows)

    def append_row(self) -> 'TableModel':
        """Append one row of empty cells."""
        return TableModel(self.headers, self.rows + (('',) * self.width,))

    def delete_row(self, row: int) -> 'TableModel':
        """Remove a row, keeping the remaining rows in order."""
        self._check_row(row)
        logger.debug(f"Deleting row {row}")
        return TableModel(self.headers, self.rows[:row] + self.rows[row + 1:])

    def to_dict(self) -> Dict[str, List]:
        """Convert to the persisted JSON shape (fresh lists, safe to mutate)."""
        return {
            'headers': list(self.headers),
            'rows': [list(row) for row in self.rows],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TableModel':
        """
        Build a table from its persisted JSON shape.

        Raises:
            ValueError: If keys are missing or the grid is malformed
        """
        if not isinstance(data, dict) or 'headers' not in data or 'rows' not in data:
            raise ValueError("Table data needs 'headers' and 'rows'")
        headers, rows = data['headers'], data['rows']
        if not isinstance(headers, list) or not isinstance(rows, list):
            raise ValueError("'headers' and 'rows' must be lists")
        if not all(isinstance(row, list) for row in rows):
            raise ValueError("Every row must be a list")
        try:
            return cls(tuple(headers), tuple(tuple(row) for row in rows))
        except TypeError as e:
            raise ValueError(str(e)) from e


@dataclass(frozen=True)
class EditCursor:
    """The single cell currently open for editing and its in-progress text."""
    row: int
    col: int
    value: str = ""


def _number_text(value) -> str:
    """Render a number the way the original example data prints it (1250, 8.5)."""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class CoalLogEntry:
    """One typed row of a coal log."""
    date: str
    shift: str
    coal_type: str
    tonnage: int
    moisture: float
    ash_content: float
    sulfur: float
    btu: int
    inspector: str

    def to_row(self) -> Tuple[str, ...]:
        return (
            self.date,
            self.shift,
            self.coal_type,
            _number_text(self.tonnage),
            _number_text(self.moisture),
            _number_text(self.ash_content),
            _number_text(self.sulfur),
            _number_text(self.btu),
            self.inspector,
        )


EXAMPLE_ENTRIES = (
    CoalLogEntry('2024-01-15', 'Day', 'Bituminous', 1250, 8.5, 12.3, 2.1, 11500, 'J. Smith'),
    CoalLogEntry('2024-01-15', 'Night', 'Sub-bituminous', 980, 12.2, 8.7, 1.8, 9800, 'M. Johnson'),
    CoalLogEntry('2024-01-16', 'Day', 'Anthracite', 750, 4.1, 6.2, 0.9, 13200, 'R. Davis'),
)


def example_table(entries: Optional[Sequence[CoalLogEntry]] = None) -> TableModel:
    """Build the example coal log table used for testing without an image."""
    entries = EXAMPLE_ENTRIES if entries is None else entries
    return TableModel(COAL_LOG_HEADERS, tuple(entry.to_row() for entry in entries))
