"""Five-step digitizing session: acquire, crop, extract, edit, export."""

import asyncio
import logging
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Optional, Tuple, Union

from .acquire import ImageHandle, crop_image
from .config import DEFAULT_CSV_FILENAME, DEFAULT_EXCEL_FILENAME, DEFAULT_STORAGE_KEY
from .errors import ExtractionError, ExtractionInProgressError, WizardStateError
from .export import ExcelExporter, persist, write_csv
from .extract import BaseExtractor
from .storage import LocalStore, PersistedRecord
from .table import EditCursor, TableModel, example_table

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AwaitingImage:
    pass


@dataclass(frozen=True)
class Cropping:
    image: ImageHandle


@dataclass(frozen=True)
class ReadyToExtract:
    image: ImageHandle
    error: Optional[str] = None


@dataclass(frozen=True)
class Extracting:
    image: ImageHandle


@dataclass(frozen=True)
class Reviewing:
    image: Optional[ImageHandle]
    table: TableModel
    cursor: Optional[EditCursor] = None


@dataclass(frozen=True)
class Exported:
    image: Optional[ImageHandle]
    table: TableModel
    outputs: Tuple[str, ...] = ()


WizardState = Union[AwaitingImage, Cropping, ReadyToExtract, Extracting, Reviewing, Exported]


class WizardController:
    """
    Holds one session's state and enforces the order of the wizard steps.

    Each state is its own dataclass, so combinations such as "extracting
    while a table is already under review" cannot be represented.
    """

    def __init__(self,
                 extractor: BaseExtractor,
                 csv_filename: str = DEFAULT_CSV_FILENAME,
                 excel_filename: str = DEFAULT_EXCEL_FILENAME,
                 storage_key: str = DEFAULT_STORAGE_KEY,
                 encoding: str = 'utf-8'):
        self.extractor = extractor
        self.csv_filename = csv_filename
        self.excel_filename = excel_filename
        self.storage_key = storage_key
        self.encoding = encoding
        self.state: WizardState = AwaitingImage()

    def _require(self, *allowed) -> WizardState:
        if not isinstance(self.state, allowed):
            names = ', '.join(cls.__name__ for cls in allowed)
            raise WizardStateError(
                f"Cannot do that while {type(self.state).__name__}; expected {names}")
        return self.state

    def _transition(self, new_state: WizardState):
        if type(new_state) is not type(self.state):
            logger.debug(f"{type(self.state).__name__} -> {type(new_state).__name__}")
        self.state = new_state

    def _reject_if_extracting(self):
        if isinstance(self.state, Extracting):
            raise ExtractionInProgressError("Wait for the running extraction to finish")

    @property
    def table(self) -> Optional[TableModel]:
        """The table under review or exported, if any."""
        return getattr(self.state, 'table', None)

    @property
    def cursor(self) -> Optional[EditCursor]:
        return getattr(self.state, 'cursor', None)

    # Acquisition

    def select_image(self, image: ImageHandle):
        """Accept an uploaded or captured image and open the crop step."""
        self._reject_if_extracting()
        logger.info(f"Image selected: {image.source}")
        self._transition(Cropping(image))

    def confirm_crop(self):
        state = self._require(Cropping)
        self._transition(ReadyToExtract(crop_image(state.image)))

    def load_example_data(self):
        """Skip the image steps and review the built-in example table."""
        self._reject_if_extracting()
        self._transition(Reviewing(image=None, table=example_table()))
        logger.info("Loaded example data")

    def reset(self):
        self._reject_if_extracting()
        self._transition(AwaitingImage())

    # Extraction

    async def extract(self) -> TableModel:
        """
        Run the extractor on the cropped image.

        On failure or cancellation the session returns to ReadyToExtract and
        no table is kept.
        """
        self._reject_if_extracting()
        state = self._require(ReadyToExtract)
        image = state.image
        self._transition(Extracting(image))

        try:
            table = await self.extractor.extract(image)
        except Exception as e:
            logger.error(f"Extraction failed for {image.source}: {e}")
            self._transition(ReadyToExtract(image, error=str(e)))
            if isinstance(e, ExtractionError):
                raise
            raise ExtractionError(f"Extraction failed: {e}") from e
        except asyncio.CancelledError:
            logger.warning(f"Extraction cancelled for {image.source}")
            self._transition(ReadyToExtract(image))
            raise

        self._transition(Reviewing(image=image, table=table))
        return table

    # Editing

    def begin_edit(self, row: int, col: int) -> EditCursor:
        """Open a cell for editing, replacing any cursor already open."""
        state = self._require(Reviewing)
        cursor = EditCursor(row, col, state.table.cell(row, col))
        self._transition(replace(state, cursor=cursor))
        return cursor

    def update_edit(self, value: str) -> EditCursor:
        state = self._require(Reviewing)
        if state.cursor is None:
            raise WizardStateError("No cell is being edited")
        cursor = replace(state.cursor, value=value)
        self._transition(replace(state, cursor=cursor))
        return cursor

    def commit_edit(self) -> TableModel:
        state = self._require(Reviewing)
        if state.cursor is None:
            raise WizardStateError("No cell is being edited")
        cursor = state.cursor
        table = state.table.set_cell(cursor.row, cursor.col, cursor.value)
        self._transition(Reviewing(image=state.image, table=table))
        return table

    def cancel_edit(self):
        state = self._require(Reviewing)
        self._transition(replace(state, cursor=None))

    def resume_editing(self) -> TableModel:
        """Reopen an exported table for further edits."""
        state = self._require(Exported)
        self._transition(Reviewing(image=state.image, table=state.table))
        return state.table

    def set_cell(self, row: int, col: int, value: str) -> TableModel:
        """Edit one cell in a single step."""
        self.begin_edit(row, col)
        self.update_edit(value)
        return self.commit_edit()

    def add_row(self) -> TableModel:
        state = self._require(Reviewing)
        table = state.table.append_row()
        self._transition(Reviewing(image=state.image, table=table))
        return table

    def delete_row(self, row: int) -> TableModel:
        state = self._require(Reviewing)
        table = state.table.delete_row(row)
        self._transition(Reviewing(image=state.image, table=table))
        return table

    # Export

    def _exported(self, state, output: str):
        outputs = state.outputs if isinstance(state, Exported) else ()
        self._transition(Exported(image=state.image, table=state.table, outputs=outputs + (output,)))

    def export_csv(self, directory: Path) -> Path:
        state = self._require(Reviewing, Exported)
        path = write_csv(state.table, directory, self.csv_filename, self.encoding)
        self._exported(state, str(path))
        return path

    def export_excel(self, directory: Path, include_summary: bool = True) -> Path:
        state = self._require(Reviewing, Exported)
        path = ExcelExporter(Path(directory) / self.excel_filename).export(
            state.table, include_summary=include_summary)
        self._exported(state, str(path))
        return path

    def save(self, store: LocalStore) -> PersistedRecord:
        """Append the table to the local collection. A failed write keeps the current state."""
        state = self._require(Reviewing, Exported)
        record = persist(state.table, store, key=self.storage_key)
        self._exported(state, f"{self.storage_key}#{record.id}")
        return record
