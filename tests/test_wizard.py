"""Tests for the wizard session controller."""

import asyncio

import pytest
from coal_log.errors import (
    ExtractionError, ExtractionInProgressError, StorageWriteError, WizardStateError,
)
from coal_log.export import to_csv
from coal_log.extract import BaseExtractor, MockExtractor
from coal_log.storage import LocalStore, load_records
from coal_log.table import example_table
from coal_log.wizard import (
    AwaitingImage, Cropping, Exported, Extracting, ReadyToExtract, Reviewing, WizardController,
)


class FailingExtractor(BaseExtractor):
    async def _run(self, image):
        raise ExtractionError("OCR service unreachable")


class UnreachableExtractor(BaseExtractor):
    async def _run(self, image):
        raise ConnectionError("connection refused")


class MalformedExtractor(BaseExtractor):
    async def _run(self, image):
        return {"headers": ["Date"], "rows": []}


class TestWizardFlow:
    """Test suite for step sequencing."""

    def setup_method(self):
        """Set up test fixtures."""
        self.controller = WizardController(MockExtractor(latency=0))

    def _extract(self, image):
        self.controller.select_image(image)
        self.controller.confirm_crop()
        return asyncio.run(self.controller.extract())

    def test_starts_awaiting_image(self):
        assert isinstance(self.controller.state, AwaitingImage)
        assert self.controller.table is None

    def test_full_flow(self, image, tmp_path):
        self.controller.select_image(image)
        assert self.controller.state == Cropping(image)

        self.controller.confirm_crop()
        assert self.controller.state == ReadyToExtract(image)

        table = asyncio.run(self.controller.extract())
        assert self.controller.state == Reviewing(image=image, table=table)
        assert table.rows[0] == ("2024-01-15", "Day", "Bituminous", "1250", "8.5",
                                 "12.3", "2.1", "11500", "J. Smith")

        path = self.controller.export_csv(tmp_path)
        assert path.name == 'coal_log_data.csv'
        assert isinstance(self.controller.state, Exported)
        assert self.controller.state.outputs == (str(path),)

    def test_extract_requires_cropped_image(self, image):
        with pytest.raises(WizardStateError):
            asyncio.run(self.controller.extract())
        self.controller.select_image(image)
        with pytest.raises(WizardStateError):
            asyncio.run(self.controller.extract())

    def test_state_is_extracting_while_pending(self, image):
        controller = WizardController(MockExtractor(latency=0.05))
        controller.select_image(image)
        controller.confirm_crop()

        async def run():
            task = asyncio.ensure_future(controller.extract())
            await asyncio.sleep(0)
            assert controller.state == Extracting(image)
            assert controller.table is None
            with pytest.raises(ExtractionInProgressError):
                await controller.extract()
            with pytest.raises(ExtractionInProgressError):
                controller.select_image(image)
            with pytest.raises(ExtractionInProgressError):
                controller.load_example_data()
            await task

        asyncio.run(run())
        assert isinstance(controller.state, Reviewing)

    def test_failed_extraction_returns_to_ready(self, image):
        controller = WizardController(FailingExtractor())
        controller.select_image(image)
        controller.confirm_crop()

        with pytest.raises(ExtractionError):
            asyncio.run(controller.extract())
        assert controller.state == ReadyToExtract(image, error="OCR service unreachable")
        assert controller.table is None

    def test_connection_error_returns_to_ready(self, image):
        controller = WizardController(UnreachableExtractor())
        controller.select_image(image)
        controller.confirm_crop()

        with pytest.raises(ExtractionError):
            asyncio.run(controller.extract())
        assert isinstance(controller.state, ReadyToExtract)
        assert "connection refused" in controller.state.error

        controller.reset()
        assert isinstance(controller.state, AwaitingImage)

    def test_malformed_result_is_not_committed(self, image):
        controller = WizardController(MalformedExtractor())
        controller.select_image(image)
        controller.confirm_crop()

        with pytest.raises(ExtractionError):
            asyncio.run(controller.extract())
        assert isinstance(controller.state, ReadyToExtract)
        assert controller.table is None

    def test_cancelled_extraction_returns_to_ready(self, image):
        controller = WizardController(MockExtractor(latency=10))
        controller.select_image(image)
        controller.confirm_crop()

        async def run():
            task = asyncio.ensure_future(controller.extract())
            await asyncio.sleep(0)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task

        asyncio.run(run())
        assert controller.state == ReadyToExtract(image)

    def test_new_image_discards_table(self, image):
        self._extract(image)
        self.controller.select_image(image)
        assert isinstance(self.controller.state, Cropping)
        assert self.controller.table is None

    def test_reset(self):
        self.controller.load_example_data()
        self.controller.reset()
        assert isinstance(self.controller.state, AwaitingImage)

    def test_edit_before_extraction_is_rejected(self):
        with pytest.raises(WizardStateError):
            self.controller.add_row()
        with pytest.raises(WizardStateError):
            self.controller.begin_edit(0, 0)


class TestWizardEditing:
    """Test suite for editing and exporting the reviewed table."""

    def setup_method(self):
        """Set up test fixtures."""
        self.controller = WizardController(MockExtractor(latency=0))
        self.controller.load_example_data()

    def test_load_example_data(self):
        assert self.controller.state == Reviewing(image=None, table=example_table())

    def test_edit_cursor_lifecycle(self):
        cursor = self.controller.begin_edit(0, 3)
        assert (cursor.row, cursor.col, cursor.value) == (0, 3, '1250')

        self.controller.update_edit('1300')
        assert self.controller.cursor.value == '1300'
        assert self.controller.table.cell(0, 3) == '1250'

        table = self.controller.commit_edit()
        assert table.cell(0, 3) == '1300'
        assert self.controller.cursor is None

    def test_cancel_edit_keeps_value(self):
        self.controller.begin_edit(1, 2)
        self.controller.update_edit('Lignite')
        self.controller.cancel_edit()
        assert self.controller.cursor is None
        assert self.controller.table.cell(1, 2) == 'Sub-bituminous'

    def test_only_one_cursor(self):
        self.controller.begin_edit(0, 0)
        self.controller.begin_edit(2, 8)
        assert (self.controller.cursor.row, self.controller.cursor.col) == (2, 8)

    def test_begin_edit_out_of_range(self):
        with pytest.raises(IndexError):
            self.controller.begin_edit(3, 0)
        assert self.controller.cursor is None

    def test_commit_without_cursor(self):
        with pytest.raises(WizardStateError):
            self.controller.commit_edit()
        with pytest.raises(WizardStateError):
            self.controller.update_edit('x')

    def test_structural_change_closes_cursor(self):
        self.controller.begin_edit(0, 0)
        self.controller.add_row()
        assert self.controller.cursor is None
        assert self.controller.table.rows[-1] == ('',) * 9

    def test_delete_night_shift(self):
        table = self.controller.delete_row(1)
        assert len(table) == 2
        assert table.rows[0][1:3] == ('Day', 'Bituminous')
        assert table.rows[1][1:3] == ('Day', 'Anthracite')

    def test_edit_tonnage_then_export_csv(self, tmp_path):
        self.controller.set_cell(0, 3, '1300')
        path = self.controller.export_csv(tmp_path)
        second_line = path.read_text(encoding='utf-8').split('\n')[1]
        assert second_line.startswith('2024-01-15,Day,Bituminous,1300,')

    def test_save_twice_appends_two_records(self, tmp_path):
        store = LocalStore(tmp_path)
        self.controller.save(store)
        assert isinstance(self.controller.state, Exported)

        self.controller.save(store)
        records = load_records(store, 'coalLogData')
        assert len(records) == 2
        assert all(r.data == example_table() for r in records)

    def test_exported_is_terminal_for_edits(self, tmp_path):
        self.controller.export_csv(tmp_path)
        with pytest.raises(WizardStateError):
            self.controller.add_row()
        # further exports are still allowed
        self.controller.export_excel(tmp_path)
        assert len(self.controller.state.outputs) == 2

    def test_resume_editing_after_export(self, tmp_path):
        self.controller.export_csv(tmp_path)
        table = self.controller.resume_editing()

        assert self.controller.state == Reviewing(image=None, table=table)
        self.controller.set_cell(0, 3, "1300")
        path = self.controller.export_csv(tmp_path)
        assert path.read_text(encoding="utf-8").split("\n")[1].startswith(
            "2024-01-15,Day,Bituminous,1300,")

    def test_resume_editing_requires_export(self):
        with pytest.raises(WizardStateError):
            self.controller.resume_editing()

    def test_failed_save_keeps_reviewing(self, tmp_path):
        blocker = tmp_path / 'blocker'
        blocker.write_text('')
        self.controller.set_cell(0, 3, '1300')

        with pytest.raises(StorageWriteError):
            self.controller.save(LocalStore(blocker))
        assert isinstance(self.controller.state, Reviewing)
        assert self.controller.table.cell(0, 3) == '1300'

        # CSV export still works after the failed save
        path = self.controller.export_csv(tmp_path / 'out')
        assert to_csv(self.controller.table) == path.read_text(encoding='utf-8')

    def test_custom_filenames(self, tmp_path):
        controller = WizardController(MockExtractor(latency=0), csv_filename='log.csv',
                                      storage_key='logs')
        controller.load_example_data()
        assert controller.export_csv(tmp_path).name == 'log.csv'
        controller.save(LocalStore(tmp_path))
        assert (tmp_path / 'logs.json').exists()
