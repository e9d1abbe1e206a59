"""Table extraction from log book images."""

import asyncio
import logging
from abc import ABC, abstractmethod

from .acquire import ImageHandle
from .errors import ExtractionError, ExtractionInProgressError
from .table import COAL_LOG_HEADERS, TableModel

logger = logging.getLogger(__name__)

CANNED_ROWS = (
    ('2024-01-15', 'Day', 'Bituminous', '1250', '8.5', '12.3', '2.1', '11500', 'J. Smith'),
    ('2024-01-15', 'Night', 'Sub-bituminous', '980', '12.2', '8.7', '1.8', '9800', 'M. Johnson'),
    ('2024-01-16', 'Day', 'Anthracite', '750', '4.1', '6.2', '0.9', '13200', 'R. Davis'),
)


class BaseExtractor(ABC):
    """Base class for services that turn an image into a table."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)
        self._pending = False

    @property
    def pending(self) -> bool:
        return self._pending

    async def extract(self, image: ImageHandle) -> TableModel:
        """
        Extract a table from an image. Only one call may be outstanding.

        Args:
            image: Image to read

        Returns:
            Extracted TableModel

        Raises:
            ExtractionInProgressError: If a previous call has not settled
            ExtractionError: If the service fails
        """
        if self._pending:
            raise ExtractionInProgressError("An extraction is already in progress")

        self._pending = True
        try:
            self.logger.info(f"Extracting table from {image.source} ({image.digest[:8]})")
            table = await self._run(image)
        except ExtractionError:
            raise
        except Exception as e:
            self.logger.error(f"Extraction service error: {e}")
            raise ExtractionError(f"Extraction service failed: {e}") from e
        finally:
            self._pending = False

        if not isinstance(table, TableModel):
            raise ExtractionError(
                f"Extraction service returned {type(table).__name__}, expected a table")
        self.logger.info(f"Extracted {len(table)} rows x {table.width} columns")
        return table

    @abstractmethod
    async def _run(self, image: ImageHandle) -> TableModel:
        """Perform the actual extraction."""
        pass


class MockExtractor(BaseExtractor):
    """Stand-in for an OCR service: waits, then returns a fixed coal log table."""

    def __init__(self, latency: float = 3.0):
        """
        Args:
            latency: Seconds to wait before resolving
        """
        super().__init__()
        self.latency = latency

    async def _run(self, image: ImageHandle) -> TableModel:
        await asyncio.sleep(self.latency)
        return TableModel(COAL_LOG_HEADERS, CANNED_ROWS)
