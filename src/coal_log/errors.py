"""Exception types raised by the coal log digitizer."""


class CoalLogError(Exception):
    """Base class for user-facing errors."""


class ConfigError(CoalLogError):
    """Settings file could not be read or has invalid values."""


class ExtractionError(CoalLogError):
    """The extraction service was unreachable or returned malformed data."""


class ExtractionInProgressError(ExtractionError):
    """An extraction was requested while another one is still pending."""


class StorageReadError(CoalLogError):
    """The persisted collection is missing or corrupt."""


class StorageWriteError(CoalLogError):
    """The persisted collection could not be written back."""


class ExportError(CoalLogError):
    """An export file could not be written."""


class ImageLoadError(CoalLogError):
    """An image file could not be read."""


class CameraError(CoalLogError):
    """The camera could not be opened or returned no frame."""


class WizardStateError(CoalLogError):
    """An operation was attempted from a wizard state that does not allow it."""
