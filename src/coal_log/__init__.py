"""Coal Log Digitizer - turn photographed log book tables into editable CSV data."""

__version__ = "1.0.0"
__author__ = "Coal Log Digitizer Team"
__email__ = ""

from .table import TableModel, EditCursor, CoalLogEntry, example_table
from .extract import BaseExtractor, MockExtractor
from .export import ExcelExporter, to_csv, write_csv, persist
from .storage import LocalStore, PersistedRecord, load_records
from .wizard import WizardController

__all__ = [
    'TableModel',
    'EditCursor',
    'CoalLogEntry',
    'example_table',
    'BaseExtractor',
    'MockExtractor',
    'ExcelExporter',
    'to_csv',
    'write_csv',
    'persist',
    'LocalStore',
    'PersistedRecord',
    'load_records',
    'WizardController',
]
