"""GTFS Copier - Copy GTFS feeds in one pass and build derived entities."""

from gtfs_copier.api import copy_feed, validate
from gtfs_copier.copier.copier import Copier
from gtfs_copier.copier.result import CopyResult
from gtfs_copier.gtfs.models import CopyConfig
from gtfs_copier.gtfs.reader import GTFSReader
from gtfs_copier.output.csv import CSVWriter
from gtfs_copier.output.memory import MemoryWriter
from gtfs_copier.version import SCHEMA_VERSION, VERSION

__version__ = VERSION
__all__ = [
    "SCHEMA_VERSION",
    "VERSION",
    "CSVWriter",
    "Copier",
    "CopyConfig",
    "CopyResult",
    "GTFSReader",
    "MemoryWriter",
    "copy_feed",
    "validate",
]
