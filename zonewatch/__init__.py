"""ZoneWatch: camera snapshot ingestion with per-zone alert policy."""

__version__ = "0.1.0"
