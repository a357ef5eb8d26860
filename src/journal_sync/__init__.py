"""Trade journal reconciliation against a Notion data source."""

__version__ = "0.1.0"
