"""Page text monitor: watches configured pages for an expected text fragment and emails on change."""

__version__ = "0.1.0"
