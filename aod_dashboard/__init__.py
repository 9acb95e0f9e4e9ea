"""Reporting API over the outlet dashboard and checklist Google Sheets."""

__version__ = "2.5.0"
