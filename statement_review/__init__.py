"""Normalize statement-review spreadsheets into MP and KYM record sets."""

__version__ = "0.3.0"
