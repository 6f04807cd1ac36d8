from __future__ import annotations


class StatementReviewError(Exception):
    """Base class for request-fatal failures."""


class ConfigurationError(StatementReviewError):
    """A required setting, batch, sheet or layout is missing or invalid."""


class SchemaError(ConfigurationError):
    """A column schema does not cover its record type or has bad indices."""


class TransportError(StatementReviewError):
    """The source workbook could not be downloaded."""
