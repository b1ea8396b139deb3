"""
Exception types for the ICHRA quote engine.

Every error carries a ``kind`` string so per-member failures can be reported
in a group quote's error manifest without leaking exception classes.
"""


class QuoteEngineError(Exception):
    """Base exception for all quote engine errors."""

    kind = "QuoteEngineError"

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.context = context

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "kind": self.kind,
            "message": self.message,
            "context": dict(self.context),
        }


# Geography

class InvalidZipFormat(QuoteEngineError, ValueError):
    """Raised when a ZIP code is not a 5-digit US ZIP (10000-99999)."""

    kind = "InvalidZipFormat"


class ZipNotFound(QuoteEngineError, LookupError):
    """Raised when no county mapping exists for a ZIP code."""

    kind = "ZipNotFound"


class RatingAreaNotFound(QuoteEngineError, LookupError):
    """Raised when a county has no rating area mapping."""

    kind = "RatingAreaNotFound"


class AmbiguousCounty(QuoteEngineError, LookupError):
    """Raised when a multi-county ZIP is quoted without a county selection."""

    kind = "AmbiguousCounty"


# Pricing and subsidy

class AgeOutOfRange(QuoteEngineError, ValueError):
    """Raised when an age cannot be priced from a rate table."""

    kind = "AgeOutOfRange"


class InvalidInput(QuoteEngineError, ValueError):
    """Raised when calculation inputs fall outside policy bounds."""

    kind = "InvalidInput"


class PlanNotFound(QuoteEngineError, LookupError):
    """Raised when a plan has no rate table for the rating area and date."""

    kind = "PlanNotFound"


# Classes

class ClassNotFound(QuoteEngineError, LookupError):
    """Raised when a member references an unknown ICHRA class."""

    kind = "ClassNotFound"


class InvalidClassConfiguration(QuoteEngineError, ValueError):
    """Raised when an ICHRA class has overlapping age ranges or negative amounts."""

    kind = "InvalidClassConfiguration"


# Reference data

class ReferenceDataError(QuoteEngineError):
    """Raised when reference data is missing entirely. Fatal to a group quote."""

    kind = "ReferenceDataError"
