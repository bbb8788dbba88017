"""
errors.py — Typed failures surfaced to the user as a single blocking message.

Library code raises these; app.py catches PartsDeskError and shows
``err.message``. None of them leaves partial results behind.
"""

from __future__ import annotations

from typing import Any, Optional


class PartsDeskError(Exception):
    """
    Base exception for all tool errors.

    Attributes:
        code: Error code (e.g., "COLUMN_NOT_FOUND")
        message: Human-readable message shown in the UI
        details: Additional context
    """

    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        self.code = code
        self.message = message
        self.details = details or {}
        super().__init__(message)


class CatalogLoadFailure(PartsDeskError):
    """The parts database could not be read. Search is unusable."""

    def __init__(self, source: str, reason: str = ""):
        super().__init__(
            code="CATALOG_LOAD_FAILURE",
            message=(
                "Error loading parts database. Please make sure the Excel file "
                f"is available at {source}."
            ),
            details={"source": source, "reason": reason},
        )


class EmptyUpload(PartsDeskError):
    def __init__(self, filename: str = ""):
        super().__init__(
            code="EMPTY_UPLOAD",
            message="The uploaded file appears to be empty.",
            details={"file": filename},
        )


class ColumnNotFound(PartsDeskError):
    """A required header is missing. ``which`` is "primary" or "tariff"."""

    def __init__(self, which: str, tokens: tuple[str, ...]):
        self.which = which
        wanted = " and ".join(f'"{t}"' for t in tokens)
        super().__init__(
            code="COLUMN_NOT_FOUND",
            message=f"Could not find a {which} column (header containing {wanted}) in the uploaded file.",
            details={"which": which, "tokens": list(tokens)},
        )


class UploadParseFailure(PartsDeskError):
    def __init__(self, filename: str, reason: str = ""):
        super().__init__(
            code="UPLOAD_PARSE_FAILURE",
            message="Error processing file. Please make sure it's a valid Excel or CSV file.",
            details={"file": filename, "reason": reason},
        )
