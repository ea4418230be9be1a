# errors.py
# Purpose: Exception hierarchy for the bond assembly pipeline. Every fatal condition
# carries a stable machine-readable code and the HTTP status the views answer with.

from __future__ import annotations

from typing import Any, Dict, Optional


class BondGeneratorError(Exception):
    """Base class for pipeline failures that abort a run."""

    code = "BOND_GENERATOR_ERROR"
    status_code = 500

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "details": self.details}


class ScheduleStructureError(BondGeneratorError):
    """Unreadable schedule, missing header row or missing required columns."""

    code = "PARSING_ERROR"
    status_code = 422


class JoinError(BondGeneratorError):
    """Ambiguous keys, unresolved dated dates or unacknowledged unmatched rows."""

    code = "JOIN_ERROR"
    status_code = 422


class AcknowledgementRequired(BondGeneratorError):
    code = "ACKNOWLEDGEMENT_REQUIRED"
    status_code = 409


class NoBondsError(BondGeneratorError):
    code = "NO_BONDS"
    status_code = 422


class InvalidTemplateError(BondGeneratorError):
    code = "INVALID_TEMPLATE"
    status_code = 422


class InvalidTagError(BondGeneratorError):
    code = "INVALID_TAG"
    status_code = 422


class TagCompletenessError(BondGeneratorError):
    code = "MISSING_REQUIRED_TAGS"
    status_code = 422


class TagMapFinalizedError(BondGeneratorError):
    code = "TAG_MAP_FINALIZED"
    status_code = 409


class TemplateChangedError(BondGeneratorError):
    """The template bytes no longer hash to the value recorded in the tag map."""

    code = "TEMPLATE_CHANGED"
    status_code = 409


class InvalidAmount(BondGeneratorError):
    # Amounts reaching the converter were already validated by the parser,
    # so this signals a gap upstream rather than bad user input.
    code = "INVALID_AMOUNT"
    status_code = 500


class TagSubstitutionError(BondGeneratorError):
    code = "FILL_ERROR"
    status_code = 500


class PackagingError(BondGeneratorError):
    code = "ZIP_ERROR"
    status_code = 500


class DraftNotFoundError(BondGeneratorError):
    code = "NOT_FOUND"
    status_code = 404


class UnauthorizedError(BondGeneratorError):
    code = "UNAUTHORIZED"
    status_code = 401


class DraftValidationError(BondGeneratorError):
    code = "INVALID_DRAFT"
    status_code = 400


class InvalidRequestError(BondGeneratorError):
    """Missing upload or malformed form field on an HTTP request."""

    code = "INVALID_REQUEST"
    status_code = 400
