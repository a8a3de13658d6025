"""Error taxonomy.

ImageDecodeError      unreadable or malformed image input
CritiqueError         base for everything the critique client retries
  TransportError      non-success HTTP status or network failure
  EmptyResponseError  no model text in the first candidate
  SchemaParseError    model text present but not a valid critique
WorkflowStateError    illegal transition requested of the session controller
"""

from __future__ import annotations


class PhiScanError(Exception):
    """Base exception for PhiScan."""

    code = "phiscan"


class ImageDecodeError(PhiScanError):
    code = "image_decode"


class WorkflowStateError(PhiScanError):
    code = "workflow_state"


class CritiqueError(PhiScanError):
    code = "critique"


class TransportError(CritiqueError):
    code = "transport"

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class EmptyResponseError(CritiqueError):
    code = "empty_response"


class SchemaParseError(CritiqueError):
    code = "schema_parse"
