# custody/core/errors.py
"""
Error taxonomy for custody logs.

Every failure carries a stable ``code`` so the verifier can report the kind of
corruption without callers parsing messages.
"""

from dataclasses import dataclass, field
from typing import Any, Dict

STORE_NOT_FOUND = "StoreNotFound"
MALFORMED_RECORD = "MalformedRecord"
LINK_MISMATCH = "LinkMismatch"
DIGEST_MISMATCH = "DigestMismatch"
MISSING_FIELD = "MissingField"
INVALID_SEQUENCE_NUMBER = "InvalidSequenceNumber"
SIGNATURE_INVALID = "SignatureInvalid"
CANONICALIZATION = "Canonicalization"


@dataclass
class CustodyError(Exception):
    """Base exception with a stable error code."""

    code: str
    message: str
    details: Dict[str, Any] = field(default_factory=dict)

    def as_dict(self) -> Dict[str, Any]:
        d: Dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            d["details"] = self.details
        return d

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class CanonicalizationError(CustodyError):
    def __init__(self, message: str, **details: Any):
        super().__init__(CANONICALIZATION, message, details)


class StoreNotFound(CustodyError):
    def __init__(self, message: str = "file not found", **details: Any):
        super().__init__(STORE_NOT_FOUND, message, details)


class MalformedRecord(CustodyError):
    def __init__(self, message: str = "malformed record", **details: Any):
        super().__init__(MALFORMED_RECORD, message, details)


class LinkMismatch(CustodyError):
    def __init__(self, message: str, **details: Any):
        super().__init__(LINK_MISMATCH, message, details)


class DigestMismatch(CustodyError):
    def __init__(self, message: str, **details: Any):
        super().__init__(DIGEST_MISMATCH, message, details)


class MissingField(CustodyError):
    def __init__(self, field_name: str):
        super().__init__(MISSING_FIELD, f"missing field: {field_name}", {"field": field_name})

    @property
    def field_name(self) -> str:
        return self.details["field"]


class InvalidSequenceNumber(CustodyError):
    def __init__(self, message: str = "seq must be an integer >= 1", **details: Any):
        super().__init__(INVALID_SEQUENCE_NUMBER, message, details)


class SignatureInvalid(CustodyError):
    def __init__(self, message: str = "signature invalid", **details: Any):
        super().__init__(SIGNATURE_INVALID, message, details)
