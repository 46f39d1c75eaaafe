# safeballot/capture.py
"""Identity capture collaborators for the Scan step.

Document capture and text recognition happen elsewhere; the flow only needs
something that yields an :class:`IdentityRecord`.
"""
from typing import Any, Dict, Optional

from safeballot.models.voter_model import IdentityRecord


class IdentityCapture:
    def capture(self) -> IdentityRecord:
        raise NotImplementedError


class SubmittedFieldsCapture(IdentityCapture):
    """Wrap fields that the capture widget already extracted client-side."""

    def __init__(self, fields: Optional[Dict[str, Any]] = None):
        self.fields = fields or {}

    def capture(self) -> IdentityRecord:
        return to_identity_record(self.fields)


def to_identity_record(data: Any) -> IdentityRecord:
    if isinstance(data, IdentityRecord):
        return data
    if not isinstance(data, dict):
        return IdentityRecord()
    return IdentityRecord.model_validate(data)
