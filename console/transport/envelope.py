"""
Response value and the backend's business envelope.

Every business response of the records API is wrapped as

    {"status": 200, "message": "...", "data": <payload or page>}

List endpoints carry `{"content": [...], "totalPages": n, ...}` in `data`;
flat search endpoints carry a plain list. Callers branch on that shape, the
Transport only unwraps the envelope.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping, Optional


def envelope_status(body: Any) -> Optional[int]:
    """Return the integer `status` of an envelope, or None for other bodies."""
    if not isinstance(body, dict):
        return None
    if "data" not in body and "message" not in body:
        return None
    status = body.get("status")
    if isinstance(status, bool) or not isinstance(status, int):
        return None
    return status


def envelope_message(body: Any) -> Optional[str]:
    if isinstance(body, dict):
        msg = body.get("message")
        if isinstance(msg, str) and msg.strip():
            return msg.strip()
    return None


@dataclass(frozen=True)
class ApiResponse:
    """A successful (2xx) answer, passed through unchanged."""

    status: int
    body: Any
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def data(self) -> Any:
        if isinstance(self.body, dict) and "data" in self.body:
            return self.body["data"]
        return self.body

    @property
    def message(self) -> Optional[str]:
        return envelope_message(self.body)
