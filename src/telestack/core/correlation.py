"""
Request correlation.

Every request gets a fresh request id (unique per hop) and a correlation id
that is inherited from upstream headers when present. Both are carried on an
explicit, immutable RequestContext that handlers pass down to collaborators.
"""

import secrets
from dataclasses import dataclass, replace
from typing import Any, Dict, Mapping, Optional

import structlog

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"
TRACE_ID_HEADER = "X-Trace-ID"

# First non-empty header wins
CORRELATION_HEADER_PRECEDENCE = (CORRELATION_ID_HEADER, REQUEST_ID_HEADER, TRACE_ID_HEADER)

REQUEST_ID_KEY = "request_id"
CORRELATION_ID_KEY = "correlation_id"


def generate_id() -> str:
    """Generate a 32 character hex identifier from 16 random bytes."""
    return secrets.token_hex(16)


def _get_header(headers: Mapping[str, str], name: str) -> Optional[str]:
    value = headers.get(name)
    if value is None:
        name_lower = name.lower()
        for key, candidate in headers.items():
            if key.lower() == name_lower:
                value = candidate
                break
    if value is None:
        return None
    value = value.strip()
    return value or None


def resolve_correlation_id(headers: Mapping[str, str]) -> str:
    """
    Resolve the correlation id for an inbound request.

    Checks X-Correlation-ID, then X-Request-ID, then X-Trace-ID. Blank values
    are treated as absent. Falls back to a freshly generated id.
    """
    for header in CORRELATION_HEADER_PRECEDENCE:
        value = _get_header(headers, header)
        if value:
            return value
    return generate_id()


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped identifiers and the logger bound to them."""

    request_id: str
    correlation_id: str
    logger: Any

    @classmethod
    def from_headers(
        cls,
        headers: Mapping[str, str],
        logger: Optional[Any] = None,
    ) -> "RequestContext":
        """Build the context for an inbound request."""
        request_id = generate_id()
        correlation_id = resolve_correlation_id(headers)
        base_logger = logger if logger is not None else structlog.get_logger("telestack.request")
        return cls(
            request_id=request_id,
            correlation_id=correlation_id,
            logger=base_logger.bind(
                **{REQUEST_ID_KEY: request_id, CORRELATION_ID_KEY: correlation_id}
            ),
        )

    def bind(self, **fields: Any) -> "RequestContext":
        """Return a copy whose logger carries extra fields. Ids never change."""
        return replace(self, logger=self.logger.bind(**fields))

    def response_headers(self) -> Dict[str, str]:
        return {
            REQUEST_ID_HEADER: self.request_id,
            CORRELATION_ID_HEADER: self.correlation_id,
        }
