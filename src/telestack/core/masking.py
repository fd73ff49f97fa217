"""
Sensitive data masking for log emission.

Two layers:
- Pattern masking: an ordered table of regular expressions scanned over
  free-form strings, each with its own redaction strategy.
- Field masking: values stored under sensitive-looking keys are replaced
  wholesale, other string values go through pattern masking.

The pattern table is built once at start-up and shared read-only by every
request. Masking never raises; a pattern that fails leaves its input as is.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import structlog

from ..config import MaskingSettings

logger = structlog.get_logger(__name__)

DEFAULT_MASK_TOKEN = "[MASKED]"

DEFAULT_SENSITIVE_FIELDS: Tuple[str, ...] = (
    "password", "pass", "pwd",
    "api_key", "apikey",
    "token", "access_token", "bearer",
    "secret", "secret_key",
    "credit_card", "card_number",
    "ssn", "social_security",
    "email", "phone", "phone_number",
    "ip", "ip_address",
    "jwt", "jwt_token",
)


class RedactionStrategy(str, Enum):
    """How a detected sensitive substring is rewritten."""

    REPLACE_VALUE = "replace_value"
    PARTIAL_REVEAL_SUFFIX = "partial_reveal_suffix"
    PARTIAL_REVEAL_PREFIX = "partial_reveal_prefix"
    MASK_DOMAIN_PRESERVING = "mask_domain_preserving"


@dataclass(frozen=True)
class SensitivePattern:
    """
    One entry of the pattern table.

    ``reveal`` is the number of digits (suffix), dot-separated segments
    (prefix) or local-part characters (domain preserving) left visible.
    ``mask`` overrides the masker's mask token for prefix reveals.
    """

    name: str
    matcher: "re.Pattern[str]"
    strategy: RedactionStrategy
    reveal: int = 0
    mask: Optional[str] = None


# Quoted keys are allowed; the value stops at quotes, whitespace and pair delimiters
_KEY_VALUE_TAIL = r"""(?P<sep>["']?\s*[:=]\s*)(?P<open>["']?)(?P<value>[^"'\s,;&]+)(?P<close>["']?)"""


def _key_value(name: str, keys: str) -> SensitivePattern:
    return SensitivePattern(
        name=name,
        matcher=re.compile(rf"(?P<key>{keys}){_KEY_VALUE_TAIL}", re.IGNORECASE),
        strategy=RedactionStrategy.REPLACE_VALUE,
    )


def build_default_patterns() -> List[SensitivePattern]:
    """
    Build the ordered pattern table.

    Key-value patterns run first so that a value such as a bearer token is
    redacted as a whole before digit-oriented patterns can see it. JWTs run
    before the digit patterns for the same reason.
    """
    return [
        _key_value("password", r"password|pass|pwd"),
        _key_value("api_key", r"api[_-]?key|apikey"),
        _key_value("token", r"access[_-]?token|token|bearer"),
        _key_value("secret", r"secret[_-]?key|secret"),
        SensitivePattern(
            name="jwt",
            matcher=re.compile(r"eyJ[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*\.[A-Za-z0-9_-]*"),
            strategy=RedactionStrategy.PARTIAL_REVEAL_PREFIX,
            reveal=1,
        ),
        SensitivePattern(
            name="email",
            matcher=re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
            strategy=RedactionStrategy.MASK_DOMAIN_PRESERVING,
            reveal=2,
        ),
        SensitivePattern(
            name="credit_card",
            matcher=re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
            strategy=RedactionStrategy.PARTIAL_REVEAL_SUFFIX,
            reveal=4,
        ),
        SensitivePattern(
            name="ssn",
            matcher=re.compile(r"\b\d{3}-?\d{2}-?\d{4}\b"),
            strategy=RedactionStrategy.PARTIAL_REVEAL_SUFFIX,
            reveal=4,
        ),
        SensitivePattern(
            name="phone",
            matcher=re.compile(r"\b\d{3}[-.\s]?\d{3}[-.\s]?\d{4}\b"),
            strategy=RedactionStrategy.PARTIAL_REVEAL_SUFFIX,
            reveal=4,
        ),
        SensitivePattern(
            name="ip_address",
            matcher=re.compile(r"\b(?:\d{1,3}\.){3}\d{1,3}\b"),
            strategy=RedactionStrategy.PARTIAL_REVEAL_PREFIX,
            reveal=3,
            mask="***",
        ),
    ]


class Masker:
    """
    Redacts sensitive values from strings and flat field mappings.

    Features:
    - Deterministic pattern order, each pattern scanning the previous output
    - Key-value redaction that keeps the key, separator and quotes verbatim
    - Digit identifiers keep their last four digits and their grouping
    - Whole-value masking for sensitive field names
    """

    def __init__(
        self,
        patterns: Sequence[SensitivePattern],
        sensitive_fields: Iterable[str] = DEFAULT_SENSITIVE_FIELDS,
        mask_token: str = DEFAULT_MASK_TOKEN,
    ) -> None:
        self.patterns: Tuple[SensitivePattern, ...] = tuple(patterns)
        self.sensitive_fields: Tuple[str, ...] = tuple(f.lower() for f in sensitive_fields)
        self.mask_token = mask_token
        logger.info(
            "Masker initialized",
            patterns=[p.name for p in self.patterns],
            sensitive_fields=len(self.sensitive_fields),
        )

    def mask_string(self, text: str) -> str:
        """
        Apply every pattern in order to ``text``.

        Args:
            text: Free-form string that may contain sensitive values

        Returns:
            Masked copy; text without matches is returned unchanged
        """
        if not isinstance(text, str) or not text:
            return text

        masked = text
        for pattern in self.patterns:
            try:
                masked = pattern.matcher.sub(
                    lambda match, p=pattern: self._redact(p, match), masked
                )
            except Exception as e:
                logger.debug(
                    "Pattern masking failed",
                    pattern=pattern.name,
                    error_type=type(e).__name__,
                )
        return masked

    def mask_fields(self, fields: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Mask a flat mapping of named fields without mutating it.

        Only top-level keys are inspected; nested structures and non-string
        values pass through untouched.
        """
        masked_fields: Dict[str, Any] = {}
        for key, value in fields.items():
            if self.is_sensitive_field(key):
                masked_fields[key] = self.mask_token
            elif isinstance(value, str):
                masked_fields[key] = self.mask_string(value)
            else:
                masked_fields[key] = value
        return masked_fields

    def is_sensitive_field(self, field_name: Any) -> bool:
        """Case-insensitive substring match against the sensitive field list."""
        if not isinstance(field_name, str):
            return False
        field_lower = field_name.lower()
        return any(fragment in field_lower for fragment in self.sensitive_fields)

    def _redact(self, pattern: SensitivePattern, match: "re.Match[str]") -> str:
        matched = match.group(0)
        strategy = pattern.strategy

        if strategy is RedactionStrategy.REPLACE_VALUE:
            if "value" not in match.re.groupindex:
                return self.mask_token
            start = match.start()
            return (
                matched[: match.start("value") - start]
                + self.mask_token
                + matched[match.end("value") - start:]
            )

        if strategy is RedactionStrategy.PARTIAL_REVEAL_SUFFIX:
            return self._reveal_suffix(matched, pattern.reveal)

        if strategy is RedactionStrategy.PARTIAL_REVEAL_PREFIX:
            segments = matched.split(".")
            if len(segments) <= pattern.reveal:
                return self.mask_token
            mask = pattern.mask if pattern.mask is not None else self.mask_token
            return ".".join(segments[: pattern.reveal]) + "." + mask

        if strategy is RedactionStrategy.MASK_DOMAIN_PRESERVING:
            if "@" not in matched:
                return self.mask_token
            local_part, domain = matched.rsplit("@", 1)
            if len(local_part) > pattern.reveal:
                return f"{local_part[: pattern.reveal]}***@{domain}"
            return f"***@{domain}"

        return self.mask_token

    def _reveal_suffix(self, value: str, reveal: int) -> str:
        """Star every digit but the last ``reveal`` ones, keeping separators."""
        digit_count = sum(1 for ch in value if ch.isdigit())
        if digit_count < reveal:
            return self.mask_token

        to_hide = digit_count - reveal
        chars = []
        for ch in value:
            if ch.isdigit() and to_hide > 0:
                chars.append("*")
                to_hide -= 1
            else:
                chars.append(ch)
        return "".join(chars)


def create_masker(settings: MaskingSettings) -> Masker:
    """Build the process-wide masker from configuration."""
    sensitive_fields = list(DEFAULT_SENSITIVE_FIELDS) + list(settings.extra_sensitive_fields)
    return Masker(
        build_default_patterns(),
        sensitive_fields=sensitive_fields,
        mask_token=settings.mask_token,
    )
