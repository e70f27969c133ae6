"""Secret sanitization utilities for logging and error messages.

This module redacts sensitive information (device registration tokens,
service-account private keys, credentials) from strings and structured data
before they are logged or echoed back in error messages.

Device tokens identify a user's device and are treated as secrets: they are
redacted wherever they appear in free text, and any field whose name looks
credential-like is redacted wholesale.

Examples:
    >>> sanitize_text("GET /v1/tokens?token=abc123")
    'GET /v1/tokens?token=<REDACTED>'

    >>> sanitize_value({"api_key": "abc", "count": 42})
    {'api_key': '<REDACTED>', 'count': 42}
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import TypeIs

# Redaction marker for sanitized values
REDACTED = "<REDACTED>"

# FCM registration tokens: "<instance id>:APA91<base64url>" or long opaque runs
_FCM_TOKEN_PATTERN = re.compile(r"\b[A-Za-z0-9_-]{8,}:APA91[A-Za-z0-9_-]{20,}")
_LONG_OPAQUE_TOKEN_PATTERN = re.compile(r"(?<![A-Za-z0-9_-])[A-Za-z0-9_-]{100,}(?![A-Za-z0-9_-])")

# PEM private key blocks from service-account JSON
_PRIVATE_KEY_PATTERN = re.compile(
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----.*?-----END [A-Z ]*PRIVATE KEY-----",
    re.DOTALL,
)

# Tokens in URL query parameters
_TOKEN_IN_QUERY = re.compile(
    r"([?&](?:token|access_token|api[-_]?key|key|auth|secret)=)([^&\s]+)",
    re.IGNORECASE,
)

# Bearer credentials in header-like text
_BEARER_PATTERN = re.compile(r"(Bearer\s+)([A-Za-z0-9._~+/=-]+)", re.IGNORECASE)

# Sensitive field name patterns (case-insensitive)
_SENSITIVE_FIELD_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in [
        r".*token.*",
        r".*key.*",
        r".*secret.*",
        r".*password.*",
        r".*credential.*",
        r".*auth.*",
        r".*bearer.*",
    ]
]


def is_sensitive_field(field_name: str) -> bool:
    """Check if a field name indicates sensitive data.

    Args:
        field_name: The field name to check (e.g., "device_token", "private_key")

    Returns:
        True if the field name matches sensitive patterns

    Examples:
        >>> is_sensitive_field("device_token")
        True
        >>> is_sensitive_field("recipient")
        False
    """
    return any(pattern.match(field_name) for pattern in _SENSITIVE_FIELD_PATTERNS)


def sanitize_text(text: str) -> str:
    """Redact tokens and keys from free text while preserving its structure.

    Args:
        text: The text to sanitize

    Returns:
        Text with secrets replaced by the REDACTED marker
    """
    # Defensive check for runtime safety, even though type signature requires str
    if not text or not isinstance(text, str):  # pyright: ignore[reportUnnecessaryIsInstance]
        return text

    sanitized = _PRIVATE_KEY_PATTERN.sub(REDACTED, text)
    sanitized = _FCM_TOKEN_PATTERN.sub(REDACTED, sanitized)
    sanitized = _LONG_OPAQUE_TOKEN_PATTERN.sub(REDACTED, sanitized)
    sanitized = _TOKEN_IN_QUERY.sub(rf"\1{REDACTED}", sanitized)
    return _BEARER_PATTERN.sub(rf"\1{REDACTED}", sanitized)


def _is_primitive(value: object) -> TypeIs[str | int | float | bool | None]:
    return isinstance(value, (str, int, float, bool, type(None)))


def _is_mapping(value: object) -> TypeIs[Mapping[str, object]]:
    return isinstance(value, Mapping)


def _is_sequence(value: object) -> TypeIs[Sequence[object]]:
    """Type predicate to check if value is a sequence (but not str/bytes)."""
    return isinstance(value, Sequence) and not isinstance(value, (str, bytes))


def sanitize_value(
    value: object,
    *,
    field_name: str | None = None,
) -> object:
    """Recursively sanitize sensitive values from structured data.

    Args:
        value: The value to sanitize (can be any type)
        field_name: Optional field name for context-aware sanitization

    Returns:
        Sanitized value with secrets replaced by REDACTED marker
    """
    if field_name and is_sensitive_field(field_name):
        return REDACTED

    if _is_primitive(value):
        if type(value) is str:
            return sanitize_text(value)
        return value

    if _is_mapping(value):
        return {key: sanitize_value(val, field_name=str(key)) for key, val in value.items()}

    if _is_sequence(value):
        sanitized_items: list[object] = [sanitize_value(item) for item in value]
        if isinstance(value, tuple):
            return tuple(sanitized_items)
        return sanitized_items

    # Fail-safe for unexpected types
    return sanitize_text(str(value))


def sanitize_exception(exc: BaseException) -> str:
    """Sanitize exception messages to remove sensitive information.

    Examples:
        >>> sanitize_exception(ValueError("Bearer abc.def"))
        'ValueError: Bearer <REDACTED>'
    """
    return f"{type(exc).__name__}: {sanitize_text(str(exc))}"


def sanitize_args(args: tuple[object, ...]) -> tuple[object, ...]:
    """Sanitize a tuple of logging arguments."""
    return tuple(sanitize_value(arg) for arg in args)
