"""Redaction of secrets before URLs and headers reach the logs."""

import re

# Query/form parameters whose values never get logged
SENSITIVE_PARAMS = [
    "code",
    "state",
    "token",
    "refresh_token",
    "access_token",
    "client_secret",
    "password",
    "secret",
]

SENSITIVE_HEADERS = {"authorization", "cookie", "set-cookie"}

_PARAM_PATTERN = re.compile(rf"(?<![\w-])({'|'.join(SENSITIVE_PARAMS)})=([^&\s\"]+)")


def redact_sensitive_data(url: str) -> str:
    """Redact sensitive query parameters from URL."""
    return _PARAM_PATTERN.sub(r"\1=***REDACTED***", url)


def redact_headers(headers: dict[str, str]) -> dict[str, str]:
    """Copy of ``headers`` with credentials masked."""
    return {
        name: "***REDACTED***" if name.lower() in SENSITIVE_HEADERS else value for name, value in headers.items()
    }
