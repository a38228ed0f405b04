from __future__ import annotations

# Lowercase substrings that mark a failure as worth another attempt.
TRANSIENT_ERROR_MARKERS = (
    # request-rate limiting
    "rate limit",
    "ratelimit",
    "too many requests",
    "429",
    "qps",
    "request limit reached",
    # generic network failure
    "network",
    "temporarily unavailable",
    # timeout
    "timeout",
    "timed out",
    # connection reset/refused
    "connection reset",
    "connection refused",
    "connection aborted",
    "broken pipe",
    # dns resolution
    "dns",
    "name resolution",
    "could not resolve",
    "failed to resolve",
    "name or service not known",
    "getaddrinfo",
)


def error_message(error: BaseException | str | None) -> str:
    if error is None:
        return ""
    if isinstance(error, BaseException):
        message = str(error).strip()
        return message or type(error).__name__
    return str(error).strip()


def is_retryable(error: BaseException | str | None) -> bool:
    lowered = error_message(error).lower()
    if not lowered:
        return False
    return any(marker in lowered for marker in TRANSIENT_ERROR_MARKERS)
