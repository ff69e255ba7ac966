"""Exception hierarchy for raysignal.

파이프라인 내부에서 복구되는 에러와 치명적 에러를 구분.
"""

from __future__ import annotations


class RaySignalError(Exception):
    """Base class for all raysignal errors."""


class ConfigError(RaySignalError):
    """Startup configuration is unusable. Fatal: the pipeline never starts.

    Args:
        errors: 검증 실패 메시지 목록.
    """

    def __init__(self, errors: list[str]):
        super().__init__("Configuration validation failed: " + ", ".join(errors))
        self.errors = list(errors)


class ValidationError(RaySignalError):
    """Raw pool event is malformed. The event is dropped before scoring."""

    def __init__(self, message: str, event_id: str | None = None):
        super().__init__(message)
        self.event_id = event_id


class LookupFailed(RaySignalError):
    """A read-only chain or market lookup failed (transport, RPC error, bad payload)."""

    def __init__(self, method: str, reason: str):
        super().__init__(f"{method} failed: {reason}")
        self.method = method
        self.reason = reason


class NotificationError(RaySignalError):
    """Outbound notification post failed and may be retried."""


class RateLimitedError(NotificationError):
    """Notification API answered 429."""

    def __init__(self, message: str = "rate limited", retry_after: float | None = None):
        super().__init__(message)
        self.retry_after = retry_after
