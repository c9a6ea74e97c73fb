from typing import Any, Dict, Optional


class RelayError(Exception):
    """Base error. Rendered as ``{"error": message}`` with ``status_code``."""

    status_code: int = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.message}


class Unauthorized(RelayError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class InvalidPayload(RelayError):
    status_code = 400


class RateLimited(RelayError):
    status_code = 429

    def __init__(self, message: str = "Too many requests"):
        super().__init__(message)


class NoProvidersConfigured(RelayError):
    status_code = 500

    def __init__(self, message: str = "No AI providers configured"):
        super().__init__(message)


class AllProvidersUnavailable(RelayError):
    status_code = 500

    def __init__(self, message: str = "All AI providers failed"):
        super().__init__(message)


class ProviderError(RelayError):
    """A single upstream attempt failed. Recovered by the fallback chain."""

    status_code = 502

    def __init__(
        self,
        provider: str,
        message: str,
        upstream_status: Optional[int] = None,
        body: Optional[str] = None,
    ):
        super().__init__(message)
        self.provider = provider
        self.upstream_status = upstream_status
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.upstream_status is not None:
            data["status"] = self.upstream_status
        if self.body is not None:
            data["details"] = self.body
        return data


class InvalidResponseFormat(ProviderError):
    pass


class RealtimeSessionError(RelayError):
    """Realtime session creation failed upstream. Always a 500 to the caller."""

    status_code = 500

    def __init__(self, upstream_status: Optional[int] = None, body: Optional[str] = None):
        super().__init__("OpenAI error")
        self.upstream_status = upstream_status
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.upstream_status is not None:
            data["status"] = self.upstream_status
        if self.body is not None:
            data["details"] = self.body
        return data


class UpstreamPassthroughError(RelayError):
    """Final-fallback failure, surfaced with the upstream status and body."""

    def __init__(self, message: str, upstream_status: int, body: str):
        super().__init__(message, status_code=upstream_status)
        self.upstream_status = upstream_status
        self.body = body

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": self.message,
            "status": self.upstream_status,
            "details": self.body,
        }
