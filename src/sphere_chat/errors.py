"""
sphere-chat error types.

Network-adjacent failures are raised by the adapters and caught at their
origin by the session and the orchestrators.
"""

from typing import Any, Optional


class SphereChatError(Exception):
    def __init__(self, code: str, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details


class StoreReadError(SphereChatError):
    def __init__(self, message: str, code: str = "store_read_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class StoreWriteError(SphereChatError):
    def __init__(self, message: str, code: str = "store_write_error", details: Optional[dict[str, Any]] = None):
        super().__init__(code, message, details)


class AnalysisServiceError(SphereChatError):
    def __init__(self, kind: str, message: str):
        super().__init__("analysis_error", message, {"kind": kind})
        self.kind = kind


class ResponderServiceError(SphereChatError):
    def __init__(self, message: str, code: str = "responder_error"):
        super().__init__(code, message)


class ConnectionError(SphereChatError):
    def __init__(self, message: str):
        super().__init__("connection_error", message)


class ConfigError(SphereChatError):
    def __init__(self, message: str):
        super().__init__("config_error", message)
