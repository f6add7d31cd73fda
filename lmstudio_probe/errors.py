"""
LM Studio Probe Errors - Error codes and the exception raised by the client.
"""
from __future__ import annotations

from enum import Enum
from typing import Optional


class ErrorCode(Enum):
    CLIENT_BUILD_FAILED = "client_build_failed"
    CONNECTION_FAILED = "connection_failed"
    BAD_STATUS = "bad_status"
    PARSE_FAILED = "parse_failed"
    NO_MODELS_LOADED = "no_models_loaded"


HINTS = {
    ErrorCode.CLIENT_BUILD_FAILED: "Check proxy-related environment variables (HTTP_PROXY, HTTPS_PROXY).",
    ErrorCode.CONNECTION_FAILED: "Make sure LM Studio is running and the \"Local server\" is enabled.",
    ErrorCode.BAD_STATUS: "LM Studio responded but with an error status. Check the server log.",
    ErrorCode.PARSE_FAILED: "The server did not answer like LM Studio. Check the base URL and port.",
    ErrorCode.NO_MODELS_LOADED: "Load a model in LM Studio and try again.",
}


class LMStudioError(Exception):
    """
    Failure talking to an LM Studio server.

    The message is meant to be shown to a user as-is; ``code`` lets callers
    branch on the kind of failure without parsing text.
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        cause: Optional[BaseException] = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.cause = cause

    @property
    def hint(self) -> str:
        return HINTS.get(self.code, "")

    def __str__(self) -> str:
        return self.message
