"""
LM Studio Probe Client - Model listing and connectivity checks against the
OpenAI-compatible ``/v1/models`` endpoint of a local LM Studio server.

Every call builds its own client, sends one request and closes the client
before returning. Nothing is retried or cached.
"""
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Optional

import httpx

from .errors import ErrorCode, LMStudioError

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "http://localhost:1234"
MODELS_PATH = "/v1/models"

LIST_TIMEOUT = 10.0
PROBE_TIMEOUT = 5.0

# Raised by httpx for anything that goes wrong before a response arrives
TRANSPORT_ERRORS = (httpx.HTTPError, httpx.InvalidURL)

NO_MODELS_MESSAGE = "No models found in LM Studio. Make sure a model is loaded."


def _require_str(data: dict, key: str) -> str:
    if key not in data:
        raise ValueError(f"missing field `{key}`")
    value = data[key]
    if not isinstance(value, str):
        raise ValueError(
            f"invalid type for field `{key}`: expected a string, got {type(value).__name__}"
        )
    return value


@dataclass
class LMStudioModel:
    """A single record of the ``data`` array."""
    id: str
    object: str
    owned_by: str

    @classmethod
    def from_dict(cls, data: Any) -> "LMStudioModel":
        if not isinstance(data, dict):
            raise ValueError(f"expected a model object, got {type(data).__name__}")
        return cls(
            id=_require_str(data, "id"),
            object=_require_str(data, "object"),
            owned_by=_require_str(data, "owned_by"),
        )


@dataclass
class LMStudioModelsResponse:
    """The envelope returned by ``GET /v1/models``."""
    object: str
    data: list[LMStudioModel] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> "LMStudioModelsResponse":
        if not isinstance(data, dict):
            raise ValueError(f"expected a JSON object, got {type(data).__name__}")
        if "data" not in data:
            raise ValueError("missing field `data`")
        records = data["data"]
        if not isinstance(records, list):
            raise ValueError(
                f"invalid type for field `data`: expected an array, got {type(records).__name__}"
            )
        return cls(
            object=_require_str(data, "object"),
            data=[LMStudioModel.from_dict(record) for record in records],
        )


def parse_models_response(text: str) -> LMStudioModelsResponse:
    """Decode a response body. Raises ValueError on any malformed input."""
    return LMStudioModelsResponse.from_dict(json.loads(text))


def models_url(base_url: str) -> str:
    """Build the models endpoint URL, ignoring trailing slashes on the base."""
    return f"{base_url.rstrip('/')}{MODELS_PATH}"


def _build_client(timeout: float) -> httpx.AsyncClient:
    try:
        return httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    except Exception as e:
        message = f"Failed to create HTTP client: {e}"
        logger.error(message)
        raise LMStudioError(ErrorCode.CLIENT_BUILD_FAILED, message, cause=e) from e


def _error(code: ErrorCode, message: str, cause: Optional[BaseException] = None) -> LMStudioError:
    logger.error(message)
    return LMStudioError(code, message, cause=cause)


async def fetch_lm_studio_models(base_url: str) -> list[str]:
    """
    Fetch the identifiers of the models LM Studio currently serves.

    Args:
        base_url: Server root, e.g. ``http://localhost:1234``

    Returns:
        Non-empty model ids, in the order the server listed them.

    Raises:
        LMStudioError: On connection, status or parse failures, or when no
            model is loaded.
    """
    url = models_url(base_url)
    logger.info("Fetching models from LM Studio at: %s", url)

    async with _build_client(LIST_TIMEOUT) as client:
        try:
            response = await client.get(url)
        except TRANSPORT_ERRORS as e:
            raise _error(
                ErrorCode.CONNECTION_FAILED,
                f"Failed to connect to LM Studio at {url}: {e}",
                e,
            ) from e

        if not response.is_success:
            reason = response.reason_phrase or "Unknown error"
            raise _error(
                ErrorCode.BAD_STATUS,
                f"LM Studio returned status {response.status_code}: {reason}",
            )

        # Kept verbatim so a parse failure can show what the server sent
        response_text = response.text

    logger.debug("LM Studio response: %s", response_text)

    try:
        models_response = parse_models_response(response_text)
    except ValueError as e:
        raise _error(
            ErrorCode.PARSE_FAILED,
            f"Failed to parse models response: {e}. Response was: {response_text}",
            e,
        ) from e

    logger.info("Successfully parsed %d models", len(models_response.data))

    model_names = []
    for model in models_response.data:
        logger.debug("Found model: %s", model.id)
        if model.id:
            model_names.append(model.id)

    if not model_names:
        logger.warning(NO_MODELS_MESSAGE)
        raise LMStudioError(ErrorCode.NO_MODELS_LOADED, NO_MODELS_MESSAGE)

    logger.info("Returning %d model names: %s", len(model_names), model_names)
    return model_names


async def test_lm_studio_connection(base_url: str) -> bool:
    """
    Check whether LM Studio answers ``/v1/models`` with a 2xx status.

    Connection problems give ``False``; only a failure to build the HTTP
    client raises ``LMStudioError``.
    """
    url = models_url(base_url)
    logger.info("Testing connection to LM Studio at: %s", url)

    async with _build_client(PROBE_TIMEOUT) as client:
        try:
            response = await client.get(url)
        except TRANSPORT_ERRORS as e:
            logger.warning("Connection test failed: %s", e)
            return False

    is_success = response.is_success
    logger.info(
        "Connection test result: %s (status: %d %s)",
        is_success, response.status_code, response.reason_phrase,
    )
    return is_success


@dataclass
class ServerStatus:
    """Everything one status probe learned about the server."""
    url: str
    reachable: bool = False
    status_code: Optional[int] = None
    reason: str = ""
    elapsed_ms: Optional[int] = None
    content_type: str = ""
    api_object: Optional[str] = None
    model_count: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.reachable and self.status_code is not None and 200 <= self.status_code < 300

    def to_dict(self) -> dict:
        return {
            "url": self.url,
            "ok": self.ok,
            "reachable": self.reachable,
            "status_code": self.status_code,
            "reason": self.reason,
            "elapsed_ms": self.elapsed_ms,
            "content_type": self.content_type,
            "api_object": self.api_object,
            "model_count": self.model_count,
            "error": self.error,
        }


async def probe_lm_studio_status(base_url: str) -> ServerStatus:
    """
    Probe the server and record timing, status and what the body says.

    Like the connection test this never raises for connectivity problems;
    they end up in ``ServerStatus.error``.
    """
    url = models_url(base_url)
    status = ServerStatus(url=url)
    logger.info("Checking LM Studio status at: %s", url)

    async with _build_client(PROBE_TIMEOUT) as client:
        start = time.perf_counter()
        try:
            response = await client.get(url, headers={"Accept": "application/json"})
        except TRANSPORT_ERRORS as e:
            logger.warning("LM Studio is not accessible: %s", e)
            status.error = str(e) or type(e).__name__
            return status
        status.elapsed_ms = round((time.perf_counter() - start) * 1000)

    status.reachable = True
    status.status_code = response.status_code
    status.reason = response.reason_phrase
    status.content_type = response.headers.get("content-type", "")

    if response.is_success:
        try:
            data = response.json()
        except ValueError:
            logger.debug("Status probe body is not JSON: %s", response.text)
            data = None
        if isinstance(data, dict):
            if isinstance(data.get("object"), str):
                status.api_object = data["object"]
            if isinstance(data.get("data"), list):
                status.model_count = len(data["data"])

    logger.info(
        "LM Studio status: %d %s in %sms",
        status.status_code, status.reason, status.elapsed_ms,
    )
    return status
