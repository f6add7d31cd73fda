"""
LM Studio Probe - List models and test connectivity of a local LM Studio server.
"""
from .errors import ErrorCode, LMStudioError
from .lm_studio import (
    LMStudioModel,
    LMStudioModelsResponse,
    ServerStatus,
    fetch_lm_studio_models,
    models_url,
    probe_lm_studio_status,
    test_lm_studio_connection,
)

__version__ = "0.1.0"

__all__ = [
    "ErrorCode",
    "LMStudioError",
    "LMStudioModel",
    "LMStudioModelsResponse",
    "ServerStatus",
    "fetch_lm_studio_models",
    "models_url",
    "probe_lm_studio_status",
    "test_lm_studio_connection",
]
