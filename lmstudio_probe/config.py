"""
LM Studio Probe Configuration - Server URL, selected model and logging.
"""
from __future__ import annotations

import json
import logging
import os
import stat
from dataclasses import dataclass, field, fields, asdict
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

from .lm_studio import DEFAULT_BASE_URL

logger = logging.getLogger(__name__)


# Config locations
CONFIG_DIR = Path.home() / ".config" / "lmstudio-probe"
CONFIG_FILE = CONFIG_DIR / "config.json"


@dataclass
class LMStudioConfig:
    """LM Studio server configuration."""
    base_url: str = DEFAULT_BASE_URL
    selected_model: str = ""


@dataclass
class LoggingConfig:
    level: str = "WARNING"


@dataclass
class Config:
    """Main configuration."""
    lm_studio: LMStudioConfig = field(default_factory=LMStudioConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def to_dict(self) -> dict:
        return {
            "lm_studio": asdict(self.lm_studio),
            "logging": asdict(self.logging),
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Config":
        return cls(
            lm_studio=_string_section(LMStudioConfig, data.get("lm_studio", {})),
            logging=_string_section(LoggingConfig, data.get("logging", {})),
        )


def _string_section(section_cls, data: dict):
    """Build a config section whose fields must all be strings."""
    section = section_cls(**data)
    for f in fields(section):
        value = getattr(section, f.name)
        if not isinstance(value, str):
            raise TypeError(
                f"{f.name} must be a string, got {type(value).__name__}"
            )
    return section


def ensure_config_dir(config_dir: Optional[Path] = None) -> None:
    """Ensure config directory exists with owner-only permissions."""
    config_dir = config_dir or CONFIG_DIR
    config_dir.mkdir(parents=True, exist_ok=True)
    os.chmod(config_dir, stat.S_IRWXU)


def load_config(path: Optional[Path] = None) -> Config:
    """Load configuration from file, falling back to defaults."""
    path = path or CONFIG_FILE
    if not path.exists():
        return Config()
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        return Config.from_dict(data)
    except (OSError, ValueError, TypeError, AttributeError) as e:
        logger.warning("Ignoring unreadable config file %s: %s", path, e)
        return Config()


def save_config(config: Config, path: Optional[Path] = None) -> None:
    """Save configuration to file."""
    path = path or CONFIG_FILE
    ensure_config_dir(path.parent)
    path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")


def get_effective_config(path: Optional[Path] = None) -> Config:
    """Get effective configuration (file + env overrides)."""
    config = load_config(path)

    # Environment variables override file config
    if os.getenv("LMSTUDIO_BASE_URL"):
        config.lm_studio.base_url = os.getenv("LMSTUDIO_BASE_URL")
    if os.getenv("LMSTUDIO_MODEL"):
        config.lm_studio.selected_model = os.getenv("LMSTUDIO_MODEL")
    if os.getenv("LMSTUDIO_LOG_LEVEL"):
        config.logging.level = os.getenv("LMSTUDIO_LOG_LEVEL")

    return config


def lm_studio_env(config: Config) -> dict[str, str]:
    """
    Environment variables that point OpenAI/Anthropic-style clients at
    LM Studio. The model variable is only set once a model is selected.
    """
    api_base = f"{config.lm_studio.base_url.rstrip('/')}/v1"
    env = {
        "ANTHROPIC_API_BASE": api_base,
        "OPENAI_API_BASE": api_base,
    }
    if config.lm_studio.selected_model:
        env["ANTHROPIC_MODEL"] = config.lm_studio.selected_model
    return env


LM_STUDIO_ENV_VARS = ("ANTHROPIC_API_BASE", "ANTHROPIC_MODEL", "OPENAI_API_BASE")


def choose_model(models: list[str], selected: str = "") -> str:
    """
    Pick the model to use after a listing.

    An existing selection is kept even if the server no longer lists it;
    otherwise the first listed model wins.
    """
    if selected:
        return selected
    return models[0] if models else ""


def setup_logging(level: str = "WARNING") -> None:
    """Route log records through Rich on stderr."""
    level_int = getattr(logging, level.upper(), None)
    if not isinstance(level_int, int):
        level_int = logging.WARNING

    logging.basicConfig(
        level=level_int,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(max(level_int, logging.WARNING))
