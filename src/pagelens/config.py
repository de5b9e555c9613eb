"""Runtime settings.

Resolution order, lowest to highest priority: built-in defaults, an optional
YAML file (``$PAGELENS_CONFIG`` or ``$XDG_CONFIG_HOME/pagelens/config.yaml``),
then ``PAGELENS_*`` environment variables.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "y", "on", "enable", "enabled"}


def _env_raw(name: str) -> str:
    return str(os.getenv(name, "")).strip()


def _env_flag(name: str, default: bool = False) -> bool:
    raw = _env_raw(name).lower()
    if not raw:
        return bool(default)
    return raw in _TRUE_VALUES


def _env_int(name: str, default: int) -> int:
    raw = _env_raw(name)
    if not raw:
        return int(default)
    try:
        return int(raw)
    except ValueError:
        logger.warning("[Config] %s=%r is not an integer, using %s", name, raw, default)
        return int(default)


def _env_float(name: str, default: Optional[float]) -> Optional[float]:
    raw = _env_raw(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("[Config] %s=%r is not a number, using %s", name, raw, default)
        return default


def default_config_path() -> Path:
    explicit = _env_raw("PAGELENS_CONFIG")
    if explicit:
        return Path(explicit)
    config_home = os.environ.get("XDG_CONFIG_HOME") or str(Path.home() / ".config")
    return Path(config_home) / "pagelens" / "config.yaml"


def default_store_path() -> Path:
    data_home = os.environ.get("XDG_DATA_HOME") or str(Path.home() / ".local" / "share")
    return Path(data_home) / "pagelens" / "store.json"


@dataclass(frozen=True)
class Settings:
    """Tunables for extraction, model invocation and summarization."""

    model_name: str = "gemini-nano"
    model_url: str = ""
    max_text_chars: int = 200_000
    extract_timeout: float = 5.0
    # None keeps model tiers unbounded
    model_timeout: Optional[float] = None
    max_bullets: int = 4
    max_highlights: int = 4
    summary_tokens: int = 400
    answer_tokens: int = 300
    temperature: float = 0.2
    store_path: str = ""
    bridge_host: str = "localhost"
    bridge_port: int = 9876
    log_level: str = "WARNING"
    # treat every request as mock regardless of the stored flag
    force_mock: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        """Build from a mapping, ignoring unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("[Config] Ignoring unknown settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})

    def with_env(self) -> "Settings":
        """Overlay ``PAGELENS_*`` environment variables."""
        return replace(
            self,
            model_name=_env_raw("PAGELENS_MODEL") or self.model_name,
            model_url=_env_raw("PAGELENS_MODEL_URL") or self.model_url,
            max_text_chars=_env_int("PAGELENS_MAX_TEXT_CHARS", self.max_text_chars),
            extract_timeout=_env_float("PAGELENS_EXTRACT_TIMEOUT", self.extract_timeout),
            model_timeout=_env_float("PAGELENS_MODEL_TIMEOUT", self.model_timeout),
            max_bullets=_env_int("PAGELENS_MAX_BULLETS", self.max_bullets),
            max_highlights=_env_int("PAGELENS_MAX_HIGHLIGHTS", self.max_highlights),
            summary_tokens=_env_int("PAGELENS_SUMMARY_TOKENS", self.summary_tokens),
            answer_tokens=_env_int("PAGELENS_ANSWER_TOKENS", self.answer_tokens),
            temperature=_env_float("PAGELENS_TEMPERATURE", self.temperature),
            store_path=_env_raw("PAGELENS_STORE_PATH") or self.store_path,
            bridge_host=_env_raw("PAGELENS_BRIDGE_HOST") or self.bridge_host,
            bridge_port=_env_int("PAGELENS_BRIDGE_PORT", self.bridge_port),
            log_level=(_env_raw("PAGELENS_LOG_LEVEL") or self.log_level).upper(),
            force_mock=_env_flag("PAGELENS_MOCK", self.force_mock),
        )

    @property
    def resolved_store_path(self) -> Path:
        return Path(self.store_path) if self.store_path else default_store_path()


def load_settings(path: Optional[Path] = None, *, use_env: bool = True) -> Settings:
    """Load settings from YAML (if present) and the environment.

    A missing file is not an error. A malformed file is logged and ignored.
    """
    path = Path(path) if path is not None else default_config_path()
    settings = Settings()

    if path.exists():
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
            if not isinstance(data, dict):
                raise ValueError("top level must be a mapping")
            settings = Settings.from_dict(data)
            logger.debug("[Config] Loaded %s", path)
        except (OSError, ValueError, TypeError, yaml.YAMLError) as e:
            logger.error("[Config] Failed to load %s: %s", path, e)
    else:
        logger.debug("[Config] Config file not found: %s", path)

    return settings.with_env() if use_env else settings
