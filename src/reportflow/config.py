"""Application configuration and LLM profiles.

Configuration is a single JSON document, by default
``~/.reportflow/config.json``:

    {
      "default_profile": "work",
      "profiles": [
        {"name": "work", "provider": "openai", "model": "gpt-4o-mini", "api_key": "..."}
      ],
      "plugins_dir": "/srv/reportflow/plugins",
      "output_dir": "/srv/reportflow/reports"
    }

Environment variables take precedence over the file:

- ``REPORTFLOW_CONFIG_DIR``: directory holding ``config.json``
- ``REPORTFLOW_PLUGINS_DIR``: plugins directory
- ``REPORTFLOW_OUTPUT_DIR``: report output directory
"""

from __future__ import annotations

import json
import logging
import os
import threading
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Mapping

from reportflow.llm.config import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    DEFAULT_TOP_P,
    LLMConfig,
    LLMProvider,
)

logger = logging.getLogger(__name__)

CONFIG_DIR_ENV = "REPORTFLOW_CONFIG_DIR"
PLUGINS_DIR_ENV = "REPORTFLOW_PLUGINS_DIR"
OUTPUT_DIR_ENV = "REPORTFLOW_OUTPUT_DIR"
CONFIG_FILE_NAME = "config.json"


class ConfigError(Exception):
    """Raised for invalid configuration operations."""

    pass


class ProfileLookupError(ConfigError):
    """Raised when a named profile does not exist."""

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Profile '{name}' not found")


@dataclass
class LLMProfile:
    """A named LLM configuration."""

    name: str
    provider: str = LLMProvider.OPENAI.value
    model: str = "gpt-4o-mini"
    api_key: str = ""
    base_url: str | None = None
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None

    def __post_init__(self) -> None:
        if isinstance(self.provider, LLMProvider):
            self.provider = self.provider.value
        if not self.name:
            raise ConfigError("Profile name cannot be empty")
        if self.provider not in LLMProvider._value2member_map_:
            raise ConfigError(f"Unsupported provider: {self.provider}")

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "LLMProfile":
        known = {f for f in cls.__dataclass_fields__}
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_public_dict(self) -> dict[str, Any]:
        """Profile record with the API key masked."""
        data = self.to_dict()
        if data.get("api_key"):
            data["api_key"] = mask_secret(data["api_key"])
        return data

    def to_llm_config(self) -> LLMConfig:
        return LLMConfig(
            provider=self.provider,
            model=self.model,
            api_key=self.api_key or None,
            base_url=self.base_url,
            temperature=DEFAULT_TEMPERATURE if self.temperature is None else self.temperature,
            max_tokens=DEFAULT_MAX_TOKENS if self.max_tokens is None else self.max_tokens,
            top_p=DEFAULT_TOP_P if self.top_p is None else self.top_p,
        )


def mask_secret(value: str) -> str:
    if len(value) <= 8:
        return "*" * len(value)
    return f"{value[:4]}...{value[-4:]}"


@dataclass
class AppConfig:
    default_profile: str = ""
    profiles: list[LLMProfile] = field(default_factory=list)
    plugins_dir: str = field(default_factory=lambda: str(Path.cwd() / "plugins"))
    output_dir: str = field(default_factory=lambda: str(Path.cwd() / "reports"))

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AppConfig":
        config = cls()
        config.default_profile = data.get("default_profile") or ""
        config.profiles = [LLMProfile.from_dict(p) for p in data.get("profiles", [])]
        if data.get("plugins_dir"):
            config.plugins_dir = str(data["plugins_dir"])
        if data.get("output_dir"):
            config.output_dir = str(data["output_dir"])
        return config

    def to_dict(self) -> dict[str, Any]:
        return {
            "default_profile": self.default_profile,
            "profiles": [p.to_dict() for p in self.profiles],
            "plugins_dir": self.plugins_dir,
            "output_dir": self.output_dir,
        }

    def find_profile(self, name: str) -> LLMProfile | None:
        for profile in self.profiles:
            if profile.name == name:
                return profile
        return None


class ConfigManager:
    """Reads and writes the application configuration file.

    Every operation reloads the file, so several processes (CLI, API server,
    worker) sharing one config directory stay consistent.

    Args:
        config_dir: Directory holding ``config.json``. Defaults to
            ``$REPORTFLOW_CONFIG_DIR`` or ``~/.reportflow``.
    """

    def __init__(self, config_dir: Path | str | None = None):
        if config_dir is None:
            config_dir = os.environ.get(CONFIG_DIR_ENV) or Path.home() / ".reportflow"
        self._config_dir = Path(config_dir).expanduser()
        self._lock = threading.RLock()

    @property
    def config_dir(self) -> Path:
        return self._config_dir

    @property
    def config_path(self) -> Path:
        return self._config_dir / CONFIG_FILE_NAME

    def load(self) -> AppConfig:
        """Load the configuration, returning defaults when no file exists."""
        with self._lock:
            if not self.config_path.exists():
                return AppConfig()
            try:
                data = json.loads(self.config_path.read_text(encoding="utf-8"))
            except json.JSONDecodeError as e:
                raise ConfigError(f"Invalid config file {self.config_path}: {e}") from e
            return AppConfig.from_dict(data)

    def save(self, config: AppConfig) -> None:
        with self._lock:
            self._config_dir.mkdir(parents=True, exist_ok=True)
            self.config_path.write_text(
                json.dumps(config.to_dict(), indent=2), encoding="utf-8"
            )
            logger.debug(f"Saved configuration to {self.config_path}")

    # -- profiles -------------------------------------------------------------

    def add_profile(self, profile: LLMProfile) -> None:
        """Add or replace a profile. The first profile becomes the default."""
        with self._lock:
            config = self.load()
            for i, existing in enumerate(config.profiles):
                if existing.name == profile.name:
                    config.profiles[i] = profile
                    break
            else:
                config.profiles.append(profile)

            if len(config.profiles) == 1 or not config.default_profile:
                config.default_profile = profile.name
            self.save(config)

    def remove_profile(self, name: str) -> None:
        """Remove a profile, moving the default to the first remaining one.

        Raises:
            ProfileLookupError: If the profile does not exist.
        """
        with self._lock:
            config = self.load()
            profile = config.find_profile(name)
            if profile is None:
                raise ProfileLookupError(name)

            config.profiles.remove(profile)
            if config.default_profile == name:
                config.default_profile = config.profiles[0].name if config.profiles else ""
            self.save(config)

    def list_profiles(self) -> list[LLMProfile]:
        return self.load().profiles

    def get_profile(self, name: str | None = None) -> LLMProfile | None:
        """Return the named profile, or the default profile when ``name`` is None."""
        config = self.load()
        profile_name = name or config.default_profile
        if not profile_name:
            return None
        return config.find_profile(profile_name)

    def get_default_profile_name(self) -> str | None:
        return self.load().default_profile or None

    def set_default_profile(self, name: str) -> None:
        """Make ``name`` the default profile.

        Raises:
            ProfileLookupError: If the profile does not exist.
        """
        with self._lock:
            config = self.load()
            if config.find_profile(name) is None:
                raise ProfileLookupError(name)
            config.default_profile = name
            self.save(config)

    def get_llm_config(self, profile_name: str | None = None) -> LLMConfig | None:
        """Resolve a profile into client settings with defaults applied."""
        profile = self.get_profile(profile_name)
        if profile is None:
            return None
        return profile.to_llm_config()

    # -- directories ----------------------------------------------------------

    def get_plugins_dir(self) -> Path:
        override = os.environ.get(PLUGINS_DIR_ENV)
        return Path(override or self.load().plugins_dir).expanduser()

    def get_output_dir(self) -> Path:
        override = os.environ.get(OUTPUT_DIR_ENV)
        return Path(override or self.load().output_dir).expanduser()

    def set_plugins_dir(self, directory: Path | str) -> None:
        with self._lock:
            config = self.load()
            config.plugins_dir = str(Path(directory).expanduser())
            self.save(config)

    def set_output_dir(self, directory: Path | str) -> None:
        with self._lock:
            config = self.load()
            config.output_dir = str(Path(directory).expanduser())
            self.save(config)


# =============================================================================
# Global Manager
# =============================================================================

_global_config_manager: ConfigManager | None = None


def get_config_manager() -> ConfigManager:
    global _global_config_manager
    if _global_config_manager is None:
        _global_config_manager = ConfigManager()
    return _global_config_manager


def reset_config_manager() -> None:
    """Forget the global manager (mainly for testing)."""
    global _global_config_manager
    _global_config_manager = None
