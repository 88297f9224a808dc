"""Configuration for llmrelay.

Request options live in the immutable :class:`LLMConfig`; transport and
provider knobs live in :class:`ClientSettings`.  Both can be loaded from a YAML
profiles file.

Config discovery (first match wins):
  1. Explicit path
  2. ``./llmrelay.yaml``
  3. ``~/.config/llmrelay/config.yaml``
  4. Built-in defaults
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

_logger = logging.getLogger(__name__)

# Environment variables consulted when no API key is configured (the SDK
# names, without a per-binary suffix)
API_KEY_ENV: dict[str, str] = {
    "anthropic": "ANTHROPIC_API_KEY",
    "gemini": "GEMINI_API_KEY",
}


# ---------------------------------------------------------------------------
# Config data structures
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LLMConfig:
    """Request options shared by every provider.

    Options left as ``None`` are omitted from the outbound request.
    """

    api_key: str = ""
    model: str = ""
    temperature: float | None = None
    max_tokens: int | None = None
    top_p: float | None = None
    top_k: int | None = None
    stop_sequences: tuple[str, ...] | None = None
    system_prompt: str | None = None
    tools: tuple[dict[str, Any], ...] | None = None
    streaming: bool = False

    def __post_init__(self) -> None:
        # Accept lists from callers and YAML; store tuples
        if self.stop_sequences is not None:
            object.__setattr__(self, "stop_sequences", tuple(self.stop_sequences))
        if self.tools is not None:
            object.__setattr__(self, "tools", tuple(self.tools))

    def replace(self, **changes: Any) -> LLMConfig:
        """Return a copy with *changes* applied."""
        return dataclasses.replace(self, **changes)


@dataclass
class ClientSettings:
    """Transport and provider-specific settings."""

    base_url: str | None = None
    timeout: float = 120
    # Anthropic
    anthropic_version: str = "2023-06-01"
    anthropic_beta: str | None = None
    metadata: dict[str, Any] | None = None
    # Gemini
    safety_settings: list[dict[str, str]] | None = None
    # Stream decoding
    verbose: bool = False
    max_decode_errors: int | None = 32


@dataclass
class ProfileSpec:
    """A named provider profile from the config file."""

    provider: str = "anthropic"
    model: str = ""
    api_key: str = ""
    api_key_env: str = ""
    options: dict[str, Any] = field(default_factory=dict)
    settings: dict[str, Any] = field(default_factory=dict)

    def resolve_api_key(self) -> str:
        """Return the configured key, falling back to the environment."""
        if self.api_key:
            return self.api_key
        env_name = self.api_key_env or API_KEY_ENV.get(self.provider, "")
        return os.environ.get(env_name, "") if env_name else ""

    def to_config(self) -> LLMConfig:
        known = {f.name for f in dataclasses.fields(LLMConfig)}
        unknown = set(self.options) - known
        if unknown:
            _logger.warning(
                "Ignoring unknown options in profile: %s", ", ".join(sorted(unknown)),
            )
        opts = {k: v for k, v in self.options.items() if k in known}
        opts.pop("api_key", None)
        opts.pop("model", None)
        return LLMConfig(api_key=self.resolve_api_key(), model=self.model, **opts)

    def to_settings(self) -> ClientSettings:
        known = {f.name for f in dataclasses.fields(ClientSettings)}
        return ClientSettings(
            **{k: v for k, v in self.settings.items() if k in known}
        )


@dataclass
class RelayConfig:
    """Top-level config: the active profile plus all named profiles."""

    profile: str = "default"
    profiles: dict[str, ProfileSpec] = field(
        default_factory=lambda: {"default": ProfileSpec()}
    )

    @property
    def active_profile(self) -> ProfileSpec:
        return self.profiles.get(self.profile, ProfileSpec())


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

_SEARCH_PATHS = [
    Path("./llmrelay.yaml"),
    Path.home() / ".config" / "llmrelay" / "config.yaml",
]


def _parse_profile(raw: dict[str, Any]) -> ProfileSpec:
    return ProfileSpec(
        provider=raw.get("provider", "anthropic"),
        model=raw.get("model", ""),
        api_key=raw.get("api_key", ""),
        api_key_env=raw.get("api_key_env", ""),
        options=raw.get("options", {}) or {},
        settings=raw.get("settings", {}) or {},
    )


def load_config(path: str | Path | None = None) -> RelayConfig:
    """Load profiles from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Raises
    ------
    FileNotFoundError
        If *path* is given but does not exist.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    if config_path is None:
        _logger.info("No config file found, using defaults")
        return RelayConfig()

    _logger.info("Loading config from %s", config_path)
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    profiles: dict[str, ProfileSpec] = {}
    for name, praw in (raw.get("profiles") or {}).items():
        profiles[name] = _parse_profile(praw or {})

    if not profiles:
        profiles["default"] = ProfileSpec()

    return RelayConfig(
        profile=raw.get("profile", next(iter(profiles))),
        profiles=profiles,
    )
