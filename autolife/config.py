"""
Configuration management for the AI provider table.

The configuration is stored as a TOML file in the config directory
(AUTOLIFE_CONFIG_DIR, default ~/.autolife). It lists the providers to use,
their priorities and, optionally, their last known health.
"""

import logging
import os
import tomllib
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import tomli_w

from .health import DEFAULT_SKIP_THRESHOLD, DEFAULT_UNAVAILABLE_THRESHOLD, HealthTracker
from .registry import ProviderRegistry
from .types import ProviderConfig, ProviderKind

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "autolife.toml"
CONFIG_VERSION = 1

# Mock provider sits below everything else so there is always a last resort
MOCK_PRIORITY = 999


@dataclass
class HealthSettings:
    """Thresholds for the health tracker."""
    skip_threshold: int = DEFAULT_SKIP_THRESHOLD
    unavailable_threshold: int = DEFAULT_UNAVAILABLE_THRESHOLD


@dataclass
class AppConfig:
    """Complete autolife configuration."""
    path: Path
    version: int = CONFIG_VERSION
    created: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    health: HealthSettings = field(default_factory=HealthSettings)
    providers: list[ProviderConfig] = field(default_factory=list)
    timeout: float | None = None

    @property
    def config_path(self) -> Path:
        """Path to the TOML config file."""
        return self.path / CONFIG_FILENAME

    def exists(self) -> bool:
        return self.config_path.exists()


def get_config_dir() -> Path:
    """Config directory from AUTOLIFE_CONFIG_DIR, else ~/.autolife."""
    override = os.environ.get("AUTOLIFE_CONFIG_DIR")
    if override:
        return Path(override).expanduser()
    return Path.home() / ".autolife"


def detect_default_providers() -> list[ProviderConfig]:
    """
    Detect usable providers from the environment.

    Priority:
    1. Anthropic (if ANTHROPIC_API_KEY is set)
    2. OpenAI (if AUTOLIFE_OPENAI_API_KEY or OPENAI_API_KEY is set)
    3. Azure OpenAI (if AZURE_OPENAI_API_KEY and AZURE_OPENAI_ENDPOINT are set)
    4. Local Ollama (if OLLAMA_HOST is set)
    5. Mock, always present at the bottom

    Credentials are not copied into the config; adapters read them from the
    environment at call time.
    """
    providers: list[ProviderConfig] = []
    priority = 1

    if os.environ.get("ANTHROPIC_API_KEY"):
        providers.append(ProviderConfig(
            name="Anthropic", kind=ProviderKind.ANTHROPIC, priority=priority,
            model="claude-haiku-4-5-20251001",
        ))
        priority += 1

    if os.environ.get("AUTOLIFE_OPENAI_API_KEY") or os.environ.get("OPENAI_API_KEY"):
        providers.append(ProviderConfig(
            name="OpenAI", kind=ProviderKind.OPENAI, priority=priority,
            model="gpt-4.1-mini",
        ))
        priority += 1

    if os.environ.get("AZURE_OPENAI_API_KEY") and os.environ.get("AZURE_OPENAI_ENDPOINT"):
        providers.append(ProviderConfig(
            name="Azure OpenAI", kind=ProviderKind.AZURE, priority=priority,
            endpoint=os.environ["AZURE_OPENAI_ENDPOINT"],
            model=os.environ.get("AZURE_OPENAI_DEPLOYMENT", "gpt-4.1-mini"),
        ))
        priority += 1

    if os.environ.get("OLLAMA_HOST"):
        providers.append(ProviderConfig(
            name="Local Ollama", kind=ProviderKind.LOCAL, priority=priority,
            model="llama3.2", timeout_seconds=120.0,
        ))

    providers.append(ProviderConfig(
        name="Mock Provider", kind=ProviderKind.MOCK, priority=MOCK_PRIORITY,
        model="mock-v1",
    ))
    return providers


def create_default_config(config_dir: Path) -> AppConfig:
    """Create a new config with auto-detected providers."""
    registry = ProviderRegistry(detect_default_providers())
    return AppConfig(path=config_dir, providers=registry.list_all())


def load_config(config_dir: Path) -> AppConfig:
    """
    Load configuration from a config directory.

    Raises:
        FileNotFoundError: If config doesn't exist
        ValueError: If config is invalid
    """
    config_path = config_dir / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"Config not found: {config_path}")

    with open(config_path, "rb") as f:
        data = tomllib.load(f)

    version = data.get("autolife", {}).get("version", 1)
    if version > CONFIG_VERSION:
        raise ValueError(f"Config version {version} is newer than supported ({CONFIG_VERSION})")

    health = data.get("health", {})
    providers = []
    for i, section in enumerate(data.get("providers", [])):
        if "name" not in section or "kind" not in section:
            raise ValueError(f"Provider #{i + 1} in {config_path} needs 'name' and 'kind'")
        try:
            providers.append(ProviderConfig.from_dict(section))
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid provider '{section.get('name')}' in {config_path}: {e}") from e

    timeout = data.get("autolife", {}).get("timeout")
    return AppConfig(
        path=config_dir,
        version=version,
        created=data.get("autolife", {}).get("created", ""),
        health=HealthSettings(
            skip_threshold=health.get("skip_threshold", DEFAULT_SKIP_THRESHOLD),
            unavailable_threshold=health.get("unavailable_threshold", DEFAULT_UNAVAILABLE_THRESHOLD),
        ),
        providers=providers,
        timeout=float(timeout) if timeout is not None else None,
    )


def save_config(config: AppConfig, registry: ProviderRegistry | None = None) -> None:
    """
    Save configuration to the config directory.

    When a registry is given its current records (including health counters)
    replace config.providers first. Creates the directory if needed.
    """
    if registry is not None:
        config.providers = registry.list_all()

    config.path.mkdir(parents=True, exist_ok=True)

    autolife_section: dict[str, Any] = {
        "version": config.version,
        "created": config.created,
    }
    if config.timeout is not None:
        autolife_section["timeout"] = config.timeout

    data = {
        "autolife": autolife_section,
        "health": {
            "skip_threshold": config.health.skip_threshold,
            "unavailable_threshold": config.health.unavailable_threshold,
        },
        "providers": [p.to_dict(include_credential=True) for p in config.providers],
    }

    # A file holding credentials is private before the first byte is written
    private = any(p.credential for p in config.providers)
    fd = os.open(
        config.config_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC,
        0o600 if private else 0o644,
    )
    if private:
        os.fchmod(fd, 0o600)
    with os.fdopen(fd, "wb") as f:
        tomli_w.dump(data, f)


def load_or_create_config(config_dir: Path) -> AppConfig:
    """
    Load existing config or create a new one with defaults.

    This is the main entry point for config management.
    """
    if (config_dir / CONFIG_FILENAME).exists():
        return load_config(config_dir)
    config = create_default_config(config_dir)
    save_config(config)
    logger.info("Created %s with %d providers", config.config_path, len(config.providers))
    return config


def build_registry(config: AppConfig) -> ProviderRegistry:
    """Populate a registry from the configured providers."""
    return ProviderRegistry(config.providers)


def build_tracker(config: AppConfig) -> HealthTracker:
    return HealthTracker(
        skip_threshold=config.health.skip_threshold,
        unavailable_threshold=config.health.unavailable_threshold,
    )
