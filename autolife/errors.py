"""
Error taxonomy and error logging for autolife.

ProviderErrors are raised by adapters and caught by the fallback
orchestrator; callers only ever see them wrapped in AllProvidersFailed.
"""

import os
import traceback
from datetime import datetime, timezone
from pathlib import Path


class AutolifeError(Exception):
    """Base class for all autolife errors."""


# -----------------------------------------------------------------------------
# Configuration
# -----------------------------------------------------------------------------

class ConfigurationError(AutolifeError):
    """The provider table cannot satisfy the request."""


class NoProvidersConfigured(ConfigurationError):
    def __init__(self, message: str = "No AI providers configured or enabled."):
        super().__init__(message)


class ProviderNotFound(ConfigurationError):
    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider not found: {provider_id}")


class DuplicateProvider(ConfigurationError):
    def __init__(self, provider_id: str):
        self.provider_id = provider_id
        super().__init__(f"Provider already exists: {provider_id}")


# -----------------------------------------------------------------------------
# Provider failures
# -----------------------------------------------------------------------------

class ProviderError(AutolifeError):
    """An adapter call failed."""

    def __init__(self, message: str, provider_id: str | None = None):
        self.provider_id = provider_id
        super().__init__(message)


class AuthFailure(ProviderError):
    """Missing, invalid or rejected credentials."""


class ProviderTimeout(ProviderError):
    """The call did not complete within its deadline."""


class RateLimited(ProviderError):
    """The vendor refused the call for quota reasons."""


class MalformedResponse(ProviderError):
    """The vendor answered but the payload could not be used."""


class Unsupported(ProviderError):
    """The provider kind cannot perform this operation."""


class ProviderUnavailable(ProviderError):
    """Connection refused or server-side (5xx) error."""


# -----------------------------------------------------------------------------
# Orchestrator outcomes
# -----------------------------------------------------------------------------

class AllProvidersFailed(AutolifeError):
    """Every eligible provider was tried and none succeeded."""

    def __init__(self, last_error: ProviderError | None = None):
        self.last_error = last_error
        if last_error is None:
            message = "All AI providers failed. No eligible provider was available."
        else:
            message = f"All AI providers failed. Last error: {last_error}"
        super().__init__(message)
        self.__cause__ = last_error


class OperationCancelled(AutolifeError):
    """The caller cancelled the operation."""

    def __init__(self, message: str = "Operation cancelled."):
        super().__init__(message)


# -----------------------------------------------------------------------------
# Error log
# -----------------------------------------------------------------------------

def _error_log_path() -> Path:
    """Resolve error log path, respecting AUTOLIFE_CONFIG_DIR."""
    config_dir = os.environ.get("AUTOLIFE_CONFIG_DIR")
    if config_dir:
        return Path(config_dir) / "autolife-errors.log"
    return Path.home() / ".autolife" / "autolife-errors.log"


def log_exception(exc: Exception, context: str = "") -> Path:
    """
    Log exception with full traceback to file.

    Args:
        exc: The exception that occurred
        context: Optional context string (e.g., command name)

    Returns:
        Path to the error log file
    """
    log_path = _error_log_path()
    timestamp = datetime.now(timezone.utc).isoformat()
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(log_path, os.O_WRONLY | os.O_CREAT | os.O_APPEND, 0o600)
        with os.fdopen(fd, "a") as f:
            f.write(f"\n{'='*60}\n")
            f.write(f"[{timestamp}]")
            if context:
                f.write(f" {context}")
            f.write("\n")
            f.write("".join(traceback.format_exception(exc)))
    except OSError:
        pass  # Never fail the command over the error log
    return log_path
