"""Configuration provider following Black Box Design principles."""
import os
from dataclasses import dataclass
from typing import Optional, Protocol

from shellgate.modules.session.session import DEFAULT_OUTPUT_LIMIT, DEFAULT_READ_CHUNK_SIZE
from shellgate.modules.shell import DIALECTS, default_dialect_name


@dataclass
class APIConfig:
    """API configuration."""
    host: str
    port: int
    log_level: str
    debug: bool
    worker_threads: int


@dataclass
class ShellConfig:
    """Interpreter and session configuration."""
    dialect: str
    executable: Optional[str]
    output_limit: int
    read_chunk_size: int
    shutdown_grace_seconds: float


class ConfigProvider(Protocol):
    """Protocol for configuration providers."""

    def get_api_config(self) -> APIConfig:
        """Get API configuration."""
        ...

    def get_shell_config(self) -> ShellConfig:
        """Get interpreter configuration."""
        ...


def _positive_int(name: str, default: int) -> int:
    raw = os.getenv(name, str(default))
    try:
        value = int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None
    if value < 1:
        raise ValueError(f"{name} must be positive, got {value}")
    return value


class EnvConfigProvider:
    """Environment-based configuration provider."""

    def get_api_config(self) -> APIConfig:
        """Get API configuration from environment variables."""
        log_level = os.getenv("LOG_LEVEL", "INFO").upper()
        if log_level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a logging level name, got {log_level!r}")

        return APIConfig(
            # The interpreter runs with the service's privileges: bind locally unless told otherwise
            host=os.getenv("API_HOST", "127.0.0.1"),
            port=_positive_int("API_PORT", 8833),
            log_level=log_level,
            debug=os.getenv("DEBUG", "false").lower() == "true",
            worker_threads=_positive_int("WORKER_THREADS", 100),
        )

    def get_shell_config(self) -> ShellConfig:
        """Get interpreter configuration from environment variables."""
        dialect = os.getenv("SHELL_DIALECT", default_dialect_name()).lower()
        if dialect not in DIALECTS:
            raise ValueError(
                f"SHELL_DIALECT must be one of {', '.join(sorted(DIALECTS))}, got {dialect!r}"
            )

        grace_raw = os.getenv("SHUTDOWN_GRACE_SECONDS", "5")
        try:
            shutdown_grace_seconds = float(grace_raw)
        except ValueError:
            raise ValueError(f"SHUTDOWN_GRACE_SECONDS must be a number, got {grace_raw!r}") from None
        if shutdown_grace_seconds < 0:
            raise ValueError("SHUTDOWN_GRACE_SECONDS must not be negative")

        return ShellConfig(
            dialect=dialect,
            executable=os.getenv("SHELL_EXECUTABLE") or None,
            output_limit=_positive_int("OUTPUT_LIMIT_BYTES", DEFAULT_OUTPUT_LIMIT),
            read_chunk_size=_positive_int("READ_CHUNK_SIZE", DEFAULT_READ_CHUNK_SIZE),
            shutdown_grace_seconds=shutdown_grace_seconds,
        )
