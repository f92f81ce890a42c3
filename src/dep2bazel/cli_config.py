"""
Configuration management for dep2bazel.

Settings come from defaults, an optional JSON/YAML config file and
DEP2BAZEL_* environment variables, in increasing order of precedence.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import httpx
import yaml
from rich.console import Console

from . import __version__
from .error_handling import log_config_error

console = Console(stderr=True)


@dataclass
class NetworkConfig:
    """HTTP client configuration."""

    user_agent: str = f"dep2bazel/{__version__}"
    connect_timeout: float = 10.0
    read_timeout: float = 60.0
    pool_timeout: float = 5.0
    follow_redirects: bool = True

    def to_timeout(self) -> httpx.Timeout:
        return httpx.Timeout(
            connect=self.connect_timeout,
            read=self.read_timeout,
            write=self.read_timeout,
            pool=self.pool_timeout,
        )


@dataclass
class ArchiveConfig:
    """Archive download limits."""

    max_archive_size_mb: int = 512
    chunk_size: int = 64 * 1024

    @property
    def max_archive_size_bytes(self) -> int:
        return self.max_archive_size_mb * 1024 * 1024


@dataclass
class SecurityConfig:
    """Input validation limits."""

    max_file_size_mb: int = 10
    allowed_file_extensions: List[str] = field(
        default_factory=lambda: [".lock", ".toml"]
    )

    @property
    def max_file_size_bytes(self) -> int:
        return self.max_file_size_mb * 1024 * 1024


@dataclass
class LoggingConfig:
    """Logging configuration."""

    log_level: str = "WARNING"
    enable_json: bool = True


@dataclass
class GenerateConfig:
    """Build-file generation behaviour."""

    fail_on_unresolved: bool = False
    quiet: bool = False
    verbose: bool = False
    output_file: Optional[str] = None


@dataclass
class Dep2BazelConfig:
    """Main configuration containing all subsections."""

    network: NetworkConfig = field(default_factory=NetworkConfig)
    archive: ArchiveConfig = field(default_factory=ArchiveConfig)
    security: SecurityConfig = field(default_factory=SecurityConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    generate: GenerateConfig = field(default_factory=GenerateConfig)


_global_config: Optional[Dep2BazelConfig] = None

CONFIG_SECTIONS = ("network", "archive", "security", "logging", "generate")
VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def validate_config_values(config: Dep2BazelConfig) -> List[str]:
    """
    Validate configuration values and return any errors.

    Args:
        config: Configuration to validate

    Returns:
        List[str]: List of validation errors (empty if valid)
    """
    errors = []

    if config.network.connect_timeout <= 0:
        errors.append("network.connect_timeout must be positive")
    if config.network.read_timeout <= 0:
        errors.append("network.read_timeout must be positive")
    if config.network.pool_timeout <= 0:
        errors.append("network.pool_timeout must be positive")
    if not config.network.user_agent:
        errors.append("network.user_agent must not be empty")

    if config.archive.max_archive_size_mb <= 0:
        errors.append("archive.max_archive_size_mb must be positive")
    if config.archive.chunk_size <= 0:
        errors.append("archive.chunk_size must be positive")

    if config.security.max_file_size_mb <= 0:
        errors.append("security.max_file_size_mb must be positive")

    if config.logging.log_level.upper() not in VALID_LOG_LEVELS:
        errors.append(f"logging.log_level must be one of {sorted(VALID_LOG_LEVELS)}")

    return errors


def load_config_file(config_path: Path) -> Optional[Dict[str, Any]]:
    """Load config from a JSON or YAML file."""
    if not config_path.exists():
        return None

    try:
        with open(config_path, encoding="utf-8") as f:
            if config_path.suffix.lower() in [".yaml", ".yml"]:
                return yaml.safe_load(f)
            elif config_path.suffix.lower() == ".json":
                return json.load(f)
    except (OSError, json.JSONDecodeError, yaml.YAMLError) as e:
        console.print(
            f"⚠️  Error loading config from {config_path}: {e}", style="yellow"
        )

    return None


def find_config_file() -> Optional[Path]:
    """Find config file in standard locations."""
    locations = [
        Path.cwd() / ".dep2bazel.json",
        Path.cwd() / ".dep2bazel.yaml",
        Path.cwd() / ".dep2bazel.yml",
        Path.home() / ".config" / "dep2bazel" / "config.json",
        Path.home() / ".config" / "dep2bazel" / "config.yaml",
        Path.home() / ".dep2bazel.json",
    ]

    for location in locations:
        if location.exists():
            return location

    return None


def load_environment_overrides(config: Dep2BazelConfig) -> None:
    """Apply DEP2BAZEL_* environment variable overrides."""

    def get_env_bool(key: str, default: bool = False) -> bool:
        value = os.environ.get(key, "").lower()
        return value in ["true", "1", "yes", "on"] if value else default

    def get_env_int(key: str) -> Optional[int]:
        try:
            return int(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid integer value for {key}, using default", style="yellow")
            return None

    def get_env_float(key: str) -> Optional[float]:
        try:
            return float(os.environ[key]) if key in os.environ else None
        except ValueError:
            console.print(f"⚠️  Invalid float value for {key}, using default", style="yellow")
            return None

    if user_agent := os.environ.get("DEP2BAZEL_USER_AGENT"):
        config.network.user_agent = user_agent
    if timeout := get_env_float("DEP2BAZEL_TIMEOUT"):
        config.network.connect_timeout = timeout
        config.network.read_timeout = timeout
    if connect_timeout := get_env_float("DEP2BAZEL_CONNECT_TIMEOUT"):
        config.network.connect_timeout = connect_timeout
    if read_timeout := get_env_float("DEP2BAZEL_READ_TIMEOUT"):
        config.network.read_timeout = read_timeout

    if max_archive := get_env_int("DEP2BAZEL_MAX_ARCHIVE_SIZE_MB"):
        config.archive.max_archive_size_mb = max_archive
    if max_file_size := get_env_int("DEP2BAZEL_MAX_FILE_SIZE_MB"):
        config.security.max_file_size_mb = max_file_size

    if log_level := os.environ.get("DEP2BAZEL_LOG_LEVEL"):
        config.logging.log_level = log_level.upper()

    config.generate.fail_on_unresolved = get_env_bool(
        "DEP2BAZEL_FAIL_ON_UNRESOLVED", config.generate.fail_on_unresolved
    )


def _matches_type(current: Any, value: Any) -> bool:
    if current is None:
        return value is None or isinstance(value, str)
    if isinstance(current, bool) or isinstance(value, bool):
        return isinstance(current, bool) and isinstance(value, bool)
    if isinstance(current, float):
        return isinstance(value, (int, float))
    if isinstance(current, list):
        return isinstance(value, list) and all(isinstance(item, str) for item in value)
    return isinstance(value, type(current))


def apply_config_section(
    config: Any, section_data: Dict[str, Any], section_name: str
) -> None:
    """Apply configuration from dictionary to config section."""
    for key, value in section_data.items():
        if not hasattr(config, key):
            console.print(
                f"⚠️  Unknown config key in {section_name}: {key}", style="yellow"
            )
            continue

        current = getattr(config, key)
        if not _matches_type(current, value):
            expected = "string" if current is None else type(current).__name__
            message = (
                f"{section_name}.{key} must be a {expected}, got {value!r}; using default"
            )
            console.print(f"⚠️  {message}", style="yellow", markup=False)
            log_config_error(message, "cli_config", "apply_config_section", key=key)
            continue

        if isinstance(current, float):
            value = float(value)
        setattr(config, key, value)


def load_config(config_path: Optional[Path] = None) -> Dep2BazelConfig:
    """Load configuration from file and environment."""
    global _global_config

    if _global_config is not None and config_path is None:
        return _global_config

    config = Dep2BazelConfig()

    config_file = config_path or find_config_file()
    if config_file:
        file_config = load_config_file(config_file)
        if file_config:
            for section in CONFIG_SECTIONS:
                if isinstance(file_config.get(section), dict):
                    apply_config_section(
                        getattr(config, section), file_config[section], section
                    )

    load_environment_overrides(config)

    validation_errors = validate_config_values(config)
    if validation_errors:
        console.print("⚠️  Configuration validation errors:", style="red")
        for error in validation_errors:
            console.print(f"  • {error}", style="red")
        console.print("Using default values for invalid settings.", style="yellow")
        config = _repair_invalid_sections(config)

    _global_config = config
    return config


def _repair_invalid_sections(config: Dep2BazelConfig) -> Dep2BazelConfig:
    # A section with any invalid value falls back to its defaults wholesale
    defaults = Dep2BazelConfig()
    for section in CONFIG_SECTIONS:
        if any(
            error.startswith(f"{section}.") for error in validate_config_values(config)
        ):
            setattr(config, section, getattr(defaults, section))
    return config


def get_config() -> Dep2BazelConfig:
    """Get the global configuration instance."""
    global _global_config
    if _global_config is None:
        _global_config = load_config()
    return _global_config


def reset_config() -> None:
    """Reset the global configuration (useful for testing)."""
    global _global_config
    _global_config = None


def create_sample_config() -> str:
    """Generate a sample configuration file."""
    sample_config = {
        "network": {
            "user_agent": f"dep2bazel/{__version__}",
            "connect_timeout": 10.0,
            "read_timeout": 60.0,
            "pool_timeout": 5.0,
            "follow_redirects": True,
        },
        "archive": {
            "max_archive_size_mb": 512,
            "chunk_size": 65536,
        },
        "security": {
            "max_file_size_mb": 10,
            "allowed_file_extensions": [".lock", ".toml"],
        },
        "logging": {
            "log_level": "WARNING",
            "enable_json": True,
        },
        "generate": {
            "fail_on_unresolved": False,
        },
    }

    return json.dumps(sample_config, indent=2)
