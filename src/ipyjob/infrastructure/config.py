"""Configuration management for ipyjob.

This module provides a unified configuration system that supports:
- Configuration files in TOML format
- Environment variables
- Multiple configuration file locations (project, user, system)
- Type-safe configuration using Pydantic

Configuration Priority (highest to lowest):
1. Environment variables
2. Project configuration file (.ipyjob/config.toml or ipyjob.toml)
3. User configuration file (~/.config/ipyjob/config.toml)
4. System configuration file (/etc/ipyjob/config.toml)
5. Default values

Environment Variable Naming:
- Nested fields: IPYJOB_<SECTION>__<FIELD> (e.g., IPYJOB_LOGGING__LOG_LEVEL)
- The kernel registry as JSON: IPYJOB_SERVERS='[{"kernel": "python3", ...}]'
- Default kernel: IPYJOB_KERNEL (selects the registry entry used when a job
  does not name one)
"""

import logging
import os
from pathlib import Path
from typing import Any

import platformdirs
from pydantic import BaseModel, Field, field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    TomlConfigSettingsSource,
)

from ipyjob.core.errors import ConfigError

logger = logging.getLogger(__name__)


class LegacyEnvSettingsSource(PydanticBaseSettingsSource):
    """Settings source for environment variables without the IPYJOB_ nesting.

    Job systems usually export a flat variable to select the kernel, so
    `IPYJOB_KERNEL` is mapped onto `default_kernel`.
    """

    LEGACY_ENV_VARS = {
        ("default_kernel",): "IPYJOB_KERNEL",
        ("paths", "workspace_path"): "WORKSPACE",
    }

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        raise ValueError(f"Field {field_name} not found in legacy environment")

    def __call__(self) -> dict[str, Any]:
        data: dict[str, Any] = {}

        for field_path, env_var in self.LEGACY_ENV_VARS.items():
            env_value = os.getenv(env_var)

            if env_value is not None:
                current = data
                for part in field_path[:-1]:
                    current = current.setdefault(part, {})
                current[field_path[-1]] = env_value

        return data


class ServerConfig(BaseModel):
    """A kernel registry entry."""

    server_name: str = Field(
        default="Python",
        description="Display name of the language/server",
    )

    kernel: str = Field(
        default="python3",
        description="Name of the Jupyter kernel spec",
    )

    launch_timeout: float = Field(
        default=30.0,
        gt=0,
        description="Seconds to wait for the kernel to become ready",
    )

    max_results: int = Field(
        default=1000,
        ge=0,
        description="Maximum number of output lines kept per code unit",
    )

    execution_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Maximum seconds a single code unit may run (unset: no limit)",
    )

    connection_file: str = Field(
        default="",
        description="Connection file of an already running kernel to attach to",
    )

    @field_validator("kernel")
    @classmethod
    def validate_kernel(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Kernel name must not be empty")
        return v


class KernelRegistry:
    """Lookup of registry entries by kernel name."""

    def __init__(self, servers: list[ServerConfig], default_kernel: str = ""):
        self.servers = list(servers)
        self.default_kernel = default_kernel

    def __len__(self):
        return len(self.servers)

    def __iter__(self):
        return iter(self.servers)

    def kernel_names(self) -> list[str]:
        return [server.kernel for server in self.servers]

    def find(self, kernel: str | None) -> ServerConfig | None:
        """Return the entry for `kernel`, or `None` if there is none.

        Without a kernel name the configured default kernel is used, or the
        first registered kernel if no default is configured.
        """
        kernel = kernel or self.default_kernel
        if not kernel:
            return self.servers[0] if self.servers else None
        return next((server for server in self.servers if server.kernel == kernel), None)

    def get(self, kernel: str | None) -> ServerConfig:
        server = self.find(kernel)
        if server is None:
            if not self.servers:
                raise ConfigError("No kernels are registered")
            raise ConfigError(f"No valid kernel exists for {kernel or self.default_kernel!r}")
        return server


class PathsConfig(BaseModel):
    """Path-related configuration."""

    workspace_path: str = Field(
        default="",
        description="Workspace against which relative source files are resolved",
    )

    artifact_dir: str = Field(
        default="",
        description="Directory for rich outputs (images, HTML); empty disables saving",
    )

    report_file: str = Field(
        default="",
        description="File to which the JSON execution report is written",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)",
    )

    console_logging: bool = Field(
        default=False,
        description="Also log to the console, not only to the log file",
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v_upper = v.upper()
        if v_upper not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}, got {v}")
        return v_upper


class IpyjobConfig(BaseSettings):
    """Main ipyjob configuration.

    Loaded from multiple sources in priority order: environment variables >
    project config > user config > system config > defaults.
    """

    model_config = SettingsConfigDict(
        env_prefix="IPYJOB_",
        env_nested_delimiter="__",
        extra="ignore",
        case_sensitive=False,
    )

    servers: list[ServerConfig] = Field(
        default_factory=lambda: [ServerConfig()],
        description="Kernel registry",
    )

    default_kernel: str = Field(
        default="",
        description="Kernel used when a job does not name one (empty: first entry)",
    )

    paths: PathsConfig = Field(
        default_factory=PathsConfig,
        description="Path-related configuration",
    )

    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description="Logging configuration",
    )

    def registry(self) -> KernelRegistry:
        return KernelRegistry(self.servers, self.default_kernel)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Customize the sources and their priority for settings.

        Priority order (highest to lowest):
        1. Environment variables (IPYJOB_ prefixed, then legacy)
        2. Project configuration file
        3. User configuration file
        4. System configuration file
        5. Init settings (programmatic)
        """
        config_files = find_config_files()

        # pydantic-settings gives sources on the left priority, so the TOML
        # sources are collected from lowest to highest and reversed below.
        toml_sources = []
        for kind in ("system", "user", "project"):
            config_file = config_files[kind]
            if config_file is None:
                continue
            try:
                toml_sources.append(
                    TomlConfigSettingsSource(settings_cls, toml_file=config_file)
                )
                logger.debug(f"Loaded {kind} config: {config_file}")
            except Exception as e:
                logger.debug(f"Could not load {kind} config: {e}")

        legacy_env_settings = LegacyEnvSettingsSource(settings_cls)

        return (
            env_settings,
            legacy_env_settings,
            *reversed(toml_sources),
            init_settings,
        )


def find_config_files() -> dict[str, Path | None]:
    """Find configuration files in standard locations.

    Returns:
        Dictionary with keys 'system', 'user', 'project', each containing
        a Path to the config file if it exists, or None otherwise.
    """
    config_files: dict[str, Path | None] = {
        "system": None,
        "user": None,
        "project": None,
    }

    system_config = Path("/etc/ipyjob/config.toml")
    if system_config.exists():
        config_files["system"] = system_config

    user_config_dir = Path(platformdirs.user_config_dir("ipyjob", appauthor=False))
    user_config = user_config_dir / "config.toml"
    if user_config.exists():
        config_files["user"] = user_config

    cwd = Path.cwd()
    for project_config in (cwd / ".ipyjob" / "config.toml", cwd / "ipyjob.toml"):
        if project_config.exists():
            config_files["project"] = project_config
            break

    return config_files


def get_config_file_locations() -> dict[str, Path]:
    """Get the standard configuration file locations.

    Returns:
        Dictionary with keys 'system', 'user', 'project', each containing
        the Path where the config file should be located (may not exist).
    """
    user_config_dir = Path(platformdirs.user_config_dir("ipyjob", appauthor=False))
    return {
        "system": Path("/etc/ipyjob/config.toml"),
        "user": user_config_dir / "config.toml",
        "project": Path.cwd() / ".ipyjob" / "config.toml",
    }


# Global configuration instance, lazily initialized on first access
_config: IpyjobConfig | None = None


def get_config(reload: bool = False) -> IpyjobConfig:
    """Get the global configuration instance.

    Args:
        reload: If True, reload the configuration from files and environment.
    """
    global _config

    if _config is None or reload:
        _config = IpyjobConfig()

    return _config


def create_example_config() -> str:
    """Create an example configuration file content.

    Returns:
        String containing an example TOML configuration with all options
        documented.
    """
    return """# ipyjob Configuration File
#
# Configuration files are loaded from (in priority order):
#   1. .ipyjob/config.toml or ipyjob.toml (project directory)
#   2. ~/.config/ipyjob/config.toml (user directory)
#   3. /etc/ipyjob/config.toml (system directory, Linux/Unix only)
#
# Environment variables can override any setting (highest priority).
# Nested settings use double underscores: IPYJOB_<SECTION>__<KEY>
#
# Examples:
#   IPYJOB_LOGGING__LOG_LEVEL=DEBUG
#   IPYJOB_KERNEL=python3

# Kernel used when a job does not name one (empty: the first server below)
default_kernel = ""

# Kernel registry. Each entry describes one kernel a job may run on.
[[servers]]
# Display name of the language/server
server_name = "Python"
# Name of the Jupyter kernel spec (see `jupyter kernelspec list`)
kernel = "python3"
# Seconds to wait for the kernel to become ready
launch_timeout = 30.0
# Maximum number of output lines kept per code unit
max_results = 1000
# Maximum seconds a single code unit may run; remove for no limit
# execution_timeout = 600.0
# Attach to a running kernel instead of starting one
connection_file = ""

[paths]
# Workspace against which relative source files are resolved
# Environment variable: WORKSPACE (no IPYJOB_ prefix)
workspace_path = ""

# Directory for rich outputs (images, HTML); empty disables saving
artifact_dir = ""

# File to which the JSON execution report is written
report_file = ""

[logging]
# Logging level: DEBUG, INFO, WARNING, ERROR, CRITICAL
# Environment variable: IPYJOB_LOGGING__LOG_LEVEL
log_level = "INFO"

# Also log to the console, not only to the log file
console_logging = false
"""


def write_example_config(location: str = "user") -> Path:
    """Write an example configuration file.

    Args:
        location: Where to write the config file ('user' or 'project')

    Returns:
        Path to the created configuration file

    Raises:
        ValueError: If location is invalid
    """
    locations = get_config_file_locations()

    if location not in ("user", "project"):
        raise ValueError(f"Invalid location: {location}. Must be 'user' or 'project'")

    config_path = locations[location]
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(create_example_config(), encoding="utf-8")

    logger.info(f"Created example configuration file: {config_path}")
    return config_path
