"""
Configuration loader — reads hostsetup.yml into an ``InstallerConfig``.

Everything has a built-in default: with no file at all the installer
bootstraps a stock CaptainCore host. The file only overrides.

Search order:
    --config  >  HOSTSETUP_CONFIG  >  ./hostsetup.yml (walking up)
    >  /etc/hostsetup/hostsetup.yml  >  built-in defaults
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Mapping

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator

from hostsetup.core.context import DEFAULT_COMMAND_TIMEOUT, DEFAULT_TIMEOUT
from hostsetup.core.errors import ConfigError, ParseError
from hostsetup.core.models.dependency import Dependency
from hostsetup.core.services.tool_install.data.recipes import default_dependencies
from hostsetup.core.services.tool_install.domain.version import parse_version

logger = logging.getLogger(__name__)

CONFIG_FILE = "hostsetup.yml"
SYSTEM_CONFIG = Path("/etc/hostsetup") / CONFIG_FILE
CONFIG_ENV = "HOSTSETUP_CONFIG"


# ── Schema ──────────────────────────────────────────────────────


class ServiceSettings(BaseModel):
    """The supervised application service."""

    name: str = "captaincore"
    description: str = "CaptainCore Application Server"
    documentation: str = "https://docs.captaincore.io"
    binary: str = "/usr/local/bin/captaincore"
    args: list[str] = Field(default_factory=lambda: ["server"])
    fallback_user: str = "captaincore"
    capabilities: list[str] = Field(default_factory=lambda: ["CAP_NET_BIND_SERVICE"])
    restart: str = "always"
    start_timeout: float | None = None


class ProxySettings(BaseModel):
    """The reverse proxy in front of the service."""

    config_path: str = "/etc/caddy/Caddyfile"
    service: str = "caddy"


class InstallerConfig(BaseModel):
    """Validated installer configuration."""

    root: str = "/"
    timeout: float = Field(default=DEFAULT_TIMEOUT, gt=0)
    command_timeout: int = Field(default=DEFAULT_COMMAND_TIMEOUT, gt=0)
    domain: str | None = None
    backend: str = "localhost:8000"
    service: ServiceSettings = Field(default_factory=ServiceSettings)
    proxy: ProxySettings = Field(default_factory=ProxySettings)
    dependencies: list[Dependency] = Field(default_factory=default_dependencies)
    minimum_versions: dict[str, str] = Field(default_factory=dict)

    # where the config came from (None = built-in defaults)
    source: str | None = None

    @field_validator("minimum_versions", mode="before")
    @classmethod
    def _versions_parse(cls, value):
        # YAML reads an unquoted 1.21 as a float
        if not isinstance(value, dict):
            return value
        versions: dict[str, str] = {}
        for name, version in value.items():
            try:
                parse_version(str(version))
            except ParseError as e:
                raise ValueError(f"minimum_versions.{name}: {e}") from e
            versions[str(name)] = str(version)
        return versions

    @model_validator(mode="after")
    def _apply_minimums(self) -> InstallerConfig:
        known = {d.name for d in self.dependencies}
        unknown = sorted(set(self.minimum_versions) - known)
        if unknown:
            raise ValueError(f"minimum_versions names unknown dependencies: {', '.join(unknown)}")
        for dep in self.dependencies:
            if dep.name in self.minimum_versions:
                dep.minimum_version = self.minimum_versions[dep.name]
        return self

    def dependency(self, name: str) -> Dependency | None:
        for dep in self.dependencies:
            if dep.name == name:
                return dep
        return None


# ── Discovery ───────────────────────────────────────────────────


def find_config_file(
    start_dir: Path | None = None,
    environ: Mapping[str, str] | None = None,
) -> Path | None:
    """Locate hostsetup.yml, or None to use built-in defaults.

    ``HOSTSETUP_CONFIG`` is returned even when the file is missing so
    that ``load_config`` reports the bad path instead of silently
    falling back.
    """
    env = os.environ if environ is None else environ
    if env.get(CONFIG_ENV):
        return Path(env[CONFIG_ENV])

    current = (start_dir or Path.cwd()).resolve()
    for _ in range(20):  # safety limit
        candidate = current / CONFIG_FILE
        if candidate.is_file():
            return candidate
        parent = current.parent
        if parent == current:
            break  # filesystem root
        current = parent

    if SYSTEM_CONFIG.is_file():
        return SYSTEM_CONFIG
    return None


def load_config(path: Path | None = None, *, search: bool = True) -> InstallerConfig:
    """Load and validate the installer configuration.

    Args:
        path: Explicit path (``--config``). Must exist.
        search: Look for a config file when ``path`` is None.

    Raises:
        ConfigError: If the file is missing, unreadable or invalid.
    """
    if path is None and search:
        path = find_config_file()

    if path is None:
        logger.debug("No %s found — using built-in defaults", CONFIG_FILE)
        return InstallerConfig()

    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")

    logger.debug("Loading installer config from %s", path)

    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ConfigError(f"Expected a YAML mapping in {path}, got {type(data).__name__}")

    try:
        config = InstallerConfig.model_validate({**data, "source": str(path)})
    except ValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}: {e}") from e

    logger.info("Loaded config from %s (%d dependencies)", path, len(config.dependencies))
    return config
