"""Bootstrap configuration management.

Settings are read from a YAML file (default /etc/jenkins-bootstrap/config.yaml),
overridden by JENKINS_BOOTSTRAP_* environment variables, and finally by CLI
flags. The source of every value is recorded for `config show`.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

import yaml

from .errors import ConfigError

DEFAULT_CONFIG_PATH = Path("/etc/jenkins-bootstrap/config.yaml")
ENV_PREFIX = "JENKINS_BOOTSTRAP_"
DEFAULT_UPDATES_URL = "https://updates.jenkins.io"


@dataclass
class BootstrapConfig:
    """Configuration knobs for a bootstrap run."""

    # Network
    listen_address: str = "127.0.0.1"
    port: int = 8080

    # Filesystem layout
    home: Path = Path("/var/lib/jenkins")
    aux_dir: Path = Path("/opt/jenkins")
    war_path: Path = Path("/usr/lib/jenkins/jenkins.war")
    cli_jar_dir: Path = Path("/opt/jenkins")
    webroot: Path = Path("/var/cache/jenkins/war")
    sysconfig_path: Path = Path("/etc/sysconfig/jenkins")
    templates_dir: Path | None = None

    # Process
    java_bin: str = "java"
    java_options: str = "-Djava.awt.headless=true"
    user: str = "jenkins"
    file_owner: str | None = "jenkins"
    service_name: str = "jenkins"
    container_mode: bool = False
    debug_level: int = 5
    handler_max: int = 100
    handler_idle: int = 20

    # Plugins
    updates_url: str = DEFAULT_UPDATES_URL
    plugins: dict[str, str] = field(default_factory=dict)

    # Administrator
    admin_username: str = "admin"
    admin_password: str = ""

    # Retry budgets
    conn_retries: int = 60
    conn_delay: float = 5.0
    job_retries: int = 50
    job_delay: float = 5.0
    job_timeout: float = 300.0

    # Derived artifacts
    agent_to_master_security: bool = True
    wizard_state: str = "2.0"
    template_vars: dict[str, Any] = field(default_factory=dict)

    _sources: dict[str, str] = field(default_factory=dict, repr=False)

    @property
    def base_url(self) -> str:
        """Root URL the administrative client talks to."""
        return f"http://{self.listen_address}:{self.port}/"

    @property
    def cli_jar(self) -> Path:
        return self.cli_jar_dir / "jenkins-cli.jar"

    @property
    def plugins_dir(self) -> Path:
        return self.home / "plugins"

    @property
    def admin_credentials(self) -> list[str]:
        """Arguments passed to `login` and to the token script."""
        return ["--username", self.admin_username, "--password", self.admin_password]

    def get_source(self, key: str) -> str:
        """Get the source of a config value."""
        return self._sources.get(key, "default")

    def template_context(self, **extra: Any) -> dict[str, Any]:
        """Variables exposed to every rendered template."""
        context: dict[str, Any] = {
            f.name: getattr(self, f.name) for f in fields(self) if not f.name.startswith("_")
        }
        context.pop("template_vars")
        context["base_url"] = self.base_url
        context.update(self.template_vars)
        context.update(extra)
        return context

    def public_items(self) -> list[tuple[str, Any]]:
        """(name, value) pairs with secrets masked."""
        items = []
        for f in fields(self):
            if f.name.startswith("_"):
                continue
            value = getattr(self, f.name)
            if f.name == "admin_password" and value:
                value = "********"
            items.append((f.name, value))
        return items


_FIELD_TYPES = {f.name: f for f in fields(BootstrapConfig) if not f.name.startswith("_")}


def _coerce(key: str, value: Any) -> Any:
    """Convert a raw file/env value to the type of the matching field."""
    default = getattr(BootstrapConfig(), key)
    try:
        if key == "plugins":
            if not isinstance(value, dict):
                raise ConfigError(f"'plugins' must be a mapping of id to version, got {value!r}")
            # YAML reads `git: 4.2` as a float
            return {str(k): str(v) for k, v in value.items()}
        if key == "template_vars":
            if not isinstance(value, dict):
                raise ConfigError(f"'template_vars' must be a mapping, got {value!r}")
            return dict(value)
        if key in ("templates_dir",):
            return Path(value) if value else None
        if key == "file_owner":
            return str(value) if value else None
        if isinstance(default, bool):
            if isinstance(value, str):
                return value.strip().lower() in ("1", "true", "yes", "on")
            return bool(value)
        if isinstance(default, int):
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, Path):
            return Path(value)
        return str(value)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid value for '{key}': {value!r} ({e})") from e


def load_config(
    path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> BootstrapConfig:
    """Load bootstrap configuration.

    Precedence (highest to lowest):
    1. Overrides (CLI flags)
    2. Environment variables (JENKINS_BOOTSTRAP_<FIELD>)
    3. Config file
    4. Defaults

    Args:
        path: Config file path. A missing default file is not an error;
              a missing explicit file is.
        overrides: Values from CLI flags. None values are ignored.

    Returns:
        BootstrapConfig with values and sources

    Raises:
        ConfigError: if the file cannot be parsed or a value is invalid
    """
    config = BootstrapConfig()
    sources: dict[str, str] = {}

    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    if config_path.exists():
        try:
            with open(config_path) as f:
                file_config = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Cannot parse {config_path}: {e}") from e
        if not isinstance(file_config, dict):
            raise ConfigError(f"{config_path} must contain a mapping")

        for key, value in file_config.items():
            if key not in _FIELD_TYPES:
                raise ConfigError(f"Unknown setting '{key}' in {config_path}")
            setattr(config, key, _coerce(key, value))
            sources[key] = "config file"
    elif path:
        raise ConfigError(f"Config file not found: {config_path}")

    for key in _FIELD_TYPES:
        if key in ("plugins", "template_vars"):
            continue
        env_value = os.environ.get(f"{ENV_PREFIX}{key.upper()}")
        if env_value:
            setattr(config, key, _coerce(key, env_value))
            sources[key] = "environment"

    for key, value in (overrides or {}).items():
        if value is None:
            continue
        if key not in _FIELD_TYPES:
            raise ConfigError(f"Unknown setting '{key}'")
        setattr(config, key, _coerce(key, value))
        sources[key] = "command line"

    if config.conn_retries < 0 or config.job_retries < 0:
        raise ConfigError("Retry counts must not be negative")

    config._sources = sources
    return config
