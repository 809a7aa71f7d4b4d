from __future__ import annotations

import getpass
import logging
import os
import pwd
from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

POLICIES = ("fatal", "warn")

BASE_PACKAGES: Tuple[str, ...] = (
    "curl",
    "git",
    "jq",
    "net-tools",
    "ca-certificates",
    "software-properties-common",
    "apt-transport-https",
    "lsb-release",
)

# Runtime libraries for the LM Studio AppImage (GUI build). The CLI-only
# runner does not need them.
DESKTOP_PACKAGES: Tuple[str, ...] = (
    "libfuse2",
    "libgtk-3-0",
    "libnss3",
    "libasound2",
    "libgbm1",
    "libxss1",
)


class ConfigError(ValueError):
    pass


def _invoking_user() -> Tuple[str, str]:
    """Return (user, home) of the person who started the installer.

    Under sudo, HOME points at /root; the generated files belong to the
    user who called sudo.
    """
    sudo_user = os.environ.get("SUDO_USER")
    if sudo_user and sudo_user != "root":
        try:
            return sudo_user, pwd.getpwnam(sudo_user).pw_dir
        except KeyError:
            pass
    return getpass.getuser(), str(Path.home())


@dataclass(frozen=True)
class InstallerConfig:
    user: str
    home_dir: str
    model: str = "mistralai/Mistral-7B-Instruct-v0.3"
    webui_image: str = "ghcr.io/open-webui/open-webui:main"
    container_name: str = "open-webui"
    volume_name: str = "open-webui-data"
    host_port: int = 3000
    container_port: int = 8080
    runner_port: int = 1234
    runner_env_var: str = "OPENAI_API_BASE_URL"
    restart_policy: str = "unless-stopped"
    healthcheck: bool = True
    base_packages: Tuple[str, ...] = BASE_PACKAGES
    desktop_libraries: bool = False
    model_runner_policy: str = "fatal"
    apt_refresh_max_age: int = 3600
    command_timeout: int = 1800
    launch: bool = False
    launch_wait: int = 25
    log_dir: Optional[str] = None
    dry_run: bool = False
    extra: Dict[str, Any] = field(default_factory=dict, compare=False)

    @property
    def home(self) -> Path:
        return Path(self.home_dir)

    @property
    def logs_dir(self) -> Path:
        return Path(self.log_dir) if self.log_dir else self.home / "logs"

    @property
    def compose_path(self) -> Path:
        return self.home / "docker-compose.yml"

    @property
    def start_script_path(self) -> Path:
        return self.home / "start.sh"

    @property
    def verify_script_path(self) -> Path:
        return self.home / "verify.sh"

    @property
    def readme_path(self) -> Path:
        return self.home / "README_AI.md"

    @property
    def port_mapping(self) -> str:
        return f"{self.host_port}:{self.container_port}"

    @property
    def runner_base_url(self) -> str:
        """Runner API as seen from inside the container."""
        return f"http://host.docker.internal:{self.runner_port}/v1"

    @property
    def runner_local_url(self) -> str:
        return f"http://localhost:{self.runner_port}/v1"

    @property
    def webui_url(self) -> str:
        return f"http://localhost:{self.host_port}"

    @property
    def packages(self) -> Tuple[str, ...]:
        if self.desktop_libraries:
            return tuple(self.base_packages) + DESKTOP_PACKAGES
        return tuple(self.base_packages)

    def log_path(self, started_at: datetime) -> Path:
        return self.logs_dir / f"openwebui-setup_{started_at.strftime('%Y%m%d_%H%M')}.log"


_INT_FIELDS = {
    "host_port",
    "container_port",
    "runner_port",
    "apt_refresh_max_age",
    "command_timeout",
    "launch_wait",
}
_BOOL_FIELDS = {"healthcheck", "desktop_libraries", "launch", "dry_run"}
_TRUE_WORDS = {"true", "yes", "on", "1"}
_FALSE_WORDS = {"false", "no", "off", "0"}


def _as_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise ConfigError(f"{key} must be true or false, got {value!r}")


def _validate(cfg: InstallerConfig) -> None:
    if cfg.model_runner_policy not in POLICIES:
        raise ConfigError(
            f"model_runner_policy must be one of {', '.join(POLICIES)}, got {cfg.model_runner_policy!r}"
        )
    for name in ("host_port", "container_port", "runner_port"):
        port = getattr(cfg, name)
        if not 0 < port < 65536:
            raise ConfigError(f"{name} out of range: {port}")
    for name in ("container_name", "volume_name", "webui_image", "user", "home_dir"):
        if not str(getattr(cfg, name) or "").strip():
            raise ConfigError(f"{name} must not be empty")
    for name in ("apt_refresh_max_age", "command_timeout", "launch_wait"):
        if getattr(cfg, name) < 0:
            raise ConfigError(f"{name} must not be negative")
    if not cfg.base_packages:
        raise ConfigError("base_packages must list at least one package")


def _coerce(raw: Mapping[str, Any]) -> Dict[str, Any]:
    known = {f.name for f in fields(InstallerConfig)}
    values: Dict[str, Any] = {}
    extra: Dict[str, Any] = {}
    for key, value in raw.items():
        if value is None:
            continue
        if key not in known:
            logger.warning("Unknown config key %r ignored", key)
            extra[key] = value
            continue
        try:
            if key in _INT_FIELDS:
                value = int(value)
            elif key in _BOOL_FIELDS:
                value = _as_bool(key, value)
            elif key == "base_packages":
                if isinstance(value, str) or not isinstance(value, (list, tuple)):
                    raise ConfigError("base_packages must be a list of package names")
                value = tuple(str(p).strip() for p in value if str(p).strip())
            else:
                value = str(value)
        except (TypeError, ValueError) as e:
            if isinstance(e, ConfigError):
                raise
            raise ConfigError(f"Invalid value for {key}: {value!r}") from e
        values[key] = value
    if extra:
        values["extra"] = extra
    return values


def load_config(
    path: Optional[str] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> InstallerConfig:
    """Build the configuration once: defaults, then YAML file, then CLI overrides."""

    raw: Dict[str, Any] = {}
    if path:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config file not found: {path}")
        if p.suffix.lower() not in {".yaml", ".yml"}:
            raise ConfigError("config file must be YAML")

        import yaml

        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{path} must contain a mapping/object")
        raw.update(data)

    raw.update({k: v for k, v in (overrides or {}).items() if v is not None})

    user, home = _invoking_user()
    cfg = InstallerConfig(user=user, home_dir=home)
    cfg = replace(cfg, **_coerce(raw))
    _validate(cfg)
    return cfg
