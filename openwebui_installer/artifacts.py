"""Generated files: the compose descriptor, helper scripts and the guide.

Everything here is a pure function of InstallerConfig. The same config
always renders the same bytes, and writing an artifact replaces the file
wholesale.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from jinja2 import Environment, PackageLoader, StrictUndefined

from .config import InstallerConfig
from .lib.command import give_to_user

logger = logging.getLogger(__name__)

COMPOSE_HEADER = "# Generated by openwebui-installer. Re-running the installer overwrites this file.\n"
HOST_GATEWAY_ALIAS = "host.docker.internal:host-gateway"
DATA_DIR = "/app/backend/data"


@dataclass(frozen=True)
class ComposeService:
    """The chat-interface service as it appears in docker-compose.yml."""

    name: str
    image: str
    container_name: str
    port_mapping: str
    volume_name: str
    environment: Dict[str, str]
    restart: str = "unless-stopped"
    extra_hosts: List[str] = field(default_factory=lambda: [HOST_GATEWAY_ALIAS])
    healthcheck: Optional[Dict[str, Any]] = None

    @classmethod
    def from_config(cls, cfg: InstallerConfig) -> "ComposeService":
        health = None
        if cfg.healthcheck:
            health = {
                "test": ["CMD", "curl", "-fsS", f"http://localhost:{cfg.container_port}/health"],
                "interval": "30s",
                "timeout": "5s",
                "retries": 5,
                "start_period": "60s",
            }
        return cls(
            name=cfg.container_name,
            image=cfg.webui_image,
            container_name=cfg.container_name,
            port_mapping=cfg.port_mapping,
            volume_name=cfg.volume_name,
            environment={cfg.runner_env_var: cfg.runner_base_url},
            restart=cfg.restart_policy,
            healthcheck=health,
        )

    def to_compose(self) -> Dict[str, Any]:
        service: Dict[str, Any] = {
            "image": self.image,
            "container_name": self.container_name,
            "ports": [self.port_mapping],
            "volumes": [f"{self.volume_name}:{DATA_DIR}"],
            "extra_hosts": list(self.extra_hosts),
            "environment": dict(self.environment),
            "restart": self.restart,
        }
        if self.healthcheck:
            service["healthcheck"] = dict(self.healthcheck)
        return {
            "services": {self.name: service},
            # Explicit name: compose would otherwise prefix the project name,
            # and teardown must hit exactly this volume.
            "volumes": {self.volume_name: {"name": self.volume_name}},
        }


def render_compose(cfg: InstallerConfig) -> str:
    data = ComposeService.from_config(cfg).to_compose()
    return COMPOSE_HEADER + yaml.safe_dump(data, default_flow_style=False, sort_keys=False)


_env: Optional[Environment] = None


def _template_env() -> Environment:
    global _env
    if _env is None:
        _env = Environment(
            loader=PackageLoader("openwebui_installer", "templates"),
            autoescape=False,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
            trim_blocks=True,
            lstrip_blocks=True,
        )
    return _env


def render_template(name: str, **params: Any) -> str:
    return _template_env().get_template(name).render(**params)


def template_params(cfg: InstallerConfig) -> Dict[str, Any]:
    return {
        "model": cfg.model,
        "home": str(cfg.home),
        "compose_file": cfg.compose_path.name,
        "container_name": cfg.container_name,
        "volume_name": cfg.volume_name,
        "host_port": cfg.host_port,
        "webui_url": cfg.webui_url,
        "runner_port": cfg.runner_port,
        "runner_local_url": cfg.runner_local_url,
        "launch_wait": cfg.launch_wait,
    }


@dataclass(frozen=True)
class GeneratedArtifact:
    path: Path
    content: str
    executable: bool = False
    owner: Optional[str] = None

    @property
    def mode(self) -> int:
        return 0o755 if self.executable else 0o644

    def is_current(self) -> bool:
        """True when the file on disk already matches byte for byte."""
        try:
            if self.path.read_bytes() != self.content.encode("utf-8"):
                return False
            return (self.path.stat().st_mode & 0o777) == self.mode
        except FileNotFoundError:
            return False

    def write(self, *, dry_run: bool = False) -> None:
        if dry_run:
            logger.info("Would write %s", self.path)
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Write to a sibling and rename so a failed write never leaves a
        # truncated script behind.
        tmp = self.path.with_name(f".{self.path.name}.tmp")
        try:
            tmp.write_bytes(self.content.encode("utf-8"))
            os.chmod(tmp, self.mode)
            give_to_user(tmp, self.owner)
            os.replace(tmp, self.path)
        except BaseException:
            tmp.unlink(missing_ok=True)
            raise
        logger.info("Wrote %s (%d bytes, mode %o)", self.path, len(self.content), self.mode)


def compose_artifact(cfg: InstallerConfig) -> GeneratedArtifact:
    return GeneratedArtifact(path=cfg.compose_path, content=render_compose(cfg), owner=cfg.user)


def helper_artifacts(cfg: InstallerConfig) -> List[GeneratedArtifact]:
    params = template_params(cfg)
    return [
        GeneratedArtifact(
            path=cfg.start_script_path,
            content=render_template("start.sh.j2", **params),
            executable=True,
            owner=cfg.user,
        ),
        GeneratedArtifact(
            path=cfg.verify_script_path,
            content=render_template("verify.sh.j2", **params),
            executable=True,
            owner=cfg.user,
        ),
    ]


def readme_artifact(cfg: InstallerConfig) -> GeneratedArtifact:
    return GeneratedArtifact(
        path=cfg.readme_path,
        content=render_template("README_AI.md.j2", **template_params(cfg)),
        owner=cfg.user,
    )


def build_artifacts(cfg: InstallerConfig) -> List[GeneratedArtifact]:
    return [compose_artifact(cfg), *helper_artifacts(cfg), readme_artifact(cfg)]
