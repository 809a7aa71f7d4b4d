from __future__ import annotations

import logging

from ..lib.docker import DOCKER_PACKAGES, add_docker_apt_repo, docker_available, enable_service
from ..lib.pkg import apt_install, apt_update, distro_codename, dpkg_architecture
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class DockerEngineStep:
    name = "docker_engine"
    policy = FailurePolicy.FATAL

    def is_present(self, ctx: StepContext) -> bool:
        return docker_available()

    def apply(self, ctx: StepContext) -> None:
        arch = dpkg_architecture()
        codename = distro_codename()
        add_docker_apt_repo(arch=arch, codename=codename, timeout=ctx.timeout, dry_run=ctx.dry_run)
        apt_update(timeout=ctx.timeout, dry_run=ctx.dry_run)
        apt_install(DOCKER_PACKAGES, with_recommends=True, timeout=ctx.timeout, dry_run=ctx.dry_run)
        enable_service("docker", timeout=ctx.timeout, dry_run=ctx.dry_run)

    def verify(self, ctx: StepContext) -> bool:
        return docker_available()
