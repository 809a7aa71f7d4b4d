from __future__ import annotations

import logging

from ..lib.docker import add_user_to_group, user_in_group
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)

DOCKER_GROUP = "docker"


class DockerGroupStep:
    """Convenience only: without it docker still works through sudo."""

    name = "docker_group"
    policy = FailurePolicy.WARN

    def is_present(self, ctx: StepContext) -> bool:
        return ctx.cfg.user == "root" or user_in_group(ctx.cfg.user, DOCKER_GROUP)

    def apply(self, ctx: StepContext) -> None:
        add_user_to_group(ctx.cfg.user, DOCKER_GROUP, timeout=ctx.timeout, dry_run=ctx.dry_run)
        logger.info("Docker group added: run 'newgrp docker' or re-login for it to take effect")

    def verify(self, ctx: StepContext) -> bool:
        return user_in_group(ctx.cfg.user, DOCKER_GROUP)
