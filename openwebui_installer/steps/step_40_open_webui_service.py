from __future__ import annotations

import logging

from ..artifacts import compose_artifact
from ..lib.docker import container_exists, remove_container, remove_volume, volume_exists
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class OpenWebUIServiceStep:
    """Reset the managed container/volume and write docker-compose.yml.

    Only the container and volume named in the config are ever touched;
    they belong to this installer. The container itself is created by
    start.sh.
    """

    name = "open_webui_service"
    policy = FailurePolicy.FATAL

    def is_present(self, ctx: StepContext) -> bool:
        cfg = ctx.cfg
        if not compose_artifact(cfg).is_current():
            return False
        return not container_exists(cfg.container_name) and not volume_exists(cfg.volume_name)

    def apply(self, ctx: StepContext) -> None:
        cfg = ctx.cfg
        if container_exists(cfg.container_name):
            logger.info("Removing previous container %s", cfg.container_name)
            remove_container(cfg.container_name, timeout=ctx.timeout, dry_run=ctx.dry_run)
        if volume_exists(cfg.volume_name):
            logger.info("Removing previous volume %s", cfg.volume_name)
            remove_volume(cfg.volume_name, timeout=ctx.timeout, dry_run=ctx.dry_run)

        compose_artifact(cfg).write(dry_run=ctx.dry_run)

    def verify(self, ctx: StepContext) -> bool:
        cfg = ctx.cfg
        return compose_artifact(cfg).is_current() and not container_exists(cfg.container_name)
