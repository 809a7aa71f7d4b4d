from __future__ import annotations

import logging

from ..lib.pkg import apt_install, missing_packages
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class BasePackagesStep:
    name = "base_packages"
    policy = FailurePolicy.FATAL

    def is_present(self, ctx: StepContext) -> bool:
        return not missing_packages(ctx.cfg.packages)

    def apply(self, ctx: StepContext) -> None:
        missing = missing_packages(ctx.cfg.packages)
        logger.info("Installing %s", " ".join(missing))
        apt_install(missing, timeout=ctx.timeout, dry_run=ctx.dry_run)

    def verify(self, ctx: StepContext) -> bool:
        missing = missing_packages(ctx.cfg.packages)
        if missing:
            logger.error("Still missing after install: %s", " ".join(missing))
        return not missing
