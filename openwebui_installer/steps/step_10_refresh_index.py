from __future__ import annotations

import logging

from ..lib.pkg import apt_lists_age, apt_update, apt_upgrade
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class RefreshPackageIndexStep:
    name = "refresh_package_index"
    policy = FailurePolicy.FATAL

    def is_present(self, ctx: StepContext) -> bool:
        age = apt_lists_age()
        max_age = ctx.cfg.apt_refresh_max_age
        if age is None or max_age <= 0:
            return False
        logger.debug("Package index age %.0fs (max %ss)", age, max_age)
        return age < max_age

    def apply(self, ctx: StepContext) -> None:
        apt_update(timeout=ctx.timeout, dry_run=ctx.dry_run)
        apt_upgrade(timeout=ctx.timeout, dry_run=ctx.dry_run)

    def verify(self, ctx: StepContext) -> bool:
        return True
