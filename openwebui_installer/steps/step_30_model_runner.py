from __future__ import annotations

import logging

from ..lib.lmstudio import install_runner, runner_bin_dirs, runner_installed
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class ModelRunnerStep:
    """LM Studio and its lms CLI.

    The vendor script is sometimes flaky about where it puts the CLI, so
    whether a failure here stops the run is a configuration choice.
    """

    name = "model_runner"

    def __init__(self, policy: FailurePolicy = FailurePolicy.FATAL) -> None:
        self.policy = policy

    def is_present(self, ctx: StepContext) -> bool:
        return runner_installed(ctx.cfg.home)

    def apply(self, ctx: StepContext) -> None:
        install_runner(user=ctx.cfg.user, timeout=ctx.timeout, dry_run=ctx.dry_run)

    def verify(self, ctx: StepContext) -> bool:
        if runner_installed(ctx.cfg.home):
            return True
        logger.warning(
            "'lms' not found after install (looked on PATH and in %s); may need re-login",
            ", ".join(str(d) for d in runner_bin_dirs(ctx.cfg.home)),
        )
        return False
