from __future__ import annotations

import logging

from ..lib.command import privileged, run_cmd
from ..lib.net import http_status
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class LaunchWebUIStep:
    """Run start.sh once: compose down/up, fixed wait, one HTTP check."""

    name = "launch_webui"
    policy = FailurePolicy.WARN

    def is_present(self, ctx: StepContext) -> bool:
        return http_status(ctx.cfg.webui_url) == 200

    def apply(self, ctx: StepContext) -> None:
        cfg = ctx.cfg
        # The docker group only applies after re-login, so go through sudo.
        run_cmd(
            privileged(["bash", str(cfg.start_script_path)]),
            cwd=str(cfg.home),
            timeout=ctx.timeout,
            dry_run=ctx.dry_run,
        )

    def verify(self, ctx: StepContext) -> bool:
        return http_status(ctx.cfg.webui_url) == 200
