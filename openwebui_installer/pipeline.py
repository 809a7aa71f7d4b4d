from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import List, Optional, Protocol, Sequence, Tuple

from .config import InstallerConfig
from .lib.command import CommandError

logger = logging.getLogger(__name__)


class StepError(RuntimeError):
    pass


class FailurePolicy(str, Enum):
    FATAL = "fatal"
    WARN = "warn"


class StepStatus(str, Enum):
    SKIPPED = "skipped"
    COMPLETED = "completed"
    WARNED = "warned"
    FAILED = "failed"


@dataclass(frozen=True)
class StepContext:
    cfg: InstallerConfig

    @property
    def dry_run(self) -> bool:
        return self.cfg.dry_run

    @property
    def timeout(self) -> float:
        return float(self.cfg.command_timeout)


class Step(Protocol):
    """A single idempotent step."""

    name: str
    policy: FailurePolicy

    def is_present(self, ctx: StepContext) -> bool:
        ...

    def apply(self, ctx: StepContext) -> None:
        ...

    def verify(self, ctx: StepContext) -> bool:
        ...


@dataclass(frozen=True)
class StepResult:
    name: str
    status: StepStatus
    detail: str = ""


@dataclass
class RunResult:
    started_at: datetime
    log_path: Optional[str] = None
    results: List[StepResult] = field(default_factory=list)
    failed_step: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.failed_step is None

    @property
    def status(self) -> str:
        if self.failed_step is None:
            return "success"
        return f"failed-at-step({self.failed_step})"

    def names(self, status: StepStatus) -> List[str]:
        return [r.name for r in self.results if r.status == status]


def _describe(err: Exception) -> str:
    if isinstance(err, CommandError):
        return f"{err} (see log for output)"
    return str(err) or type(err).__name__


def _check_present(step: Step, ctx: StepContext) -> Tuple[bool, Optional[str]]:
    """Evaluate the presence check. A check that cannot run is a failed step."""

    try:
        return step.is_present(ctx), None
    except (CommandError, StepError, OSError) as e:
        return False, f"presence check failed: {_describe(e)}"


def _attempt(step: Step, ctx: StepContext) -> Optional[str]:
    """Apply a step and check its post-condition. Returns a failure reason or None."""

    try:
        step.apply(ctx)
    except (CommandError, StepError, OSError) as e:
        return _describe(e)

    if ctx.dry_run:
        return None

    try:
        if not step.verify(ctx):
            return "post-condition not met"
    except (CommandError, StepError, OSError) as e:
        return f"post-condition check failed: {_describe(e)}"
    return None


def run_pipeline(
    *,
    steps: Sequence[Step],
    ctx: StepContext,
    started_at: Optional[datetime] = None,
    log_path: Optional[str] = None,
) -> RunResult:
    """Run steps in order: skip what is present, stop at the first fatal failure."""

    result = RunResult(started_at=started_at or datetime.now(), log_path=log_path)

    for step in steps:
        present, reason = _check_present(step, ctx)
        if present:
            logger.info("%s already present", step.name)
            result.results.append(StepResult(step.name, StepStatus.SKIPPED))
            continue

        if reason is None:
            logger.info("%s ...", step.name)
            reason = _attempt(step, ctx)

        if reason is None:
            logger.info("%s complete", step.name)
            result.results.append(StepResult(step.name, StepStatus.COMPLETED))
            continue

        if step.policy == FailurePolicy.WARN:
            logger.warning("%s failed (continuing): %s", step.name, reason)
            result.results.append(StepResult(step.name, StepStatus.WARNED, reason))
            continue

        logger.error("%s failed: %s", step.name, reason)
        result.results.append(StepResult(step.name, StepStatus.FAILED, reason))
        result.failed_step = step.name
        break

    logger.info("Run finished: %s", result.status)
    return result
