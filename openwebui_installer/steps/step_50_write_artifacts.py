from __future__ import annotations

import logging
from typing import Callable, List

from ..artifacts import GeneratedArtifact
from ..config import InstallerConfig
from ..pipeline import FailurePolicy, StepContext

logger = logging.getLogger(__name__)


class WriteArtifactsStep:
    """Write a group of generated files; present when all are byte-identical."""

    policy = FailurePolicy.FATAL

    def __init__(self, name: str, build: Callable[[InstallerConfig], List[GeneratedArtifact]]) -> None:
        self.name = name
        self._build = build

    def is_present(self, ctx: StepContext) -> bool:
        return all(a.is_current() for a in self._build(ctx.cfg))

    def apply(self, ctx: StepContext) -> None:
        for artifact in self._build(ctx.cfg):
            artifact.write(dry_run=ctx.dry_run)

    def verify(self, ctx: StepContext) -> bool:
        return all(a.is_current() for a in self._build(ctx.cfg))
