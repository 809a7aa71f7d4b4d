from __future__ import annotations

import logging
from dataclasses import replace
from typing import List

import pytest

from openwebui_installer.lib.command import CommandError
from openwebui_installer.pipeline import (
    FailurePolicy,
    StepContext,
    StepError,
    StepStatus,
    run_pipeline,
)


class FakeStep:
    def __init__(
        self,
        name: str,
        journal: List[str],
        *,
        policy: FailurePolicy = FailurePolicy.FATAL,
        present: bool = False,
        present_error: Exception | None = None,
        fail: Exception | None = None,
        post_ok: bool = True,
    ) -> None:
        self.name = name
        self.policy = policy
        self.present = present
        self.present_error = present_error
        self.fail = fail
        self.post_ok = post_ok
        self.journal = journal

    def is_present(self, ctx: StepContext) -> bool:
        if self.present_error is not None:
            raise self.present_error
        return self.present

    def apply(self, ctx: StepContext) -> None:
        self.journal.append(self.name)
        if self.fail is not None:
            raise self.fail
        self.present = True

    def verify(self, ctx: StepContext) -> bool:
        return self.post_ok


@pytest.fixture
def ctx(cfg) -> StepContext:
    return StepContext(cfg=cfg)


def test_all_steps_run_in_order(ctx):
    journal: List[str] = []
    steps = [FakeStep(n, journal) for n in ("a", "b", "c")]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.ok
    assert result.status == "success"
    assert journal == ["a", "b", "c"]
    assert result.names(StepStatus.COMPLETED) == ["a", "b", "c"]


def test_present_step_is_not_applied(ctx, caplog):
    caplog.set_level(logging.INFO)
    journal: List[str] = []
    steps = [FakeStep("docker_engine", journal, present=True), FakeStep("b", journal)]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.ok
    assert journal == ["b"]
    assert result.names(StepStatus.SKIPPED) == ["docker_engine"]
    assert "docker_engine already present" in caplog.messages


def test_fatal_failure_stops_the_run(ctx, caplog):
    journal: List[str] = []
    steps = [
        FakeStep("a", journal),
        FakeStep("b", journal, fail=CommandError(["apt-get", "install"], 100, "E: boom")),
        FakeStep("c", journal),
    ]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert not result.ok
    assert result.failed_step == "b"
    assert result.status == "failed-at-step(b)"
    assert journal == ["a", "b"]
    assert [r.status for r in result.results] == [StepStatus.COMPLETED, StepStatus.FAILED]
    assert any(r.levelname == "ERROR" and "b failed" in r.getMessage() for r in caplog.records)


def test_warn_failure_continues(ctx, caplog):
    journal: List[str] = []
    steps = [
        FakeStep("docker_group", journal, policy=FailurePolicy.WARN, fail=StepError("usermod failed")),
        FakeStep("next", journal),
    ]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.ok
    assert journal == ["docker_group", "next"]
    assert result.names(StepStatus.WARNED) == ["docker_group"]
    assert result.results[0].detail == "usermod failed"
    assert any(r.levelno == logging.WARNING for r in caplog.records)


def test_post_condition_failure_is_a_failure(ctx):
    journal: List[str] = []
    steps = [FakeStep("model_runner", journal, post_ok=False), FakeStep("after", journal)]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.failed_step == "model_runner"
    assert result.results[0].detail == "post-condition not met"
    assert journal == ["model_runner"]


def test_dry_run_skips_post_condition(cfg):
    ctx = StepContext(cfg=replace(cfg, dry_run=True))
    journal: List[str] = []

    result = run_pipeline(steps=[FakeStep("a", journal, post_ok=False)], ctx=ctx)

    assert result.ok


def test_unexpected_exceptions_propagate(ctx):
    journal: List[str] = []
    with pytest.raises(ZeroDivisionError):
        run_pipeline(steps=[FakeStep("a", journal, fail=ZeroDivisionError())], ctx=ctx)


def test_second_run_only_reports_present(ctx, caplog):
    journal: List[str] = []
    steps = [FakeStep(n, journal) for n in ("a", "b")]
    assert run_pipeline(steps=steps, ctx=ctx).ok

    caplog.clear()
    caplog.set_level(logging.INFO)
    second = run_pipeline(steps=steps, ctx=ctx)

    assert second.ok
    assert journal == ["a", "b"]
    step_lines = [m for m in caplog.messages if not m.startswith("Run finished")]
    assert step_lines == ["a already present", "b already present"]


def test_broken_presence_check_is_a_step_failure(ctx, caplog):
    journal: List[str] = []
    steps = [
        FakeStep("a", journal),
        FakeStep("open_webui_service", journal, present_error=IsADirectoryError(21, "Is a directory")),
        FakeStep("c", journal),
    ]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.status == "failed-at-step(open_webui_service)"
    assert journal == ["a"]
    assert result.results[-1].detail.startswith("presence check failed")
    assert any(r.levelname == "ERROR" and "open_webui_service failed" in r.getMessage() for r in caplog.records)


def test_broken_presence_check_follows_warn_policy(ctx):
    journal: List[str] = []
    steps = [
        FakeStep(
            "launch_webui",
            journal,
            policy=FailurePolicy.WARN,
            present_error=CommandError(["docker", "inspect"], -1, "timed out"),
        ),
        FakeStep("after", journal),
    ]

    result = run_pipeline(steps=steps, ctx=ctx)

    assert result.ok
    assert result.names(StepStatus.WARNED) == ["launch_webui"]
    assert journal == ["after"]
