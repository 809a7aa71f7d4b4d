from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from typing import Any, Dict, List, Optional

from .artifacts import build_artifacts, helper_artifacts, readme_artifact
from .config import ConfigError, InstallerConfig, load_config
from .lib.docker import container_state, docker_version
from .lib.lmstudio import runner_installed
from .lib.net import http_status, list_models
from .logging_utils import configure_logging
from .pipeline import FailurePolicy, RunResult, Step, StepContext, run_pipeline
from .steps import (
    BasePackagesStep,
    DockerEngineStep,
    DockerGroupStep,
    LaunchWebUIStep,
    ModelRunnerStep,
    OpenWebUIServiceStep,
    RefreshPackageIndexStep,
    WriteArtifactsStep,
)

logger = logging.getLogger(__name__)


def build_steps(cfg: InstallerConfig) -> List[Step]:
    steps: List[Step] = [
        RefreshPackageIndexStep(),
        BasePackagesStep(),
        DockerEngineStep(),
        DockerGroupStep(),
        ModelRunnerStep(policy=FailurePolicy(cfg.model_runner_policy)),
        OpenWebUIServiceStep(),
        WriteArtifactsStep("helper_scripts", helper_artifacts),
        WriteArtifactsStep("instructions", lambda c: [readme_artifact(c)]),
    ]
    if cfg.launch:
        steps.append(LaunchWebUIStep())
    return steps


def run(
    cfg: InstallerConfig,
    *,
    log_path: Optional[str] = None,
    steps: Optional[List[Step]] = None,
) -> RunResult:
    """Run the installer sequence once."""

    started_at = datetime.now()
    actual_log_path = configure_logging(log_path=log_path or str(cfg.log_path(started_at)), owner=cfg.user)
    logger.info("Started: %s (user=%s home=%s dry_run=%s)", started_at.isoformat(), cfg.user, cfg.home, cfg.dry_run)

    return run_pipeline(
        steps=steps if steps is not None else build_steps(cfg),
        ctx=StepContext(cfg=cfg),
        started_at=started_at,
        log_path=actual_log_path,
    )


def next_steps_text(cfg: InstallerConfig, log_path: Optional[str]) -> str:
    lines = [
        "",
        "=============================================",
        "            Setup complete!",
        "=============================================",
        "",
        "Next steps:",
        "  1. newgrp docker    (or log out + back in)",
        f"  2. Start LM Studio -> download/load '{cfg.model}' -> Start Server",
        f"  3. {cfg.start_script_path}",
        "",
        f"Guide: {cfg.readme_path}",
        f"Log:   {log_path}",
        "",
    ]
    return "\n".join(lines)


def render(cfg: InstallerConfig) -> List[str]:
    """Write every generated artifact, nothing else."""

    written = []
    for artifact in build_artifacts(cfg):
        artifact.write(dry_run=cfg.dry_run)
        written.append(str(artifact.path))
    return written


def diagnose(cfg: InstallerConfig) -> Dict[str, Any]:
    """Read-only status of the stack. Never changes anything."""

    models = list_models(cfg.runner_local_url)
    return {
        "docker": docker_version(),
        "container": container_state(cfg.container_name),
        "webui_http": http_status(cfg.webui_url),
        "runner_installed": runner_installed(cfg.home),
        "runner_api": models is not None,
        "models": models or [],
    }


def _print_diagnostics(cfg: InstallerConfig, diag: Dict[str, Any]) -> None:
    print(f"Docker:      {diag['docker'] or 'not installed'}")
    print(f"Container:   {cfg.container_name} {diag['container'] or 'not found'}")
    print(f"Open WebUI:  {cfg.webui_url} -> {diag['webui_http'] or 'unreachable'}")
    print(f"LM Studio:   {'installed' if diag['runner_installed'] else 'not found'}")
    if diag["runner_api"]:
        print(f"Runner API:  {cfg.runner_local_url} up, models: {', '.join(diag['models']) or '(none loaded)'}")
    else:
        print(f"Runner API:  {cfg.runner_local_url} not reachable (Local Server tab -> Start Server)")


def _overrides(args: argparse.Namespace) -> Dict[str, Any]:
    o: Dict[str, Any] = {}
    if getattr(args, "dry_run", False):
        o["dry_run"] = True
    if getattr(args, "launch", False):
        o["launch"] = True
    if getattr(args, "desktop_libraries", False):
        o["desktop_libraries"] = True
    if getattr(args, "model_runner_policy", None):
        o["model_runner_policy"] = args.model_runner_policy
    if getattr(args, "model", None):
        o["model"] = args.model
    return o


def cmd_install(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, _overrides(args))
    result = run(cfg, log_path=args.log)
    if not result.ok:
        print(f"[!] ERROR: {result.failed_step} failed. Log: {result.log_path}", file=sys.stderr)
        return 1
    print(next_steps_text(cfg, result.log_path))
    return 0


def cmd_render(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, _overrides(args))
    for path in render(cfg):
        print(path)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, _overrides(args))
    _print_diagnostics(cfg, diagnose(cfg))
    return 0


def cmd_steps(args: argparse.Namespace) -> int:
    cfg = load_config(args.config, _overrides(args))
    for i, step in enumerate(build_steps(cfg), start=1):
        print(f"{i:2d}. {step.name} [{step.policy.value}]")
    return 0


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="openwebui-installer")
    p.add_argument("--config", default=None, help="YAML config file (optional)")

    # --config is also accepted after the subcommand.
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config", default=argparse.SUPPRESS, help="YAML config file (optional)")

    sub = p.add_subparsers(dest="subcmd", required=True)

    sp = sub.add_parser("install", parents=[common], help="Install Docker, LM Studio and Open WebUI")
    sp.add_argument("--log", default=None, help="Log file (default: ~/logs/openwebui-setup_<timestamp>.log)")
    sp.add_argument("--dry-run", action="store_true", help="Log commands without running them")
    sp.add_argument("--launch", action="store_true", help="Run start.sh once at the end")
    sp.add_argument("--desktop-libraries", action="store_true", help="Also install GUI runtime libraries")
    sp.add_argument("--model-runner-policy", choices=["fatal", "warn"], default=None)
    sp.add_argument("--model", default=None, help="Model to mention in the instructions")
    sp.set_defaults(func=cmd_install)

    sp = sub.add_parser("render", parents=[common], help="Write docker-compose.yml, start.sh, verify.sh and README_AI.md")
    sp.add_argument("--model", default=None)
    sp.set_defaults(func=cmd_render)

    sp = sub.add_parser("verify", parents=[common], help="Show Docker / container / LM Studio status")
    sp.set_defaults(func=cmd_verify)

    sp = sub.add_parser("steps", parents=[common], help="List the install steps in order")
    sp.add_argument("--launch", action="store_true")
    sp.add_argument("--model-runner-policy", choices=["fatal", "warn"], default=None)
    sp.set_defaults(func=cmd_steps)

    return p


def main(argv: Optional[list[str]] = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)
    try:
        return int(args.func(args))
    except ConfigError as e:
        print(f"[!] Config error: {e}", file=sys.stderr)
        return 2
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
