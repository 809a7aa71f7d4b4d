from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from .command import has_command, is_root, run_cmd

logger = logging.getLogger(__name__)

LMSTUDIO_INSTALL_URL = "https://lmstudio.ai/install.sh"
RUNNER_COMMANDS = ("lms", "lmstudio")


def runner_bin_dirs(home: Path) -> list[Path]:
    # The installer drops the CLI here; PATH only picks it up after re-login.
    return [home / ".lmstudio" / "bin"]


def runner_installed(home: Path) -> bool:
    return any(has_command(c, runner_bin_dirs(home)) for c in RUNNER_COMMANDS)


def install_runner(
    *,
    user: str,
    timeout: Optional[float] = None,
    dry_run: bool = False,
) -> None:
    """Run the vendor's install script as the invoking user."""

    script = run_cmd(
        ["curl", "-fsSL", LMSTUDIO_INSTALL_URL],
        timeout=timeout,
        dry_run=dry_run,
        quiet=True,
    )
    argv = ["bash", "-s"]
    if is_root() and user != "root":
        argv = ["sudo", "-u", user, "-H", *argv]
    run_cmd(argv, input_text=script.output, timeout=timeout, dry_run=dry_run)
