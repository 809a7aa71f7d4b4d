from __future__ import annotations

import logging
import os
import pwd
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

logger = logging.getLogger(__name__)

# Default timeout for read-only queries (dpkg-query, docker inspect).
QUERY_TIMEOUT = 60.0


class CommandError(RuntimeError):
    def __init__(self, argv: Sequence[str], returncode: int, output: str) -> None:
        self.argv = list(argv)
        self.returncode = returncode
        self.output = output
        super().__init__(f"Command failed ({returncode}): {_fmt_argv(self.argv)}")


@dataclass(frozen=True)
class CmdResult:
    argv: list[str]
    returncode: int
    output: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


def _fmt_argv(argv: Sequence[str]) -> str:
    return " ".join(shlex.quote(a) for a in argv)


def is_root() -> bool:
    return os.geteuid() == 0


def privileged(argv: Sequence[str]) -> list[str]:
    """Prefix sudo unless we already run as root."""
    if is_root():
        return list(argv)
    return ["sudo", *argv]


def give_to_user(path: str | Path, user: Optional[str]) -> None:
    """chown a file we created to the invoking user when running as root.

    Under sudo the files land in SUDO_USER's home and must stay theirs.
    """
    if not user or user == "root" or not is_root():
        return
    try:
        pw = pwd.getpwnam(user)
    except KeyError:
        logger.warning("Cannot hand %s to unknown user %s", path, user)
        return
    os.chown(path, pw.pw_uid, pw.pw_gid)


def has_command(name: str, extra_paths: Iterable[str | Path] = ()) -> bool:
    if shutil.which(name):
        return True
    for d in extra_paths:
        p = Path(d) / name
        if p.is_file() and os.access(p, os.X_OK):
            return True
    return False


def run_cmd(
    argv: Sequence[str],
    *,
    check: bool = True,
    env: Mapping[str, str] | None = None,
    cwd: str | None = None,
    input_text: str | None = None,
    timeout: Optional[float] = None,
    dry_run: bool = False,
    quiet: bool = False,
) -> CmdResult:
    """Run a command with consistent logging.

    - Logs the command line before running it.
    - stdout and stderr are merged and copied into the log verbatim.
    - quiet is for read-only queries and bulky downloads: both go to DEBUG,
      except the output of a failing checked command.
    - dry_run logs but does not execute.
    - A timeout is reported as returncode -1.
    """

    argv_list = list(argv)
    logger.log(logging.DEBUG if quiet else logging.INFO, "CMD %s", _fmt_argv(argv_list))

    if dry_run:
        return CmdResult(argv=argv_list, returncode=0, output="")

    try:
        p = subprocess.run(
            argv_list,
            input=input_text,
            text=True,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            cwd=cwd,
            env=dict(os.environ, **(env or {})),
            timeout=timeout,
        )
    except subprocess.TimeoutExpired as e:
        out = e.output if isinstance(e.output, str) else (e.output or b"").decode("utf-8", "replace")
        logger.info("OUTPUT %s", out.rstrip())
        raise CommandError(argv_list, -1, out or f"timed out after {timeout}s") from e
    except FileNotFoundError as e:
        if check:
            raise CommandError(argv_list, 127, str(e)) from e
        logger.log(logging.DEBUG if quiet else logging.INFO, "OUTPUT %s", e)
        return CmdResult(argv=argv_list, returncode=127, output=str(e))

    output = p.stdout or ""
    if output and (not quiet or (check and p.returncode != 0)):
        logger.info("OUTPUT %s", output.rstrip())
    elif output:
        logger.debug("OUTPUT %s", output.rstrip())

    if check and p.returncode != 0:
        raise CommandError(argv_list, p.returncode, output)

    return CmdResult(argv=argv_list, returncode=p.returncode, output=output)
