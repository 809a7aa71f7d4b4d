from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Optional, Sequence

from .command import QUERY_TIMEOUT, privileged, run_cmd

logger = logging.getLogger(__name__)

APT_LISTS_DIR = "/var/lib/apt/lists"
APT_UPDATE_STAMP = "/var/lib/apt/periodic/update-success-stamp"
OS_RELEASE = "/etc/os-release"


def _apt(argv: Sequence[str]) -> list[str]:
    # sudo resets the environment; pass the frontend through env(1).
    return privileged(["env", "DEBIAN_FRONTEND=noninteractive", *argv])


def apt_update(*, timeout: Optional[float] = None, dry_run: bool = False) -> None:
    run_cmd(_apt(["apt-get", "update", "-q"]), timeout=timeout, dry_run=dry_run)


def apt_upgrade(*, timeout: Optional[float] = None, dry_run: bool = False) -> None:
    run_cmd(_apt(["apt-get", "upgrade", "-y", "-q"]), timeout=timeout, dry_run=dry_run)


def apt_install(
    packages: Sequence[str],
    *,
    with_recommends: bool = False,
    timeout: Optional[float] = None,
    dry_run: bool = False,
) -> None:
    if not packages:
        return
    argv = ["apt-get", "install", "-y", "-q"]
    if not with_recommends:
        argv.append("--no-install-recommends")
    run_cmd(_apt([*argv, *packages]), timeout=timeout, dry_run=dry_run)


def missing_packages(packages: Sequence[str], *, timeout: Optional[float] = QUERY_TIMEOUT) -> list[str]:
    """Return the subset of packages dpkg does not report as installed."""
    if not packages:
        return []
    r = run_cmd(
        ["dpkg-query", "-W", "-f=${Package} ${db:Status-Status}\n", *packages],
        check=False,
        timeout=timeout,
        quiet=True,
    )
    installed = set()
    for line in r.output.splitlines():
        parts = line.split()
        if len(parts) == 2 and parts[1] == "installed":
            installed.add(parts[0])
    return [p for p in packages if p not in installed]


def apt_lists_age(
    *,
    stamp: str = APT_UPDATE_STAMP,
    lists_dir: str = APT_LISTS_DIR,
    now: Optional[float] = None,
) -> Optional[float]:
    """Seconds since the package index was last refreshed, None if unknown."""
    now = time.time() if now is None else now
    for candidate in (Path(stamp), Path(lists_dir)):
        if candidate.exists():
            return max(0.0, now - candidate.stat().st_mtime)
    return None


def dpkg_architecture(*, timeout: Optional[float] = QUERY_TIMEOUT) -> str:
    return run_cmd(["dpkg", "--print-architecture"], timeout=timeout, quiet=True).output.strip()


def distro_codename(os_release: str = OS_RELEASE, *, timeout: Optional[float] = QUERY_TIMEOUT) -> str:
    """Ubuntu codename of the host.

    Derivatives (Mint, Pop!_OS) set UBUNTU_CODENAME to the base release,
    which is what Docker's repository is keyed on.
    """
    values = {}
    p = Path(os_release)
    if p.exists():
        for line in p.read_text(encoding="utf-8").splitlines():
            key, sep, value = line.partition("=")
            if sep:
                values[key.strip()] = value.strip().strip('"')
    codename = values.get("UBUNTU_CODENAME") or values.get("VERSION_CODENAME")
    if codename:
        return codename
    return run_cmd(["lsb_release", "-cs"], timeout=timeout, quiet=True).output.strip()
