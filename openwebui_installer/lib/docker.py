from __future__ import annotations

import grp
import logging
import pwd
from typing import Optional

from .command import QUERY_TIMEOUT, CommandError, has_command, privileged, run_cmd

logger = logging.getLogger(__name__)

DOCKER_GPG_URL = "https://download.docker.com/linux/ubuntu/gpg"
DOCKER_REPO_URL = "https://download.docker.com/linux/ubuntu"
DOCKER_KEYRING = "/usr/share/keyrings/docker.gpg"
DOCKER_SOURCES = "/etc/apt/sources.list.d/docker.list"
DOCKER_PACKAGES = (
    "docker-ce",
    "docker-ce-cli",
    "containerd.io",
    "docker-compose-plugin",
)


def docker_available() -> bool:
    return has_command("docker")


def docker_sources_line(arch: str, codename: str) -> str:
    return f"deb [arch={arch} signed-by={DOCKER_KEYRING}] {DOCKER_REPO_URL} {codename} stable\n"


def add_docker_apt_repo(
    *,
    arch: str,
    codename: str,
    timeout: Optional[float] = None,
    dry_run: bool = False,
) -> None:
    """Install Docker's signing key and apt source."""

    key = run_cmd(["curl", "-fsSL", DOCKER_GPG_URL], timeout=timeout, dry_run=dry_run, quiet=True)
    run_cmd(
        privileged(["gpg", "--dearmor", "--yes", "-o", DOCKER_KEYRING]),
        input_text=key.output,
        timeout=timeout,
        dry_run=dry_run,
    )
    run_cmd(
        privileged(["tee", DOCKER_SOURCES]),
        input_text=docker_sources_line(arch, codename),
        timeout=timeout,
        dry_run=dry_run,
        quiet=True,
    )
    logger.info("Configured Docker apt repo (%s %s)", arch, codename)


def enable_service(name: str, *, timeout: Optional[float] = None, dry_run: bool = False) -> None:
    run_cmd(privileged(["systemctl", "enable", "--now", name]), timeout=timeout, dry_run=dry_run)


def user_in_group(user: str, group: str) -> bool:
    try:
        g = grp.getgrnam(group)
    except KeyError:
        return False
    if user in g.gr_mem:
        return True
    try:
        return pwd.getpwnam(user).pw_gid == g.gr_gid
    except KeyError:
        return False


def add_user_to_group(
    user: str,
    group: str,
    *,
    timeout: Optional[float] = QUERY_TIMEOUT,
    dry_run: bool = False,
) -> None:
    run_cmd(privileged(["usermod", "-aG", group, user]), timeout=timeout, dry_run=dry_run)


def container_exists(name: str, *, timeout: Optional[float] = QUERY_TIMEOUT) -> bool:
    r = run_cmd(
        privileged(["docker", "container", "inspect", name]),
        check=False,
        timeout=timeout,
        quiet=True,
    )
    return r.ok


def volume_exists(name: str, *, timeout: Optional[float] = QUERY_TIMEOUT) -> bool:
    r = run_cmd(
        privileged(["docker", "volume", "inspect", name]),
        check=False,
        timeout=timeout,
        quiet=True,
    )
    return r.ok


def remove_container(name: str, *, timeout: Optional[float] = None, dry_run: bool = False) -> None:
    # rm -f stops a running container first.
    run_cmd(privileged(["docker", "rm", "-f", name]), timeout=timeout, dry_run=dry_run)


def remove_volume(name: str, *, timeout: Optional[float] = None, dry_run: bool = False) -> None:
    run_cmd(privileged(["docker", "volume", "rm", name]), timeout=timeout, dry_run=dry_run)


def container_state(name: str, *, timeout: Optional[float] = QUERY_TIMEOUT) -> Optional[str]:
    """Status string of the container ("running", "exited", ...), None if unknown."""
    try:
        r = run_cmd(
            privileged(["docker", "container", "inspect", "-f", "{{.State.Status}}", name]),
            check=False,
            timeout=timeout,
            quiet=True,
        )
    except CommandError:
        logger.warning("docker inspect %s timed out", name)
        return None
    if not r.ok:
        return None
    return r.output.strip() or None


def docker_version(*, timeout: Optional[float] = QUERY_TIMEOUT) -> Optional[str]:
    try:
        r = run_cmd(["docker", "--version"], check=False, timeout=timeout, quiet=True)
    except CommandError:
        return None
    if not r.ok:
        return None
    return r.output.strip()
