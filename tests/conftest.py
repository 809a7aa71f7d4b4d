from __future__ import annotations

import subprocess
from dataclasses import dataclass, field
from typing import List, Optional, Set, Tuple

import pytest

from openwebui_installer.config import InstallerConfig
from openwebui_installer.lib import command, lmstudio
from openwebui_installer.logging_utils import reset_logging
from openwebui_installer.steps import step_10_refresh_index, step_20_docker_engine, step_25_docker_group


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()


@pytest.fixture
def cfg(tmp_path) -> InstallerConfig:
    home = tmp_path / "home"
    home.mkdir()
    return InstallerConfig(user="tester", home_dir=str(home), log_dir=str(tmp_path / "logs"))


def _strip_privilege(argv: List[str]) -> List[str]:
    if argv[:1] == ["sudo"]:
        argv = argv[1:]
        if argv[:1] == ["-u"]:
            argv = argv[3:]
    if argv[:1] == ["env"]:
        argv = [a for a in argv[1:] if "=" not in a or a.startswith("-f=")]
    return argv


@dataclass
class FakeHost:
    """Just enough of an Ubuntu box for the installer steps."""

    packages: Set[str] = field(default_factory=set)
    docker_installed: bool = False
    runner_installed: bool = False
    index_fresh: bool = False
    groups: Set[Tuple[str, str]] = field(default_factory=set)
    containers: Set[str] = field(default_factory=set)
    volumes: Set[str] = field(default_factory=set)
    fail: List[Tuple[str, ...]] = field(default_factory=list)
    hang: List[Tuple[str, ...]] = field(default_factory=list)
    calls: List[List[str]] = field(default_factory=list)
    timeouts: List[Optional[float]] = field(default_factory=list)

    def ran(self, *prefix: str) -> List[List[str]]:
        return [c for c in self.calls if tuple(c[: len(prefix)]) == prefix]

    def _result(self, argv, rc: int, out: str = "") -> subprocess.CompletedProcess:
        return subprocess.CompletedProcess(argv, rc, stdout=out, stderr=None)

    def __call__(self, argv, **kwargs) -> subprocess.CompletedProcess:
        cmd = _strip_privilege(list(argv))
        self.calls.append(cmd)
        self.timeouts.append(kwargs.get("timeout"))

        for prefix in self.hang:
            if tuple(cmd[: len(prefix)]) == prefix:
                raise subprocess.TimeoutExpired(argv, kwargs.get("timeout"))

        for prefix in self.fail:
            if tuple(cmd[: len(prefix)]) == prefix:
                return self._result(argv, 100, f"E: simulated failure of {' '.join(prefix)}\n")

        if cmd[:2] == ["apt-get", "update"]:
            self.index_fresh = True
            return self._result(argv, 0, "Reading package lists... Done\n")
        if cmd[:2] == ["apt-get", "upgrade"]:
            return self._result(argv, 0, "0 upgraded, 0 newly installed\n")
        if cmd[:2] == ["apt-get", "install"]:
            pkgs = [a for a in cmd[2:] if not a.startswith("-")]
            self.packages.update(pkgs)
            if "docker-ce" in pkgs:
                self.docker_installed = True
            return self._result(argv, 0, f"Setting up {' '.join(pkgs)}\n")
        if cmd[:1] == ["dpkg-query"]:
            lines = []
            rc = 0
            for p in cmd[3:]:
                if p in self.packages:
                    lines.append(f"{p} installed")
                else:
                    lines.append(f"dpkg-query: no packages found matching {p}")
                    rc = 1
            return self._result(argv, rc, "\n".join(lines) + "\n")
        if cmd[:2] == ["dpkg", "--print-architecture"]:
            return self._result(argv, 0, "amd64\n")
        if cmd[:1] == ["curl"]:
            return self._result(argv, 0, "#!/bin/sh\necho downloaded\n")
        if cmd[:1] in (["gpg"], ["tee"], ["systemctl"]):
            return self._result(argv, 0)
        if cmd[:2] == ["usermod", "-aG"]:
            self.groups.add((cmd[3], cmd[2]))
            return self._result(argv, 0)
        if cmd[:2] == ["bash", "-s"]:
            self.runner_installed = True
            return self._result(argv, 0, "LM Studio CLI installed\n")
        if cmd[:3] == ["docker", "container", "inspect"]:
            name = cmd[-1]
            if name in self.containers:
                return self._result(argv, 0, "running\n")
            return self._result(argv, 1, f"Error: No such container: {name}\n")
        if cmd[:3] == ["docker", "volume", "inspect"]:
            return self._result(argv, 0 if cmd[3] in self.volumes else 1)
        if cmd[:3] == ["docker", "rm", "-f"]:
            self.containers.discard(cmd[3])
            return self._result(argv, 0, cmd[3] + "\n")
        if cmd[:3] == ["docker", "volume", "rm"]:
            self.volumes.discard(cmd[3])
            return self._result(argv, 0, cmd[3] + "\n")
        if cmd[:2] == ["docker", "--version"]:
            if not self.docker_installed:
                return self._result(argv, 127, "docker: not found\n")
            return self._result(argv, 0, "Docker version 27.3.1, build ce12230\n")
        return self._result(argv, 0)

    def which(self, name: str) -> Optional[str]:
        if name == "docker" and self.docker_installed:
            return "/usr/bin/docker"
        if name == "lms" and self.runner_installed:
            return "/home/tester/.lmstudio/bin/lms"
        return None


@pytest.fixture
def host(monkeypatch) -> FakeHost:
    h = FakeHost()
    monkeypatch.setattr(command.subprocess, "run", h)
    monkeypatch.setattr(command.shutil, "which", h.which)
    monkeypatch.setattr(command, "is_root", lambda: False)
    monkeypatch.setattr(lmstudio, "is_root", lambda: False)
    monkeypatch.setattr(step_10_refresh_index, "apt_lists_age", lambda: 10.0 if h.index_fresh else None)
    monkeypatch.setattr(step_20_docker_engine, "distro_codename", lambda: "noble")
    monkeypatch.setattr(step_25_docker_group, "user_in_group", lambda user, group: (user, group) in h.groups)
    return h
