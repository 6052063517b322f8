import subprocess
from pathlib import Path
from typing import List

import pytest

import za7z


class Fake7z:
    """Stands in for the 7z binary: records argument vectors and writes the outputs 7z would."""

    def __init__(self) -> None:
        self.calls: List[List[str]] = []
        self.fail_for: set = set()
        self.create_output = True

    def __call__(self, cmd, check=False, capture_output=False, text=False):
        cmd = list(cmd)
        self.calls.append(cmd)
        action = cmd[1]
        source = cmd[4] if action == "a" else cmd[2]

        if source in self.fail_for:
            return subprocess.CompletedProcess(
                cmd, 2, stdout="", stderr=f"ERROR: Wrong password : {Path(source).name}\n"
            )
        if not Path(source).exists():
            return subprocess.CompletedProcess(
                cmd, 2, stdout="", stderr=f"ERROR: {source}\nThe system cannot find the file specified.\n"
            )

        if action == "a" and self.create_output:
            Path(cmd[3]).write_bytes(b"PK\x03\x04")
        elif action == "x":
            out_dir = next(arg[2:] for arg in cmd if arg.startswith("-o"))
            extracted = Path(out_dir) / Path(za7z.strip_archive_extension(source)).name
            extracted.write_text("extracted", encoding="utf-8")
        return subprocess.CompletedProcess(cmd, 0, stdout="Everything is Ok\n", stderr="")


@pytest.fixture
def fake_7z(monkeypatch):
    fake = Fake7z()
    monkeypatch.setattr(za7z.shutil, "which", lambda name: f"/usr/bin/{name}")
    monkeypatch.setattr(za7z.subprocess, "run", fake)
    return fake


@pytest.fixture
def config_dir(tmp_path, monkeypatch):
    path = tmp_path / "config"
    monkeypatch.setenv(za7z.CONFIG_DIR_ENV, str(path))
    return path


@pytest.fixture
def store(config_dir):
    return za7z.CredentialStore.default(config_dir)


class Prompts:
    def __init__(self) -> None:
        self.answers: List[str] = []
        self.secrets: List[str] = []
        self.asked: List[str] = []

    def input(self, prompt=""):
        self.asked.append(prompt)
        if not self.answers:
            raise EOFError
        return self.answers.pop(0)

    def getpass(self, prompt=""):
        self.asked.append(prompt)
        if not self.secrets:
            raise EOFError
        return self.secrets.pop(0)


@pytest.fixture
def prompts(monkeypatch):
    p = Prompts()
    monkeypatch.setattr("builtins.input", p.input)
    monkeypatch.setattr(za7z, "getpass", p.getpass)
    return p


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    return work
