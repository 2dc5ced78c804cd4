from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path

import pytest


@pytest.fixture(scope="session")
def repo_root() -> Path:
    # tests/workflow/ -> tests -> repo_root
    return Path(__file__).resolve().parents[2]


@pytest.fixture(scope="session")
def venv_python(repo_root: Path) -> str:
    # Prefer Windows path; fall back to POSIX for portability
    win_path = repo_root / ".venv" / "Scripts" / "python.exe"
    posix_path = repo_root / ".venv" / "bin" / "python"
    if win_path.exists():
        return str(win_path)
    if posix_path.exists():
        return str(posix_path)
    # As a last resort, use sys.executable (developer's interpreter)
    return sys.executable


@pytest.fixture
def tmp_db_url(tmp_path: Path) -> str:
    return f"sqlite:///{(tmp_path / 'modmgr_e2e.db').as_posix()}"


@pytest.fixture
def workflow_mods_root(tmp_path: Path) -> Path:
    root = tmp_path / "Mods"
    root.mkdir()
    return root


def run_cli(args: list[str], cwd: Path, env: dict | None = None) -> subprocess.CompletedProcess:
    # Execute a command without invoking a shell to avoid quoting issues
    merged_env = dict(os.environ)
    # Ensure Python can import modules from the repo root (db/, scripts/, api/)
    py_path = merged_env.get("PYTHONPATH", "")
    if str(cwd) not in (py_path.split(os.pathsep) if py_path else []):
        merged_env["PYTHONPATH"] = py_path + (os.pathsep if py_path else "") + str(cwd)
    # Stray settings from the developer's shell must not leak into the run
    merged_env.pop("MODMGR_MODS_ROOT", None)
    if env:
        merged_env.update(env)
    return subprocess.run(args, cwd=str(cwd), capture_output=True, text=True, env=merged_env)


@pytest.fixture
def cli(repo_root: Path, venv_python: str):
    def _runner(script: str, *argv: str, env: dict | None = None) -> subprocess.CompletedProcess:
        return run_cli([venv_python, script, *argv], repo_root, env=env)
    return _runner
