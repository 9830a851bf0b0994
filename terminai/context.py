"""
Directory context for translation requests.

A fresh snapshot of the working directory (its listing plus detected
project/environment markers) is taken before every request; directory
contents change between turns, so nothing here is cached.
"""

import os
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, List, Mapping, Set

from terminai.output import print_debug
from terminai.process import ShellSpec

LISTING_TIMEOUT = 5
GIT_TIMEOUT = 2

PYTHON_PROJECT_FILES = ("requirements.txt", "pyproject.toml", "setup.py", "Pipfile")
LOCAL_VENV_NAMES = ("venv", "env", ".venv", ".env")


@dataclass
class PythonEnvironment:
    is_virtual_env: bool = False
    env_type: Optional[str] = None  # venv, conda, poetry, pipenv
    env_name: Optional[str] = None
    env_path: Optional[str] = None


@dataclass
class NodeEnvironment:
    has_node_modules: bool = False
    has_package_json: bool = False
    package_manager: Optional[str] = None  # npm, yarn, pnpm


@dataclass
class GitEnvironment:
    is_git_repo: bool = False
    branch: Optional[str] = None


@dataclass
class DockerEnvironment:
    has_dockerfile: bool = False
    has_docker_compose: bool = False


@dataclass
class OtherEnvironment:
    has_gemfile: bool = False
    has_cargo_toml: bool = False
    has_go_mod: bool = False


@dataclass
class EnvironmentSummary:
    python: PythonEnvironment = field(default_factory=PythonEnvironment)
    node: NodeEnvironment = field(default_factory=NodeEnvironment)
    git: GitEnvironment = field(default_factory=GitEnvironment)
    docker: DockerEnvironment = field(default_factory=DockerEnvironment)
    other: OtherEnvironment = field(default_factory=OtherEnvironment)

    def describe(self) -> List[str]:
        """Human-readable marker lines for prompts."""
        lines: List[str] = []
        py = self.python
        if py.is_virtual_env:
            label = py.env_type or "virtual environment"
            lines.append(f"Python {label} active" + (f" ({py.env_name})" if py.env_name else ""))
        elif py.env_name:
            lines.append(f"Python virtual environment available but not active: {py.env_name}")
        if self.node.has_package_json:
            manager = self.node.package_manager or "npm"
            installed = "installed" if self.node.has_node_modules else "not installed"
            lines.append(f"Node.js project ({manager}, node_modules {installed})")
        if self.git.is_git_repo:
            lines.append("Git repository" + (f" on branch {self.git.branch}" if self.git.branch else ""))
        if self.docker.has_dockerfile:
            lines.append("Dockerfile present")
        if self.docker.has_docker_compose:
            lines.append("Docker Compose file present")
        if self.other.has_gemfile:
            lines.append("Ruby project (Gemfile)")
        if self.other.has_cargo_toml:
            lines.append("Rust project (Cargo.toml)")
        if self.other.has_go_mod:
            lines.append("Go module (go.mod)")
        return lines


@dataclass
class DirectoryContext:
    """Point-in-time snapshot of the working directory."""

    current_directory: str
    contents: str = ""
    error: Optional[str] = None
    environment: Optional[EnvironmentSummary] = None


def _listing_argv(shell: Optional[ShellSpec], windows: bool) -> List[str]:
    if not windows:
        return ["ls", "-al"]
    if shell is not None and shell.is_powershell:
        return shell.argv("Get-ChildItem -Force | Format-Table -AutoSize")
    return ["cmd.exe", "/c", "dir /a"]


def capture_directory_context(
    cwd: str,
    shell: Optional[ShellSpec] = None,
    env: Optional[Mapping[str, str]] = None,
) -> DirectoryContext:
    """
    Build a DirectoryContext for *cwd*.

    The listing comes from the platform listing command; if that fails a
    plain directory read is used instead.
    """
    context = DirectoryContext(current_directory=cwd)
    argv = _listing_argv(shell, os.name == "nt")
    try:
        r = subprocess.run(
            argv,
            cwd=cwd,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=LISTING_TIMEOUT,
        )
        if r.returncode != 0:
            raise OSError(r.stderr.strip() or f"exit code {r.returncode}")
        context.contents = r.stdout.strip()
    except (OSError, subprocess.SubprocessError) as e:
        print_debug(f"Directory listing failed: {e}")
        try:
            names = sorted(os.listdir(cwd))
            context.contents = "Files in directory:\n" + "\n".join(names)
        except OSError as fallback_error:
            context.error = f"Could not access directory: {fallback_error}"

    try:
        context.environment = detect_environment(cwd, env)
    except OSError as e:
        print_debug(f"Environment detection failed: {e}")
    return context


def detect_environment(cwd: str, env: Optional[Mapping[str, str]] = None) -> EnvironmentSummary:
    """Inspect *cwd* (and the process environment) for project markers."""
    env = os.environ if env is None else env
    files = set(os.listdir(cwd))
    return EnvironmentSummary(
        python=_detect_python(cwd, files, env),
        node=_detect_node(files),
        git=_detect_git(cwd),
        docker=DockerEnvironment(
            has_dockerfile="Dockerfile" in files or "dockerfile" in files,
            has_docker_compose=bool(
                files & {"docker-compose.yml", "docker-compose.yaml", "compose.yml"}
            ),
        ),
        other=OtherEnvironment(
            has_gemfile="Gemfile" in files,
            has_cargo_toml="Cargo.toml" in files,
            has_go_mod="go.mod" in files,
        ),
    )


def _detect_python(cwd: str, files: Set[str], env: Mapping[str, str]) -> PythonEnvironment:
    py = PythonEnvironment()
    if env.get("VIRTUAL_ENV"):
        py.is_virtual_env = True
        py.env_type = "venv"
        py.env_path = env["VIRTUAL_ENV"]
        py.env_name = os.path.basename(env["VIRTUAL_ENV"].rstrip("/\\"))
    elif env.get("CONDA_DEFAULT_ENV"):
        py.is_virtual_env = True
        py.env_type = "conda"
        py.env_name = env["CONDA_DEFAULT_ENV"]
    elif env.get("POETRY_ACTIVE"):
        py.is_virtual_env = True
        py.env_type = "poetry"
    elif env.get("PIPENV_ACTIVE"):
        py.is_virtual_env = True
        py.env_type = "pipenv"

    if not py.is_virtual_env and any(name in files for name in PYTHON_PROJECT_FILES):
        for venv_name in LOCAL_VENV_NAMES:
            venv_path = os.path.join(cwd, venv_name)
            if venv_name in files and os.path.isdir(venv_path):
                py.env_name = venv_name
                py.env_path = venv_path
    return py


def _detect_node(files: Set[str]) -> NodeEnvironment:
    node = NodeEnvironment(
        has_node_modules="node_modules" in files,
        has_package_json="package.json" in files,
    )
    if "yarn.lock" in files:
        node.package_manager = "yarn"
    elif "pnpm-lock.yaml" in files:
        node.package_manager = "pnpm"
    elif "package-lock.json" in files or node.has_package_json:
        node.package_manager = "npm"
    return node


def _detect_git(cwd: str) -> GitEnvironment:
    git = GitEnvironment()
    git_path = Path(cwd) / ".git"
    if not git_path.exists():
        return git
    git.is_git_repo = True
    git.branch = _get_branch(cwd) or _branch_from_head(git_path)
    return git


def _get_branch(cwd: str) -> Optional[str]:
    """Return current git branch for cwd, or None."""
    try:
        r = subprocess.run(
            ["git", "branch", "--show-current"],
            cwd=cwd,
            capture_output=True,
            text=True,
            timeout=GIT_TIMEOUT,
        )
        if r.returncode == 0 and r.stdout.strip():
            return r.stdout.strip()
    except (OSError, subprocess.SubprocessError):
        pass
    return None


def _branch_from_head(git_path: Path) -> Optional[str]:
    try:
        head = (git_path / "HEAD").read_text(encoding="utf-8")
    except OSError:
        return None
    match = re.search(r"ref: refs/heads/(.+)", head)
    return match.group(1).strip() if match else None
