"""
Subprocess supervision for Terminai.

Runs one foreground command at a time through the user's shell, relays its
output live, keeps the error stream for later inspection, and exposes the
single running-process slot the interrupt handler signals through.
"""

import os
import platform
import signal
import subprocess
import sys
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Optional, List, Mapping, Callable

from terminai.output import print_debug

POSIX_FALLBACK_SHELLS = ("/bin/zsh", "/bin/bash", "/bin/sh")
POSIX_FINAL_SHELL = "/bin/sh"

_READ_CHUNK = 4096


@dataclass(frozen=True)
class ShellSpec:
    """Shell executable plus the flags that precede the command string."""

    executable: str
    args: List[str] = field(default_factory=list)

    def argv(self, command: str) -> List[str]:
        return [self.executable, *self.args, command]

    @property
    def is_powershell(self) -> bool:
        lower = self.executable.lower()
        return "powershell" in lower or "pwsh" in lower


def _flags_for(shell_path: str, system: str) -> List[str]:
    lower = shell_path.lower()
    if "powershell" in lower or "pwsh" in lower:
        return ["-NoProfile", "-Command"]
    if system == "Windows" and os.path.basename(lower) in ("cmd", "cmd.exe"):
        return ["/c"]
    return ["-c"]


def resolve_shell(
    preferred: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
    system: Optional[str] = None,
    exists: Callable[[str], bool] = os.path.exists,
) -> ShellSpec:
    """
    Pick the shell used to run every command of this session.

    Precedence: explicit *preferred* shell, then the platform default.
    POSIX uses ``$SHELL``, then the first of zsh/bash/sh found on disk,
    then ``/bin/sh``.  Windows uses PowerShell when it is requested
    (``TERMINAI_POWERSHELL`` or a PowerShell ``SHELL``), else ``ComSpec``.
    """
    env = os.environ if env is None else env
    system = system or platform.system()

    if preferred:
        return ShellSpec(preferred, _flags_for(preferred, system))

    if system == "Windows":
        wants_powershell = (
            env.get("TERMINAI_POWERSHELL", "").lower() in ("1", "true", "yes")
            or "powershell" in env.get("SHELL", "").lower()
        )
        if wants_powershell:
            return ShellSpec("powershell.exe", ["-NoProfile", "-Command"])
        return ShellSpec(env.get("ComSpec") or "cmd.exe", ["/c"])

    user_shell = env.get("SHELL")
    if user_shell:
        return ShellSpec(user_shell, ["-c"])

    for candidate in POSIX_FALLBACK_SHELLS:
        if exists(candidate):
            return ShellSpec(candidate, ["-c"])
    return ShellSpec(POSIX_FINAL_SHELL, ["-c"])


@dataclass
class ExitOutcome:
    """Result of one supervised command."""

    command: str
    exit_code: Optional[int] = None
    signal_name: Optional[str] = None
    stderr: str = ""
    spawn_error: Optional[str] = None
    interrupted: bool = False  # the user interrupted it via the session

    @property
    def success(self) -> bool:
        return self.spawn_error is None and self.exit_code == 0 and self.signal_name is None

    @property
    def failed(self) -> bool:
        """A failure worth offering a suggestion for."""
        if self.spawn_error is not None or self.interrupted:
            return False
        return not self.success

    @property
    def status_code(self) -> int:
        """Exit code as a plain integer (128 + signal for signal deaths)."""
        if self.exit_code is not None:
            return self.exit_code
        if self.signal_name:
            try:
                return 128 + int(signal.Signals[self.signal_name])
            except KeyError:
                return 1
        return 1

    def describe(self) -> str:
        if self.spawn_error:
            return f"could not start: {self.spawn_error}"
        if self.signal_name:
            return f"terminated by signal {self.signal_name}"
        return f"exit code {self.exit_code}"


def _signal_name(returncode: int) -> str:
    try:
        return signal.Signals(-returncode).name
    except ValueError:
        return f"SIG{-returncode}"


class ProcessSupervisor:
    """Spawns commands and owns the session's single running-process slot."""

    def __init__(self, shell: Optional[ShellSpec] = None, stdout=None, stderr=None):
        """
        Args:
            shell: Shell to run commands with (resolved once if omitted)
            stdout: Binary stream command output is relayed to
            stderr: Binary stream command error output is relayed to
        """
        self.shell = shell or resolve_shell()
        self._stdout = stdout
        self._stderr = stderr
        self._proc: Optional[subprocess.Popen] = None
        self._interrupted = False

    @property
    def running_process(self) -> Optional[subprocess.Popen]:
        return self._proc

    @property
    def is_running(self) -> bool:
        return self._proc is not None

    def _out(self):
        return self._stdout or sys.stdout.buffer

    def _err(self):
        return self._stderr or sys.stderr.buffer

    def run(self, command: str, cwd: str) -> ExitOutcome:
        """
        Run *command* in *cwd* and block until its streams are closed.

        stdin is inherited so interactive programs work.  stdout and stderr
        are piped and relayed as they arrive; stderr is also accumulated
        into the outcome.  The slot is released only after both relays
        have drained, so nothing is printed after the caller moves on.
        """
        if self._proc is not None:
            raise RuntimeError("a command is already running")

        argv = self.shell.argv(command)
        print_debug(f"Spawning {argv!r} in {cwd}")
        # Ctrl+C is held back until the slot names the new process, so the
        # session handler can forward it instead of orphaning the child.
        with self._sigint_deferred():
            try:
                proc = subprocess.Popen(
                    argv,
                    cwd=cwd,
                    stdin=None,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
            except OSError as e:
                print_debug(f"Spawn failed: {e}")
                return ExitOutcome(command=command, spawn_error=e.strerror or str(e))
            self._interrupted = False
            self._proc = proc

        stderr_chunks: List[bytes] = []
        out, err = self._out(), self._err()

        def _drain_stdout():
            """Relay stdout chunk-by-chunk."""
            assert proc.stdout is not None
            for chunk in iter(lambda: proc.stdout.read1(_READ_CHUNK), b""):
                out.write(chunk)
                out.flush()

        def _drain_stderr():
            """Relay and buffer stderr."""
            assert proc.stderr is not None
            for chunk in iter(lambda: proc.stderr.read1(_READ_CHUNK), b""):
                stderr_chunks.append(chunk)
                err.write(chunk)
                err.flush()

        try:
            stdout_reader = threading.Thread(target=_drain_stdout, daemon=True)
            stderr_reader = threading.Thread(target=_drain_stderr, daemon=True)
            stdout_reader.start()
            stderr_reader.start()
            returncode = self._wait(proc)
            stdout_reader.join()
            stderr_reader.join()
        finally:
            if proc.poll() is None:
                # Leaving early: never leave the child behind
                proc.kill()
                proc.wait()
            proc.stdout.close()
            proc.stderr.close()
            # Close event: exit status known and both streams drained
            self._proc = None

        stderr_text = b"".join(stderr_chunks).decode("utf-8", errors="replace")
        outcome = ExitOutcome(
            command=command,
            stderr=stderr_text,
            interrupted=self._interrupted,
        )
        if returncode < 0:
            outcome.signal_name = _signal_name(returncode)
        else:
            outcome.exit_code = returncode
        print_debug(f"Command finished: {outcome.describe()}")
        return outcome

    @contextmanager
    def _sigint_deferred(self):
        """
        Hold SIGINT back while a process is spawned and put in the slot.

        A held interrupt goes to the new process once the slot is set; if
        the spawn failed it goes to the previous handler.  Handlers can only
        be swapped on the main thread; elsewhere the block runs as is.
        """
        if threading.current_thread() is not threading.main_thread():
            yield
            return

        held = []
        previous = signal.signal(signal.SIGINT, lambda signum, frame: held.append(frame))
        try:
            yield
        finally:
            signal.signal(signal.SIGINT, previous)
            if held and not self.interrupt() and callable(previous):
                previous(signal.SIGINT, held[0])

    def _wait(self, proc: subprocess.Popen) -> int:
        # No timeout: interactive programs may run indefinitely.  A stray
        # KeyboardInterrupt (e.g. no session handler installed) is turned
        # into a forwarded interrupt and the wait resumes.
        while True:
            try:
                return proc.wait()
            except KeyboardInterrupt:
                self.interrupt()

    def interrupt(self) -> bool:
        """
        Forward an interrupt to the running command, if any.

        Returns True if there was a command to interrupt.
        """
        proc = self._proc
        if proc is None:
            return False
        self._interrupted = True
        try:
            if platform.system() == "Windows":
                proc.terminate()
            else:
                proc.send_signal(signal.SIGINT)
        except OSError as e:
            # Already gone; the close event will clear the slot
            print_debug(f"Interrupt not delivered: {e}")
        return True

    def terminate(self):
        """Stop a running command during shutdown."""
        proc = self._proc
        if proc is None:
            return
        self._interrupted = True
        try:
            proc.terminate()
        except OSError as e:
            print_debug(f"Terminate not delivered: {e}")
