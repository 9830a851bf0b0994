"""
Session-level tests for TerminaiShell.
Run with: python -m pytest tests/
"""

import io
import os
import sys

import pytest

from fakes import ACCEPT, ScriptedEditor, RecordingTranslator, FakeSupervisor, result

from terminai.config import Config
from terminai.directory import DirectoryTracker
from terminai.history import HistoryStore
from terminai.process import ProcessSupervisor, ShellSpec
from terminai.shell import TerminaiShell, InterruptAction
from terminai.suggestion import SuggestionState


def make_shell(tmp_path, lines=(), answers=(), translator=None, supervisor=None, history=None):
    editor = ScriptedEditor(list(lines), list(answers))
    shell = TerminaiShell(
        config=Config(config_dir=str(tmp_path / "cfg")),
        translator=translator,
        editor=editor,
        supervisor=supervisor or FakeSupervisor(),
        directory=DirectoryTracker(start=str(tmp_path)),
        history=history or HistoryStore(tmp_path / "cfg" / "history"),
        use_ai=translator is not None,
    )
    return shell, editor


def commands(supervisor):
    return [command for command, _ in supervisor.runs]


# ----------------------------------------------------------------------
# Suggestion flow through the loop
# ----------------------------------------------------------------------
def test_accepted_suggestion_runs_and_succeeds(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127})
    translator = RecordingTranslator([result("find . -size +100M", "Files over 100MB")])
    shell, editor = make_shell(
        tmp_path, ["list big files", ACCEPT], translator=translator, supervisor=supervisor,
    )

    shell.run()

    assert commands(supervisor) == ["list big files", "find . -size +100M"]
    assert len(translator.calls) == 1
    assert editor.questions == []
    assert shell.suggestions.state is SuggestionState.IDLE


def test_edited_suggestion_counts_as_suggestion(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127, "find . -size +50M": 1})
    translator = RecordingTranslator([result("find . -size +100M")])
    shell, editor = make_shell(
        tmp_path,
        ["list big files", "find . -size +50M"],
        answers=[False],
        translator=translator,
        supervisor=supervisor,
    )

    shell.run()

    assert commands(supervisor) == ["list big files", "find . -size +50M"]
    # The edited line failed: the fix offer is made once and declined
    assert editor.questions == ["[AI] Ask AI to fix the command? (y/N): "]
    assert translator.fix_calls == []
    assert len(translator.calls) == 1


def test_accepted_fix_is_offered_with_original_intent(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127, "find . -size +100M": 1})
    translator = RecordingTranslator(
        [result("find . -size +100M")],
        [result("find . -type f -size +100M")],
    )
    shell, editor = make_shell(
        tmp_path,
        ["list big files", ACCEPT, ACCEPT],
        answers=[True],
        translator=translator,
        supervisor=supervisor,
    )

    shell.run()

    assert commands(supervisor) == [
        "list big files", "find . -size +100M", "find . -type f -size +100M",
    ]
    assert translator.fix_calls[0]["original_text"] == "list big files"
    assert translator.fix_calls[0]["failed_command"] == "find . -size +100M"
    assert translator.fix_calls[0]["exit_code"] == 1
    assert translator.fix_calls[0]["error_text"] == "boom\n"


def test_empty_line_discards_suggestion(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127, "ls": 2})
    translator = RecordingTranslator([result("find . -size +100M"), None])
    shell, editor = make_shell(
        tmp_path, ["list big files", "", "ls"], translator=translator, supervisor=supervisor,
    )

    shell.run()

    assert commands(supervisor) == ["list big files", "ls"]
    # "ls" ran as a fresh command: its failure is a new translation, not a fix
    assert [text for text, _ in translator.calls] == ["list big files", "ls"]
    assert editor.questions == []


def test_successful_command_never_calls_translator(tmp_path):
    translator = RecordingTranslator([result("unused")])
    shell, _ = make_shell(tmp_path, ["ls -la", "echo hi"], translator=translator)

    shell.run()

    assert translator.calls == []


def test_without_ai_failures_get_no_suggestion(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127})
    shell, editor = make_shell(tmp_path, ["list big files"], supervisor=supervisor)

    shell.run()

    assert shell.ai_enabled is False
    assert editor.prefill == ""
    assert shell.suggestions.state is SuggestionState.IDLE


# ----------------------------------------------------------------------
# Built-ins
# ----------------------------------------------------------------------
def test_cd_changes_directory_for_later_commands(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, ["cd sub", "pwd"], supervisor=supervisor)

    shell.run()

    assert supervisor.runs == [("pwd", str(sub))]
    assert shell.working_directory == str(sub)


def test_failed_cd_leaves_directory_and_runs_nothing(tmp_path, capsys):
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, ["cd nonexistent"], supervisor=supervisor)

    shell.run()

    assert supervisor.runs == []
    assert shell.working_directory == str(tmp_path)
    assert os.path.join(str(tmp_path), "nonexistent") in capsys.readouterr().out


def test_cd_never_reaches_translator(tmp_path):
    translator = RecordingTranslator([result("mkdir nonexistent")])
    shell, _ = make_shell(tmp_path, ["cd nonexistent"], translator=translator)

    shell.run()

    assert translator.calls == []


def test_exit_stops_loop_and_saves_history(tmp_path):
    history = HistoryStore(tmp_path / "cfg" / "history")
    history.append("ls")
    history.append("git status")
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, ["exit", "ls"], supervisor=supervisor, history=history)

    shell.run()

    assert supervisor.runs == []
    assert shell.running is False
    saved = (tmp_path / "cfg" / "history").read_text(encoding="utf-8")
    assert saved == "ls\ngit status\n"


def test_quit_is_exit_too(tmp_path):
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, ["quit", "ls"], supervisor=supervisor)
    shell.run()
    assert supervisor.runs == []


def test_end_of_input_ends_session(tmp_path):
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, ["true"], supervisor=supervisor)
    shell.run()
    assert commands(supervisor) == ["true"]
    assert supervisor.terminated >= 1


def test_blank_lines_are_ignored(tmp_path):
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, ["", "   ", "ls"], supervisor=supervisor)
    shell.run()
    assert commands(supervisor) == ["ls"]


# ----------------------------------------------------------------------
# Interrupt dispatch
# ----------------------------------------------------------------------
def test_interrupt_forwards_to_running_command(tmp_path):
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, supervisor=supervisor)
    supervisor.running = True

    assert shell.handle_interrupt() is InterruptAction.FORWARDED
    assert supervisor.interrupts == 1
    assert shell.running is True


def test_interrupt_cancels_pending_suggestion(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127})
    translator = RecordingTranslator([result("find . -size +100M")])
    shell, editor = make_shell(tmp_path, translator=translator, supervisor=supervisor)
    shell.handle_input("list big files")
    assert editor.prefill == "find . -size +100M"

    assert shell.handle_interrupt() is InterruptAction.CANCELLED
    assert shell.running is True
    assert editor.prefill == ""
    assert shell.suggestions.state is SuggestionState.IDLE
    assert supervisor.interrupts == 0


def test_interrupt_at_idle_prompt_exits(tmp_path):
    history = HistoryStore(tmp_path / "cfg" / "history")
    history.append("ls")
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, supervisor=supervisor, history=history)

    assert shell.handle_interrupt() is InterruptAction.EXIT
    assert shell.running is False
    assert (tmp_path / "cfg" / "history").read_text(encoding="utf-8") == "ls\n"


def test_running_command_takes_priority_over_suggestion(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127})
    translator = RecordingTranslator([result("find . -size +100M")])
    shell, editor = make_shell(tmp_path, translator=translator, supervisor=supervisor)
    shell.handle_input("list big files")
    supervisor.running = True

    assert shell.handle_interrupt() is InterruptAction.FORWARDED
    assert editor.prefill == "find . -size +100M"


def test_ctrl_c_at_prompt_with_suggestion_keeps_session(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127})
    translator = RecordingTranslator([result("find . -size +100M")])
    shell, _ = make_shell(
        tmp_path,
        ["list big files", KeyboardInterrupt, "ls"],
        translator=translator,
        supervisor=supervisor,
    )

    shell.run()

    # The interrupt cancelled the suggestion; "ls" ran as an ordinary command
    assert commands(supervisor) == ["list big files", "ls"]


def test_ctrl_c_at_idle_prompt_ends_run(tmp_path):
    supervisor = FakeSupervisor()
    shell, _ = make_shell(tmp_path, [KeyboardInterrupt, "ls"], supervisor=supervisor)

    shell.run()

    assert supervisor.runs == []
    assert shell.running is False


# ----------------------------------------------------------------------
# Real subprocesses
# ----------------------------------------------------------------------
@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")
def test_cd_then_pwd_in_real_shell(tmp_path):
    sub = tmp_path / "sub"
    sub.mkdir()
    out, err = io.BytesIO(), io.BytesIO()
    supervisor = ProcessSupervisor(ShellSpec("/bin/sh", ["-c"]), stdout=out, stderr=err)
    shell, _ = make_shell(tmp_path, ["cd sub", "pwd"], supervisor=supervisor)

    shell.run()

    printed = out.getvalue().decode().strip()
    assert printed in (str(sub), os.path.realpath(str(sub)))
    assert shell.last_outcome.success


@pytest.mark.skipif(sys.platform == "win32", reason="POSIX shell required")
def test_real_failure_feeds_stderr_to_translator(tmp_path):
    out, err = io.BytesIO(), io.BytesIO()
    supervisor = ProcessSupervisor(ShellSpec("/bin/sh", ["-c"]), stdout=out, stderr=err)
    translator = RecordingTranslator([result("echo fixed")], [None])
    shell, editor = make_shell(
        tmp_path,
        ["echo oops >&2; exit 4", ACCEPT],
        translator=translator,
        supervisor=supervisor,
    )

    shell.run()

    assert [text for text, _ in translator.calls] == ["echo oops >&2; exit 4"]
    assert shell.last_outcome.command == "echo fixed"
    assert shell.last_outcome.success
    assert err.getvalue() == b"oops\n"
    assert out.getvalue() == b"fixed\n"
    assert shell.running_process is None


def test_ctrl_c_during_context_capture_keeps_session(tmp_path):
    supervisor = FakeSupervisor({"list big files": 127})
    translator = RecordingTranslator([result("find . -size +100M")])
    shell, editor = make_shell(
        tmp_path, ["list big files", "ls"], translator=translator, supervisor=supervisor,
    )

    def interrupted_capture():
        raise KeyboardInterrupt

    shell.suggestions._context_provider = interrupted_capture

    shell.run()

    assert commands(supervisor) == ["list big files", "ls"]
    assert shell.suggestions.state is SuggestionState.IDLE
    assert translator.calls == []
    assert editor.prefill == ""
