"""
Tests for the AI suggestion state machine.
Run with: python -m pytest tests/
"""

from fakes import ScriptedEditor, RecordingTranslator, result

from terminai.process import ExitOutcome
from terminai.suggestion import SuggestionStateMachine, SuggestionState, CommandRequest
from terminai.translator import TranslationCancelled


def make_machine(translator=None, answers=None):
    editor = ScriptedEditor(answers=answers)
    contexts = []

    def provider():
        contexts.append("ctx")
        return None

    machine = SuggestionStateMachine(translator, editor, provider)
    return machine, editor, contexts


def failed(command, code=127, stderr="not found\n"):
    return ExitOutcome(command=command, exit_code=code, stderr=stderr)


def ok(command):
    return ExitOutcome(command=command, exit_code=0)


def test_success_never_asks_translator():
    translator = RecordingTranslator([result("ls -la")])
    machine, editor, _ = make_machine(translator)

    machine.on_command_finished(CommandRequest("ls -la"), ok("ls -la"))

    assert translator.calls == []
    assert machine.state is SuggestionState.IDLE
    assert editor.prefill == ""


def test_failure_asks_exactly_once_and_prefills():
    translator = RecordingTranslator([result("find . -size +100M", "Big files")])
    machine, editor, contexts = make_machine(translator)

    machine.on_command_finished(CommandRequest("list big files"), failed("list big files"))

    assert [text for text, _ in translator.calls] == ["list big files"]
    assert contexts == ["ctx"]
    assert machine.state is SuggestionState.SUGGESTION_OFFERED
    assert machine.context.original_user_text == "list big files"
    assert machine.context.command == "find . -size +100M"
    assert editor.prefill == "find . -size +100M"


def test_take_pending_consumes_once():
    translator = RecordingTranslator([result("pwd")])
    machine, _, _ = make_machine(translator)
    machine.on_command_finished(CommandRequest("where am i"), failed("where am i"))

    pending = machine.take_pending()
    assert pending is not None
    assert pending.original_user_text == "where am i"
    assert machine.state is SuggestionState.IDLE
    assert machine.context is None
    assert machine.take_pending() is None


def test_no_suggestion_returns_to_idle():
    translator = RecordingTranslator([None])
    machine, editor, _ = make_machine(translator)

    machine.on_command_finished(CommandRequest("gibberish"), failed("gibberish"))

    assert len(translator.calls) == 1
    assert machine.state is SuggestionState.IDLE
    assert editor.prefill == ""


def test_translator_exception_is_no_suggestion():
    class Exploding(RecordingTranslator):
        def translate(self, text, context=None):
            raise RuntimeError("network down")

    machine, _, _ = make_machine(Exploding())
    machine.on_command_finished(CommandRequest("x"), failed("x"))
    assert machine.state is SuggestionState.IDLE


def test_cancelled_translation_returns_to_idle():
    class Cancelling(RecordingTranslator):
        def translate(self, text, context=None):
            raise TranslationCancelled()

    machine, editor, _ = make_machine(Cancelling())
    machine.on_command_finished(CommandRequest("x"), failed("x"))
    assert machine.state is SuggestionState.IDLE
    assert editor.prefill == ""


def test_no_translator_means_no_request():
    machine, _, contexts = make_machine(None)
    machine.on_command_finished(CommandRequest("list big files"), failed("list big files"))
    assert machine.state is SuggestionState.IDLE
    assert contexts == []


def test_disabled_translator_means_no_request():
    translator = RecordingTranslator([result("ls")])
    translator.llm_enabled = False
    machine, _, _ = make_machine(translator)
    machine.on_command_finished(CommandRequest("list"), failed("list"))
    assert translator.calls == []


def test_user_interrupt_is_not_translated():
    translator = RecordingTranslator([result("ls")])
    machine, _, _ = make_machine(translator)
    outcome = ExitOutcome(command="sleep 100", signal_name="SIGINT", interrupted=True)

    machine.on_command_finished(CommandRequest("sleep 100"), outcome)

    assert translator.calls == []
    assert machine.state is SuggestionState.IDLE


def test_signal_death_without_user_interrupt_is_translated():
    translator = RecordingTranslator([result("ulimit -a")])
    machine, _, _ = make_machine(translator)
    outcome = ExitOutcome(command="crashy", signal_name="SIGSEGV")

    machine.on_command_finished(CommandRequest("crashy"), outcome)

    assert len(translator.calls) == 1


def test_spawn_error_is_not_translated():
    translator = RecordingTranslator([result("ls")])
    machine, _, _ = make_machine(translator)
    outcome = ExitOutcome(command="ls", spawn_error="No such file or directory")

    machine.on_command_finished(CommandRequest("ls"), outcome)

    assert translator.calls == []


def test_suggestion_success_returns_to_idle_without_fix():
    translator = RecordingTranslator([result("find . -size +100M")])
    machine, editor, _ = make_machine(translator)
    machine.on_command_finished(CommandRequest("list big files"), failed("list big files"))
    pending = machine.take_pending()

    request = CommandRequest.from_suggestion("find . -size +100M", pending)
    machine.on_command_finished(request, ok("find . -size +100M"))

    assert machine.state is SuggestionState.IDLE
    assert editor.questions == []
    assert translator.fix_calls == []


def test_failed_suggestion_declined_fix_makes_no_call():
    translator = RecordingTranslator([result("find . -size +100M")], [result("unused")])
    machine, editor, _ = make_machine(translator, answers=[False])
    machine.on_command_finished(CommandRequest("list big files"), failed("list big files"))
    pending = machine.take_pending()

    request = CommandRequest.from_suggestion("find . -size +100M", pending)
    machine.on_command_finished(request, failed("find . -size +100M", code=1))

    assert len(editor.questions) == 1
    assert translator.fix_calls == []
    assert len(translator.calls) == 1
    assert machine.state is SuggestionState.IDLE


def test_failed_suggestion_accepted_fix_keeps_original_text():
    translator = RecordingTranslator(
        [result("find . -size +100M")],
        [result("find . -type f -size +100M"), result("du -ah . | sort -rh | head")],
    )
    machine, editor, _ = make_machine(translator, answers=[True, True])
    machine.on_command_finished(CommandRequest("list big files"), failed("list big files"))

    # First suggestion fails
    pending = machine.take_pending()
    request = CommandRequest.from_suggestion(pending.command, pending)
    machine.on_command_finished(
        request, failed(pending.command, code=2, stderr="find: bad size\n"),
    )

    assert translator.fix_calls == [{
        "original_text": "list big files",
        "failed_command": "find . -size +100M",
        "exit_code": 2,
        "error_text": "find: bad size\n",
    }]
    assert machine.state is SuggestionState.SUGGESTION_OFFERED
    assert machine.context.original_user_text == "list big files"
    assert editor.prefill == "find . -type f -size +100M"

    # The fix fails too: the next fix still references the user's intent
    pending = machine.take_pending()
    request = CommandRequest.from_suggestion(pending.command, pending)
    machine.on_command_finished(request, failed(pending.command, code=1))

    assert translator.fix_calls[1]["original_text"] == "list big files"
    assert translator.fix_calls[1]["failed_command"] == "find . -type f -size +100M"
    assert len(translator.calls) == 1


def test_fix_with_no_result_returns_to_idle():
    translator = RecordingTranslator([result("bad")], [None])
    machine, editor, _ = make_machine(translator, answers=[True])
    machine.on_command_finished(CommandRequest("do it"), failed("do it"))
    pending = machine.take_pending()

    machine.on_command_finished(CommandRequest.from_suggestion("bad", pending), failed("bad"))

    assert len(translator.fix_calls) == 1
    assert machine.state is SuggestionState.IDLE
    assert editor.prefill == ""


def test_signal_death_fix_reports_status_code():
    translator = RecordingTranslator([result("bad")], [None])
    machine, _, _ = make_machine(translator, answers=[True])
    machine.on_command_finished(CommandRequest("do it"), failed("do it"))
    pending = machine.take_pending()

    outcome = ExitOutcome(command="bad", signal_name="SIGKILL", stderr="")
    machine.on_command_finished(CommandRequest.from_suggestion("bad", pending), outcome)

    assert translator.fix_calls[0]["exit_code"] == 137


def test_cancel_clears_offer_and_editor():
    translator = RecordingTranslator([result("ls -la")])
    machine, editor, _ = make_machine(translator)
    machine.on_command_finished(CommandRequest("show files"), failed("show files"))

    assert machine.cancel() is True
    assert machine.state is SuggestionState.IDLE
    assert machine.context is None
    assert editor.prefill == ""
    assert machine.cancel() is False


def test_new_offer_replaces_old_one():
    translator = RecordingTranslator([result("one"), result("two")])
    machine, editor, _ = make_machine(translator)
    machine.on_command_finished(CommandRequest("a"), failed("a"))
    machine.take_pending()
    machine.on_command_finished(CommandRequest("b"), failed("b"))

    assert machine.context.command == "two"
    assert machine.context.original_user_text == "b"
    assert editor.prefill == "two"


def test_interrupt_while_capturing_context_returns_to_idle():
    translator = RecordingTranslator([result("ls")])
    editor = ScriptedEditor()

    def interrupted_provider():
        raise KeyboardInterrupt

    machine = SuggestionStateMachine(translator, editor, interrupted_provider)
    machine.on_command_finished(CommandRequest("list files"), failed("list files"))

    assert machine.state is SuggestionState.IDLE
    assert translator.calls == []
    assert editor.prefill == ""


def test_interrupt_while_capturing_fix_context_returns_to_idle():
    translator = RecordingTranslator([result("bad")], [result("unused")])
    editor = ScriptedEditor(answers=[True])
    calls = []

    def provider():
        calls.append("ctx")
        if len(calls) > 1:
            raise KeyboardInterrupt
        return None

    machine = SuggestionStateMachine(translator, editor, provider)
    machine.on_command_finished(CommandRequest("do it"), failed("do it"))
    pending = machine.take_pending()

    machine.on_command_finished(CommandRequest.from_suggestion("bad", pending), failed("bad"))

    assert machine.state is SuggestionState.IDLE
    assert translator.fix_calls == []


def test_cancel_while_awaiting_resets():
    machine, _, _ = make_machine(RecordingTranslator())
    machine.state = SuggestionState.AWAITING_SUGGESTION

    assert machine.cancel() is True
    assert machine.state is SuggestionState.IDLE
