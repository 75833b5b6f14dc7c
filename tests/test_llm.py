"""Tests for worklog.llm — call_claude() and strip_json_fences()."""

from __future__ import annotations

import subprocess
from unittest.mock import MagicMock, patch

import pytest

from worklog.llm import LLMError, _resolve_model, call_claude, strip_json_fences


def _text_response(*texts: str) -> MagicMock:
    blocks = [MagicMock(type="text", text=t) for t in texts]
    return MagicMock(content=blocks)


# ---------------------------------------------------------------------------
# call_claude: Anthropic API path
# ---------------------------------------------------------------------------


@patch.dict("os.environ", {"ANTHROPIC_API_KEY": "sk-test", "WORKLOG_USE_CLI": ""})
class TestCallClaudeAPI:
    """Tests for the API path in call_claude()."""

    @patch("worklog.llm.anthropic.Anthropic")
    def test_returns_text(self, mock_client_cls: MagicMock) -> None:
        """API path returns the stripped, concatenated text blocks."""
        mock_client_cls.return_value.messages.create.return_value = _text_response(
            "  Hello ", "world  "
        )

        assert call_claude("sys", "usr") == "Hello world"

    @patch("worklog.llm.anthropic.Anthropic")
    def test_passes_model_and_prompts(self, mock_client_cls: MagicMock) -> None:
        """Short model names resolve; system and user prompts are forwarded."""
        create = mock_client_cls.return_value.messages.create
        create.return_value = _text_response("ok")

        call_claude("My system", "My user", model="haiku", max_tokens=512)

        kwargs = create.call_args.kwargs
        assert kwargs["model"] == "claude-haiku-4-5-20251001"
        assert kwargs["system"] == "My system"
        assert kwargs["messages"] == [{"role": "user", "content": "My user"}]
        assert kwargs["max_tokens"] == 512

    @patch("worklog.llm.anthropic.Anthropic")
    def test_blank_system_prompt_omitted(self, mock_client_cls: MagicMock) -> None:
        create = mock_client_cls.return_value.messages.create
        create.return_value = _text_response("ok")

        call_claude("   ", "usr")

        assert "system" not in create.call_args.kwargs

    @patch("worklog.llm.anthropic.Anthropic")
    def test_empty_response_raises(self, mock_client_cls: MagicMock) -> None:
        mock_client_cls.return_value.messages.create.return_value = _text_response("   ")

        with pytest.raises(LLMError, match="empty response"):
            call_claude("sys", "usr", label="pattern x5")

    @patch("worklog.llm.anthropic.Anthropic")
    def test_non_text_blocks_ignored(self, mock_client_cls: MagicMock) -> None:
        response = _text_response("kept")
        response.content.insert(0, MagicMock(type="tool_use"))
        mock_client_cls.return_value.messages.create.return_value = response

        assert call_claude("sys", "usr") == "kept"

    @patch.dict("os.environ", {"WORKLOG_USE_CLI": "1"})
    @patch("worklog.llm.subprocess.run")
    @patch("worklog.llm.anthropic.Anthropic")
    def test_use_cli_forces_subprocess(
        self, mock_client_cls: MagicMock, mock_run: MagicMock
    ) -> None:
        """WORKLOG_USE_CLI=1 forces the subprocess path even with a key."""
        mock_run.return_value = MagicMock(returncode=0, stdout="from CLI", stderr="")

        assert call_claude("sys", "usr") == "from CLI"
        mock_client_cls.assert_not_called()


# ---------------------------------------------------------------------------
# call_claude: subprocess path
# ---------------------------------------------------------------------------


@patch.dict("os.environ", {"WORKLOG_USE_CLI": "1"})
class TestCallClaudeSubprocess:
    """Tests for the subprocess fallback path in call_claude()."""

    @patch("worklog.llm.subprocess.run")
    def test_successful_call(self, mock_run: MagicMock) -> None:
        """Successful subprocess returns stripped stdout."""
        mock_run.return_value = MagicMock(
            returncode=0,
            stdout="  Hello from Claude  \n",
            stderr="",
        )
        result = call_claude("system prompt", "user prompt")
        assert result == "Hello from Claude"

        args, kwargs = mock_run.call_args
        assert args[0] == ["claude", "-p"]
        assert kwargs["input"] == "system prompt\n\nuser prompt"
        assert kwargs["timeout"] == 120

    @patch("worklog.llm.subprocess.run")
    def test_model_parameter(self, mock_run: MagicMock) -> None:
        """When model is provided, --model flag is added."""
        mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")
        call_claude("sys", "usr", model="haiku")

        args, _kwargs = mock_run.call_args
        assert args[0] == ["claude", "-p", "--model", "haiku"]

    @patch("worklog.llm.subprocess.run")
    def test_file_not_found_raises_llm_error(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(LLMError, match="not found") as exc_info:
            call_claude("sys", "usr")
        assert isinstance(exc_info.value.__cause__, FileNotFoundError)

    @patch("worklog.llm.subprocess.run")
    def test_timeout_raises_llm_error(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = subprocess.TimeoutExpired(cmd="claude", timeout=5)

        with pytest.raises(LLMError, match="timed out after 5s"):
            call_claude("sys", "usr", timeout=5)

    @patch("worklog.llm.subprocess.run")
    def test_nonzero_exit_truncates_stderr(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=1, stdout="", stderr="Z" * 1000)

        with pytest.raises(LLMError, match="exit 1") as exc_info:
            call_claude("sys", "usr")
        assert str(exc_info.value).count("Z") == 500

    @patch("worklog.llm.subprocess.run")
    def test_empty_output_raises(self, mock_run: MagicMock) -> None:
        mock_run.return_value = MagicMock(returncode=0, stdout="  \n", stderr="")

        with pytest.raises(LLMError, match="empty output"):
            call_claude("sys", "usr")

    @patch("worklog.llm.subprocess.run")
    def test_claudecode_env_filtered(self, mock_run: MagicMock) -> None:
        """CLAUDECODE is removed from the environment passed to subprocess."""
        mock_run.return_value = MagicMock(returncode=0, stdout="ok", stderr="")

        with patch.dict("os.environ", {"CLAUDECODE": "1", "HOME": "/home/test"}):
            call_claude("sys", "usr")

        env = mock_run.call_args.kwargs["env"]
        assert "CLAUDECODE" not in env
        assert env["HOME"] == "/home/test"

    @patch("worklog.llm.subprocess.run")
    def test_default_label(self, mock_run: MagicMock) -> None:
        mock_run.side_effect = FileNotFoundError()

        with pytest.raises(LLMError, match="label=summary"):
            call_claude("sys", "usr")


class TestResolveModel:
    def test_default(self) -> None:
        assert _resolve_model(None) == "claude-sonnet-4-6"

    def test_short_name(self) -> None:
        assert _resolve_model("opus") == "claude-opus-4-6"

    def test_full_id_passes_through(self) -> None:
        assert _resolve_model("claude-3-5-haiku-latest") == "claude-3-5-haiku-latest"


# ---------------------------------------------------------------------------
# strip_json_fences
# ---------------------------------------------------------------------------


class TestStripJsonFences:
    """Tests for the strip_json_fences() function."""

    def test_plain_json_object(self) -> None:
        assert strip_json_fences('  {"key": "value"}  ') == '{"key": "value"}'

    def test_json_fenced_block(self) -> None:
        assert strip_json_fences('```json\n{"key": "value"}\n```') == '{"key": "value"}'

    def test_generic_fenced_block(self) -> None:
        assert strip_json_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_leading_sentence(self) -> None:
        text = 'Here is the analysis:\n{"pattern": "x"}\nHope that helps.'
        assert strip_json_fences(text) == '{"pattern": "x"}'

    def test_no_json_returns_original(self) -> None:
        assert strip_json_fences("just prose") == "just prose"

    def test_close_before_open_brace(self) -> None:
        assert strip_json_fences("} oops {") == "} oops {"
