"""Tests for the ctxwindow CLI."""

import json

import pytest

from conftest import tagged

from ctxwindow.cli.main import load_conversation_file, main


def write_json(path, data):
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def run_json(capsys, argv):
    code = main(argv + ["--format", "json"])
    return code, json.loads(capsys.readouterr().out)


@pytest.fixture(autouse=True)
def _no_otel(monkeypatch):
    monkeypatch.delenv("OTEL_ENABLED", raising=False)
    for name in ("BUFFER_FRACTION", "RESERVED_FRACTION", "FALLBACK_FRACTION", "PENALTY_TOKENS"):
        monkeypatch.delenv(f"CTXWINDOW_{name}", raising=False)


@pytest.fixture
def conversation_file(tmp_path):
    """Over-budget conversation with one summarizable marker."""
    return write_json(
        tmp_path / "conversation.json",
        {
            "messages": [
                {"role": "user", "content": "start"},
                {"role": "assistant", "content": "ok"},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": "File:"},
                        {"type": "text", "text": tagged("abc", "x" * 4000)},
                    ],
                },
                {"role": "assistant", "content": "ack"},
                {"role": "user", "content": "go"},
            ],
            "summaries": {"abc": "a file of x"},
            "prior_tokens": 5000,
        },
    )


@pytest.fixture
def plain_file(tmp_path):
    """Seven short alternating messages."""
    roles = ["user", "assistant"]
    return write_json(
        tmp_path / "plain.json",
        [{"role": roles[i % 2], "content": f"m{i}"} for i in range(7)],
    )


class TestLoadConversationFile:
    """Tests for conversation file parsing."""

    def test_object_form(self, conversation_file):
        """Test that summaries and prior tokens are read."""
        conversation = load_conversation_file(conversation_file)

        assert len(conversation.messages) == 5
        assert conversation.summaries == {"abc": "a file of x"}
        assert conversation.prior_tokens == 5000

    def test_list_form(self, plain_file):
        """Test that a bare list is accepted."""
        conversation = load_conversation_file(plain_file)

        assert len(conversation.messages) == 7
        assert conversation.summaries == {}
        assert conversation.prior_tokens is None

    def test_wrong_shape(self, tmp_path):
        """Test that other JSON values are rejected."""
        with pytest.raises(ValueError):
            load_conversation_file(write_json(tmp_path / "bad.json", {"msgs": []}))

    @pytest.mark.parametrize("prior_tokens", ["100", 1.5, True, [100]])
    def test_prior_tokens_must_be_int(self, tmp_path, prior_tokens):
        """Test that non-integer prior token counts are rejected with the file path."""
        path = write_json(
            tmp_path / "bad_prior.json",
            {"messages": [{"role": "user", "content": "hi"}], "prior_tokens": prior_tokens},
        )

        with pytest.raises(ValueError, match="prior_tokens"):
            load_conversation_file(path)

    def test_summaries_coerced_to_str(self, tmp_path):
        """Test that summaries from the file are read as strings, like a summaries file."""
        path = write_json(
            tmp_path / "numeric.json",
            {"messages": [{"role": "user", "content": "hi"}], "summaries": {"7": 42}},
        )

        assert load_conversation_file(path).summaries == {"7": "42"}

    def test_summaries_must_be_object(self, tmp_path):
        """Test that a non-object summaries value is rejected."""
        path = write_json(
            tmp_path / "list_summaries.json",
            {"messages": [{"role": "user", "content": "hi"}], "summaries": ["a"]},
        )

        with pytest.raises(ValueError, match="summaries"):
            load_conversation_file(path)


class TestReduceCommand:
    """Tests for the reduce command."""

    def test_summarizes(self, capsys, conversation_file, tmp_path):
        """Test that the marker is summarized and the result written."""
        output = tmp_path / "out.json"
        code, data = run_json(
            capsys,
            ["reduce", conversation_file, "-w", "1000", "-c", "heuristic", "-o", str(output)],
        )

        assert code == 0
        assert data["path"] == "summarized"
        assert data["summarized_ids"] == ["abc"]
        assert data["final_count"] == 5
        written = json.loads(output.read_text())
        assert written[2]["content"][1]["text"] == "[Content for part abc was summarized: a file of x]"

    def test_summaries_file(self, capsys, tmp_path):
        """Test that --summaries merges an external summary map."""
        conversation = write_json(
            tmp_path / "c.json",
            {
                "messages": [
                    {"role": "user", "content": "start"},
                    {"role": "user", "content": [{"type": "text", "text": tagged("q", "y" * 100)}]},
                    {"role": "user", "content": "end"},
                ],
                "prior_tokens": 5000,
            },
        )
        summaries = write_json(tmp_path / "s.json", {"q": "short"})

        code, data = run_json(capsys, ["reduce", conversation, "-w", "1000", "--summaries", summaries])

        assert code == 0
        assert data["summarized_ids"] == ["q"]

    def test_truncates(self, capsys, plain_file):
        """Test that a conversation without summaries is truncated."""
        code, data = run_json(capsys, ["reduce", plain_file, "-w", "1000", "-p", "5000"])

        assert code == 0
        assert data["path"] == "truncated"
        assert data["removed_count"] == 2

    def test_measures_prior_tokens(self, capsys, plain_file):
        """Test that prior tokens are measured when not given."""
        code, data = run_json(capsys, ["reduce", plain_file, "-w", "1000"])

        assert code == 0
        assert data["path"] == "unchanged"
        assert data["effective_tokens"] == 7

    def test_missing_file(self, capsys, tmp_path):
        """Test that a missing file is reported as an error."""
        code, data = run_json(capsys, ["reduce", str(tmp_path / "nope.json"), "-w", "1000"])

        assert code == 1
        assert "error" in data

    @pytest.mark.parametrize("window", ["0", "-5"])
    def test_non_positive_window(self, capsys, plain_file, window):
        """Test that a non-positive window is reported instead of raised."""
        code, data = run_json(capsys, ["reduce", plain_file, "-w", window])

        assert code == 1
        assert "context_window" in data["error"]

    def test_string_prior_tokens(self, capsys, tmp_path):
        """Test that a string prior_tokens in the file is reported instead of raised."""
        path = write_json(
            tmp_path / "c.json",
            {"messages": [{"role": "user", "content": "hi"}], "prior_tokens": "100"},
        )

        code, data = run_json(capsys, ["reduce", path, "-w", "1000"])

        assert code == 1
        assert "prior_tokens" in data["error"]

    def test_needs_window(self, capsys, plain_file):
        """Test that reduce without a model or window fails."""
        code, data = run_json(capsys, ["reduce", plain_file])

        assert code == 1
        assert "context window" in data["error"]


class TestBudgetCommand:
    """Tests for the budget command."""

    def test_window(self, capsys):
        """Test the budget for a raw window."""
        code, data = run_json(capsys, ["budget", "-w", "1000"])

        assert code == 0
        assert data["allowed_tokens"] == pytest.approx(700)

    def test_model(self, capsys):
        """Test the budget for a registry model."""
        code, data = run_json(capsys, ["budget", "-m", "gpt-4o"])

        assert code == 0
        assert data["context_window"] == 128_000
        assert data["reserved_tokens"] == 16_384

    def test_zero_window(self, capsys):
        """Test that a zero window fails the same way as in reduce."""
        code, data = run_json(capsys, ["budget", "-w", "0"])

        assert code == 1
        assert "context_window" in data["error"]

    def test_unknown_model(self, capsys):
        """Test that unknown models fail."""
        code, data = run_json(capsys, ["budget", "-m", "gpt-1"])

        assert code == 1
        assert "Unsupported model" in data["error"]


class TestScanCommand:
    """Tests for the scan command."""

    def test_lists_markers(self, capsys, conversation_file):
        """Test that markers and their summary status are listed."""
        code, data = run_json(capsys, ["scan", conversation_file])

        assert code == 0
        assert data["count"] == 1
        marker = data["markers"][0]
        assert marker["message_index"] == 2
        assert marker["id"] == "abc"
        assert marker["body_chars"] == 4000
        assert marker["has_summary"] is True


class TestTruncateCommand:
    """Tests for the truncate command."""

    def test_truncate(self, capsys, plain_file, tmp_path):
        """Test that truncation writes the shortened conversation."""
        output = tmp_path / "out.json"
        code, data = run_json(capsys, ["truncate", plain_file, "--fraction", "0.5", "-o", str(output)])

        assert code == 0
        assert data == {"fraction": 0.5, "original_count": 7, "final_count": 5, "removed_count": 2}
        assert [m["content"] for m in json.loads(output.read_text())] == ["m0", "m3", "m4", "m5", "m6"]

    def test_bad_fraction(self, capsys, plain_file):
        """Test that a fraction above 1 is an error."""
        code, data = run_json(capsys, ["truncate", plain_file, "--fraction", "2"])

        assert code == 1
        assert "fraction" in data["error"]


class TestListModels:
    """Tests for the list-models command."""

    def test_json(self, capsys):
        """Test that the registry is listed."""
        code, data = run_json(capsys, ["list-models"])

        assert code == 0
        names = {m["model"] for m in data}
        assert "gpt-4o" in names
        assert "claude-sonnet-4-5-20250929" in names


class TestMain:
    """Tests for the top-level parser."""

    def test_no_command(self, capsys):
        """Test that running without a command prints help."""
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out
