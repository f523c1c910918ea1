"""Tests for parity-preserving truncation."""

import pytest

from ctxwindow.context.truncation import messages_to_remove, truncate_conversation
from ctxwindow.core.errors import InvalidConversation, InvalidFraction
from ctxwindow.core.types import Message


class TestMessagesToRemove:
    """Tests for the removal arithmetic."""

    def test_odd_raw_count_rounds_down_to_even(self):
        """Test that floor(6 * 0.5) = 3 becomes 2."""
        assert messages_to_remove(7, 0.5) == 2

    def test_even_raw_count_is_kept(self):
        """Test that an already even count is unchanged."""
        assert messages_to_remove(9, 0.5) == 4

    def test_fraction_one_removes_everything_even(self):
        """Test that fraction 1 removes the largest even count after the first."""
        assert messages_to_remove(6, 1.0) == 4
        assert messages_to_remove(5, 1.0) == 4

    def test_zero_fraction(self):
        """Test that fraction 0 removes nothing."""
        assert messages_to_remove(10, 0.0) == 0

    @pytest.mark.parametrize("fraction", [-0.1, 1.5])
    def test_fraction_out_of_range(self, fraction):
        """Test that fractions outside [0, 1] are rejected."""
        with pytest.raises(InvalidFraction):
            messages_to_remove(5, fraction)


class TestTruncateConversation:
    """Tests for truncate_conversation."""

    def test_single_message_is_returned(self, make_conversation):
        """Test that [m0] truncates to [m0] for any fraction."""
        messages = make_conversation(1)
        for fraction in (0.0, 0.5, 1.0):
            result = truncate_conversation(messages, fraction)
            assert result == messages
            assert result[0] is messages[0]

    def test_seven_messages_half(self, make_conversation):
        """Test that 7 messages at 0.5 drop indexes 1 and 2."""
        messages = make_conversation(7)
        result = truncate_conversation(messages, 0.5)

        assert [m.content for m in result] == ["m0", "m3", "m4", "m5", "m6"]

    def test_first_message_always_kept(self, make_conversation):
        """Test that the first message survives every fraction."""
        messages = make_conversation(12)
        for fraction in (0.0, 0.1, 0.25, 0.5, 0.75, 1.0):
            assert truncate_conversation(messages, fraction)[0] is messages[0]

    def test_removed_count_is_even(self, make_conversation):
        """Test that the number of removed messages is always even."""
        for n in range(1, 15):
            messages = make_conversation(n)
            for fraction in (0.1, 0.3, 0.5, 0.7, 0.9, 1.0):
                result = truncate_conversation(messages, fraction)
                assert len(result) <= len(messages)
                assert (len(messages) - len(result)) % 2 == 0

    def test_role_alternation_preserved(self, make_conversation):
        """Test that the message after the first is still an assistant turn."""
        messages = make_conversation(9)
        result = truncate_conversation(messages, 0.5)

        assert result[1].role == messages[1].role
        assert result[-1] is messages[-1]

    def test_zero_removal_is_noop(self, make_conversation):
        """Test that a removal count of 0 returns an equal list."""
        messages = make_conversation(3)
        result = truncate_conversation(messages, 0.4)  # floor(2 * 0.4) = 0

        assert result == messages

    def test_input_not_mutated(self, make_conversation):
        """Test that truncation builds a new list."""
        messages = make_conversation(7)
        snapshot = list(messages)
        result = truncate_conversation(messages, 0.5)

        assert messages == snapshot
        assert result is not messages

    def test_empty_conversation(self):
        """Test that an empty conversation is rejected."""
        with pytest.raises(InvalidConversation):
            truncate_conversation([], 0.5)

    def test_accepts_tuple(self):
        """Test that any sequence of messages is accepted."""
        messages = tuple(Message.user(f"u{i}") for i in range(5))
        result = truncate_conversation(messages, 0.5)

        assert isinstance(result, list)
        assert [m.content for m in result] == ["u0", "u3", "u4"]
