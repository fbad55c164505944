"""Tests for utils/actor_context.py - actor identity propagation via contextvars."""

from uuid import uuid4

import pytest

from utils.actor_context import (
    get_current_actor_id,
    peek_current_actor_id,
    set_current_actor_id,
    clear_current_actor_id,
    actor_context,
)


class TestGetCurrentActorId:
    """Tests for get_current_actor_id()."""

    def test_raises_without_set(self):
        """Must raise RuntimeError when no context is set."""
        clear_current_actor_id()
        with pytest.raises(RuntimeError, match="No actor context"):
            get_current_actor_id()

    def test_peek_returns_none_without_set(self):
        clear_current_actor_id()
        assert peek_current_actor_id() is None


class TestSetAndClear:

    def test_set_then_get_returns_uuid(self):
        actor_id = uuid4()
        set_current_actor_id(actor_id)
        assert get_current_actor_id() == actor_id
        assert peek_current_actor_id() == actor_id
        clear_current_actor_id()

    def test_clear_then_get_raises(self):
        set_current_actor_id(uuid4())
        clear_current_actor_id()
        with pytest.raises(RuntimeError):
            get_current_actor_id()


class TestActorContextManager:
    """Tests for actor_context() context manager."""

    def test_sets_and_clears(self):
        """Context manager should set inside, clear after."""
        clear_current_actor_id()
        actor_id = uuid4()

        with actor_context(actor_id):
            assert get_current_actor_id() == actor_id

        assert peek_current_actor_id() is None

    def test_restores_previous(self):
        """Nested context managers should restore outer context."""
        outer_id = uuid4()
        inner_id = uuid4()

        with actor_context(outer_id):
            with actor_context(inner_id):
                assert get_current_actor_id() == inner_id
            assert get_current_actor_id() == outer_id

    def test_clears_on_exception(self):
        clear_current_actor_id()

        with pytest.raises(ValueError):
            with actor_context(uuid4()):
                raise ValueError("boom")

        assert peek_current_actor_id() is None
