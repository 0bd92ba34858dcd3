"""Tests for utils/caller_context.py."""

import threading
from uuid import uuid4

import pytest

from utils.caller_context import (
    caller_context,
    clear_current_caller_id,
    get_current_caller_id,
    set_current_caller_id,
)


class TestCallerContext:

    def test_unset_raises(self):
        with pytest.raises(RuntimeError, match="No caller context"):
            get_current_caller_id()

    def test_set_and_clear(self):
        caller = uuid4()
        set_current_caller_id(caller)
        assert get_current_caller_id() == caller

        clear_current_caller_id()
        with pytest.raises(RuntimeError):
            get_current_caller_id()

    def test_context_manager_restores_previous(self):
        outer, inner = uuid4(), uuid4()

        with caller_context(outer):
            with caller_context(inner):
                assert get_current_caller_id() == inner
            assert get_current_caller_id() == outer

        with pytest.raises(RuntimeError):
            get_current_caller_id()

    def test_context_manager_restores_on_exception(self):
        with pytest.raises(ValueError):
            with caller_context(uuid4()):
                raise ValueError("boom")

        with pytest.raises(RuntimeError):
            get_current_caller_id()

    def test_new_thread_starts_without_caller(self, as_test_user):
        seen = []

        def worker():
            try:
                seen.append(get_current_caller_id())
            except RuntimeError:
                seen.append(None)

        thread = threading.Thread(target=worker)
        thread.start()
        thread.join()

        assert seen == [None]
