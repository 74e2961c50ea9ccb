"""Tests for ordered fallback cascades."""

from unittest.mock import AsyncMock

import pytest

from pairpilot.analysis.cascade import Attempt, try_in_order
from pairpilot.inference.errors import RateLimitedError, UnauthorizedError, UnavailableError


class TestTryInOrder:
    async def test_first_success_wins(self):
        second = AsyncMock(return_value="b")
        result = await try_in_order([
            Attempt("a", AsyncMock(return_value="a")),
            Attempt("b", second),
        ])
        assert result.value == "a"
        assert result.attempt == "a"
        assert result.used_fallback is False
        second.assert_not_awaited()

    async def test_falls_through_transient_failures(self):
        result = await try_in_order([
            Attempt("a", AsyncMock(side_effect=UnavailableError("down"))),
            Attempt("b", AsyncMock(side_effect=RateLimitedError("slow"))),
            Attempt("c", AsyncMock(return_value="c")),
        ])
        assert result.value == "c"
        assert [name for name, _ in result.failures] == ["a", "b"]
        assert result.used_fallback is True

    async def test_local_attempt_marks_fallback(self):
        result = await try_in_order([Attempt("local", AsyncMock(return_value=1), remote=False)])
        assert result.used_fallback is True
        assert result.failures == ()

    async def test_fatal_failure_skips_remaining_remote(self):
        remote = AsyncMock(return_value="never")
        result = await try_in_order([
            Attempt("a", AsyncMock(side_effect=UnauthorizedError("bad token"))),
            Attempt("b", remote),
            Attempt("local", AsyncMock(return_value="local"), remote=False),
        ])
        assert result.value == "local"
        remote.assert_not_awaited()

    async def test_raises_last_failure_when_all_fail(self):
        with pytest.raises(RateLimitedError):
            await try_in_order([
                Attempt("a", AsyncMock(side_effect=UnavailableError("down"))),
                Attempt("b", AsyncMock(side_effect=RateLimitedError("slow"))),
            ])

    async def test_other_exceptions_propagate(self):
        later = AsyncMock(return_value="x")
        with pytest.raises(ZeroDivisionError):
            await try_in_order([
                Attempt("a", AsyncMock(side_effect=ZeroDivisionError())),
                Attempt("b", later),
            ])
        later.assert_not_awaited()

    async def test_empty_list_rejected(self):
        with pytest.raises(ValueError):
            await try_in_order([])
