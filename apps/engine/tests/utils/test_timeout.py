"""Tests for bounded store calls."""

import asyncio

import pytest

from models.errors import DecisionStoreUnavailable, GraphUnavailable
from utils.timeout import bounded_call


async def slow(value, delay):
    await asyncio.sleep(delay)
    return value


class TestBoundedCall:
    @pytest.mark.asyncio
    async def test_returns_result_within_timeout(self):
        result = await bounded_call(slow([["a", "b"]], 0), 1.0, "find_bounded_paths", GraphUnavailable)

        assert result == [["a", "b"]]

    @pytest.mark.asyncio
    async def test_timeout_raises_store_error(self):
        with pytest.raises(DecisionStoreUnavailable) as exc_info:
            await bounded_call(slow([], 1), 0.01, "list_decisions", DecisionStoreUnavailable)

        assert exc_info.value.operation == "list_decisions"
        assert isinstance(exc_info.value.cause, asyncio.TimeoutError)

    @pytest.mark.asyncio
    async def test_no_timeout_waits(self):
        assert await bounded_call(slow(1, 0.01), None, "ping", GraphUnavailable) == 1

    @pytest.mark.asyncio
    async def test_store_errors_pass_through(self):
        async def failing():
            raise GraphUnavailable("get_team_nodes")

        with pytest.raises(GraphUnavailable):
            await bounded_call(failing(), 1.0, "get_team_nodes", GraphUnavailable)
