"""Tests for logging helpers and the request tracking decorator."""

import logging

import pytest

from fortnox_mcp.core.decorators import track_request
from fortnox_mcp.core.exceptions import (
    ExpiredCredentialError,
    MCPToolError,
    QuotaExceededError,
)
from fortnox_mcp.core.logging import (
    PACKAGE_LOGGER,
    RequestIdFilter,
    mask_token,
    request_id_ctx,
)


class TestMaskToken:
    def test_none_and_empty(self):
        assert mask_token(None) == "<none>"
        assert mask_token("") == "<none>"

    def test_short_token_fully_hidden(self):
        assert mask_token("abcd1234") == "****"

    def test_long_token_keeps_ends(self):
        masked = mask_token("abcdefghijklmnop")
        assert masked == "abcd...mnop"
        assert "efgh" not in masked


class TestRequestIdFilter:
    def test_adds_empty_prefix_outside_request(self):
        record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
        assert RequestIdFilter().filter(record)
        assert record.request_id == ""

    def test_adds_request_id_inside_request(self):
        token = request_id_ctx.set("abc123")
        try:
            record = logging.LogRecord("x", logging.INFO, __file__, 1, "msg", None, None)
            RequestIdFilter().filter(record)
            assert record.request_id == "[abc123] "
        finally:
            request_id_ctx.reset(token)


class TestTrackRequest:
    @pytest.mark.asyncio
    async def test_sets_request_id_during_call_and_resets_after(self):
        seen = []

        @track_request("sample")
        async def tool():
            seen.append(request_id_ctx.get())
            return "done"

        assert await tool() == "done"
        assert seen[0] is not None
        assert len(seen[0]) == 8
        assert request_id_ctx.get() is None

    @pytest.mark.asyncio
    async def test_preserves_function_metadata(self):
        @track_request("sample")
        async def documented_tool():
            """Docstring."""

        assert documented_tool.__name__ == "documented_tool"
        assert documented_tool.__doc__ == "Docstring."

    @pytest.mark.asyncio
    async def test_auth_failure_logged_as_warning(self, caplog):
        @track_request("sample")
        async def tool():
            try:
                raise ExpiredCredentialError("expired")
            except ExpiredCredentialError as e:
                raise MCPToolError("not authorized") from e

        with caplog.at_level(logging.DEBUG, logger=PACKAGE_LOGGER):
            with pytest.raises(MCPToolError):
                await tool()

        failures = [r for r in caplog.records if "Failed sample" in r.getMessage()]
        assert len(failures) == 1
        assert failures[0].levelno == logging.WARNING
        assert "authorization" in failures[0].getMessage()

    @pytest.mark.asyncio
    async def test_quota_failure_logged_as_upstream_warning(self, caplog):
        @track_request("sample")
        async def tool():
            raise QuotaExceededError(2.0)

        with caplog.at_level(logging.DEBUG, logger=PACKAGE_LOGGER):
            with pytest.raises(QuotaExceededError):
                await tool()

        failures = [r for r in caplog.records if "Failed sample" in r.getMessage()]
        assert failures[0].levelno == logging.WARNING
        assert "upstream" in failures[0].getMessage()

    @pytest.mark.asyncio
    async def test_unexpected_failure_logged_as_error(self, caplog):
        @track_request("sample")
        async def tool():
            raise ValueError("boom")

        with caplog.at_level(logging.DEBUG, logger=PACKAGE_LOGGER):
            with pytest.raises(ValueError):
                await tool()

        failures = [r for r in caplog.records if "Failed sample" in r.getMessage()]
        assert failures[0].levelno == logging.ERROR
