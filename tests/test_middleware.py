"""
Unit tests for middleware: request-id correlation and the access log.

Uses httpx.AsyncClient against a lightweight FastAPI app that logs from
inside a route, so the request id can be checked on records emitted while
the request is in flight.
"""

import logging
import uuid

import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from investtrack.core.logging import RequestIDFilter, request_id_ctx
from investtrack.middleware import (
    PROCESS_TIME_HEADER,
    REQUEST_ID_HEADER,
    RequestIDMiddleware,
    RequestTimingMiddleware,
)

OWNER = "11111111-1111-1111-1111-111111111111"


def _make_test_app() -> FastAPI:
    app = FastAPI()
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(RequestTimingMiddleware)

    @app.get("/investments")
    async def list_investments():
        return {"request_id": request_id_ctx.get()}

    return app


@pytest.fixture()
def test_app():
    return _make_test_app()


async def _get(app: FastAPI, **headers):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        return await client.get("/investments", headers=headers)


class TestRequestIDMiddleware:
    @pytest.mark.asyncio
    async def test_generates_request_id_when_absent(self, test_app):
        resp = await _get(test_app)

        uuid.UUID(resp.headers[REQUEST_ID_HEADER])
        assert resp.json()["request_id"] == resp.headers[REQUEST_ID_HEADER]

    @pytest.mark.asyncio
    async def test_honours_existing_request_id(self, test_app):
        resp = await _get(test_app, **{REQUEST_ID_HEADER: "trace-abc"})

        assert resp.headers[REQUEST_ID_HEADER] == "trace-abc"
        assert resp.json()["request_id"] == "trace-abc"

    @pytest.mark.asyncio
    async def test_context_cleared_after_request(self, test_app):
        await _get(test_app, **{REQUEST_ID_HEADER: "trace-abc"})

        assert request_id_ctx.get() is None


class TestRequestTimingMiddleware:
    @pytest.mark.asyncio
    async def test_adds_process_time_header(self, test_app):
        resp = await _get(test_app)

        value = resp.headers[PROCESS_TIME_HEADER]
        assert value.endswith("ms")
        assert float(value[:-2]) >= 0

    @pytest.mark.asyncio
    async def test_access_log_carries_owner(self, test_app, caplog):
        with caplog.at_level(logging.INFO, logger="investtrack.middleware"):
            await _get(test_app, **{"X-User-ID": OWNER})

        record = next(r for r in caplog.records if r.name == "investtrack.middleware")
        assert record.owner_id == OWNER
        assert record.path == "/investments"
        assert record.status_code == 200
        assert f"owner={OWNER}" in record.getMessage()

    @pytest.mark.asyncio
    async def test_access_log_without_owner(self, test_app, caplog):
        with caplog.at_level(logging.INFO, logger="investtrack.middleware"):
            await _get(test_app)

        record = next(r for r in caplog.records if r.name == "investtrack.middleware")
        assert record.owner_id is None
        assert "owner=-" in record.getMessage()


class TestRequestIDFilter:
    def test_copies_context_onto_record(self):
        record = logging.LogRecord("t", logging.INFO, __file__, 1, "msg", None, None)
        token = request_id_ctx.set("rid-1")
        try:
            assert RequestIDFilter().filter(record) is True
        finally:
            request_id_ctx.reset(token)

        assert record.request_id == "rid-1"
