"""Tests for HTTPTransferClient against httpx.MockTransport."""
import json

import httpx
import pytest

from sheet_uploader.errors import AuthenticationError, TransferError
from sheet_uploader.models import Credential, Session, TransferItem, UploadConfig
from sheet_uploader.services.transfer_client import HTTPTransferClient


ENDPOINT = "http://import.local/"


def _client(handler, **config):
    return HTTPTransferClient(UploadConfig(**config), transport=httpx.MockTransport(handler))


def _login_ok(request):
    return httpx.Response(
        200, json={"success": True, "data": {"id": 7, "username": "admin", "token": "tok-1"}}
    )


class TestAuthenticate:
    @pytest.mark.asyncio
    async def test_success(self):
        captured = {}

        def handler(request):
            captured["url"] = str(request.url)
            captured["body"] = json.loads(request.content)
            return _login_ok(request)

        async with _client(handler) as client:
            credential = await client.authenticate(ENDPOINT, "admin", "secret")

        assert captured["url"] == "http://import.local/auth/admin/login"
        assert captured["body"] == {"username": "admin", "password": "secret"}
        assert credential == Credential(token="tok-1", user_id=7, username="admin")

    @pytest.mark.asyncio
    async def test_non_2xx(self):
        async with _client(lambda r: httpx.Response(401, json={"success": False})) as client:
            with pytest.raises(AuthenticationError, match="401"):
                await client.authenticate(ENDPOINT, "admin", "wrong")

    @pytest.mark.parametrize("payload", [
        {"success": False, "message": "locked"},
        {"success": True, "data": {}},
        {"success": True},
        ["not", "an", "object"],
    ])
    @pytest.mark.asyncio
    async def test_malformed_payload(self, payload):
        async with _client(lambda r: httpx.Response(200, json=payload)) as client:
            with pytest.raises(AuthenticationError):
                await client.authenticate(ENDPOINT, "admin", "secret")

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        async with _client(lambda r: httpx.Response(200, text="<html>")) as client:
            with pytest.raises(AuthenticationError, match="JSON"):
                await client.authenticate(ENDPOINT, "admin", "secret")

    @pytest.mark.asyncio
    async def test_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                await client.authenticate(ENDPOINT, "admin", "secret")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)

    @pytest.mark.asyncio
    async def test_requires_context(self):
        with pytest.raises(RuntimeError, match="not initialized"):
            await HTTPTransferClient().authenticate(ENDPOINT, "a", "b")


class TestTransfer:
    @pytest.fixture
    def workbook(self, tmp_path):
        path = tmp_path / "patents.xlsx"
        path.write_bytes(b"x" * 10_000)
        return TransferItem.from_path(path)

    @pytest.fixture
    def session(self):
        return Session(endpoint="http://import.local", credential=Credential(token="tok-1"))

    @pytest.mark.asyncio
    async def test_success_with_progress(self, workbook, session):
        captured = {}

        def handler(request):
            captured["request"] = request
            return httpx.Response(200, json={
                "success": True,
                "data": {"modifiedCount": 1, "upsertedCount": 2, "excelCount": 3},
            })

        progress = []
        async with _client(handler, chunk_size=1024, only_valid_invention=True) as client:
            result = await client.transfer(workbook, session, progress.append)

        request = captured["request"]
        assert request.url.path == "/admin/patent/import"
        assert request.url.params["onlyValidInvention"] == "true"
        assert request.headers["Authorization"] == "Bearer tok-1"
        assert request.headers["Content-Type"].startswith("multipart/form-data; boundary=")
        assert b'filename="patents.xlsx"' in request.content
        assert b"spreadsheetml.sheet" in request.content

        assert result.success is True
        assert result.data.upserted_count == 2
        assert progress == sorted(progress)
        assert len(progress) > 2
        assert progress[-1] == 100
        assert progress.count(100) == 1
        assert progress[-2] == 99

    @pytest.mark.asyncio
    async def test_default_only_valid_invention_false(self, workbook, session):
        captured = {}

        def handler(request):
            captured["params"] = request.url.params
            return httpx.Response(200, json={"success": True})

        async with _client(handler) as client:
            await client.transfer(workbook, session, lambda pct: None)

        assert captured["params"]["onlyValidInvention"] == "false"

    @pytest.mark.asyncio
    async def test_server_error(self, workbook, session):
        async with _client(lambda r: httpx.Response(500, text="database down")) as client:
            with pytest.raises(TransferError) as exc_info:
                await client.transfer(workbook, session, lambda pct: None)

        assert exc_info.value.status_code == 500
        assert exc_info.value.message == "database down"

    @pytest.mark.asyncio
    async def test_malformed_body(self, workbook, session):
        async with _client(lambda r: httpx.Response(200, text="ok")) as client:
            with pytest.raises(TransferError, match="Malformed"):
                await client.transfer(workbook, session, lambda pct: None)

    @pytest.mark.asyncio
    async def test_rejected_import(self, workbook, session):
        progress = []
        payload = {"success": False, "message": "sheet has no header"}
        async with _client(lambda r: httpx.Response(200, json=payload)) as client:
            with pytest.raises(TransferError, match="no header"):
                await client.transfer(workbook, session, progress.append)

        assert progress
        assert 100 not in progress

    @pytest.mark.asyncio
    async def test_network_failure(self, workbook, session):
        def handler(request):
            raise httpx.ReadTimeout("timed out", request=request)

        async with _client(handler) as client:
            with pytest.raises(TransferError, match="timed out"):
                await client.transfer(workbook, session, lambda pct: None)

    @pytest.mark.asyncio
    async def test_missing_file(self, tmp_path, session):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"success": True})

        item = TransferItem.from_path(tmp_path / "gone.xlsx")
        async with _client(handler) as client:
            with pytest.raises(TransferError, match="File not found"):
                await client.transfer(item, session, lambda pct: None)
        assert calls == []


class TestConnection:
    @pytest.mark.asyncio
    async def test_any_response_is_reachable(self):
        async with _client(lambda r: httpx.Response(401)) as client:
            assert await client.test_connection(ENDPOINT) is True

    @pytest.mark.asyncio
    async def test_transport_error_is_unreachable(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        async with _client(handler) as client:
            assert await client.test_connection(ENDPOINT) is False
