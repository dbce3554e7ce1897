"""Tests for the asynchronous client (AsyncMalShareClient)."""

from __future__ import annotations

from pathlib import Path

import httpx
import pytest
import respx

from malshare_sdk.async_client import AsyncMalShareClient, AsyncMalShareConnector
from malshare_sdk.exceptions import MalformedResponseError, NotFoundError, TransportError
from malshare_sdk.models import ApiLimit, BatchPolicy, HashTriple, SampleDetails
from tests.conftest import API, API_KEY, BASE, MD5, SHA1, SHA256


@pytest.fixture()
def client() -> AsyncMalShareClient:
    return AsyncMalShareClient(API_KEY, base_url=BASE)


class TestSingleItem:
    @respx.mock
    async def test_get_list(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlistraw").respond(content=f"{MD5} {SHA1} {SHA256}\n".encode())
        assert await client.get_list() == [HashTriple(MD5, SHA1, SHA256)]

    @respx.mock
    async def test_get_sources(self, client: AsyncMalShareClient):
        respx.get(f"{API}getsourcesraw").respond(content=b"web\nupload\n")
        assert await client.get_sources() == ["web", "upload"]

    @respx.mock
    async def test_get_file_not_found(self, client: AsyncMalShareClient):
        respx.get(f"{API}getfile&hash={MD5}").respond(content=b"Sample not found by hash")
        sample = await client.get_file(MD5)
        assert sample.found is False

    @respx.mock
    async def test_get_file_details_empty(self, client: AsyncMalShareClient):
        respx.get(f"{API}details&hash={MD5}").respond(json={"MD5": MD5})
        assert await client.get_file_details(MD5) == SampleDetails.empty()

    @respx.mock
    async def test_get_recent_files_by_type(self, client: AsyncMalShareClient):
        respx.get(f"{API}type&type=PE32").respond(json=[])
        assert await client.get_recent_files_by_type("PE32") == []

    @respx.mock
    async def test_search_encodes_query(self, client: AsyncMalShareClient, search_payload: list[dict]):
        route = respx.get(f"{API}search&query=a%2Bb%26c%20d").respond(json=search_payload)
        (result,) = await client.search("a+b&c d")
        assert result.yara_hits == ""
        assert route.call_count == 1

    @respx.mock
    async def test_parameters_encoded_like_sync_client(self, client: AsyncMalShareClient):
        type_route = respx.get(f"{API}type&type=PE32%2Bdll").respond(json=[])
        guid_route = respx.get(f"{API}download_url_check&guid=g%26x").respond(json={"status": "pending"})
        assert await client.get_recent_files_by_type("PE32+dll") == []
        assert await client.get_download_task_status("g&x") == "pending"
        assert type_route.call_count == 1
        assert guid_route.call_count == 1

    @respx.mock
    async def test_get_recent_types(self, client: AsyncMalShareClient):
        respx.get(f"{API}gettypes").respond(json={"PE32": 3})
        assert await client.get_recent_types() == {"PE32": 3}

    @respx.mock
    async def test_get_api_key_limit(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").respond(json={"LIMIT": 2000})
        assert await client.get_api_key_limit() == ApiLimit(limit=2000, remaining=0)

    @respx.mock
    async def test_get_download_task_status(self, client: AsyncMalShareClient):
        respx.get(f"{API}download_url_check&guid=g1").respond(json={"status": "processing"})
        assert await client.get_download_task_status("g1") == "processing"

    @respx.mock
    async def test_add_download_url(self, client: AsyncMalShareClient):
        route = respx.post(f"{API}download_url").respond(json={"guid": "g1"})
        assert await client.add_download_url("http://x.test") == "g1"
        assert route.calls.last.request.headers["content-type"].startswith("multipart/form-data")


class TestTransport:
    @respx.mock
    async def test_status_400(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").respond(status_code=400)
        with pytest.raises(TransportError) as info:
            await client.get_api_key_limit()
        assert info.value.status_code == 400

    @respx.mock
    async def test_status_399(self, client: AsyncMalShareClient):
        respx.get(f"{API}gettypes").respond(status_code=399, json={})
        assert await client.get_recent_types() == {}

    @respx.mock
    async def test_connect_error(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").mock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(TransportError) as info:
            await client.get_api_key_limit()
        assert info.value.status_code is None

    @respx.mock
    async def test_timeout(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").mock(side_effect=httpx.ReadTimeout("slow"))
        with pytest.raises(TransportError, match="timed out"):
            await client.get_api_key_limit()

    @respx.mock
    async def test_interrupted_read(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").mock(side_effect=httpx.RemoteProtocolError("cut"))
        with pytest.raises(TransportError):
            await client.get_api_key_limit()

    @respx.mock
    async def test_redirect_loop(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").mock(side_effect=httpx.TooManyRedirects("loop"))
        with pytest.raises(TransportError, match="failed") as info:
            await client.get_api_key_limit()
        assert info.value.status_code is None
        assert isinstance(info.value.__cause__, httpx.TooManyRedirects)

    @respx.mock
    async def test_unsupported_protocol(self, client: AsyncMalShareClient):
        respx.get(f"{API}getlimit").mock(side_effect=httpx.UnsupportedProtocol("ftp"))
        with pytest.raises(TransportError):
            await client.get_api_key_limit()

    @respx.mock
    async def test_custom_httpx_client(self):
        respx.get(f"{API}gettypes").respond(json={})
        custom = httpx.AsyncClient(timeout=10)
        c = AsyncMalShareClient(API_KEY, base_url=BASE, client=custom)
        assert await c.get_recent_types() == {}
        await c.close()
        assert not custom.is_closed
        await custom.aclose()

    async def test_injected_connector_left_open(self):
        connector = AsyncMalShareConnector(API)
        async with AsyncMalShareClient(connector=connector):
            pass
        assert not connector._client.is_closed
        await connector.close()
        assert connector._client.is_closed


class TestBatch:
    @respx.mock
    async def test_best_effort(self, client: AsyncMalShareClient):
        respx.get(f"{API}getfile&hash=A").respond(content=b"a")
        respx.get(f"{API}getfile&hash=B").respond(status_code=404)
        respx.get(f"{API}getfile&hash=C").respond(content=b"c")
        result = await client.get_files(["A", "B", "C"], policy=BatchPolicy.BEST_EFFORT)
        assert set(result) == {"A", "C"}

    @respx.mock
    async def test_best_effort_drops_redirect_loop(self, client: AsyncMalShareClient):
        respx.get(f"{API}getfile&hash=A").respond(content=b"a")
        respx.get(f"{API}getfile&hash=B").mock(side_effect=httpx.TooManyRedirects("loop"))
        result = await client.get_files(["A", "B"], policy=BatchPolicy.BEST_EFFORT)
        assert set(result) == {"A"}

    @respx.mock
    async def test_fail_fast(self, client: AsyncMalShareClient):
        respx.get(f"{API}getfile&hash=A").respond(content=b"a")
        respx.get(f"{API}getfile&hash=B").respond(status_code=404)
        respx.get(f"{API}getfile&hash=C").respond(content=b"c")
        with pytest.raises(TransportError) as info:
            await client.get_files(["A", "B", "C"], policy=BatchPolicy.FAIL_FAST)
        assert info.value.status_code == 404

    @respx.mock
    async def test_fail_fast_reports_first_failure_in_input_order(self, client: AsyncMalShareClient):
        respx.get(f"{API}download_url_check&guid=g1").respond(content=b"broken")
        respx.get(f"{API}download_url_check&guid=g2").respond(status_code=500)
        with pytest.raises(MalformedResponseError):
            await client.get_download_task_statuses(["g1", "g2"], policy=BatchPolicy.FAIL_FAST)

    @respx.mock
    async def test_add_download_urls(self, client: AsyncMalShareClient):
        respx.post(f"{API}download_url").respond(json={"guid": "g"})
        result = await client.add_download_urls(["http://a.test"], policy=BatchPolicy.BEST_EFFORT)
        assert result == {"http://a.test": "g"}


class TestUpload:
    @respx.mock
    async def test_directory(self, client: AsyncMalShareClient, tmp_path: Path):
        (tmp_path / "x.bin").write_bytes(b"x")
        (tmp_path / "y.bin").write_bytes(b"y")
        (tmp_path / "sub").mkdir()
        route = respx.post(f"{API}upload").respond(content=b"Success")
        await client.upload(tmp_path)
        assert route.call_count == 2

    async def test_missing_path(self, client: AsyncMalShareClient):
        with pytest.raises(NotFoundError):
            await client.upload("/nonexistent/file.bin")
