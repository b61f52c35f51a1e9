"""
npm Registry Client Tests.

HTTP is served by httpx.MockTransport; nothing leaves the process.
"""

import httpx
import pytest

from releasegate.exceptions import ErrorCode, ProviderError, ProviderTimeoutError
from releasegate.providers.npm import NpmRegistryClient

PACKUMENT = {
    "name": "lib-a",
    "description": "A library",
    "license": "MIT",
    "dist-tags": {"latest": "1.0.2"},
    "versions": {"1.0.0": {}, "1.0.2": {}},
    "time": {
        "created": "2024-01-01T00:00:00.000Z",
        "modified": "2024-03-01T00:00:00.000Z",
        "1.0.0": "2024-01-01T00:00:00.000Z",
        "1.0.1": "2024-02-01T00:00:00.000Z",
        "1.0.2": "2024-03-01T00:00:00.000Z",
    },
    "maintainers": [{"name": "dev"}],
}


def _client(handler) -> NpmRegistryClient:
    return NpmRegistryClient(
        base_url="https://registry.example.test/",
        transport=httpx.MockTransport(handler),
    )


def _json(body, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status, json=body)
    return handler


class TestFetchPackage:
    @pytest.mark.asyncio
    async def test_published_view(self):
        package = await _client(_json(PACKUMENT)).fetch_package("lib-a")
        assert package.versions == ["1.0.0", "1.0.2"]
        assert package.latest == "1.0.2"
        assert package.metadata["license"] == "MIT"
        assert package.metadata["maintainers"] == 1

    @pytest.mark.asyncio
    async def test_not_found_is_none(self):
        assert await _client(_json({"error": "Not found"}, 404)).fetch_package("nope") is None

    @pytest.mark.asyncio
    async def test_server_error_raises(self):
        with pytest.raises(ProviderError) as exc_info:
            await _client(_json({}, 500)).fetch_package("lib-a")
        assert exc_info.value.error_code == ErrorCode.PROVIDER_UNAVAILABLE
        assert exc_info.value.details["status_code"] == 500

    @pytest.mark.asyncio
    async def test_invalid_json(self):
        def handler(request):
            return httpx.Response(200, content=b"<html>", headers={"content-type": "text/html"})

        with pytest.raises(ProviderError) as exc_info:
            await _client(handler).fetch_package("lib-a")
        assert exc_info.value.error_code == ErrorCode.PROVIDER_MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_non_object_body(self):
        with pytest.raises(ProviderError) as exc_info:
            await _client(_json(["1.0.0"])).fetch_package("lib-a")
        assert exc_info.value.error_code == ErrorCode.PROVIDER_MALFORMED_RESPONSE

    @pytest.mark.asyncio
    async def test_timeout(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(ProviderTimeoutError):
            await _client(handler).fetch_package("lib-a")

    @pytest.mark.asyncio
    async def test_connection_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(ProviderError) as exc_info:
            await _client(handler).fetch_package("lib-a")
        assert not isinstance(exc_info.value, ProviderTimeoutError)

    @pytest.mark.asyncio
    async def test_scoped_name_is_escaped(self):
        seen = []

        def handler(request):
            seen.append(request.url.raw_path.decode())
            return httpx.Response(404)

        await _client(handler).fetch_package("@scope/lib")
        assert seen == ["/@scope%2Flib"]


class TestFetchVersionAudit:
    @pytest.mark.asyncio
    async def test_unpublished_from_time_map(self):
        audit = await _client(_json(PACKUMENT)).fetch_version_audit("lib-a")
        assert audit.all_versions == ["1.0.0", "1.0.1", "1.0.2"]
        assert audit.unpublished == ["1.0.1"]

    @pytest.mark.asyncio
    async def test_fully_unpublished_package(self):
        tombstone = {
            "name": "gone",
            "time": {
                "created": "2024-01-01T00:00:00.000Z",
                "unpublished": {"time": "2024-05-01T00:00:00.000Z", "versions": ["0.1.0", "0.2.0"]},
            },
        }
        audit = await _client(_json(tombstone)).fetch_version_audit("gone")
        assert audit.all_versions == ["0.1.0", "0.2.0"]
        assert audit.unpublished == ["0.1.0", "0.2.0"]

    @pytest.mark.asyncio
    async def test_not_found_is_empty(self):
        audit = await _client(_json({}, 404)).fetch_version_audit("nope")
        assert audit.all_versions == []
        assert audit.unpublished == []
