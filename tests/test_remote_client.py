"""Tests for the remote collection API client."""

from __future__ import annotations

import httpx
import pytest

from watchlog.services.remote import Err, Ok, RemoteStoreClient


async def _call(build_settings, handler, action):
    transport = httpx.MockTransport(handler)
    async with httpx.AsyncClient(
        transport=transport, base_url="https://api.example.com/functions/v1/catalog"
    ) as http_client:
        client = RemoteStoreClient(build_settings(), http_client)
        return await action(client)


@pytest.mark.anyio("asyncio")
async def test_requests_carry_bearer_token_and_json_content_type(build_settings) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"success": True, "movie": {"id": 4}})

    result = await _call(
        build_settings,
        handler,
        lambda client: client.towatch.update(4, {"runtime": "98 min"}),
    )

    assert isinstance(result, Ok)
    assert result.payload["movie"] == {"id": 4}
    request = requests[0]
    assert request.method == "PATCH"
    assert request.url.path == "/functions/v1/catalog/towatch/4"
    assert request.headers["Authorization"] == "Bearer test-token"
    assert request.headers["Content-Type"] == "application/json"


@pytest.mark.anyio("asyncio")
async def test_non_2xx_response_becomes_err(build_settings) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"success": False, "error": "Missing required fields"})

    result = await _call(
        build_settings, handler, lambda client: client.submit_rating(1, 3, "")
    )

    assert isinstance(result, Err)
    assert result.status == 400
    assert result.reason == "Missing required fields"
    assert result.ok is False


@pytest.mark.anyio("asyncio")
async def test_redirect_with_success_body_becomes_err(build_settings) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(
            302,
            headers={"Location": "https://login.example.com/"},
            json={"success": True, "movies": []},
        )

    result = await _call(build_settings, handler, lambda client: client.movies.list())

    assert isinstance(result, Err)
    assert result.status == 302


@pytest.mark.anyio("asyncio")
async def test_success_false_payload_becomes_err(build_settings) -> None:
    def handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"success": False, "error": "kv down"})

    result = await _call(build_settings, handler, lambda client: client.movies.list())

    assert result == Err(reason="kv down", status=200)


@pytest.mark.anyio("asyncio")
async def test_transport_error_becomes_err(build_settings) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("unreachable", request=request)

    result = await _call(build_settings, handler, lambda client: client.comments.list())

    assert isinstance(result, Err)
    assert result.status is None
    assert "ConnectError" in result.reason


@pytest.mark.anyio("asyncio")
async def test_non_json_and_non_object_bodies_become_err(build_settings) -> None:
    def text_handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>oops</html>")

    def list_handler(_: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=[1, 2, 3])

    first = await _call(build_settings, text_handler, lambda client: client.movies.list())
    second = await _call(build_settings, list_handler, lambda client: client.movies.list())

    assert isinstance(first, Err)
    assert isinstance(second, Err)


@pytest.mark.anyio("asyncio")
async def test_rating_and_comment_paths(build_settings) -> None:
    requests: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"success": True})

    async def action(client: RemoteStoreClient):
        await client.fetch_user_ratings("user_1 2")
        await client.fetch_movie_ratings(9)
        await client.comments.delete(9, "1700000000")
        return await client.collection("main").delete(9)

    result = await _call(build_settings, handler, action)

    assert isinstance(result, Ok)
    assert [request.url.raw_path.decode() for request in requests] == [
        "/functions/v1/catalog/user-ratings/user_1%202",
        "/functions/v1/catalog/ratings/9",
        "/functions/v1/catalog/comments/9/1700000000",
        "/functions/v1/catalog/movies/9",
    ]
