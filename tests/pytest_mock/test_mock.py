import json
import re
from collections.abc import AsyncGenerator
from typing import Any

import pytest
from dirty_equals import Contains, IsPartialDict, IsStr
from pysurf.client import Client, ClientBuilder
from pysurf.middleware import Next
from pysurf.middleware.redirect import Redirect
from pysurf.pytest_plugin import ClientMocker
from pysurf.request import Request
from pysurf.response import Response, ResponseBuilder

from tests.servers.echo_server import EchoServer

import_time_client = ClientBuilder().build()


async def test_simple_get_mock(client_mocker: ClientMocker) -> None:
    client_mocker.get("/api").with_body_text("Hello World")

    resp = await ClientBuilder().build().get("http://example.com/api").build().send()

    assert resp.status == 200
    assert await resp.text() == "Hello World"
    assert client_mocker.get_call_count() == 1


async def test_method_specific_mocks(client_mocker: ClientMocker) -> None:
    mock_get = client_mocker.get("/users").with_body_json({"users": []})
    mock_post = client_mocker.post("/users").with_status(201).with_body_json({"id": 123})
    mock_put = client_mocker.put("/users/123").with_status(202)
    mock_patch = client_mocker.patch("/users/123").with_status(200)
    mock_delete = client_mocker.delete("/users/123").with_status(204)

    client = ClientBuilder().build()

    get_resp = await client.get("http://api.example.com/users").build().send()
    assert get_resp.status == 200
    assert await get_resp.json() == {"users": []}

    post_resp = await client.post("http://api.example.com/users").body_json({"name": "John"}).build().send()
    assert post_resp.status == 201
    assert await post_resp.json() == {"id": 123}

    put_resp = await client.put("http://api.example.com/users/123").body_json({"name": "Jane"}).build().send()
    assert put_resp.status == 202

    patch_resp = await client.patch("http://api.example.com/users/123").build().send()
    assert patch_resp.status == 200

    for _ in range(2):
        delete_resp = await client.delete("http://api.example.com/users/123").build().send()
        assert delete_resp.status == 204

    assert client_mocker.get_call_count() == 6
    assert mock_get.get_call_count() == 1
    assert mock_post.get_call_count() == 1
    assert mock_put.get_call_count() == 1
    assert mock_patch.get_call_count() == 1
    assert mock_delete.get_call_count() == 2


async def test_regex_path_matching(client_mocker: ClientMocker) -> None:
    pattern = re.compile(r"/users/\d+")
    client_mocker.strict(True).get(pattern).with_body_json({"id": 456, "name": "Test User"})

    client = ClientBuilder().build()

    resp1 = await client.get("http://api.example.com/users/123").build().send()
    resp2 = await client.get("http://api.example.com/users/456").build().send()
    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await client.get("http://api.example.com/users/abc").build().send()

    assert await resp1.json() == {"id": 456, "name": "Test User"}
    assert await resp2.json() == {"id": 456, "name": "Test User"}
    assert client_mocker.get_call_count() == 2


async def test_full_url_matching(client_mocker: ClientMocker) -> None:
    client_mocker.strict(True).get("http://api.example.com/a").with_body_text("full")

    client = ClientBuilder().build()

    assert await (await client.get("http://api.example.com/a").build().send()).text() == "full"
    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await client.get("http://other.example.com/b").build().send()


async def test_header_matching(client_mocker: ClientMocker) -> None:
    client_mocker.post("/data").match_header("Authorization", "Bearer token123").with_body_text("Authorized")
    client_mocker.post("/data").with_status(401).with_body_text("Unauthorized")

    client = ClientBuilder().build()

    auth_resp = (
        await client.post("http://api.example.com/data").header("Authorization", "Bearer token123").build().send()
    )
    assert auth_resp.status == 200
    assert await auth_resp.text() == "Authorized"

    unauth_resp = await client.post("http://api.example.com/data").build().send()
    assert unauth_resp.status == 401
    assert await unauth_resp.text() == "Unauthorized"


async def test_regex_header_matching(client_mocker: ClientMocker) -> None:
    client_mocker.post("/secure").match_header("Authorization", re.compile(r"Bearer \w+")).with_body_json(
        {"authenticated": True},
    )

    client = ClientBuilder().build()

    auth_resp = (
        await client.post("http://api.service.com/secure").header("Authorization", "Bearer abc123xyz").build().send()
    )
    assert (await auth_resp.json())["authenticated"] is True


async def test_default_headers_are_matched(client_mocker: ClientMocker) -> None:
    client_mocker.strict(True).get("/data").match_header("x-api-key", "secret").with_body_text("ok")

    client = ClientBuilder().default_header("X-Api-Key", "secret").build()

    assert await (await client.get("http://api.example.com/data").build().send()).text() == "ok"


async def test_body_matching(client_mocker: ClientMocker) -> None:
    client_mocker.post("/echo").match_body('{"test": "data"}').with_body_text("JSON matched")
    client_mocker.post("/echo").match_body(b"binary data").with_body_text("Binary matched")

    client = ClientBuilder().build()

    json_resp = await client.post("http://api.example.com/echo").body_text('{"test": "data"}').build().send()
    assert await json_resp.text() == "JSON matched"

    binary_resp = await client.post("http://api.example.com/echo").body_bytes(b"binary data").build().send()
    assert await binary_resp.text() == "Binary matched"


async def test_regex_body_matching(client_mocker: ClientMocker) -> None:
    pattern = re.compile(r'.*"action":\s*"create".*')
    client_mocker.post("/actions").match_body(pattern).with_status(201).with_body_text("Create action processed")

    client = ClientBuilder().build()

    resp = (
        await client.post("http://api.example.com/actions")
        .body_text(json.dumps({"action": "create", "resource": "user"}))
        .build()
        .send()
    )

    assert resp.status == 201
    assert await resp.text() == "Create action processed"


async def test_json_body_matching(client_mocker: ClientMocker) -> None:
    client_mocker.strict(True).post("/users").match_body_json({"name": "John", "age": 30}).with_status(201)
    client_mocker.post("/partial").match_body_json(IsPartialDict(name="Jane")).with_status(202)

    client = ClientBuilder().build()

    resp = await client.post("http://api.example.com/users").body_json({"age": 30, "name": "John"}).build().send()
    assert resp.status == 201

    resp = await client.post("http://api.example.com/partial").body_json({"name": "Jane", "x": 1}).build().send()
    assert resp.status == 202

    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await client.post("http://api.example.com/users").body_text("not json").build().send()


async def test_request_capture(client_mocker: ClientMocker) -> None:
    get_mock = client_mocker.get("/test").with_body_text("response")
    post_mock = client_mocker.post("/test").with_body_text("posted")

    client = ClientBuilder().build()

    await client.get("http://api.example.com/test").header("User-Agent", "test-client").build().send()
    await client.post("http://api.example.com/test").body_json({"key": "value"}).build().send()

    all_requests = client_mocker.get_requests()
    assert len(all_requests) == 2

    get_requests = get_mock.get_requests()
    assert len(get_requests) == 1
    assert get_requests[0].method == "GET"
    assert get_requests[0].headers.get("User-Agent") == "test-client"

    post_requests = post_mock.get_requests()
    assert len(post_requests) == 1
    assert post_requests[0].method == "POST"
    assert post_requests[0].body is not None
    assert json.loads(post_requests[0].body.copy_bytes() or b"") == {"key": "value"}


async def test_response_headers(client_mocker: ClientMocker) -> None:
    client_mocker.get("/test").with_body_text("Hello").with_header("X-Custom-Header", "custom-value").with_header(
        "x-rate-limit",
        "100",
    )
    client = ClientBuilder().build()
    resp = await client.get("http://api.example.com/test").build().send()

    assert resp.headers["X-Custom-Header"] == "custom-value"
    assert resp.headers["X-Rate-Limit"] == "100"
    assert resp.headers["content-type"] == IsStr(regex=r"text/plain.*")


async def test_json_and_bytes_response(client_mocker: ClientMocker) -> None:
    test_data = {"users": [{"id": 1, "name": "John"}, {"id": 2, "name": "Jane"}]}
    client_mocker.get("/users").with_body_json(test_data)
    client_mocker.get("/binary").with_body_bytes(b"binary data content")

    client = ClientBuilder().build()
    resp = await client.get("http://api.example.com/users").build().send()
    assert resp.headers["content-type"] == "application/json"
    assert await resp.json() == test_data

    resp = await client.get("http://api.example.com/binary").build().send()
    assert await resp.bytes() == b"binary data content"


async def test_response_served_again(client_mocker: ClientMocker) -> None:
    client_mocker.get("/again").with_body_text("same")

    client = ClientBuilder().build()
    for _ in range(3):
        assert await (await client.get("http://api.example.com/again").build().send()).text() == "same"


async def test_strict_mode(client_mocker: ClientMocker) -> None:
    client_mocker.strict(True)
    client_mocker.get("/allowed").with_body_text("OK")

    client = ClientBuilder().build()

    resp = await client.get("http://api.example.com/allowed").build().send()
    assert await resp.text() == "OK"

    with pytest.raises(AssertionError, match="No mock rule matched request: GET http://api.example.com/forbidden"):
        await client.get("http://api.example.com/forbidden").build().send()


async def test_reset_and_clear(client_mocker: ClientMocker) -> None:
    mock = client_mocker.get("/test").with_body_text("response")

    client = ClientBuilder().build()
    await client.get("http://api.example.com/test").build().send()

    assert client_mocker.get_call_count() == 1
    assert len(client_mocker.get_requests()) == 1

    client_mocker.reset_requests()

    assert client_mocker.get_call_count() == 0
    assert mock.get_call_count() == 0
    assert len(client_mocker.get_requests()) == 0

    client_mocker.clear()
    client_mocker.strict(True)
    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await client.get("http://api.example.com/test").build().send()


async def test_multiple_rules_first_match_wins(client_mocker: ClientMocker) -> None:
    client_mocker.get("/users/123").match_query_param("param", "1").with_body_text("Specific user")
    client_mocker.get("/users/123").with_body_text("General user")

    client = ClientBuilder().build()

    resp = await client.get("http://api.example.com/users/123?param=1").build().send()
    assert await resp.text() == "Specific user"

    resp = await client.get("http://api.example.com/users/123?param=2").build().send()
    assert await resp.text() == "General user"


async def test_query_matching(client_mocker: ClientMocker) -> None:
    client_mocker.strict(True)
    search = client_mocker.get("/search").match_query_param("q", re.compile(r"^py"))
    search.match_query_param("page", "1").with_body_text("found")
    client_mocker.get("/multi").match_query_param("tag", ["a", "b"]).with_body_text("multi")

    client = ClientBuilder().build()

    resp = await client.get("http://api.example.com/search").query({"q": "pysurf", "page": "1"}).build().send()
    assert await resp.text() == "found"

    resp = await client.get("http://api.example.com/multi").query([("tag", "a"), ("tag", "b")]).build().send()
    assert await resp.text() == "multi"

    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await client.get("http://api.example.com/search").query({"q": "other", "page": "1"}).build().send()
    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await client.get("http://api.example.com/search").query({"q": "pysurf"}).build().send()


async def test_method_pattern_matching(client_mocker: ClientMocker) -> None:
    client_mocker.strict(True)
    client_mocker.mock(re.compile(r"GET|POST"), "/data").with_body_json({"message": "success"})

    client = ClientBuilder().build()

    get_resp = await client.get("http://api.example.com/data").build().send()
    assert await get_resp.json() == {"message": "success"}

    post_resp = await client.post("http://api.example.com/data").build().send()
    assert await post_resp.json() == {"message": "success"}

    req = client.put("http://api.example.com/data").build()
    with pytest.raises(AssertionError, match="No mock rule matched request"):
        await req.send()

    assert client_mocker.get_call_count() == 2


async def test_without_mocking_requests_pass_through(client_mocker: ClientMocker, echo_server: EchoServer) -> None:
    client_mocker.get("/api").with_body_json({"mocked": True, "source": "mock"})

    client = ClientBuilder().build()

    mocked_resp = await client.get("http://mocked.example.com/api").build().send()
    assert mocked_resp.status == 200
    assert await mocked_resp.json() == {"mocked": True, "source": "mock"}

    real_resp = await client.get(echo_server.url).build().send()
    assert real_resp.status == 200
    real_data = await real_resp.json()
    assert real_data == IsPartialDict(method="GET", path="/", headers=Contains(["host", IsStr()]))
    assert real_data.get("mocked") is None

    assert client_mocker.get_call_count() == 1
    await client.close()


@pytest.mark.parametrize(
    ("body_match", "matches"),
    [
        (b"part1part2", True),
        (b"part1", False),
        ("part1part2", True),
        ("part1", False),
        (re.compile(r"part1part2"), True),
        (re.compile(r"part1"), True),
        (re.compile(r"t1pa"), True),
        (re.compile(r"part3"), False),
    ],
)
async def test_stream_match(client_mocker: ClientMocker, body_match: Any, matches: bool) -> None:
    async def stream_generator() -> AsyncGenerator[bytes]:
        yield b"part1"
        yield b"part2"

    client_mocker.strict(True)
    mock = client_mocker.post("/stream").match_body(body_match).with_body_text("Stream received")

    client = ClientBuilder().error_for_status(True).build()
    req = client.post("http://api.example.com/stream").body_stream(stream_generator()).build()

    if matches:
        resp = await req.send()
        assert await resp.text() == "Stream received"
        assert len(client_mocker.get_requests()) == 1
        request = mock.get_requests()[0]
        assert request.method == "POST"
        assert request.url == "http://api.example.com/stream"
        assert request.body is not None and request.body.copy_bytes() == b"part1part2"
    else:
        with pytest.raises(AssertionError, match="No mock rule matched request"):
            await req.send()
        assert len(client_mocker.get_requests()) == 0


async def test_import_time_client_is_mocked(client_mocker: ClientMocker) -> None:
    client_mocker.get("/").with_body_text("Mocked response")

    resp = await import_time_client.get("http://foo.invalid").build().send()
    assert resp.status == 200
    assert (await resp.text()) == "Mocked response"
    assert client_mocker.get_call_count() == 1


async def test_streamed_request_is_mocked(client_mocker: ClientMocker) -> None:
    client_mocker.get("/stream").with_body_text("streamed")

    client = ClientBuilder().build()
    async with client.get("http://api.example.com/stream").build_streamed() as resp:
        assert await resp.next_chunk() == b"streamed"
        assert await resp.next_chunk() is None


async def test_client_middleware_sees_mocked_response(client_mocker: ClientMocker) -> None:
    client_mocker.get("/start").with_status(302).with_header("location", "/end")
    client_mocker.get("/end").with_body_text("arrived")
    seen: list[int] = []

    async def record(client: Client, request: Request, next_handler: Next) -> Response:
        response = await next_handler.run(request)
        seen.append(response.status)
        return response

    client = ClientBuilder().with_middleware(Redirect()).with_middleware(record).build()
    resp = await client.get("http://api.example.com/start").build().send()

    assert await resp.text() == "arrived"
    assert seen == [302, 200]
    assert resp.extensions["redirect_history"] == ["http://api.example.com/end"]


async def test_custom_matcher(client_mocker: ClientMocker) -> None:
    async def has_api_version(request: Request) -> bool:
        return request.headers.get("X-API-Version") == "v2"

    client_mocker.mock().match_request(has_api_version).with_body_text("API v2 response")
    client_mocker.get().with_body_text("Default response")

    client = ClientBuilder().build()

    v2_resp = await client.get("http://api.example.com/data").header("X-API-Version", "v2").build().send()
    assert await v2_resp.text() == "API v2 response"

    default_resp = await client.get("http://api.example.com/data").build().send()
    assert await default_resp.text() == "Default response"


async def test_custom_handler(client_mocker: ClientMocker) -> None:
    async def echo_handler(request: Request) -> Response | None:
        if request.method == "POST" and "echo" in str(request.url):
            response_builder = (
                ResponseBuilder()
                .status(200)
                .body_json(
                    {
                        "method": request.method,
                        "url": str(request.url),
                        "test_header": request.headers.get("X-Test", "not-found"),
                    },
                )
            )
            return await response_builder.build()
        return None

    handler_mock = client_mocker.mock().match_request_with_response(echo_handler)
    client_mocker.get("/test").with_body_text("Default response")

    client = ClientBuilder().build()

    echo_resp = await client.post("http://api.example.com/echo").header("X-Test", "custom-value").build().send()

    assert echo_resp.status == 200
    assert await echo_resp.json() == {
        "method": "POST",
        "url": "http://api.example.com/echo",
        "test_header": "custom-value",
    }

    default_resp = await client.get("http://api.example.com/test").build().send()
    assert await default_resp.text() == "Default response"
    assert handler_mock.get_call_count() == 1


def test_custom_handler_excludes_response_builder(client_mocker: ClientMocker) -> None:
    async def handler(request: Request) -> Response | None:
        return None

    with pytest.raises(AssertionError, match="Cannot use response builder and custom handler together"):
        client_mocker.get("/x").match_request_with_response(handler).with_status(200)
    with pytest.raises(AssertionError, match="Cannot use response builder and custom handler together"):
        client_mocker.get("/y").with_status(200).match_request_with_response(handler)
