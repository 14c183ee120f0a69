import asyncio

import pytest
from aiohttp import web
from aiohttp import test_utils

from vast_fetcher.workflows.url_handler import (
    AiohttpURLHandler,
    FetchOptions,
    TransportError,
    TransportResult,
    coerce_transport_result,
    normalize_details,
)

VAST_BODY = '<VAST version="4.0"><Ad id="1"/></VAST>'


def _app() -> web.Application:
    async def vast(request: web.Request) -> web.Response:
        return web.Response(text=VAST_BODY, content_type="application/xml")

    async def missing(request: web.Request) -> web.Response:
        return web.Response(status=404, text="nope")

    async def slow(request: web.Request) -> web.Response:
        await asyncio.sleep(0.5)
        return web.Response(text=VAST_BODY)

    async def set_cookie(request: web.Request) -> web.Response:
        resp = web.Response(text=VAST_BODY)
        resp.set_cookie("uid", "abc")
        return resp

    async def echo_cookie(request: web.Request) -> web.Response:
        return web.Response(text=request.cookies.get("uid", "none"))

    app = web.Application()
    app.router.add_get("/vast", vast)
    app.router.add_get("/missing", missing)
    app.router.add_get("/slow", slow)
    app.router.add_get("/set-cookie", set_cookie)
    app.router.add_get("/echo-cookie", echo_cookie)
    return app


def _with_server(scenario):
    async def run():
        async with test_utils.TestServer(_app()) as server:
            return await scenario(server)

    return asyncio.run(run())


def test_success_returns_text_and_details() -> None:
    handler = AiohttpURLHandler()

    async def scenario(server):
        return await handler.get(str(server.make_url("/vast")), FetchOptions(timeout_ms=5000))

    result = _with_server(scenario)

    assert result.error is None
    assert result.status_code == 200
    assert result.document_text == VAST_BODY
    assert result.details["byte_length"] == len(VAST_BODY.encode("utf-8"))
    assert result.details["status_code"] == 200
    assert result.details["request_duration_ms"] >= 0


def test_http_error_is_reported_not_raised() -> None:
    handler = AiohttpURLHandler()

    async def scenario(server):
        return await handler.get(str(server.make_url("/missing")), FetchOptions(timeout_ms=5000))

    result = _with_server(scenario)

    assert isinstance(result.error, TransportError)
    assert str(result.error) == "URLHandler: Not Found (404)"
    assert result.status_code == 404
    assert result.document_text is None


def test_timeout_is_reported_as_408() -> None:
    handler = AiohttpURLHandler()

    async def scenario(server):
        return await handler.get(str(server.make_url("/slow")), FetchOptions(timeout_ms=50))

    result = _with_server(scenario)

    assert isinstance(result.error, TransportError)
    assert "timed out after 50 ms" in str(result.error)
    assert result.status_code == 408
    assert result.error.status_code == 408


def test_connection_error_is_reported() -> None:
    handler = AiohttpURLHandler()
    url = f"http://127.0.0.1:{test_utils.unused_port()}/vast"

    result = asyncio.run(handler.get(url, FetchOptions(timeout_ms=2000)))

    assert isinstance(result.error, TransportError)
    assert result.status_code is None


def test_unsupported_protocol_is_reported() -> None:
    handler = AiohttpURLHandler()

    result = asyncio.run(handler.get("ftp://ads.example/vast.xml", FetchOptions()))

    assert isinstance(result.error, TransportError)
    assert "Unsupported protocol 'ftp'" in str(result.error)


@pytest.mark.parametrize("send_credentials, expected", [(True, "abc"), (False, "none")])
def test_cookies_only_travel_with_credentials(send_credentials, expected) -> None:
    handler = AiohttpURLHandler()
    options = FetchOptions(timeout_ms=5000, send_credentials=send_credentials)

    async def scenario(server):
        await handler.get(str(server.make_url("/set-cookie")), options)
        return await handler.get(str(server.make_url("/echo-cookie")), options)

    result = _with_server(scenario)

    assert result.document_text == expected


def test_fetch_options_validation() -> None:
    with pytest.raises(ValueError):
        FetchOptions(timeout_ms=0)
    with pytest.raises(ValueError):
        FetchOptions(timeout_ms=-0.5)
    with pytest.raises(TypeError):
        FetchOptions(timeout_ms="2500")  # type: ignore[arg-type]
    assert FetchOptions(timeout_ms=0.5).timeout_ms == 1
    assert FetchOptions(timeout_ms=1500.2).timeout_ms == 1501
    assert FetchOptions(send_credentials=1).send_credentials is True


def test_normalize_details_renames_camel_case_keys() -> None:
    details = normalize_details({"byteLength": 42, "requestDurationMs": 3, "statusCode": 200, "vendor": "x"})
    assert details == {"byte_length": 42, "request_duration_ms": 3, "status_code": 200, "vendor": "x"}
    # snake_case wins when both spellings are given
    assert normalize_details({"byteLength": 1, "byte_length": 2}) == {"byte_length": 2}
    assert normalize_details(None) is None


def test_coerce_transport_result_accepts_mappings() -> None:
    result = coerce_transport_result({"xml": "<VAST/>", "statusCode": 200, "details": {"byte_length": 7}})
    assert result == TransportResult(document_text="<VAST/>", status_code=200, details={"byte_length": 7})

    with pytest.raises(TypeError):
        coerce_transport_result("<VAST/>")
