import json
from typing import Any, List, Tuple
from urllib.parse import parse_qs, urlparse

from typer.testing import CliRunner

from vast_fetcher import cli
from vast_fetcher.workflows.url_handler import FetchOptions, TransportError, TransportResult

runner = CliRunner()


class StubHandler:
    def __init__(self, result: Any = None, exc: Exception = None) -> None:
        self.result = result
        self.exc = exc
        self.calls: List[Tuple[str, FetchOptions]] = []

    async def get(self, url: str, options: FetchOptions) -> Any:
        self.calls.append((url, options))
        if self.exc is not None:
            raise self.exc
        return self.result


def _install(monkeypatch, handler: StubHandler) -> None:
    monkeypatch.setattr(cli, "AiohttpURLHandler", lambda: handler)


def test_no_command_prints_help() -> None:
    result = runner.invoke(cli.app, [])
    assert result.exit_code == 0
    assert "vast-fetcher get <url>" in result.stdout


def test_get_prints_document(monkeypatch) -> None:
    handler = StubHandler(TransportResult(document_text="<VAST/>", status_code=200, details={"byte_length": 7}))
    _install(monkeypatch, handler)

    result = runner.invoke(cli.app, ["get", "https://ads.example/vast", "--timeout-ms", "2500", "--with-credentials"])

    assert result.exit_code == 0
    assert result.stdout.strip() == "<VAST/>"
    options = handler.calls[0][1]
    assert options.timeout_ms == 2500
    assert options.send_credentials is True


def test_get_json_applies_macros_and_params(monkeypatch) -> None:
    handler = StubHandler(TransportResult(document_text="<VAST/>", status_code=200, details={"byte_length": 800}))
    _install(monkeypatch, handler)

    result = runner.invoke(
        cli.app,
        [
            "get",
            "https://ads.example/vast?cb=[CACHEBUSTING]&pub=[PUB]",
            "--macro",
            "PUB=acme",
            "--param",
            "gdpr=1",
            "--json",
        ],
    )

    assert result.exit_code == 0
    requested = handler.calls[0][0]
    query = parse_qs(urlparse(requested).query)
    assert query["pub"] == ["acme"]
    assert query["gdpr"] == ["1"]
    assert query["cb"][0].isdigit()
    summary = json.loads(result.stdout)
    assert summary["ok"] is True
    assert summary["resolved_url"] == requested
    assert summary["status_code"] == 200
    assert summary["stage"] == "settled"
    assert summary["document"] == "<VAST/>"


def test_get_transport_error_exit_code(monkeypatch) -> None:
    handler = StubHandler(TransportResult(error=TransportError("URLHandler: Not Found (404)", 404), status_code=404))
    _install(monkeypatch, handler)

    result = runner.invoke(cli.app, ["get", "https://ads.example/vast", "--json"])

    assert result.exit_code == cli.EXIT_TRANSPORT_ERROR
    summary = json.loads(result.stdout)
    assert summary["ok"] is False
    assert summary["error"] == "URLHandler: Not Found (404)"
    assert summary["status_code"] == 404


def test_get_internal_error_exit_code(monkeypatch) -> None:
    _install(monkeypatch, StubHandler(exc=RuntimeError("socket exploded")))

    result = runner.invoke(cli.app, ["get", "https://ads.example/vast", "--json"])

    assert result.exit_code == cli.EXIT_INTERNAL_ERROR
    summary = json.loads(result.stdout)
    assert summary["stage"] == "awaiting"


def test_get_rejects_malformed_macro(monkeypatch) -> None:
    handler = StubHandler(TransportResult(document_text="<VAST/>"))
    _install(monkeypatch, handler)

    result = runner.invoke(cli.app, ["get", "https://ads.example/vast", "--macro", "PUB"])

    assert result.exit_code == cli.EXIT_BAD_OPTION
    assert handler.calls == []
