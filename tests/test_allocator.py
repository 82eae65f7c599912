from __future__ import annotations

import asyncio

import httpx
import pytest

from cdprun.cdp_client import allocator
from cdprun.cdp_client.allocator import (
    DISABLE_HEADLESS_ENV,
    AllocatorOptions,
    apply_environment,
    default_allocator_options,
    discover_websocket_url,
    find_chrome_executable,
)


def test_to_args_renders_flags_and_window() -> None:
    options = AllocatorOptions(800, 600, flags={"headless": True, "mute-audio": False, "password-store": "basic"})

    args = options.to_args(9222, "/tmp/profile")

    assert args == [
        "--headless",
        "--password-store=basic",
        "--window-size=800,600",
        "--remote-debugging-port=9222",
        "--user-data-dir=/tmp/profile",
        "about:blank",
    ]


def test_default_options_are_headless(monkeypatch) -> None:
    monkeypatch.delenv(DISABLE_HEADLESS_ENV, raising=False)

    options = apply_environment(default_allocator_options(1920, 1080))

    assert options.flags["headless"] is True
    assert "--headless" in options.to_args(1, "/tmp/p")


@pytest.mark.parametrize("value", ["1", "true", "YES", " on "])
def test_disable_headless_env_shows_window(monkeypatch, value) -> None:
    monkeypatch.setenv(DISABLE_HEADLESS_ENV, value)

    options = apply_environment(default_allocator_options(1920, 1080))
    args = options.to_args(1, "/tmp/p")

    assert "--headless" not in args
    assert "--hide-scrollbars" not in args
    assert "--mute-audio" not in args


@pytest.mark.parametrize("value", ["", "0", "false", "nope"])
def test_other_env_values_keep_headless(monkeypatch, value) -> None:
    monkeypatch.setenv(DISABLE_HEADLESS_ENV, value)

    options = apply_environment(default_allocator_options(1920, 1080))

    assert options.flags["headless"] is True


def test_chrome_path_env_wins(monkeypatch, tmp_path) -> None:
    chrome = tmp_path / "chrome"
    chrome.write_text("")
    monkeypatch.setenv("CHROME_PATH", str(chrome))

    assert find_chrome_executable() == str(chrome)


def test_missing_chrome_path_falls_back_to_search(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("CHROME_PATH", str(tmp_path / "absent"))
    monkeypatch.setattr(allocator.shutil, "which", lambda name: "/opt/bin/chromium" if name == "chromium" else None)

    assert find_chrome_executable() == "/opt/bin/chromium"


def _mock_client(monkeypatch, handler) -> None:
    real_client = httpx.AsyncClient

    def _factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(allocator.httpx, "AsyncClient", _factory)


def test_discover_websocket_url_retries_until_ready(monkeypatch) -> None:
    calls: list[str] = []

    def _handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        if len(calls) == 1:
            raise httpx.ConnectError("connection refused", request=request)
        if len(calls) == 2:
            return httpx.Response(200, json={"Browser": "Chrome"})
        return httpx.Response(200, json={"webSocketDebuggerUrl": "ws://127.0.0.1:9222/devtools/browser/abc"})

    _mock_client(monkeypatch, _handler)

    url = asyncio.run(discover_websocket_url(9222))

    assert url == "ws://127.0.0.1:9222/devtools/browser/abc"
    assert calls == ["http://127.0.0.1:9222/json/version"] * 3
