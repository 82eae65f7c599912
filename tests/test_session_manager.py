from __future__ import annotations

import asyncio

import pytest

from cdprun.cdp_client.allocator import default_allocator_options
from cdprun.runner.session_manager import SessionManager

from fakes import FakeBrowser, FakeLauncher


class _BrokenAttachBrowser(FakeBrowser):
    async def attach(self, target_id: str):
        raise KeyError("sessionId")


class _BrokenAttachLauncher(FakeLauncher):
    async def __call__(self, options):
        browser = _BrokenAttachBrowser(self.target_ids, self.responses)
        self.browsers.append(browser)
        self.options.append(options)
        return browser


def test_open_attaches_to_first_page_target() -> None:
    launcher = FakeLauncher(target_ids=["T2", "T1"])

    async def _main():
        return await SessionManager(launcher).open(default_allocator_options(800, 600))

    session = asyncio.run(_main())

    assert session.target.target_id == "T2"
    assert not session.closed


def test_open_creates_page_when_browser_has_none() -> None:
    launcher = FakeLauncher()
    launcher.target_ids = []

    async def _main():
        return await SessionManager(launcher).open(default_allocator_options(800, 600))

    session = asyncio.run(_main())

    assert session.target.target_id == "T0"


def test_open_closes_browser_on_unexpected_failure() -> None:
    launcher = _BrokenAttachLauncher()

    async def _main():
        await SessionManager(launcher).open(default_allocator_options(800, 600))

    with pytest.raises(KeyError):
        asyncio.run(_main())
    assert launcher.browsers[0].close_calls == 1
