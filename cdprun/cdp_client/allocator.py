from __future__ import annotations

import os
import shutil
import socket
from dataclasses import dataclass, field

import httpx
from tenacity import retry, retry_if_exception_type, stop_after_delay, wait_fixed

DISABLE_HEADLESS_ENV = "CDPRUN_DISABLE_HEADLESS"

_TRUTHY = {"1", "true", "yes", "on"}

_EXECUTABLE_NAMES = (
    "google-chrome",
    "google-chrome-stable",
    "chromium",
    "chromium-browser",
    "chrome",
    "headless-shell",
    "headless_shell",
    "msedge",
)

_EXECUTABLE_PATHS = (
    "/Applications/Google Chrome.app/Contents/MacOS/Google Chrome",
    "/Applications/Chromium.app/Contents/MacOS/Chromium",
    "/usr/bin/google-chrome",
    "/usr/bin/chromium",
    "/usr/bin/chromium-browser",
    "/snap/bin/chromium",
    os.path.join(os.getenv("ProgramFiles", "C:\\Program Files"), "Google", "Chrome", "Application", "chrome.exe"),
    os.path.join(
        os.getenv("ProgramFiles(x86)", "C:\\Program Files (x86)"), "Google", "Chrome", "Application", "chrome.exe"
    ),
)


def _default_flags() -> dict[str, bool | str]:
    return {
        "headless": True,
        "disable-gpu": True,
        "hide-scrollbars": True,
        "mute-audio": True,
        "no-first-run": True,
        "no-default-browser-check": True,
        "disable-background-networking": True,
        "enable-features": "NetworkService,NetworkServiceInProcess",
        "disable-background-timer-throttling": True,
        "disable-backgrounding-occluded-windows": True,
        "disable-breakpad": True,
        "disable-client-side-phishing-detection": True,
        "disable-default-apps": True,
        "disable-dev-shm-usage": True,
        "disable-extensions": True,
        "disable-features": "site-per-process,Translate,BlinkGenPropertyTrees",
        "disable-hang-monitor": True,
        "disable-ipc-flooding-protection": True,
        "disable-popup-blocking": True,
        "disable-prompt-on-repost": True,
        "disable-renderer-backgrounding": True,
        "disable-sync": True,
        "force-color-profile": "srgb",
        "metrics-recording-only": True,
        "safebrowsing-disable-auto-update": True,
        "enable-automation": True,
        "password-store": "basic",
        "use-mock-keychain": True,
    }


@dataclass(slots=True)
class AllocatorOptions:
    window_width: int
    window_height: int
    executable: str | None = None
    flags: dict[str, bool | str] = field(default_factory=_default_flags)

    def to_args(self, port: int, user_data_dir: str) -> list[str]:
        args: list[str] = []
        for name, value in self.flags.items():
            if value is True:
                args.append(f"--{name}")
            elif value is not False:
                args.append(f"--{name}={value}")
        args.extend(
            [
                f"--window-size={self.window_width},{self.window_height}",
                f"--remote-debugging-port={port}",
                f"--user-data-dir={user_data_dir}",
                "about:blank",
            ]
        )
        return args


def default_allocator_options(window_width: int, window_height: int) -> AllocatorOptions:
    return AllocatorOptions(window_width=window_width, window_height=window_height)


def apply_environment(options: AllocatorOptions) -> AllocatorOptions:
    """Show the browser window when CDPRUN_DISABLE_HEADLESS is truthy."""
    if os.getenv(DISABLE_HEADLESS_ENV, "").strip().lower() in _TRUTHY:
        options.flags["headless"] = False
        options.flags["hide-scrollbars"] = False
        options.flags["mute-audio"] = False
    return options


def find_chrome_executable() -> str | None:
    configured = os.getenv("CHROME_PATH", "").strip().strip('"')
    if configured and os.path.exists(configured):
        return configured

    for name in _EXECUTABLE_NAMES:
        resolved = shutil.which(name)
        if resolved:
            return resolved

    for candidate in _EXECUTABLE_PATHS:
        if os.path.exists(candidate):
            return candidate
    return None


def free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return int(sock.getsockname()[1])


@retry(
    retry=retry_if_exception_type((httpx.HTTPError, KeyError)),
    stop=stop_after_delay(20),
    wait=wait_fixed(0.1),
    reraise=True,
)
async def discover_websocket_url(port: int, host: str = "127.0.0.1") -> str:
    async with httpx.AsyncClient(timeout=2) as client:
        response = await client.get(f"http://{host}:{port}/json/version")
        response.raise_for_status()
        data = response.json()
    return str(data["webSocketDebuggerUrl"])
