from __future__ import annotations

import asyncio
import base64
import json
import re
from collections.abc import Awaitable, Callable, Sequence
from typing import Any, Protocol

from cdprun.errors import ProtocolExecutionError
from cdprun.runner.store import BytesCell, ScalarCell, StringMapCell

POLL_INTERVAL = 0.1


class TargetContext(Protocol):
    async def send(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]: ...

    def wait_event(self, method: str) -> asyncio.Future[dict[str, Any]]: ...

    async def sleep(self, seconds: float) -> None: ...


class Operation:
    """One protocol step executed against the current target."""

    async def do(self, target: TargetContext) -> None:
        raise NotImplementedError


class ActionFunc(Operation):
    def __init__(self, fn: Callable[[TargetContext], Awaitable[None]]) -> None:
        self.fn = fn

    async def do(self, target: TargetContext) -> None:
        await self.fn(target)


_DURATION = re.compile(r"^\s*(\d+(?:\.\d+)?)\s*([a-z]*)\s*$", flags=re.IGNORECASE)

_DURATION_UNITS = {
    "": 1.0,
    "ms": 0.001,
    "msec": 0.001,
    "s": 1.0,
    "sec": 1.0,
    "m": 60.0,
    "min": 60.0,
    "h": 3600.0,
    "hr": 3600.0,
}


def parse_duration(value: Any) -> float:
    """Seconds from ``3``, ``"1.5"``, ``"500ms"``, ``"10sec"``, ``"2min"``."""
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"invalid duration: {value!r}")
        return float(value)
    match = _DURATION.match(str(value))
    if not match:
        raise ValueError(f"invalid duration: {value!r}")
    unit = match.group(2).lower()
    if unit not in _DURATION_UNITS:
        raise ValueError(f"invalid duration unit: {value!r}")
    return float(match.group(1)) * _DURATION_UNITS[unit]


async def evaluate_value(target: TargetContext, expression: str) -> Any:
    result = await target.send(
        "Runtime.evaluate",
        {
            "expression": expression,
            "returnByValue": True,
            "awaitPromise": True,
        },
    )
    exception = result.get("exceptionDetails")
    if exception:
        description = (exception.get("exception") or {}).get("description") or exception.get("text", "")
        raise ProtocolExecutionError(f"evaluate failed: {description}")
    return (result.get("result") or {}).get("value")


def _element_script(selector: str, fn: str, visible: bool) -> str:
    script = (
        "(() => {"
        f"const el = document.querySelector({json.dumps(selector)});"
        "if (!el) return {found: false};"
    )
    if visible:
        script += (
            "const rect = el.getBoundingClientRect();"
            "const style = window.getComputedStyle(el);"
            "if (rect.width <= 0 || rect.height <= 0) return {found: false};"
            "if (style.display === 'none' || style.visibility === 'hidden') return {found: false};"
        )
    script += f"return {{found: true, value: ({fn})(el)}};" "})()"
    return script


async def _on_element(target: TargetContext, selector: str, fn: str = "el => true", visible: bool = False) -> Any:
    # Polls until the element shows up; the session watchdog bounds the wait.
    script = _element_script(selector, fn, visible)
    while True:
        result = await evaluate_value(target, script)
        if isinstance(result, dict) and result.get("found"):
            return result.get("value")
        await target.sleep(POLL_INTERVAL)


_CENTER_JS = (
    "el => {"
    "el.scrollIntoView({block: 'center', inline: 'center'});"
    "const r = el.getBoundingClientRect();"
    "return {x: r.left + r.width / 2, y: r.top + r.height / 2};"
    "}"
)

_BOX_JS = (
    "el => {"
    "el.scrollIntoView({block: 'center', inline: 'center'});"
    "const r = el.getBoundingClientRect();"
    "return {x: r.left + window.scrollX, y: r.top + window.scrollY, width: r.width, height: r.height};"
    "}"
)

_FOCUS_JS = "el => { el.scrollIntoView({block: 'center', inline: 'center'}); el.focus(); return true; }"

_SPECIAL_KEYS = {
    "\r": ("Enter", 13),
    "\n": ("Enter", 13),
    "\t": ("Tab", 9),
    "\b": ("Backspace", 8),
}


async def _mouse_click(target: TargetContext, x: float, y: float, click_count: int) -> None:
    await target.send("Input.dispatchMouseEvent", {"type": "mouseMoved", "x": x, "y": y})
    for count in range(1, click_count + 1):
        for event in ("mousePressed", "mouseReleased"):
            await target.send(
                "Input.dispatchMouseEvent",
                {"type": event, "x": x, "y": y, "button": "left", "clickCount": count},
            )


async def _type_text(target: TargetContext, text: str) -> None:
    for char in text:
        special = _SPECIAL_KEYS.get(char)
        if special is None:
            await target.send("Input.dispatchKeyEvent", {"type": "keyDown", "key": char, "text": char})
            await target.send("Input.dispatchKeyEvent", {"type": "keyUp", "key": char})
            continue
        key, code = special
        event = {"key": key, "code": key, "windowsVirtualKeyCode": code, "nativeVirtualKeyCode": code}
        down = {"type": "keyDown", **event}
        if key == "Enter":
            down["text"] = "\r"
        await target.send("Input.dispatchKeyEvent", down)
        await target.send("Input.dispatchKeyEvent", {"type": "keyUp", **event})


def emulate_viewport(width: int, height: int) -> Operation:
    async def _emulate(target: TargetContext) -> None:
        await target.send(
            "Emulation.setDeviceMetricsOverride",
            {"width": width, "height": height, "deviceScaleFactor": 1, "mobile": False},
        )

    return ActionFunc(_emulate)


def navigate(url: str) -> Operation:
    async def _navigate(target: TargetContext) -> None:
        loaded = target.wait_event("Page.loadEventFired")
        try:
            result = await target.send("Page.navigate", {"url": url})
            if result.get("errorText"):
                raise ProtocolExecutionError(f"navigate {url}: {result['errorText']}")
            # Same-document navigations carry no loaderId and fire no load event.
            if result.get("loaderId"):
                await loaded
        finally:
            if loaded.done() and not loaded.cancelled():
                loaded.exception()
            loaded.cancel()

    return ActionFunc(_navigate)


def wait_ready(selector: str) -> Operation:
    async def _wait(target: TargetContext) -> None:
        await _on_element(target, selector)

    return ActionFunc(_wait)


def wait_visible(selector: str) -> Operation:
    async def _wait(target: TargetContext) -> None:
        await _on_element(target, selector, visible=True)

    return ActionFunc(_wait)


def click(selector: str) -> Operation:
    return _click(selector, click_count=1)


def double_click(selector: str) -> Operation:
    return _click(selector, click_count=2)


def _click(selector: str, click_count: int) -> Operation:
    async def _do(target: TargetContext) -> None:
        point = await _on_element(target, selector, _CENTER_JS, visible=True)
        await _mouse_click(target, float(point["x"]), float(point["y"]), click_count)

    return ActionFunc(_do)


def send_keys(selector: str, value: Any) -> Operation:
    async def _do(target: TargetContext) -> None:
        await _on_element(target, selector, _FOCUS_JS, visible=True)
        await _type_text(target, str(value))

    return ActionFunc(_do)


def set_value(selector: str, value: Any) -> Operation:
    fn = (
        "el => {"
        f"el.value = {json.dumps(str(value))};"
        "el.dispatchEvent(new Event('input', {bubbles: true}));"
        "el.dispatchEvent(new Event('change', {bubbles: true}));"
        "return true;"
        "}"
    )

    async def _do(target: TargetContext) -> None:
        await _on_element(target, selector, fn)

    return ActionFunc(_do)


def _element_call(selector: str, fn: str, visible: bool = False) -> Operation:
    async def _do(target: TargetContext) -> None:
        await _on_element(target, selector, fn, visible=visible)

    return ActionFunc(_do)


def submit(selector: str) -> Operation:
    return _element_call(
        selector,
        "el => {"
        "const form = el.form || el.closest('form') || el;"
        "if (form.requestSubmit) { form.requestSubmit(); } else { form.submit(); }"
        "return true;"
        "}",
    )


def scroll(selector: str) -> Operation:
    return _element_call(selector, "el => { el.scrollIntoView({block: 'center', inline: 'center'}); return true; }")


def focus(selector: str) -> Operation:
    return _element_call(selector, _FOCUS_JS, visible=True)


def sleep(duration: Any) -> Operation:
    seconds = parse_duration(duration)

    async def _sleep(target: TargetContext) -> None:
        await target.sleep(seconds)

    return ActionFunc(_sleep)


def set_upload_files(selector: str, paths: Sequence[str]) -> list[Operation]:
    files = [str(path) for path in paths]

    async def _set(target: TargetContext) -> None:
        document = await target.send("DOM.getDocument", {"depth": 0})
        node = await target.send(
            "DOM.querySelector",
            {"nodeId": document["root"]["nodeId"], "selector": selector},
        )
        node_id = node.get("nodeId", 0)
        if not node_id:
            raise ProtocolExecutionError(f"file input not found: {selector}")
        await target.send("DOM.setFileInputFiles", {"files": files, "nodeId": node_id})

    return [wait_ready(selector), ActionFunc(_set)]


def set_user_agent(user_agent: str) -> Operation:
    async def _do(target: TargetContext) -> None:
        await target.send("Emulation.setUserAgentOverride", {"userAgent": str(user_agent)})

    return ActionFunc(_do)


def evaluate(expression: str) -> Operation:
    async def _do(target: TargetContext) -> None:
        await evaluate_value(target, str(expression))

    return ActionFunc(_do)


def _capture_element(selector: str, fn: str, cell: ScalarCell, visible: bool = False) -> Operation:
    async def _do(target: TargetContext) -> None:
        value = await _on_element(target, selector, fn, visible=visible)
        cell.value = "" if value is None else str(value)

    return ActionFunc(_do)


def text(selector: str, cell: ScalarCell) -> Operation:
    return _capture_element(selector, "el => el.innerText", cell, visible=True)


def text_content(selector: str, cell: ScalarCell) -> Operation:
    return _capture_element(selector, "el => el.textContent", cell)


def inner_html(selector: str, cell: ScalarCell) -> Operation:
    return _capture_element(selector, "el => el.innerHTML", cell)


def outer_html(selector: str, cell: ScalarCell) -> Operation:
    return _capture_element(selector, "el => el.outerHTML", cell)


def value(selector: str, cell: ScalarCell) -> Operation:
    return _capture_element(selector, "el => el.value", cell)


def attributes(selector: str, cell: StringMapCell) -> Operation:
    fn = "el => Object.fromEntries(Array.from(el.attributes).map(a => [a.name, a.value]))"

    async def _do(target: TargetContext) -> None:
        attrs = await _on_element(target, selector, fn)
        cell.value = {str(k): str(v) for k, v in (attrs or {}).items()}

    return ActionFunc(_do)


def _capture_document(expression: str, cell: ScalarCell) -> Operation:
    async def _do(target: TargetContext) -> None:
        value = await evaluate_value(target, expression)
        cell.value = "" if value is None else str(value)

    return ActionFunc(_do)


def title(cell: ScalarCell) -> Operation:
    return _capture_document("document.title", cell)


def location(cell: ScalarCell) -> Operation:
    return _capture_document("window.location.href", cell)


async def _capture_png(target: TargetContext, clip: dict[str, Any]) -> bytes:
    shot = await target.send(
        "Page.captureScreenshot",
        {"format": "png", "captureBeyondViewport": True, "clip": {**clip, "scale": 1}},
    )
    return base64.b64decode(shot.get("data", ""))


def screenshot(selector: str, cell: BytesCell) -> Operation:
    async def _do(target: TargetContext) -> None:
        box = await _on_element(target, selector, _BOX_JS, visible=True)
        cell.value = await _capture_png(
            target,
            {"x": box["x"], "y": box["y"], "width": box["width"], "height": box["height"]},
        )

    return ActionFunc(_do)


def full_screenshot(cell: BytesCell) -> Operation:
    async def _do(target: TargetContext) -> None:
        metrics = await target.send("Page.getLayoutMetrics")
        size = metrics.get("cssContentSize") or metrics.get("contentSize") or {}
        cell.value = await _capture_png(
            target,
            {"x": 0, "y": 0, "width": size.get("width", 0), "height": size.get("height", 0)},
        )

    return ActionFunc(_do)


def _dom_storage(origin: str, cell: StringMapCell, is_local_storage: bool) -> Operation:
    async def _do(target: TargetContext) -> None:
        await target.send("DOMStorage.enable")
        result = await target.send(
            "DOMStorage.getDOMStorageItems",
            {"storageId": {"securityOrigin": str(origin), "isLocalStorage": is_local_storage}},
        )
        cell.value = {str(item[0]): str(item[1]) for item in result.get("entries", [])}

    return ActionFunc(_do)


def local_storage(origin: str, cell: StringMapCell) -> Operation:
    return _dom_storage(origin, cell, is_local_storage=True)


def session_storage(origin: str, cell: StringMapCell) -> Operation:
    return _dom_storage(origin, cell, is_local_storage=False)
