from __future__ import annotations

from collections.abc import Callable, Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from cdprun.browser import tasks
from cdprun.errors import UnknownActionError
from cdprun.runner.store import OutputShape

LATEST_TAB = "latestTab"


class ArgDirection(str, Enum):
    INPUT = "input"
    OUTPUT = "output"


@dataclass(frozen=True, slots=True)
class ArgSlot:
    key: str
    direction: ArgDirection
    shape: OutputShape | None = None


def arg(key: str) -> ArgSlot:
    return ArgSlot(key=key, direction=ArgDirection.INPUT)


def res(key: str, shape: OutputShape) -> ArgSlot:
    return ArgSlot(key=key, direction=ArgDirection.OUTPUT, shape=shape)


@dataclass(frozen=True, slots=True)
class ActionDescriptor:
    fn: Callable[..., Any] | None
    slots: tuple[ArgSlot, ...] = ()
    description: str = ""
    aliases: tuple[str, ...] = ()
    control: bool = False

    def output_slots(self) -> tuple[ArgSlot, ...]:
        return tuple(slot for slot in self.slots if slot.direction is ArgDirection.OUTPUT)


class ActionRegistry:
    def __init__(self, descriptors: dict[str, ActionDescriptor]) -> None:
        self._descriptors = dict(descriptors)
        self._aliases: dict[str, str] = {}
        for name, descriptor in self._descriptors.items():
            for alias in descriptor.aliases:
                if alias in self._descriptors or alias in self._aliases:
                    raise ValueError(f"duplicate action alias: {alias}")
                self._aliases[alias] = name

    def resolve(self, name: str) -> tuple[str, ActionDescriptor]:
        canonical = name if name in self._descriptors else self._aliases.get(name)
        if canonical is None:
            raise UnknownActionError(name)
        return canonical, self._descriptors[canonical]

    def names(self) -> list[str]:
        return list(self._descriptors)

    def __contains__(self, name: object) -> bool:
        return name in self._descriptors or name in self._aliases

    def __iter__(self) -> Iterator[tuple[str, ActionDescriptor]]:
        return iter(self._descriptors.items())


def _upload_file(selector: str, path: str) -> list[tasks.Operation]:
    return tasks.set_upload_files(selector, [path])


DEFAULT_REGISTRY = ActionRegistry(
    {
        LATEST_TAB: ActionDescriptor(
            fn=None,
            description="Change current frame to latest tab.",
            aliases=("latestTarget",),
            control=True,
        ),
        "navigate": ActionDescriptor(tasks.navigate, (arg("url"),), "Navigate to URL."),
        "click": ActionDescriptor(tasks.click, (arg("sel"),), "Click on element."),
        "doubleClick": ActionDescriptor(tasks.double_click, (arg("sel"),), "Double click on element."),
        "sendKeys": ActionDescriptor(
            tasks.send_keys, (arg("sel"), arg("value")), "Send keys (value) to element."
        ),
        "setValue": ActionDescriptor(tasks.set_value, (arg("sel"), arg("value")), "Set value to element."),
        "submit": ActionDescriptor(tasks.submit, (arg("sel"),), "Submit the parent form of the element."),
        "scroll": ActionDescriptor(tasks.scroll, (arg("sel"),), "Scroll window to element."),
        "focus": ActionDescriptor(tasks.focus, (arg("sel"),), "Focus on element."),
        "waitReady": ActionDescriptor(tasks.wait_ready, (arg("sel"),), "Wait until element is ready."),
        "waitVisible": ActionDescriptor(tasks.wait_visible, (arg("sel"),), "Wait until element is visible."),
        "wait": ActionDescriptor(tasks.sleep, (arg("time"),), "Wait for the specified time.", ("sleep",)),
        "setUploadFile": ActionDescriptor(
            _upload_file, (arg("sel"), arg("path")), "Set upload file (path) to element."
        ),
        "setUserAgent": ActionDescriptor(
            tasks.set_user_agent, (arg("userAgent"),), "Set the default User-Agent.", ("setUA", "ua")
        ),
        "evaluate": ActionDescriptor(tasks.evaluate, (arg("expr"),), "Evaluate the Javascript expression.", ("eval",)),
        "text": ActionDescriptor(
            tasks.text, (arg("sel"), res("text", OutputShape.SCALAR)), "Get the visible text of the element."
        ),
        "textContent": ActionDescriptor(
            tasks.text_content, (arg("sel"), res("text", OutputShape.SCALAR)), "Get the text content of the element."
        ),
        "innerHTML": ActionDescriptor(
            tasks.inner_html, (arg("sel"), res("html", OutputShape.SCALAR)), "Get the inner HTML of the element."
        ),
        "outerHTML": ActionDescriptor(
            tasks.outer_html, (arg("sel"), res("html", OutputShape.SCALAR)), "Get the outer HTML of the element."
        ),
        "value": ActionDescriptor(
            tasks.value, (arg("sel"), res("value", OutputShape.SCALAR)), "Get the Javascript value field of the element."
        ),
        "attributes": ActionDescriptor(
            tasks.attributes,
            (arg("sel"), res("attrs", OutputShape.STRING_MAP)),
            "Get the element attributes.",
            ("attrs",),
        ),
        "title": ActionDescriptor(tasks.title, (res("title", OutputShape.SCALAR),), "Get the document title."),
        "location": ActionDescriptor(
            tasks.location, (res("url", OutputShape.SCALAR),), "Get the document location.", ("url",)
        ),
        "screenshot": ActionDescriptor(
            tasks.screenshot, (arg("sel"), res("png", OutputShape.BYTES)), "Take a screenshot of the element."
        ),
        "fullScreenshot": ActionDescriptor(
            tasks.full_screenshot,
            (res("png", OutputShape.BYTES),),
            "Take a full screenshot of the entire browser viewport.",
            ("fullPageScreenshot",),
        ),
        "localStorage": ActionDescriptor(
            tasks.local_storage,
            (arg("origin"), res("items", OutputShape.STRING_MAP)),
            "Get localStorage items.",
        ),
        "sessionStorage": ActionDescriptor(
            tasks.session_storage,
            (arg("origin"), res("items", OutputShape.STRING_MAP)),
            "Get sessionStorage items.",
        ),
    }
)
