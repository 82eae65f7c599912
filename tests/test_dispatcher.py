from __future__ import annotations

import os

import pytest

from cdprun.browser.actions import ActionRequest
from cdprun.browser.registry import DEFAULT_REGISTRY, LATEST_TAB, ActionDescriptor, ActionRegistry, arg
from cdprun.browser.tasks import ActionFunc, Operation
from cdprun.errors import (
    InvalidArgumentError,
    MalformedResultError,
    MissingArgumentError,
    NilArgumentError,
    UnknownActionError,
)
from cdprun.runner.dispatcher import ActionDispatcher
from cdprun.runner.store import BytesCell, ScalarCell, Store, StringMapCell


async def _noop(target) -> None:
    return None


def _upload_registry(captured: list[str]) -> ActionRegistry:
    def _upload(selector: str, path: str) -> Operation:
        captured.append(path)
        return ActionFunc(_noop)

    return ActionRegistry({"setUploadFile": ActionDescriptor(_upload, (arg("sel"), arg("path")))})


def test_output_slots_get_typed_cells_in_store() -> None:
    dispatcher = ActionDispatcher(DEFAULT_REGISTRY, "/r")
    store = Store()

    dispatcher.resolve_operations(ActionRequest("text", {"sel": "h1"}), store)
    dispatcher.resolve_operations(ActionRequest("attrs", {"sel": "a"}), store)
    dispatcher.resolve_operations(ActionRequest("fullScreenshot", {}), store)

    assert isinstance(store["text"], ScalarCell)
    assert isinstance(store["attrs"], StringMapCell)
    assert isinstance(store["png"], BytesCell)
    assert store.drain() == {"text": "", "attrs": {}, "png": b""}


def test_resolve_returns_operation_list() -> None:
    dispatcher = ActionDispatcher(DEFAULT_REGISTRY, "/r")

    single = dispatcher.resolve_operations(ActionRequest("click", {"sel": "#go"}), Store())
    many = dispatcher.resolve_operations(ActionRequest("setUploadFile", {"sel": "#f", "path": "a.txt"}), Store())

    assert len(single) == 1
    assert len(many) == 2
    assert all(isinstance(op, Operation) for op in single + many)


def test_missing_and_nil_arguments() -> None:
    dispatcher = ActionDispatcher(DEFAULT_REGISTRY, "/r")

    with pytest.raises(MissingArgumentError) as missing:
        dispatcher.resolve_operations(ActionRequest("sendKeys", {"sel": "#q"}), Store())
    with pytest.raises(NilArgumentError) as nil:
        dispatcher.resolve_operations(ActionRequest("sendKeys", {"sel": "#q", "value": None}), Store())

    assert missing.value.key == "value"
    assert nil.value.key == "value"


def test_unknown_action() -> None:
    dispatcher = ActionDispatcher(DEFAULT_REGISTRY, "/r")

    with pytest.raises(UnknownActionError):
        dispatcher.resolve_operations(ActionRequest("teleport", {}), Store())


def test_relative_upload_path_is_joined_onto_root() -> None:
    captured: list[str] = []
    dispatcher = ActionDispatcher(_upload_registry(captured), "/r")
    request = ActionRequest("setUploadFile", {"sel": "#file", "path": "x/y.png"})

    dispatcher.resolve_operations(request, Store())

    assert captured == [os.path.join("/r", "x/y.png")]
    assert request.args["path"] == "x/y.png"


def test_absolute_upload_path_passes_through() -> None:
    captured: list[str] = []
    dispatcher = ActionDispatcher(_upload_registry(captured), "/r")

    dispatcher.resolve_operations(ActionRequest("setUploadFile", {"sel": "#file", "path": "/abs/y.png"}), Store())

    assert captured == ["/abs/y.png"]


def test_non_string_upload_path_is_invalid() -> None:
    dispatcher = ActionDispatcher(_upload_registry([]), "/r")

    with pytest.raises(InvalidArgumentError):
        dispatcher.resolve_operations(ActionRequest("setUploadFile", {"sel": "#file", "path": 3}), Store())


def test_unexpected_result_shape_is_malformed() -> None:
    registry = ActionRegistry(
        {
            "text": ActionDescriptor(lambda: "text"),
            "mixed": ActionDescriptor(lambda: [ActionFunc(_noop), "text"]),
        }
    )
    dispatcher = ActionDispatcher(registry, "/r")

    with pytest.raises(MalformedResultError):
        dispatcher.resolve_operations(ActionRequest("text", {}), Store())
    with pytest.raises(MalformedResultError):
        dispatcher.resolve_operations(ActionRequest("mixed", {}), Store())


def test_session_control_action_is_not_dispatched() -> None:
    dispatcher = ActionDispatcher(DEFAULT_REGISTRY, "/r")

    with pytest.raises(MalformedResultError):
        dispatcher.resolve_operations(ActionRequest(LATEST_TAB, {}), Store())


def test_unparsable_wait_duration_is_invalid() -> None:
    dispatcher = ActionDispatcher(DEFAULT_REGISTRY, "/r")

    with pytest.raises(InvalidArgumentError):
        dispatcher.resolve_operations(ActionRequest("wait", {"time": "soon"}), Store())
