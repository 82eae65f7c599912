from cdprun.runner.store import BytesCell, OutputShape, ScalarCell, Store, StringMapCell, new_cell


def test_new_cell_is_empty_for_each_shape() -> None:
    assert new_cell(OutputShape.SCALAR) == ScalarCell("")
    assert new_cell(OutputShape.STRING_MAP) == StringMapCell({})
    assert new_cell(OutputShape.BYTES) == BytesCell(b"")


def test_reused_key_is_overwritten() -> None:
    store = Store()
    first = store.allocate("text", OutputShape.SCALAR)
    first.value = "old"

    second = store.allocate("text", OutputShape.SCALAR)

    assert store["text"] is second
    assert store.drain() == {"text": ""}


def test_snapshot_reads_only_requested_keys() -> None:
    store = Store()
    store.allocate("text", OutputShape.SCALAR).value = "hi"
    store.allocate("png", OutputShape.BYTES).value = b"\x00"

    assert store.snapshot(["text"]) == {"text": "hi"}


def test_drain_returns_plain_copies() -> None:
    store = Store()
    cell = store.allocate("attrs", OutputShape.STRING_MAP)
    cell.value = {"id": "x"}

    drained = store.drain()
    drained["attrs"]["id"] = "changed"

    assert cell.value == {"id": "x"}


def test_clear_empties_store() -> None:
    store = Store()
    store.allocate("text", OutputShape.SCALAR)

    store.clear()

    assert len(store) == 0
    assert "text" not in store
    assert store.keys() == []
