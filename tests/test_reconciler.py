"""Tests for the reconciliation pass: removals and access propagation."""

import pytest

from conftest import DEVICE_ID, SERVER_ID, FakeClient
from media_sync.core.reconciler import DataReconciler
from media_sync.exceptions import LocalStoreError, RemoteApiError
from media_sync.models.items import SyncDataResult, local_item_id
from media_sync.models.stats import SyncStats


def _reconciler(client, store, events, stats=None) -> DataReconciler:
    return DataReconciler(client, store, events, stats)


async def test_request_is_built_from_current_inventory(store, events, target):
    store.add_item("a")
    store.add_item("b")
    client = FakeClient()

    await _reconciler(client, store, events).reconcile(target, propagate_access=False)

    request = client.calls[0][1]
    assert request.target_id == DEVICE_ID
    assert request.local_item_ids == ["a", "b"]
    assert request.offline_user_ids == ["u1", "u2"]


async def test_inventory_is_reread_on_every_pass(store, events, target):
    store.add_item("a")
    client = FakeClient()
    reconciler = _reconciler(client, store, events)

    await reconciler.reconcile(target, propagate_access=False)
    store.add_item("b")
    await reconciler.reconcile(target, propagate_access=False)

    first, second = (c[1] for c in client.calls)
    assert first.local_item_ids == ["a"]
    assert second.local_item_ids == ["a", "b"]


async def test_removal_failure_does_not_stop_later_removals(store, events, target):
    store.add_item("a")
    store.add_item("b")
    store.fail["remove_local_item"] = {"a"}
    stats = SyncStats()
    client = FakeClient([SyncDataResult(item_ids_to_remove=["a", "b"])])

    await _reconciler(client, store, events, stats).reconcile(
        target, propagate_access=False
    )

    assert local_item_id(SERVER_ID, "a") in store.items
    assert local_item_id(SERVER_ID, "b") not in store.items
    assert [c[1] for c in store.calls if c[0] == "remove_local_item"] == ["a", "b"]
    assert stats.items_removed == 1
    assert stats.items_remove_failed == 1


async def test_request_failure_fails_the_pass(store, events, target):
    client = FakeClient()
    client.fail.add("sync_data")

    with pytest.raises(RemoteApiError):
        await _reconciler(client, store, events).reconcile(target, True)


async def test_inventory_failure_fails_the_pass(store, events, target):
    store.fail["get_server_item_ids"] = {"*"}
    client = FakeClient()

    with pytest.raises(LocalStoreError):
        await _reconciler(client, store, events).reconcile(target, False)
    assert client.calls == []


async def test_access_not_propagated_on_first_pass(store, events, target):
    store.add_item("a", ["u1"])
    client = FakeClient([SyncDataResult(item_user_access={"a": ["u1", "u2"]})])

    await _reconciler(client, store, events).reconcile(target, propagate_access=False)

    assert store.items[local_item_id(SERVER_ID, "a")].user_ids_with_access == ["u1"]
    assert store.writes() == []


async def test_access_list_is_rewritten_when_it_differs(store, events, target):
    store.add_item("a", ["u1"])
    stats = SyncStats()
    client = FakeClient([SyncDataResult(item_user_access={"a": ["u1", "u2"]})])

    await _reconciler(client, store, events, stats).reconcile(target, True)

    assert store.items[local_item_id(SERVER_ID, "a")].user_ids_with_access == [
        "u1",
        "u2",
    ]
    assert stats.access_updated == 1


async def test_equal_access_sets_cause_no_write(store, events, target):
    store.add_item("a", ["u2", "u1"])
    stats = SyncStats()
    client = FakeClient([SyncDataResult(item_user_access={"a": ["u1", "u2"]})])

    await _reconciler(client, store, events, stats).reconcile(target, True)

    assert store.writes() == []
    assert stats.access_unchanged == 1


async def test_access_failure_is_isolated_per_item(store, events, target):
    store.add_item("a", [])
    store.add_item("b", [])
    store.fail["get_local_item"] = {"a"}
    stats = SyncStats()
    client = FakeClient(
        [SyncDataResult(item_user_access={"a": ["u1"], "b": ["u1"]})]
    )

    await _reconciler(client, store, events, stats).reconcile(target, True)

    assert store.items[local_item_id(SERVER_ID, "b")].user_ids_with_access == ["u1"]
    assert stats.access_failed == 1
    assert stats.access_updated == 1


async def test_access_for_unknown_item_is_skipped(store, events, target):
    client = FakeClient([SyncDataResult(item_user_access={"ghost": ["u1"]})])

    await _reconciler(client, store, events).reconcile(target, True)

    assert store.writes() == []
    assert store.items == {}


async def test_sub_phases_finish_before_pass_returns(store, events, target):
    store.add_item("old")
    store.add_item("keep", [])
    client = FakeClient(
        [
            SyncDataResult(
                item_ids_to_remove=["old"], item_user_access={"keep": ["u1"]}
            )
        ]
    )

    await _reconciler(client, store, events).reconcile(target, True)

    ops = [c[0] for c in store.calls]
    assert ops.index("remove_local_item") < ops.index("add_or_update_local_item")
    assert local_item_id(SERVER_ID, "old") not in store.items
    assert store.items[local_item_id(SERVER_ID, "keep")].user_ids_with_access == ["u1"]
