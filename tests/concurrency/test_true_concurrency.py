"""
True concurrency tests.

Threads released together by a Barrier race real transactions against one
store through the facade, each request on its own connection.  On SQLite
writers serialise on BEGIN IMMEDIATE; on PostgreSQL (set
HOMEBOX_TEST_DATABASE_URL) they serialise on row locks.  Either way every
race must end in one of the outcomes a serial order could produce, and the
store must pass the integrity scan afterwards.

Run with:
    pytest tests/concurrency -v -m slow_locks
"""

from concurrent.futures import ThreadPoolExecutor
from threading import Barrier

import pytest

from homebox_kernel.db.engine import session_scope
from homebox_kernel.selectors.integrity_selector import IntegritySelector

pytestmark = [pytest.mark.slow_locks]

NUM_THREADS = 8


def _data(response):
    assert "error" not in response, response
    return response["data"]


def _race(functions):
    """Run callables at the same instant; return their results in order."""
    barrier = Barrier(len(functions), timeout=30)

    def start(fn):
        barrier.wait()
        return fn()

    with ThreadPoolExecutor(max_workers=len(functions)) as pool:
        futures = [pool.submit(start, fn) for fn in functions]
        return [f.result(timeout=120) for f in futures]


def _assert_consistent(session_factory):
    with session_scope(session_factory, read_only=True) as session:
        assert IntegritySelector(session).find_violations() == []


@pytest.fixture
def shelf_with_items(api):
    garage = _data(api("createLocation", name="Garage"))
    shelf = _data(api("createContainer", name="Shelf", location=garage["id"]))
    items = [
        _data(api("createItem", name=f"Item {n}", container=shelf["id"], quantity=n))
        for n in range(5)
    ]
    return garage, shelf, items


class TestDeleteRaces:
    def test_concurrent_cascade_deletes_exactly_one_wins(self, api, shelf_with_items, session_factory):
        _, shelf, items = shelf_with_items

        results = _race(
            [lambda: api("deleteContainer", id=shelf["id"], cascade=True)] * NUM_THREADS
        )

        winners = [r for r in results if "data" in r]
        losers = [r["error"] for r in results if "error" in r]
        assert len(winners) == 1
        assert winners[0]["data"]["deletedItemCount"] == len(items)
        assert len(losers) == NUM_THREADS - 1
        assert {e["code"] for e in losers} == {"CONTAINER_NOT_FOUND"}
        _assert_consistent(session_factory)

    def test_concurrent_location_cascades_unassign_once(self, api, shelf_with_items, session_factory):
        garage, shelf, items = shelf_with_items

        results = _race(
            [lambda: api("deleteLocation", id=garage["id"], cascade=True)] * NUM_THREADS
        )

        assert sum(1 for r in results if "data" in r) == 1
        assert _data(api("container", id=shelf["id"]))["location"] is None
        assert len(_data(api("items", container=shelf["id"]))) == len(items)
        _assert_consistent(session_factory)

    def test_delete_versus_update(self, api, shelf_with_items, session_factory):
        _, _, items = shelf_with_items
        target = items[0]["id"]

        delete_result, *update_results = _race(
            [lambda: api("deleteItem", id=target)]
            + [lambda: api("updateItem", id=target, quantity=99)] * (NUM_THREADS - 1)
        )

        assert "data" in delete_result
        for result in update_results:
            if "error" in result:
                assert result["error"]["code"] == "ITEM_NOT_FOUND"
            else:
                assert result["data"]["quantity"] == 99
        assert _data(api("node", fields=["id"], id=items[1]["id"]))["id"] == items[1]["id"]
        assert "error" in api("item", id=target)
        _assert_consistent(session_factory)

    def test_creates_racing_a_container_cascade(self, api, shelf_with_items, session_factory):
        _, shelf, _ = shelf_with_items

        delete_result, *create_results = _race(
            [lambda: api("deleteContainer", id=shelf["id"], cascade=True)]
            + [
                (lambda n=n: api("createItem", name=f"Late {n}", container=shelf["id"]))
                for n in range(NUM_THREADS - 1)
            ]
        )

        assert "data" in delete_result
        for result in create_results:
            if "error" in result:
                assert result["error"]["code"] == "CONTAINER_NOT_FOUND"
            else:
                # Landed before the cascade, so the cascade took it.
                assert api("item", id=result["data"]["id"])["error"]["kind"] == "NotFoundError"
        assert _data(api("items")) == []
        _assert_consistent(session_factory)


class TestCreateAndReadRaces:
    def test_parallel_creates_all_land(self, api, session_factory):
        box = _data(api("createContainer", name="Box"))
        per_thread = 10

        def create_batch(thread_id):
            return [
                _data(api("createItem", name=f"T{thread_id}-{n}", container=box["id"], quantity=1))["id"]
                for n in range(per_thread)
            ]

        batches = _race([(lambda t=t: create_batch(t)) for t in range(NUM_THREADS)])
        ids = [item_id for batch in batches for item_id in batch]

        assert len(set(ids)) == NUM_THREADS * per_thread
        totals = _data(api("containerTotals", id=box["id"]))
        assert totals == {"itemCount": NUM_THREADS * per_thread, "totalQuantity": NUM_THREADS * per_thread}
        _assert_consistent(session_factory)

    def test_totals_never_observe_a_half_move(self, api, session_factory):
        garage = _data(api("createLocation", name="Garage"))
        left = _data(api("createContainer", name="Left", location=garage["id"]))
        right = _data(api("createContainer", name="Right", location=garage["id"]))
        items = [
            _data(api("createItem", name=f"Item {n}", container=left["id"], quantity=10))
            for n in range(4)
        ]
        expected = _data(api("locationTotals", id=garage["id"]))
        rounds = 15

        def mover(item):
            for n in range(rounds):
                target = right if n % 2 == 0 else left
                _data(api("updateItem", id=item["id"], container=target["id"]))
            return True

        def reader():
            snapshots = [_data(api("locationTotals", id=garage["id"])) for _ in range(rounds)]
            return all(s == expected for s in snapshots)

        results = _race([(lambda i=i: mover(i)) for i in items] + [reader] * 4)
        assert all(results)

        left_totals = _data(api("containerTotals", id=left["id"]))
        right_totals = _data(api("containerTotals", id=right["id"]))
        assert left_totals["itemCount"] + right_totals["itemCount"] == len(items)
        assert right_totals["itemCount"] == len(items)
        _assert_consistent(session_factory)
