import pytest

from app.services.garbage_collector import GarbageCollector
from app.services.reachability import collect_reachable


def _fill(store, project_id, count, prefix="orphan"):
    return [store.put(f"{project_id}/{prefix}-{i:05d}.png") for i in range(count)]


def test_reachability_scans_every_string(codec, store):
    kept = store.put("p1/kept.png")
    renamed = store.put("p1/moved-field.png")
    other = store.put("p2/other.png")
    document = {
        "shots": [{"generatedImage": kept, "somethingNew": {"deep": [renamed]}}],
        "notes": other,
        "external": "https://images.example.com/x.png",
    }
    assert collect_reachable(codec, "p1", document) == {"p1/kept.png", "p1/moved-field.png"}


@pytest.mark.parametrize("batch_size", [0, 1001])
def test_batch_size_bounds(store, batch_size):
    with pytest.raises(ValueError):
        GarbageCollector(store, batch_size=batch_size)


@pytest.mark.parametrize("orphans, batches", [(10, 1), (11, 2), (20, 2), (21, 3)])
async def test_batch_boundary(store, orphans, batches):
    collector = GarbageCollector(store, batch_size=10, page_size=7)
    _fill(store, "p1", orphans)

    report = await collector.collect("p1", {})

    assert len(store.delete_batches) == batches
    assert all(len(b) <= 10 for b in store.delete_batches)
    assert report.deleted == orphans
    assert store.objects == {}


async def test_default_batch_boundary_at_max(store):
    collector = GarbageCollector(store)
    _fill(store, "p1", 1000)
    await collector.collect("p1", {})
    assert len(store.delete_batches) == 1

    _fill(store, "p1", 1001)
    await collector.collect("p1", {})
    assert [len(b) for b in store.delete_batches[1:]] == [1000, 1]


async def test_listing_follows_pages(store):
    collector = GarbageCollector(store, page_size=3)
    _fill(store, "p1", 10)

    stored = await collector.list_stored("p1")

    assert len(stored) == 10
    assert store.calls["list"] == 4


async def test_exact_multiple_of_page_size(store):
    collector = GarbageCollector(store, page_size=5)
    _fill(store, "p1", 10)
    assert len(await collector.list_stored("p1")) == 10
    assert store.calls["list"] == 2


async def test_reachable_blobs_survive(store):
    collector = GarbageCollector(store, page_size=2)
    urls = _fill(store, "p1", 5)
    other_project = store.put("p10/keep.png")

    report = await collector.collect("p1", {"shots": [{"generatedImage": urls[1]}, {"url": urls[3]}]})

    assert set(store.objects) == {"p1/orphan-00001.png", "p1/orphan-00003.png", "p10/keep.png"}
    assert report.stored == 5
    assert report.reachable == 2
    assert report.deleted == 3
    assert store.codec.extract_path(other_project) in store.objects


async def test_failed_batch_does_not_stop_the_pass(store):
    collector = GarbageCollector(store, batch_size=2)
    _fill(store, "p1", 6)
    store.fail_delete_calls.add(1)

    report = await collector.collect("p1", {})

    assert len(store.delete_batches) == 3
    assert report.failed_batches == 1
    assert report.deleted == 4
    assert set(store.objects) == set(store.delete_batches[1])


async def test_listing_failure_aborts_without_deleting(store):
    collector = GarbageCollector(store)
    _fill(store, "p1", 3)
    store.fail_ops.add("list")

    report = await collector.collect("p1", {})

    assert report.aborted
    assert store.delete_batches == []
    assert len(store.objects) == 3


async def test_nothing_to_delete(store):
    collector = GarbageCollector(store)
    url = store.put("p1/a.png")
    report = await collector.collect("p1", {"url": url})
    assert report.orphaned == 0
    assert store.calls["delete"] == 0
