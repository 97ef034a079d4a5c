"""Unit tests for bucket listing against a paged storage API."""

import pytest
from libs.common import storage
from libs.common.storage import StorageService


class PagedBucket:
    """Answers ``list(prefix, options)`` one ``limit``/``offset`` page at a time."""

    def __init__(self, tree: dict[str, list[dict]]):
        self.tree = tree
        self.calls: list[tuple[str, dict]] = []

    def list(self, prefix, options):
        self.calls.append((prefix, dict(options)))
        entries = self.tree.get(prefix, [])
        start = options.get("offset", 0)
        return entries[start:start + options["limit"]]


class FakeSupabase:
    def __init__(self, bucket: PagedBucket):
        self._bucket = bucket
        self.storage = self

    def from_(self, name):
        return self._bucket


def _file(name):
    return {"id": f"id-{name}", "name": name, "created_at": "2026-01-01T00:00:00+00:00"}


@pytest.mark.unit
@pytest.mark.asyncio
async def test_list_objects_follows_every_page(monkeypatch):
    monkeypatch.setattr(storage, "LIST_PAGE_SIZE", 2)
    bucket = PagedBucket(
        {
            "": [{"name": f"owner-{i}"} for i in range(3)] + [_file("loose.png")],
            "owner-0": [_file(f"{i}.png") for i in range(5)],
            "owner-1": [],
            "owner-2": [_file("a.png"), _file("b.png")],
        }
    )
    service = StorageService("products", client=FakeSupabase(bucket))

    objects = await service.list_objects()

    paths = [o.path for o in objects]
    assert [p for p in paths if p.startswith("owner-0/")] == [
        f"owner-0/{i}.png" for i in range(5)
    ]
    assert "owner-2/b.png" in paths
    assert "loose.png" in paths
    assert len(paths) == 8
    assert [opts["offset"] for prefix, opts in bucket.calls if prefix == "owner-0"] == [0, 2, 4]
    # A full last page needs one more empty request to confirm the end
    assert [opts["offset"] for prefix, opts in bucket.calls if prefix == "owner-2"] == [0, 2]
