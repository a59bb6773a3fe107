import json
from pathlib import Path

import pytest

from barebone.akw_pusher import (
    Manifest,
    ManifestEntry,
    PushAction,
    PushReport,
    WatchedMapping,
    compute_diffs,
    compute_diffs_for_mapping,
    default_manifest_path,
    default_mappings,
    drop_manifest_entry,
    hash_file,
    push_cycle,
    record_pulled_file,
    status,
    walk_md,
)


def write_md(directory: Path, slug: str, content: str) -> Path:
    p = directory / f"{slug}.md"
    p.write_text(content)
    return p


def rel(p: Path, root: Path) -> str:
    return str(p.relative_to(root))


class FakeClient:
    def __init__(self, create_error=None, update_error=None):
        self.create_error = create_error
        self.update_error = update_error
        self.calls = []

    async def memory_create(self, path, body):
        self.calls.append(("create", path, body))
        if self.create_error:
            raise RuntimeError(self.create_error)

    async def memory_update(self, path, body):
        self.calls.append(("update", path, body))
        if self.update_error:
            raise RuntimeError(self.update_error)


def test_hash_file_deterministic(tmp_path):
    p = write_md(tmp_path, "x", "hello")
    a = hash_file(p)
    assert a == hash_file(p)
    assert len(a) == 64
    assert a == "2cf24dba5fb0a30e26e83b2ac5b9e29e1b161e5c1fa7425e73043362938b9824"


def test_hash_changes_with_content(tmp_path):
    p = write_md(tmp_path, "x", "hello")
    a = hash_file(p)
    p.write_text("different")
    assert hash_file(p) != a


def test_hash_missing_file_raises(tmp_path):
    with pytest.raises(OSError):
        hash_file(tmp_path / "absent.md")


def test_manifest_round_trip(tmp_path):
    mp = tmp_path / ".manifest.json"
    m = Manifest()
    m.upsert("a.md", ManifestEntry("deadbeef", "2026-01-01T00:00:00Z", "x/a.md"))
    m.save(mp)
    loaded = Manifest.load(mp)
    assert len(loaded.entries) == 1
    assert loaded.get("a.md").sha256 == "deadbeef"
    assert not (tmp_path / ".manifest.json.tmp").exists()


def test_manifest_json_layout(tmp_path):
    mp = tmp_path / "sub" / "m.json"
    m = Manifest()
    m.upsert("b.md", ManifestEntry("2", "t", "x/b.md"))
    m.upsert("a.md", ManifestEntry("1", "t", "x/a.md"))
    m.save(mp)
    data = json.loads(mp.read_text())
    assert list(data["entries"]) == ["a.md", "b.md"]
    assert data["entries"]["a.md"] == {"sha256": "1", "last_pushed_at": "t", "akw_path": "x/a.md"}


def test_manifest_load_missing_returns_empty():
    assert Manifest.load(Path("/nonexistent/manifest.json")).entries == {}


def test_manifest_load_corrupt_returns_empty(tmp_path):
    mp = tmp_path / "m.json"
    mp.write_text("{not json")
    assert Manifest.load(mp).entries == {}


def test_manifest_remove():
    m = Manifest()
    m.upsert("a.md", ManifestEntry("h", "t", "p"))
    assert m.remove("a.md").sha256 == "h"
    assert m.remove("a.md") is None


def test_walk_md_finds_md_only(tmp_path):
    d = tmp_path / "d"
    d.mkdir()
    write_md(d, "a", "alpha")
    write_md(d, "b", "beta")
    (d / "c.txt").write_text("ignore")
    (d / ".template.md").write_text("tpl")
    names = [p.name for p in walk_md(d)]
    assert names == ["a.md", "b.md"]


def test_walk_md_recursive_and_missing(tmp_path):
    d = tmp_path / "d" / "nested"
    d.mkdir(parents=True)
    write_md(d, "deep", "x")
    assert [p.name for p in walk_md(tmp_path / "d")] == ["deep.md"]
    assert walk_md(tmp_path / "absent") == []


def test_compute_diffs_create_for_new_file(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    write_md(local, "alpha", "content")
    mapping = WatchedMapping(local, "out/", "test")
    ops = compute_diffs_for_mapping(mapping, Manifest(), tmp_path)
    assert len(ops) == 1
    assert ops[0].action == PushAction.CREATE
    assert ops[0].akw_path == "out/alpha.md"
    assert ops[0].local_path_str == str(Path("local") / "alpha.md")


def test_compute_diffs_nested_akw_path(tmp_path):
    local = tmp_path / "local" / "sub"
    local.mkdir(parents=True)
    write_md(local, "x", "c")
    mapping = WatchedMapping(tmp_path / "local", "out/", "test")
    ops = compute_diffs_for_mapping(mapping, Manifest(), tmp_path)
    assert ops[0].akw_path == "out/sub/x.md"


def test_compute_diffs_update_for_changed(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    p = write_md(local, "x", "v1")
    mapping = WatchedMapping(local, "out/", "test")
    manifest = Manifest()
    manifest.upsert(rel(p, tmp_path), ManifestEntry("stale", "old", "out/x.md"))
    ops = compute_diffs_for_mapping(mapping, manifest, tmp_path)
    assert len(ops) == 1
    assert ops[0].action == PushAction.UPDATE


def test_compute_diffs_skips_unchanged(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    p = write_md(local, "x", "stable")
    mapping = WatchedMapping(local, "out/", "test")
    manifest = Manifest()
    manifest.upsert(rel(p, tmp_path), ManifestEntry(hash_file(p), "old", "out/x.md"))
    assert compute_diffs_for_mapping(mapping, manifest, tmp_path) == []


def test_compute_diffs_across_mappings(tmp_path):
    a = tmp_path / "a"
    b = tmp_path / "b"
    a.mkdir()
    b.mkdir()
    write_md(a, "one", "1")
    write_md(b, "two", "2")
    ops = compute_diffs(
        [WatchedMapping(a, "A/", "la"), WatchedMapping(b, "B/", "lb")], Manifest(), tmp_path
    )
    assert [(o.akw_path, o.mapping_label) for o in ops] == [("A/one.md", "la"), ("B/two.md", "lb")]


def test_record_pulled_file_writes_entry(tmp_path):
    mp = tmp_path / ".manifest.json"
    record_pulled_file(mp, "agents/_preferences/foo.md", "abc", "2_knowledges/preferences/foo.md")
    entry = Manifest.load(mp).get("agents/_preferences/foo.md")
    assert entry.sha256 == "abc"
    assert entry.akw_path == "2_knowledges/preferences/foo.md"
    assert entry.last_pushed_at.endswith("Z")


def test_drop_manifest_entry_removes(tmp_path):
    mp = tmp_path / ".manifest.json"
    record_pulled_file(mp, "a.md", "x", "akw/a.md")
    drop_manifest_entry(mp, "a.md")
    assert Manifest.load(mp).get("a.md") is None


def test_drop_manifest_entry_missing_is_noop(tmp_path):
    mp = tmp_path / ".manifest.json"
    drop_manifest_entry(mp, "missing.md")
    assert not mp.exists()


def test_status_reports_counts(tmp_path):
    local = tmp_path / "p"
    local.mkdir()
    write_md(local, "a", "v1")
    pb = write_md(local, "b", "stable")
    pc = write_md(local, "c", "old")
    mapping = WatchedMapping(local, "out/", "L")
    manifest = Manifest()
    manifest.upsert(rel(pb, tmp_path), ManifestEntry(hash_file(pb), "x", "out/b.md"))
    manifest.upsert(rel(pc, tmp_path), ManifestEntry("oldhash", "x", "out/c.md"))
    st = status([mapping], manifest, tmp_path)
    assert len(st) == 1
    assert st[0].label == "L"
    assert st[0].file_count == 3
    assert st[0].never_pushed == 1
    assert st[0].dirty_count == 1


def test_default_mappings_has_five_entries():
    labels = {m.label for m in default_mappings()}
    assert len(default_mappings()) == 5
    assert labels == {
        "active_prefs",
        "pending_prefs",
        "research_drafts",
        "session_drafts",
        "note_drafts",
    }


def test_default_manifest_path():
    assert default_manifest_path() == Path("data/.akw_push_manifest.json")


def test_push_report_total():
    assert PushReport(created=2, updated=3, failed=1).total() == 6


@pytest.mark.asyncio
async def test_push_cycle_creates_and_records(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    p = write_md(local, "alpha", "body")
    mp = tmp_path / "m.json"
    client = FakeClient()
    report = await push_cycle(client, [WatchedMapping(local, "out/", "t")], mp, tmp_path)
    assert (report.created, report.updated, report.failed) == (1, 0, 0)
    assert client.calls == [("create", "out/alpha.md", "body")]
    assert Manifest.load(mp).get(rel(p, tmp_path)).sha256 == hash_file(p)

    again = await push_cycle(client, [WatchedMapping(local, "out/", "t")], mp, tmp_path)
    assert again.total() == 0
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_push_cycle_update_after_change(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    p = write_md(local, "alpha", "v1")
    mp = tmp_path / "m.json"
    mapping = WatchedMapping(local, "out/", "t")
    await push_cycle(FakeClient(), [mapping], mp, tmp_path)
    p.write_text("v2")
    client = FakeClient()
    report = await push_cycle(client, [mapping], mp, tmp_path)
    assert report.updated == 1
    assert client.calls == [("update", "out/alpha.md", "v2")]


@pytest.mark.asyncio
async def test_push_cycle_create_exists_falls_back(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    write_md(local, "alpha", "body")
    client = FakeClient(create_error="Path Already Exists")
    report = await push_cycle(client, [WatchedMapping(local, "out/", "t")], tmp_path / "m.json", tmp_path)
    assert report.created == 1
    assert [c[0] for c in client.calls] == ["create", "update"]


@pytest.mark.asyncio
async def test_push_cycle_failure_reported(tmp_path):
    local = tmp_path / "local"
    local.mkdir()
    p = write_md(local, "alpha", "body")
    mp = tmp_path / "m.json"
    client = FakeClient(create_error="permission denied")
    report = await push_cycle(client, [WatchedMapping(local, "out/", "lbl")], mp, tmp_path)
    assert report.failed == 1
    assert report.failure_messages == [f"[lbl] {rel(p, tmp_path)}: permission denied"]
    assert Manifest.load(mp).get(rel(p, tmp_path)) is None