"""Local-first artifact pusher.

Walks a set of (local directory -> AKW path prefix) mappings, hashes every
``*.md`` file underneath and pushes new or changed files to AKW through
``memory_create`` / ``memory_update``. A JSON manifest records
``local_path -> {sha256, last_pushed_at, akw_path}`` so that later cycles
only send what changed.
"""

from __future__ import annotations

import enum
import hashlib
import json
import logging
import os
from collections.abc import Iterator, Sequence
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Protocol

logger = logging.getLogger(__name__)


class AkwWriter(Protocol):
    """The part of an AKW client the pusher needs."""

    async def memory_create(self, path: str, body: str) -> Any: ...

    async def memory_update(self, path: str, body: str) -> Any: ...


@dataclass(frozen=True)
class WatchedMapping:
    """One watched directory mapped onto an AKW path prefix."""

    local_dir: Path
    akw_path_prefix: str
    label: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "local_dir", Path(self.local_dir))


@dataclass(frozen=True)
class ManifestEntry:
    """What was last pushed for one local file."""

    sha256: str
    last_pushed_at: str
    akw_path: str


@dataclass
class Manifest:
    """Tracks which local files have been pushed, keyed by local path string."""

    entries: dict[str, ManifestEntry] = field(default_factory=dict)

    @classmethod
    def load(cls, path: str | os.PathLike[str]) -> Manifest:
        """Load from disk; a missing or unreadable file gives an empty manifest."""
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except OSError:
            return cls()
        try:
            return cls._from_json(json.loads(text))
        except (ValueError, TypeError, KeyError) as exc:
            logger.warning(
                "manifest parse failed; treating as empty (path=%s, error=%s)", path, exc
            )
            return cls()

    @classmethod
    def _from_json(cls, data: Any) -> Manifest:
        if not isinstance(data, dict) or not isinstance(data.get("entries"), dict):
            raise ValueError("manifest must be an object with an 'entries' object")
        entries: dict[str, ManifestEntry] = {}
        for key, raw in data["entries"].items():
            if not isinstance(raw, dict):
                raise ValueError(f"entry {key!r} is not an object")
            values = {name: raw[name] for name in ("sha256", "last_pushed_at", "akw_path")}
            if not all(isinstance(v, str) for v in values.values()):
                raise ValueError(f"entry {key!r} has non-string fields")
            entries[key] = ManifestEntry(**values)
        return cls(entries)

    def save(self, path: str | os.PathLike[str]) -> None:
        """Persist atomically: write a temporary file, then rename it into place."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(".json.tmp")
        payload = {"entries": {key: asdict(self.entries[key]) for key in sorted(self.entries)}}
        tmp.write_text(json.dumps(payload, indent=2), encoding="utf-8")
        os.replace(tmp, path)

    def get(self, key: str) -> ManifestEntry | None:
        return self.entries.get(key)

    def upsert(self, key: str, entry: ManifestEntry) -> None:
        self.entries[key] = entry

    def remove(self, key: str) -> ManifestEntry | None:
        return self.entries.pop(key, None)


class PushAction(enum.Enum):
    """Which AKW call a diff needs."""

    CREATE = "create"
    UPDATE = "update"


@dataclass(frozen=True)
class PushOp:
    """One pending push."""

    local_path: Path
    local_path_str: str
    akw_path: str
    sha256: str
    action: PushAction
    mapping_label: str


@dataclass
class PushReport:
    """Summary of one pusher cycle."""

    created: int = 0
    updated: int = 0
    failed: int = 0
    failure_messages: list[str] = field(default_factory=list)

    def total(self) -> int:
        return self.created + self.updated + self.failed


@dataclass(frozen=True)
class MappingStatus:
    """File counts for one watched mapping."""

    label: str
    local_dir: Path
    file_count: int
    dirty_count: int
    never_pushed: int


def default_mappings() -> list[WatchedMapping]:
    """The watched directories shipped by default.

    Only ``1_drafts/...`` paths are writable by agents on the AKW side, so
    active preferences are backed up under ``1_drafts/preferences-active/``.
    """
    return [
        WatchedMapping(Path("agents/_preferences"), "1_drafts/preferences-active/", "active_prefs"),
        WatchedMapping(
            Path("data/drafts/2_knowledges/preferences"),
            "1_drafts/preferences-pending/",
            "pending_prefs",
        ),
        WatchedMapping(
            Path("data/drafts/2_researches"), "1_drafts/2_researches/", "research_drafts"
        ),
        WatchedMapping(Path("data/drafts/sessions"), "1_drafts/sessions/", "session_drafts"),
        WatchedMapping(Path("data/drafts/notes"), "1_drafts/notes/", "note_drafts"),
    ]


def default_manifest_path() -> Path:
    """Manifest location relative to the working directory."""
    return Path("data/.akw_push_manifest.json")


def hash_file(path: str | os.PathLike[str]) -> str:
    """Lowercase hex SHA-256 of a file's contents."""
    return hashlib.sha256(Path(path).read_bytes()).hexdigest()


def _iter_md(directory: Path) -> Iterator[Path]:
    try:
        children = list(directory.iterdir())
    except OSError:
        return
    for child in children:
        if child.is_dir():
            yield from _iter_md(child)
        elif child.suffix == ".md" and not child.name.startswith("."):
            yield child


def walk_md(local_dir: str | os.PathLike[str]) -> list[Path]:
    """All ``*.md`` files under ``local_dir``, recursively and sorted.

    Dot-prefixed files such as ``.template.md`` are skipped.
    """
    local_dir = Path(local_dir)
    if not local_dir.exists():
        return []
    return sorted(_iter_md(local_dir))


def _derive_paths(file: Path, mapping: WatchedMapping, root_dir: Path) -> tuple[str, str] | None:
    try:
        rel_to_local = file.relative_to(mapping.local_dir)
    except ValueError:
        return None
    try:
        rel_to_root = file.relative_to(root_dir)
    except ValueError:
        rel_to_root = file
    return str(rel_to_root), mapping.akw_path_prefix + rel_to_local.as_posix()


def compute_diffs_for_mapping(
    mapping: WatchedMapping, manifest: Manifest, root_dir: str | os.PathLike[str]
) -> list[PushOp]:
    """Push operations needed for one mapping."""
    root_dir = Path(root_dir)
    ops: list[PushOp] = []
    for file in walk_md(mapping.local_dir):
        paths = _derive_paths(file, mapping, root_dir)
        if paths is None:
            continue
        local_path_str, akw_path = paths
        try:
            digest = hash_file(file)
        except OSError as exc:
            logger.warning("skipping unreadable file %s: %s", file, exc)
            continue
        entry = manifest.get(local_path_str)
        if entry is None:
            action = PushAction.CREATE
        elif entry.sha256 == digest:
            continue
        else:
            action = PushAction.UPDATE
        ops.append(PushOp(file, local_path_str, akw_path, digest, action, mapping.label))
    return ops


def compute_diffs(
    mappings: Sequence[WatchedMapping], manifest: Manifest, root_dir: str | os.PathLike[str]
) -> list[PushOp]:
    """Push operations needed across all mappings, in mapping order."""
    return [op for m in mappings for op in compute_diffs_for_mapping(m, manifest, root_dir)]


def status(
    mappings: Sequence[WatchedMapping], manifest: Manifest, root_dir: str | os.PathLike[str]
) -> list[MappingStatus]:
    """File, dirty and never-pushed counts for each mapping."""
    root_dir = Path(root_dir)
    report: list[MappingStatus] = []
    for m in mappings:
        files = walk_md(m.local_dir)
        dirty = never = 0
        for f in files:
            paths = _derive_paths(f, m, root_dir)
            if paths is None:
                continue
            try:
                digest = hash_file(f)
            except OSError:
                digest = ""
            entry = manifest.get(paths[0])
            if entry is None:
                never += 1
            elif entry.sha256 != digest:
                dirty += 1
        report.append(MappingStatus(m.label, m.local_dir, len(files), dirty, never))
    return report


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


async def _push_one(client: AkwWriter, op: PushOp) -> None:
    body = op.local_path.read_text(encoding="utf-8")
    if op.action is PushAction.UPDATE:
        await client.memory_update(op.akw_path, body)
        return
    try:
        await client.memory_create(op.akw_path, body)
    except Exception as exc:
        msg = str(exc).lower()
        if "already exists" not in msg and "path exists" not in msg:
            raise
        logger.debug(
            "memory_create reports exists for %s; falling back to memory_update", op.akw_path
        )
        await client.memory_update(op.akw_path, body)


async def push_cycle(
    client: AkwWriter,
    mappings: Sequence[WatchedMapping],
    manifest_path: str | os.PathLike[str],
    root_dir: str | os.PathLike[str],
) -> PushReport:
    """Push every new or changed file once and update the manifest."""
    manifest = Manifest.load(manifest_path)
    ops = compute_diffs(mappings, manifest, root_dir)
    report = PushReport()
    if not ops:
        logger.debug("pusher: no diffs to push")
        return report

    logger.info("pusher cycle starting (diffs=%d)", len(ops))
    for op in ops:
        try:
            await _push_one(client, op)
        except Exception as exc:
            report.failed += 1
            msg = f"[{op.mapping_label}] {op.local_path_str}: {exc}"
            logger.warning("push failed: %s", msg)
            report.failure_messages.append(msg)
            continue
        manifest.upsert(op.local_path_str, ManifestEntry(op.sha256, _now_iso(), op.akw_path))
        if op.action is PushAction.CREATE:
            report.created += 1
        else:
            report.updated += 1
        logger.debug(
            "push ok (label=%s, local=%s, akw=%s, action=%s)",
            op.mapping_label,
            op.local_path_str,
            op.akw_path,
            op.action.value,
        )

    try:
        manifest.save(manifest_path)
    except OSError as exc:
        logger.warning("failed to save push manifest: %s", exc)

    logger.info(
        "pusher cycle complete (created=%d, updated=%d, failed=%d)",
        report.created,
        report.updated,
        report.failed,
    )
    return report


def record_pulled_file(
    manifest_path: str | os.PathLike[str], local_path_str: str, sha256: str, akw_path: str
) -> None:
    """Record a file just pulled from AKW so the next cycle does not push it back."""
    manifest = Manifest.load(manifest_path)
    manifest.upsert(local_path_str, ManifestEntry(sha256, _now_iso(), akw_path))
    manifest.save(manifest_path)


def drop_manifest_entry(manifest_path: str | os.PathLike[str], local_path_str: str) -> None:
    """Remove a manifest entry; a missing entry is left alone."""
    manifest = Manifest.load(manifest_path)
    if manifest.remove(local_path_str) is None:
        return
    manifest.save(manifest_path)