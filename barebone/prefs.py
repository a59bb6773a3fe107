"""The local preference pool: listing, pulling from AKW and promoting drafts."""

from __future__ import annotations

import logging
import os
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

import yaml

from barebone.akw_pusher import (
    default_manifest_path,
    drop_manifest_entry,
    hash_file,
    record_pulled_file,
)

logger = logging.getLogger(__name__)

PREFS_PULL_AKW_PREFIX = "2_knowledges/preferences/"
DRAFT_AKW_PREFIX = "1_drafts/2_knowledges/preferences/"
ACTIVE_DIR = Path("agents/_preferences")
PENDING_DIR = Path("data/drafts/2_knowledges/preferences")

_OPEN_FENCE = "---\n"
_CLOSE_FENCE = "\n---\n"


class AkwReader(Protocol):
    """The part of an AKW client that pulling needs."""

    async def memory_read(self, path: str) -> str: ...


class AkwDeleter(Protocol):
    """The part of an AKW client that promoting needs."""

    async def memory_delete(self, path: str) -> Any: ...


@dataclass(frozen=True)
class PrefEntry:
    """One preference file with the scope and summary from its frontmatter."""

    slug: str
    scope: str | None
    summary: str | None


def parse_scope_summary(raw: str) -> tuple[str | None, str | None]:
    """The ``scope`` and ``summary`` strings from a document's frontmatter."""
    if not raw.startswith(_OPEN_FENCE):
        return None, None
    rest = raw[len(_OPEN_FENCE):]
    end = rest.find(_CLOSE_FENCE)
    if end < 0:
        return None, None
    try:
        value = yaml.safe_load(rest[:end])
    except yaml.YAMLError:
        return None, None
    if not isinstance(value, dict):
        return None, None
    scope = value.get("scope")
    summary = value.get("summary")
    return (
        scope if isinstance(scope, str) else None,
        summary if isinstance(summary, str) else None,
    )


def list_dir(directory: str | os.PathLike[str]) -> list[PrefEntry]:
    """Preference entries for the ``*.md`` files in ``directory``, sorted by slug.

    Dot-prefixed files and unreadable files are skipped; a missing directory
    gives an empty list.
    """
    directory = Path(directory)
    if not directory.exists():
        return []
    try:
        paths = list(directory.iterdir())
    except OSError:
        return []
    entries: list[PrefEntry] = []
    for path in paths:
        if path.suffix != ".md" or path.stem.startswith("."):
            continue
        try:
            raw = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError):
            continue
        scope, summary = parse_scope_summary(raw)
        entries.append(PrefEntry(path.stem, scope, summary))
    entries.sort(key=lambda e: e.slug)
    return entries


def format_pref_entry(entry: PrefEntry) -> str:
    """One listing line for a preference."""
    scope = entry.scope if entry.scope is not None else "?"
    if entry.summary is not None:
        return f"  - {entry.slug} (scope: {scope}) — {entry.summary}"
    return f"  - {entry.slug} (scope: {scope})"


def _display_relative(root_dir: Path, path: Path) -> str:
    try:
        return str(path.relative_to(root_dir))
    except ValueError:
        return str(path)


async def pull_preference(
    root_dir: str | os.PathLike[str],
    slug: str,
    client: AkwReader,
    force: bool = False,
    rename: str | None = None,
) -> tuple[Path, str]:
    """Pull a preference from AKW into the active pool.

    ``slug`` is either a bare slug or a full AKW memory path. Returns the
    written file and the AKW path it came from. Raises ``FileExistsError``
    when the target exists and ``force`` is not set. A manifest entry is
    recorded so the pusher does not send the same content back.
    """
    root_dir = Path(root_dir)
    final_slug = rename if rename is not None else slug
    target = root_dir / ACTIVE_DIR / f"{final_slug}.md"

    if target.exists() and not force:
        raise FileExistsError(
            f"File exists at {_display_relative(root_dir, target)}. Use --force to overwrite "
            "or --rename <new_slug> to write under a different name."
        )

    akw_path = slug if "/" in slug else f"{PREFS_PULL_AKW_PREFIX}{slug}.md"
    content = await client.memory_read(akw_path)

    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(content, encoding="utf-8")

    local_path_str = _display_relative(root_dir, target)
    sha = hash_file(target)
    try:
        record_pulled_file(root_dir / default_manifest_path(), local_path_str, sha, akw_path)
    except OSError as exc:
        logger.warning("failed to update push manifest: %s", exc)
    return target, akw_path


def _is_missing_error(message: str) -> bool:
    lowered = message.lower()
    return "not found" in lowered or "404" in message or "does not exist" in lowered


async def promote_preference(
    root_dir: str | os.PathLike[str],
    slug: str,
    client: AkwDeleter | None = None,
) -> tuple[Path, Path, str]:
    """Move a pending preference into the active pool.

    ``slug`` may be a bare slug or a file name. Returns the former source
    path, the new active path and a note on the best-effort deletion of the
    AKW draft (``client`` is ``None`` when AKW is unreachable). Raises
    ``FileNotFoundError`` when the pending file is missing and
    ``FileExistsError`` when the active file already exists.
    """
    root_dir = Path(root_dir)
    pending_dir = root_dir / PENDING_DIR
    active_dir = root_dir / ACTIVE_DIR

    candidate_a = pending_dir / f"{slug}.md"
    candidate_b = pending_dir / slug
    if candidate_a.exists():
        source = candidate_a
    elif candidate_b.exists():
        source = candidate_b
    else:
        raise FileNotFoundError(f"Pending preference '{slug}' not found in {pending_dir}")

    final_slug = source.stem or slug
    target = active_dir / f"{final_slug}.md"
    if target.exists():
        raise FileExistsError(
            f"Active preference already exists at {_display_relative(root_dir, target)}. "
            "Move or delete it first."
        )

    target.parent.mkdir(parents=True, exist_ok=True)
    shutil.move(str(source), str(target))

    try:
        drop_manifest_entry(root_dir / default_manifest_path(), _display_relative(root_dir, source))
    except OSError as exc:
        logger.warning("failed to drop pending manifest entry: %s", exc)

    draft_akw_path = f"{DRAFT_AKW_PREFIX}{final_slug}.md"
    if client is None:
        note = f"AKW MCP not reachable; AKW draft at {draft_akw_path} left as orphan"
        logger.warning(note)
        return source, target, note

    try:
        await client.memory_delete(draft_akw_path)
    except Exception as exc:
        message = str(exc)
        if _is_missing_error(message):
            note = f"AKW draft at {draft_akw_path} was not present — nothing to delete"
        else:
            note = (
                f"failed to delete AKW draft at {draft_akw_path}: {message} (orphan accepted)"
            )
            logger.warning(note)
        return source, target, note
    return source, target, f"Deleted AKW draft at {draft_akw_path}"