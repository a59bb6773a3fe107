"""Writing skills and roles pulled from AKW into the local pools."""

from __future__ import annotations

import enum
import os
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml

_OPEN_FENCE = "---\n"
_CLOSE_FENCE = "\n---\n"


class Kind(enum.Enum):
    """The kind of document pulled from AKW."""

    SKILL = "skill"
    ROLE = "role"

    def label(self) -> str:
        return self.value

    @property
    def pool_dir_name(self) -> str:
        return "_skills" if self is Kind.SKILL else "_roles"


@dataclass(frozen=True)
class FetchedDoc:
    """A document read from AKW, with its frontmatter parsed."""

    slug: str
    path: str
    frontmatter: dict[str, Any] | None
    body: str
    raw: str


@dataclass(frozen=True)
class WrittenFile:
    """Where a pulled document landed and how many bytes were written."""

    path: Path
    bytes_written: int


def _split_fences(raw: str) -> tuple[str, str] | None:
    """Return (frontmatter text, body) when ``raw`` opens with a fenced block."""
    if not raw.startswith(_OPEN_FENCE):
        return None
    rest = raw[len(_OPEN_FENCE):]
    end = rest.find(_CLOSE_FENCE)
    if end < 0:
        return None
    return rest[:end], rest[end + len(_CLOSE_FENCE):]


def _load_mapping(text: str) -> dict[str, Any] | None:
    try:
        value = yaml.safe_load(text)
    except yaml.YAMLError:
        return None
    return value if isinstance(value, dict) else None


def split_frontmatter(raw: str) -> tuple[dict[str, Any] | None, str]:
    """Split a markdown document into its parsed YAML frontmatter and body.

    Without a frontmatter block the whole text is the body.
    """
    parts = _split_fences(raw)
    if parts is None:
        return None, raw
    fm, body = parts
    return _load_mapping(fm), body


def local_target_path(root_dir: str | os.PathLike[str], kind: Kind, slug: str) -> Path:
    """The local pool file for ``slug``: ``agents/_skills`` or ``agents/_roles``."""
    return Path(root_dir) / "agents" / kind.pool_dir_name / f"{slug}.md"


def _display_relative(root_dir: Path, path: Path) -> str:
    try:
        return str(path.relative_to(root_dir))
    except ValueError:
        return str(path)


def write_pulled_doc(
    root_dir: str | os.PathLike[str],
    kind: Kind,
    doc: FetchedDoc,
    force: bool = False,
    rename: str | None = None,
) -> WrittenFile:
    """Write a pulled document into the local pool.

    Raises ``FileExistsError`` when the target exists and ``force`` is not set.
    Skills get their frontmatter normalized; roles are written verbatim.
    """
    root_dir = Path(root_dir)
    target = local_target_path(root_dir, kind, rename if rename is not None else doc.slug)

    if target.exists() and not force:
        raise FileExistsError(
            f"File exists at {_display_relative(root_dir, target)}. Use --force to overwrite "
            "or --rename <new_slug> to write under a different name."
        )

    target.parent.mkdir(parents=True, exist_ok=True)
    to_write = normalize_skill_frontmatter(doc) if kind is Kind.SKILL else doc.raw
    data = to_write.encode("utf-8")
    target.write_bytes(data)
    return WrittenFile(target, len(data))


def has_top_level_key(fm: str, key: str) -> bool:
    """True when frontmatter text (without fences) has an unindented ``key:`` line."""
    needle = f"{key}:"
    return any(
        not line.startswith((" ", "\t")) and line.startswith(needle)
        for line in fm.split("\n")
    )


def render_keywords_from_tags(tags: Any) -> str | None:
    """Render a YAML ``keywords:`` block from a tag list or a comma/space separated string."""
    if isinstance(tags, list):
        items = [t for t in tags if isinstance(t, str)]
    elif isinstance(tags, str):
        items = [t for t in re.split(r"[,\s]", tags) if t]
    else:
        return None
    if not items:
        return None
    return "keywords:\n" + "".join(f"  - {item}\n" for item in items)


def normalize_skill_frontmatter(doc: FetchedDoc) -> str:
    """Add a ``keywords:`` block copied from ``tags`` when a skill lacks one.

    Works line by line so the original formatting is kept; anything it
    cannot handle passes through unchanged.
    """
    raw = doc.raw
    parts = _split_fences(raw)
    if parts is None:
        return raw
    fm, body = parts

    if has_top_level_key(fm, "keywords"):
        return raw

    frontmatter = doc.frontmatter if isinstance(doc.frontmatter, dict) else None
    if frontmatter is None:
        return raw
    if "tags" in frontmatter:
        tags = frontmatter["tags"]
    elif "trigger_tags" in frontmatter:
        tags = frontmatter["trigger_tags"]
    else:
        return raw

    keywords_block = render_keywords_from_tags(tags)
    if keywords_block is None:
        return raw

    separator = "" if fm.endswith("\n") else "\n"
    return f"{_OPEN_FENCE}{fm}{separator}{keywords_block}---\n{body}"


def extract_description(raw: str) -> str | None:
    """The ``description`` (or else ``title``) from a document's frontmatter."""
    parts = _split_fences(raw)
    if parts is None:
        return None
    value = _load_mapping(parts[0])
    if value is None:
        return None
    found = value["description"] if "description" in value else value.get("title")
    return found if isinstance(found, str) else None


def list_local(root_dir: str | os.PathLike[str], kind: Kind) -> list[tuple[str, str | None]]:
    """(slug, description) for every ``*.md`` in the local pool, sorted by slug."""
    directory = Path(root_dir) / "agents" / kind.pool_dir_name
    if not directory.exists():
        return []
    entries: list[tuple[str, str | None]] = []
    for path in directory.iterdir():
        if path.suffix != ".md":
            continue
        try:
            description = extract_description(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError):
            description = None
        entries.append((path.stem, description))
    entries.sort(key=lambda e: e[0])
    return entries