# barebone

Building blocks for a local-first AI agent harness: keeping local Markdown
artifacts in sync with a remote knowledge store (AKW), writing skills, roles
and preferences pulled from that store into local pools, and rendering
stored conversations.

The package is a library. It has no command of its own; import the modules
you need.

## Modules

- `barebone.akw_pusher` — watches directories of `*.md` files (dot-prefixed
  files are skipped), hashes them with SHA-256 and keeps a JSON manifest of
  what was pushed, so each cycle only sends new or changed files.
  `Manifest`, `WatchedMapping`, `PushOp`, `PushAction`, `PushReport`,
  `MappingStatus`; `default_mappings()`, `default_manifest_path()`,
  `hash_file()`, `walk_md()`, `compute_diffs()`,
  `compute_diffs_for_mapping()`, `status()`, `push_cycle()`,
  `record_pulled_file()`, `drop_manifest_entry()`.
- `barebone.pulled` — writes skills and roles fetched from the store into
  `agents/_skills/` and `agents/_roles/`. `write_pulled_doc()` raises
  `FileExistsError` unless `force` is set, takes an optional `rename`, and
  adds a `keywords:` block to a skill's front matter when it only has `tags:`
  or `trigger_tags:` (`normalize_skill_frontmatter()`). Also
  `split_frontmatter()`, `extract_description()` and `list_local()`.
- `barebone.akw_status` — `format_status_table()` and
  `format_push_report()` render push status and push results as text.
- `barebone.prefs` — `list_dir()` and `format_pref_entry()` list
  preferences with their `scope` and `summary`; `pull_preference()` reads a
  preference from the store into `agents/_preferences/` and records it in the
  push manifest; `promote_preference()` moves a pending preference from
  `data/drafts/2_knowledges/preferences/` into the active pool and, given a
  client, deletes the draft in the store on a best-effort basis.
- `barebone.conversations` — `render_conversation_list()` and
  `render_conversation()` render `ConversationSummary` and `StoredMessage`
  records as tables, text or JSON; `truncate()` shortens long fields.

## Examples

See what the pusher would send:

```python
from pathlib import Path

from barebone.akw_pusher import Manifest, compute_diffs, default_manifest_path, default_mappings

root = Path(".")
manifest = Manifest.load(root / default_manifest_path())
for op in compute_diffs(default_mappings(), manifest, root):
    print(op.action.value, op.local_path_str, "->", op.akw_path)
```

Report per-directory counts:

```python
from barebone.akw_pusher import status
from barebone.akw_status import format_status_table

print(format_status_table(status(default_mappings(), manifest, root)))
```

Run a push cycle with your own client. Any object with async
`memory_create(path, body)` and `memory_update(path, body)` methods will do;
an exception from either counts as a failed push, and a create that fails
with "already exists" falls back to an update:

```python
import asyncio

from barebone.akw_pusher import push_cycle
from barebone.akw_status import format_push_report

report = asyncio.run(
    push_cycle(client, default_mappings(), root / default_manifest_path(), root)
)
print(format_push_report(report))
```

## What the package does not do

- It has no client for the knowledge store. Pushing, pulling and promoting
  take a client object you supply.
- It has no command-line program, chat front end or model calls.
- It has no conversation storage: the conversation renderers take records
  you load yourself.

## Tests

The test suite uses pytest and pytest-asyncio, available through the `test`
extra.