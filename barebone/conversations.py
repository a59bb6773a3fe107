"""Rendering stored conversations for listing and display."""

from __future__ import annotations

import json
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

_ROLE_TAGS = {"user": "[user]", "assistant": "[assistant]", "tool": "[tool]"}


@dataclass(frozen=True)
class StoredMessage:
    """One persisted message of a conversation."""

    agent_name: str
    role: str
    content: str
    channel_type: str
    turn_id: str
    is_final: bool
    created_at: str
    input_tokens: int = 0
    output_tokens: int = 0
    model_used: str | None = None


@dataclass(frozen=True)
class ConversationSummary:
    """Aggregate figures for one conversation."""

    conversation_id: str
    agent_name: str
    channel_type: str
    turn_count: int
    message_count: int
    total_input_tokens: int
    total_output_tokens: int
    first_message_at: str
    last_message_at: str


def truncate(text: str, max_len: int) -> str:
    """Cut ``text`` to ``max_len`` characters, marking the cut with ``...``."""
    if len(text) <= max_len:
        return text
    return text[:max_len] + "..."


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, sort_keys=True, ensure_ascii=False)


def render_conversation_list(convs: Sequence[ConversationSummary], as_json: bool = False) -> str:
    """A table (or JSON array) of conversation summaries."""
    if as_json:
        return _dump(
            [
                {
                    "conversation_id": c.conversation_id,
                    "agent": c.agent_name,
                    "channel": c.channel_type,
                    "turns": c.turn_count,
                    "messages": c.message_count,
                    "input_tokens": c.total_input_tokens,
                    "output_tokens": c.total_output_tokens,
                    "started": c.first_message_at,
                    "last_activity": c.last_message_at,
                }
                for c in convs
            ]
        )
    if not convs:
        return "(no conversations)"

    def row(cid: str, agent: str, channel: str, turns: object, tokens: object, last: str) -> str:
        return f"{cid:<40} {agent:<8} {channel:<8} {turns!s:<6} {tokens!s:<12} {last}"

    lines = [
        row("CONVERSATION_ID", "AGENT", "CHANNEL", "TURNS", "TOKENS", "LAST ACTIVITY"),
        "-" * 90,
    ]
    lines.extend(
        row(
            truncate(c.conversation_id, 38),
            c.agent_name,
            c.channel_type,
            c.turn_count,
            c.total_input_tokens + c.total_output_tokens,
            c.last_message_at,
        )
        for c in convs
    )
    return "\n".join(lines)


def _message_json(m: StoredMessage) -> dict[str, Any]:
    obj: dict[str, Any] = {
        "role": m.role,
        "content": m.content,
        "turn_id": m.turn_id,
        "is_final": m.is_final,
        "created_at": m.created_at,
    }
    if m.input_tokens > 0 or m.output_tokens > 0:
        obj["input_tokens"] = m.input_tokens
        obj["output_tokens"] = m.output_tokens
    if m.model_used is not None:
        obj["model"] = m.model_used
    return obj


def render_conversation(
    conversation_id: str,
    messages: Sequence[StoredMessage],
    full: bool = False,
    as_json: bool = False,
) -> str:
    """Render a conversation's messages.

    Without ``full`` only final messages are shown; with it, intermediate
    tool-loop steps appear indented and shortened. Raises ``LookupError``
    when there is nothing to show.
    """
    shown = list(messages) if full else [m for m in messages if m.is_final]
    if not shown:
        raise LookupError(f"No messages found for conversation: {conversation_id}")

    if as_json:
        return _dump([_message_json(m) for m in shown])

    first = shown[0]
    lines = [
        f"Conversation: {conversation_id}  (agent={first.agent_name}, channel={first.channel_type})",
        "-" * 70,
    ]
    for m in shown:
        tag = _ROLE_TAGS.get(m.role, "[?]")
        if full and not m.is_final:
            lines.append(f"  {tag} {m.created_at} (turn={m.turn_id})")
            lines.append(f"    {truncate(m.content, 200)}")
        else:
            lines.append(f"{tag} {m.created_at}")
            lines.append(m.content)
        lines.append("")
    return "\n".join(lines)