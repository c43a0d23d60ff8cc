# Sessionlore
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
#
# This file is part of Sessionlore.
#
# Sessionlore is dual-licensed:
#
# 1. Open Source: GNU Affero General Public License v3.0 (AGPL-3.0)
#    You may use, modify, and distribute this file under AGPL-3.0.
#    See LICENSE for the full text.
#
# 2. Commercial: Available from Phoenix Link (Pty) Ltd
#    For proprietary use, SaaS deployment, or enterprise licensing.
#    See LICENSE-ENTERPRISE.md or contact info@phoenixlink.co.za
#
# Contributions require a signed CLA. See COPYRIGHT.md and CLA.md.
"""Session transcript types handed to the analyzers.

Sessions and messages are produced by session adapters (one per coding
assistant).  Parsing here is tolerant: a transcript with a missing tool
name or a malformed entry still yields usable data instead of failing the
whole session.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger("sessionlore.core.types")

UNKNOWN_TOOL = "unknown"


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    """Treat a naive datetime as UTC; aware values pass through."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def parse_timestamp(value: str | datetime) -> datetime:
    """Parse an ISO-8601 timestamp (a trailing ``Z`` is accepted).

    Naive values are assumed to be UTC.  Raises ValueError on garbage.
    """
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        parsed = datetime.fromisoformat(text)
    return as_utc(parsed)


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


@dataclass
class ToolUse:
    """A single tool invocation inside an assistant message."""

    id: str
    name: str
    input: dict[str, Any] | None = None
    result: Any = None
    success: bool | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name.strip():
            self.name = UNKNOWN_TOOL

    @property
    def succeeded(self) -> bool:
        # Missing success information counts as a success.
        return self.success is not False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"id": self.id, "name": self.name}
        if self.input is not None:
            data["input"] = self.input
        if self.result is not None:
            data["result"] = self.result
        if self.success is not None:
            data["success"] = self.success
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ToolUse:
        name = data.get("name")
        if not isinstance(name, str) or not name.strip():
            name = UNKNOWN_TOOL
        raw_input = data.get("input")
        success = data.get("success")
        return cls(
            id=str(data.get("id", "")),
            name=name,
            input=raw_input if isinstance(raw_input, dict) else None,
            result=data.get("result"),
            success=success if isinstance(success, bool) else None,
        )


@dataclass
class Message:
    """One conversation turn."""

    role: str
    content: str = ""
    timestamp: datetime | None = None
    tool_uses: list[ToolUse] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.timestamp is not None:
            data["timestamp"] = format_timestamp(self.timestamp)
        if self.tool_uses:
            data["toolUses"] = [t.to_dict() for t in self.tool_uses]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Message:
        raw_tools = data.get("toolUses", data.get("tool_uses")) or []
        tool_uses = []
        if isinstance(raw_tools, list):
            for entry in raw_tools:
                if not isinstance(entry, dict):
                    logger.debug("Skipping malformed tool use entry: %r", entry)
                    continue
                tool_uses.append(ToolUse.from_dict(entry))

        timestamp = None
        raw_ts = data.get("timestamp")
        if raw_ts:
            try:
                timestamp = parse_timestamp(raw_ts)
            except (TypeError, ValueError):
                logger.debug("Ignoring unparseable message timestamp: %r", raw_ts)

        content = data.get("content", "")
        return cls(
            role=str(data.get("role", "user")),
            content=content if isinstance(content, str) else str(content),
            timestamp=timestamp,
            tool_uses=tool_uses,
        )


def parse_messages(raw: list[Any]) -> list[Message]:
    """Parse a list of message dicts, skipping entries that are not dicts."""
    messages = []
    for entry in raw:
        if isinstance(entry, dict):
            messages.append(Message.from_dict(entry))
        else:
            logger.debug("Skipping malformed message entry: %r", entry)
    return messages


@dataclass
class Session:
    """Metadata for one recorded coding session."""

    id: str
    tool: str
    created_at: datetime = field(default_factory=utcnow)
    modified_at: datetime = field(default_factory=utcnow)
    path: str = ""
    message_count: int = 0
    project_slug: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "tool": self.tool,
            "createdAt": format_timestamp(self.created_at),
            "modifiedAt": format_timestamp(self.modified_at),
            "path": self.path,
            "messageCount": self.message_count,
        }
        if self.project_slug is not None:
            data["projectSlug"] = self.project_slug
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        now = utcnow()
        return cls(
            id=str(data["id"]),
            tool=str(data.get("tool", UNKNOWN_TOOL)),
            created_at=parse_timestamp(data["createdAt"]) if data.get("createdAt") else now,
            modified_at=parse_timestamp(data["modifiedAt"]) if data.get("modifiedAt") else now,
            path=str(data.get("path", "")),
            message_count=int(data.get("messageCount", 0)),
            project_slug=data.get("projectSlug"),
        )
