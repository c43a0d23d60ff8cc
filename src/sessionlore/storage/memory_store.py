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
"""Flat store for scoped memories and long-term snapshots.

Memories of every scope live side by side, keyed by id; aggregates refer
to their children by id only.  Long-term snapshots are append-only.

Storage: ~/.sessionlore/memories.json
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any

from sessionlore.config import DEFAULT_MEMORIES_PATH
from sessionlore.memory.models import LongTermMemory, Memory, MemoryScope
from sessionlore.memory.query import query_memories

logger = logging.getLogger("sessionlore.storage.memory_store")

STORE_VERSION = 1


class MemoryStoreError(Exception):
    """Raised when the memory file cannot be read or written."""


class MemoryStore:
    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path else DEFAULT_MEMORIES_PATH
        self._memories: dict[str, Memory] = {}
        self._long_term: dict[str, LongTermMemory] = {}

    # ── Persistence ──────────────────────────────────────────────────────

    def load(self) -> None:
        """Replace in-memory state with the file contents.

        Decode failures propagate as MemoryDecodeError.
        """
        self._memories = {}
        self._long_term = {}
        if not self.path.exists():
            return

        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as exc:
            raise MemoryStoreError(f"Failed to read memory store {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise MemoryStoreError(f"Malformed memory store {self.path}")

        for entry in raw.get("memories", []):
            memory = Memory.from_dict(entry)
            self._memories[memory.id] = memory
        for entry in raw.get("longTerm", []):
            snapshot = LongTermMemory.from_dict(entry)
            self._long_term[snapshot.id] = snapshot

        logger.info(
            "Loaded %d memories and %d long-term memories from %s",
            len(self._memories),
            len(self._long_term),
            self.path,
        )

    def save(self) -> None:
        payload = {
            "version": STORE_VERSION,
            "memories": [m.to_dict() for m in self._memories.values()],
            "longTerm": [m.to_dict() for m in self._long_term.values()],
        }
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except OSError as exc:
            raise MemoryStoreError(f"Failed to save memory store {self.path}: {exc}") from exc

    # ── Memories ─────────────────────────────────────────────────────────

    def add(self, memory: Memory) -> Memory:
        """Insert or replace a memory by id."""
        self._memories[memory.id] = memory
        return memory

    def get(self, memory_id: str) -> Memory | None:
        return self._memories.get(memory_id)

    def all(self) -> list[Memory]:
        return list(self._memories.values())

    def by_scope(self, scope: MemoryScope | str) -> list[Memory]:
        scope = MemoryScope(scope)
        return [m for m in self._memories.values() if m.scope == scope]

    def children_of(self, memory: Memory) -> list[Memory]:
        """Resolve child ids. Dangling references are logged and skipped."""
        children = []
        for child_id in memory.child_memory_ids:
            child = self._memories.get(child_id)
            if child is None:
                logger.warning("Memory %s references missing child %s", memory.id, child_id)
                continue
            children.append(child)
        return children

    def query(self, **filters: Any) -> list[Memory]:
        """Filter stored memories; see :func:`query_memories` for the options."""
        return query_memories(self._memories.values(), **filters)

    # ── Long-term snapshots ──────────────────────────────────────────────

    def record_long_term(self, snapshot: LongTermMemory) -> LongTermMemory:
        if snapshot.id in self._long_term:
            raise ValueError(f"Long-term memory {snapshot.id} already recorded")
        self._long_term[snapshot.id] = snapshot
        logger.info("Recorded long-term memory %s: %s", snapshot.id, snapshot.observation.text)
        return snapshot

    def get_long_term(self, memory_id: str) -> LongTermMemory | None:
        return self._long_term.get(memory_id)

    def long_term_memories(self) -> list[LongTermMemory]:
        return list(self._long_term.values())

    def counts(self) -> dict[str, int]:
        result = {scope.value: 0 for scope in MemoryScope}
        for memory in self._memories.values():
            result[memory.scope.value] += 1
        result["long_term"] = len(self._long_term)
        return result
