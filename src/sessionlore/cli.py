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
"""Sessionlore command line.

Commands:
    sessionlore analyze --messages FILE --session-id ID [--project ID]
                                  -- Analyze one exported session transcript
    sessionlore status            -- Store and memory counts
    sessionlore review            -- List observations awaiting review
    sessionlore approve ID        -- Approve an observation
    sessionlore deny ID           -- Deny an observation
    sessionlore candidates        -- Global memories eligible for promotion
    sessionlore promote ID --yes  -- Snapshot an eligible memory into long-term memory
    sessionlore config            -- Show the effective configuration

Each command is a ``cmd_*`` function returning a CommandResult so it can be
driven from tests or other front ends without going through argparse.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sessionlore.config import Config, home_paths, load_config
from sessionlore.core.observation import InvalidTransitionError, ObservationStatus
from sessionlore.core.types import Session, parse_messages, utcnow
from sessionlore.engine import AnalysisEngine
from sessionlore.memory.hierarchy import MemoryHierarchy
from sessionlore.storage.memory_store import MemoryStore, MemoryStoreError
from sessionlore.storage.observation_store import ObservationStore, ObservationStoreError
from sessionlore.storage.state import StateStore

logger = logging.getLogger("sessionlore.cli")


@dataclass
class CommandResult:
    """Result of a CLI command execution."""

    success: bool
    message: str
    data: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "message": self.message,
            "data": self.data,
        }


@dataclass
class _Workspace:
    config: Config
    observations: ObservationStore
    memories: MemoryStore
    state: StateStore
    hierarchy: MemoryHierarchy


def _open(home: Path | str | None) -> _Workspace:
    """Load config and stores from a Sessionlore home directory."""
    paths = home_paths(home)
    config = load_config(paths["config"])
    observations = ObservationStore(paths["observations"], config.analysis.similarity_threshold)
    memories = MemoryStore(paths["memories"])
    observations.load()
    memories.load()
    hierarchy = MemoryHierarchy(
        observations, memories, config.promotion, config.analysis.similarity_threshold
    )
    return _Workspace(config, observations, memories, StateStore(paths["state"]), hierarchy)


def _store_error(exc: Exception) -> CommandResult:
    logger.error("Store error: %s", exc)
    return CommandResult(success=False, message=f"Failed to open stores: {exc}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


def cmd_analyze(
    messages_file: str,
    session_id: str,
    project_id: str | None = None,
    home: Path | str | None = None,
) -> CommandResult:
    """Analyze a JSON transcript (a list of messages, or {"messages": [...]})."""
    path = Path(messages_file)
    if not path.exists():
        return CommandResult(success=False, message=f"Messages file not found: {path}")
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        return CommandResult(success=False, message=f"Invalid JSON in {path}: {exc}")
    if isinstance(raw, dict):
        raw = raw.get("messages", [])
    if not isinstance(raw, list):
        return CommandResult(success=False, message="Transcript must be a list of messages")

    try:
        ws = _open(home)
    except (ObservationStoreError, MemoryStoreError, ValueError) as exc:
        return _store_error(exc)

    messages = parse_messages(raw)
    now = utcnow()
    session = Session(
        id=session_id,
        tool="import",
        created_at=now,
        modified_at=now,
        path=str(path),
        message_count=len(messages),
        project_slug=project_id,
    )
    engine = AnalysisEngine(ws.config, [], ws.observations, ws.state, hierarchy=ws.hierarchy)
    summary = engine.process_session(session, messages)
    if project_id:
        engine.refresh_aggregates({project_id: [session_id]})

    ws.observations.save()
    ws.memories.save()
    state = ws.state.load()
    state.last_analysis_run = now
    state.observation_count = ws.observations.count()
    ws.state.save(state)

    return CommandResult(
        success=True,
        message=(
            f"Session {session_id}: {summary.created} new, {summary.merged} merged, "
            f"{summary.skipped} already known"
        ),
        data={"session_id": session_id, "messages": len(messages), **summary.to_dict()},
    )


def cmd_status(home: Path | str | None = None) -> CommandResult:
    try:
        ws = _open(home)
    except (ObservationStoreError, MemoryStoreError, ValueError) as exc:
        return _store_error(exc)

    state = ws.state.load()
    stats = ws.observations.stats()
    memory_counts = ws.memories.counts()
    last_run = state.last_analysis_run.isoformat() if state.last_analysis_run else "never"
    lines = [
        f"Observations: {stats['total']}",
        *(f"  {status}: {n}" for status, n in sorted(stats["by_status"].items())),
        "Memories: " + ", ".join(f"{k}={v}" for k, v in memory_counts.items()),
        f"Last analysis: {last_run}",
    ]
    return CommandResult(
        success=True,
        message="\n".join(lines),
        data={"observations": stats, "memories": memory_counts, "state": state.to_dict()},
    )


def cmd_review(home: Path | str | None = None, limit: int = 20) -> CommandResult:
    """List pending observations, most frequent first."""
    try:
        ws = _open(home)
    except (ObservationStoreError, MemoryStoreError, ValueError) as exc:
        return _store_error(exc)

    pending = ws.observations.query(status=ObservationStatus.PENDING, sort_by="count", limit=limit)
    if not pending:
        return CommandResult(success=True, message="No observations awaiting review.", data={"pending": []})
    lines = [f"{o.id}  [{o.category.value}] x{o.count}  {o.text}" for o in pending]
    return CommandResult(
        success=True,
        message="\n".join(lines),
        data={"pending": [o.to_dict() for o in pending]},
    )


def _set_status(observation_id: str, status: ObservationStatus, home: Path | str | None) -> CommandResult:
    try:
        ws = _open(home)
    except (ObservationStoreError, MemoryStoreError, ValueError) as exc:
        return _store_error(exc)

    try:
        if status == ObservationStatus.APPROVED:
            observation = ws.hierarchy.approve_observation(observation_id)
        else:
            observation = ws.hierarchy.deny_observation(observation_id)
    except KeyError:
        return CommandResult(success=False, message=f"Observation not found: {observation_id}")
    except InvalidTransitionError as exc:
        return CommandResult(success=False, message=str(exc))

    ws.observations.save()
    return CommandResult(
        success=True,
        message=f"Observation {observation_id} is now {observation.status.value}",
        data=observation.to_dict(),
    )


def cmd_approve(observation_id: str, home: Path | str | None = None) -> CommandResult:
    return _set_status(observation_id, ObservationStatus.APPROVED, home)


def cmd_deny(observation_id: str, home: Path | str | None = None) -> CommandResult:
    return _set_status(observation_id, ObservationStatus.DENIED, home)


def cmd_candidates(home: Path | str | None = None) -> CommandResult:
    """List global memories that currently pass the promotion gate."""
    try:
        ws = _open(home)
    except (ObservationStoreError, MemoryStoreError, ValueError) as exc:
        return _store_error(exc)

    candidates = ws.hierarchy.promotion_candidates()
    if not candidates:
        return CommandResult(success=True, message="No memories eligible for promotion.", data={"candidates": []})
    lines = [
        f"{m.id}  x{e.current_count}  {e.current_days}d  {m.observation.text}" for m, e in candidates
    ]
    return CommandResult(
        success=True,
        message="\n".join(lines),
        data={
            "candidates": [
                {"memory": m.to_dict(), "eligibility": e.to_dict()} for m, e in candidates
            ]
        },
    )


def cmd_promote(memory_id: str, approved: bool, home: Path | str | None = None) -> CommandResult:
    try:
        ws = _open(home)
    except (ObservationStoreError, MemoryStoreError, ValueError) as exc:
        return _store_error(exc)

    outcome = ws.hierarchy.promote_to_long_term(memory_id, approved=approved)
    if outcome.success:
        ws.memories.save()
        ws.observations.save()
        state = ws.state.load()
        state.long_term_memory_count = len(ws.memories.long_term_memories())
        ws.state.save(state)
    return CommandResult(success=outcome.success, message=outcome.reason, data=outcome.to_dict())


def cmd_config(home: Path | str | None = None) -> CommandResult:
    paths = home_paths(home)
    config = load_config(paths["config"])
    return CommandResult(
        success=True,
        message=f"Config: {paths['config']}\n" + json.dumps(config.to_dict(), indent=2),
        data=config.to_dict(),
    )


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="sessionlore",
        description="Sessionlore -- learn recurring workflow patterns from coding sessions",
    )
    parser.add_argument(
        "--home",
        default=None,
        help="Data directory (default: $SESSIONLORE_HOME or ~/.sessionlore)",
    )
    parser.add_argument("--json", action="store_true", help="Print the raw result as JSON")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Analyze an exported session transcript")
    analyze.add_argument("--messages", required=True, help="JSON file with the session messages")
    analyze.add_argument("--session-id", required=True)
    analyze.add_argument("--project", default=None, help="Project the session belongs to")

    sub.add_parser("status", help="Show store and memory counts")

    review = sub.add_parser("review", help="List observations awaiting review")
    review.add_argument("--limit", type=int, default=20)

    approve = sub.add_parser("approve", help="Approve an observation")
    approve.add_argument("observation_id")

    deny = sub.add_parser("deny", help="Deny an observation")
    deny.add_argument("observation_id")

    sub.add_parser("candidates", help="List memories eligible for long-term promotion")

    promote = sub.add_parser("promote", help="Promote a global memory to long-term memory")
    promote.add_argument("memory_id")
    promote.add_argument("--yes", action="store_true", help="Confirm human approval")

    sub.add_parser("config", help="Show the effective configuration")
    return parser


def run_command(args: argparse.Namespace) -> CommandResult:
    if args.command == "analyze":
        return cmd_analyze(args.messages, args.session_id, args.project, home=args.home)
    if args.command == "status":
        return cmd_status(home=args.home)
    if args.command == "review":
        return cmd_review(home=args.home, limit=args.limit)
    if args.command == "approve":
        return cmd_approve(args.observation_id, home=args.home)
    if args.command == "deny":
        return cmd_deny(args.observation_id, home=args.home)
    if args.command == "candidates":
        return cmd_candidates(home=args.home)
    if args.command == "promote":
        return cmd_promote(args.memory_id, approved=args.yes, home=args.home)
    return cmd_config(home=args.home)


def main(argv: list[str] | None = None) -> int:
    """Entry point for the sessionlore command."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    result = run_command(args)
    if args.json:
        print(json.dumps(result.to_dict(), indent=2, default=str))
    else:
        print(result.message)
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
