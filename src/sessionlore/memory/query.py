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
"""Filtering over a flat list of memories."""

from __future__ import annotations

from datetime import datetime
from typing import Iterable

from sessionlore.config import PromotionConfig
from sessionlore.core.observation import ObservationCategory
from sessionlore.memory.models import Memory, MemoryScope


def query_memories(
    memories: Iterable[Memory],
    scope: MemoryScope | str | None = None,
    min_count: int | None = None,
    category: ObservationCategory | str | None = None,
    tags: list[str] | None = None,
    eligible_for_promotion: bool = False,
    config: PromotionConfig | None = None,
    now: datetime | None = None,
) -> list[Memory]:
    """
    Return the memories matching every given criterion, in input order.

    ``tags`` matches when the observation carries at least one of them.
    ``eligible_for_promotion`` keeps only memories passing the promotion
    gate under ``config`` and requires it.
    """
    if eligible_for_promotion and config is None:
        raise ValueError("eligible_for_promotion requires a PromotionConfig")

    wanted_scope = MemoryScope(scope) if scope is not None else None
    wanted_category = ObservationCategory(category) if category is not None else None

    results = []
    for memory in memories:
        obs = memory.observation
        if wanted_scope is not None and memory.scope != wanted_scope:
            continue
        if min_count is not None and obs.count < min_count:
            continue
        if wanted_category is not None and obs.category != wanted_category:
            continue
        if tags and not any(tag in (obs.tags or []) for tag in tags):
            continue
        if eligible_for_promotion and not memory.check_promotion_eligibility(config, now).eligible:
            continue
        results.append(memory)
    return results
