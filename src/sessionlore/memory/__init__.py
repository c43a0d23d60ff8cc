# Sessionlore — Memory hierarchy
# Copyright (C) 2025 Phoenix Link (Pty) Ltd. All Rights Reserved.
"""
Three-level memory hierarchy.

Session -- one pattern as seen in one session
Project -- session memories of a project folded together
Global  -- project memories folded together, the candidates for long-term memory
"""

from sessionlore.memory.models import (
    LongTermMemory,
    Memory,
    MemoryDecodeError,
    MemoryScope,
    PromotionEligibility,
)
from sessionlore.memory.query import query_memories

__all__ = [
    "LongTermMemory",
    "Memory",
    "MemoryDecodeError",
    "MemoryScope",
    "PromotionEligibility",
    "query_memories",
]
