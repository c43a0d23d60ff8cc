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
"""Text similarity used to decide whether two observations are the same.

Token-set Jaccard overlap: cheap, deterministic and good enough for the
templated texts the analyzers emit.  Frequency numerals ("(3 times)",
"40%", "2/3 calls", "(4x)") are removed before tokenizing, so the same
pattern seen with a different frequency still matches.  Every other token
counts, however short.

Analyzer metadata adds a structural guard: two workflow observations only
match when their step lists are identical, so ``read → edit → bash`` never
absorbs ``edit → read → bash`` even though the token sets are equal.
"""

from __future__ import annotations

import re
from typing import Any

from sessionlore.core.observation import Observation

_TOKEN_SPLIT = re.compile(r"[\s,.:;!?()\[\]{}\"']+")
_WHITESPACE = re.compile(r"\s+")
_FREQUENCY = re.compile(
    r"\d+(?:\.\d+)?%"  # 40%
    r"|\b\d+/\d+\b"  # 2/3 calls
    r"|\b\d+x\b"  # (4x)
    r"|\b\d+(?=\s+(?:times|calls|edits)\b)"  # 3 times
    r"|\(\d+\)"  # file (12)
)

# Checked in order; the first key present decides the signature.
SIGNATURE_KEYS = ("sequenceSteps", "loopCycle", "typicalSequence", "filePath", "toolName")


def normalize_text(text: str) -> str:
    return _WHITESPACE.sub(" ", text.strip().lower())


def tokenize(text: str) -> set[str]:
    """Lower-cased tokens with frequency numerals removed."""
    stripped = _FREQUENCY.sub(" ", text.lower())
    return {tok for tok in _TOKEN_SPLIT.split(stripped) if tok}


def text_similarity(a: str, b: str) -> float:
    """Jaccard overlap of the two token sets.

    Texts that leave no tokens only match when they are identical.
    """
    tokens_a = tokenize(a)
    tokens_b = tokenize(b)
    if not tokens_a or not tokens_b:
        return 1.0 if normalize_text(a) == normalize_text(b) else 0.0
    union = tokens_a | tokens_b
    return len(tokens_a & tokens_b) / len(union)


def structural_signature(metadata: dict[str, Any] | None) -> tuple[str, Any] | None:
    if not metadata:
        return None
    for key in SIGNATURE_KEYS:
        if key in metadata:
            value = metadata[key]
            return key, tuple(value) if isinstance(value, list) else value
    return None


def is_similar(existing: Observation, candidate: Observation, threshold: float) -> bool:
    """Decide whether ``candidate`` is a re-sighting of ``existing``."""
    if existing.category != candidate.category:
        return False
    if normalize_text(existing.text) == normalize_text(candidate.text):
        return True

    sig_existing = structural_signature(existing.metadata)
    sig_candidate = structural_signature(candidate.metadata)
    if sig_existing is not None and sig_candidate is not None and sig_existing != sig_candidate:
        return False

    return text_similarity(existing.text, candidate.text) >= threshold
