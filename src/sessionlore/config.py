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
"""Sessionlore configuration.

Loaded from a YAML file in the Sessionlore home directory:

    analysis:
      window_days: 1
      similarity_threshold: 0.8
    promotion:
      observation_count_threshold: 3
      long_term_days_threshold: 7
    session_adapters:
      claude_code: true
      opencode: true
    memory_targets:
      claude_md: true
      agents_md: true

Config location: ~/.sessionlore/config.yaml (override the directory with
the SESSIONLORE_HOME environment variable).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger("sessionlore.config")

# ---------------------------------------------------------------------------
# Default paths
# ---------------------------------------------------------------------------
_SESSIONLORE_HOME = Path(os.environ.get("SESSIONLORE_HOME", Path.home() / ".sessionlore"))
DEFAULT_CONFIG_PATH = _SESSIONLORE_HOME / "config.yaml"
DEFAULT_OBSERVATIONS_PATH = _SESSIONLORE_HOME / "observations.json"
DEFAULT_MEMORIES_PATH = _SESSIONLORE_HOME / "memories.json"
DEFAULT_STATE_PATH = _SESSIONLORE_HOME / "state.json"


def home_paths(home: Path | str | None = None) -> dict[str, Path]:
    """File locations under a Sessionlore home directory."""
    base = Path(home) if home else _SESSIONLORE_HOME
    return {
        "config": base / "config.yaml",
        "observations": base / "observations.json",
        "memories": base / "memories.json",
        "state": base / "state.json",
    }


def _require_positive_int(name: str, value: Any) -> None:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"{name} must be an integer >= 1, got {value!r}")


# ---------------------------------------------------------------------------
# Config dataclasses
# ---------------------------------------------------------------------------


@dataclass
class PromotionConfig:
    """Thresholds a memory must meet before it can be promoted."""

    observation_count_threshold: int = 3
    long_term_days_threshold: int = 7

    def __post_init__(self) -> None:
        _require_positive_int("observation_count_threshold", self.observation_count_threshold)
        _require_positive_int("long_term_days_threshold", self.long_term_days_threshold)

    def to_dict(self) -> dict[str, Any]:
        return {
            "observation_count_threshold": self.observation_count_threshold,
            "long_term_days_threshold": self.long_term_days_threshold,
        }


@dataclass
class AnalysisSettings:
    window_days: int = 1
    similarity_threshold: float = 0.8

    def __post_init__(self) -> None:
        _require_positive_int("window_days", self.window_days)
        if not 0.0 <= float(self.similarity_threshold) <= 1.0:
            raise ValueError(
                f"similarity_threshold must be between 0 and 1, got {self.similarity_threshold!r}"
            )
        self.similarity_threshold = float(self.similarity_threshold)

    def to_dict(self) -> dict[str, Any]:
        return {
            "window_days": self.window_days,
            "similarity_threshold": self.similarity_threshold,
        }


@dataclass
class SessionAdapterSettings:
    claude_code: bool = True
    opencode: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"claude_code": self.claude_code, "opencode": self.opencode}


@dataclass
class MemoryTargetSettings:
    claude_md: bool = True
    agents_md: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {"claude_md": self.claude_md, "agents_md": self.agents_md}


@dataclass
class Config:
    """Complete Sessionlore configuration."""

    analysis: AnalysisSettings = field(default_factory=AnalysisSettings)
    promotion: PromotionConfig = field(default_factory=PromotionConfig)
    session_adapters: SessionAdapterSettings = field(default_factory=SessionAdapterSettings)
    memory_targets: MemoryTargetSettings = field(default_factory=MemoryTargetSettings)

    def is_adapter_enabled(self, name: str) -> bool:
        """Check an adapter by its name ("claude-code", "opencode", ...).

        Adapters without a settings entry are enabled.
        """
        key = name.replace("-", "_").lower()
        return bool(getattr(self.session_adapters, key, True))

    def to_dict(self) -> dict[str, Any]:
        return {
            "analysis": self.analysis.to_dict(),
            "promotion": self.promotion.to_dict(),
            "session_adapters": self.session_adapters.to_dict(),
            "memory_targets": self.memory_targets.to_dict(),
        }


# ---------------------------------------------------------------------------
# Load / Save
# ---------------------------------------------------------------------------


def load_config(path: Path | str | None = None) -> Config:
    """Load configuration from YAML file.

    If the file does not exist, returns the default config.  Invalid
    content is logged and replaced by defaults.
    """
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.info("No config at %s -- using defaults", config_path)
        return Config()

    try:
        raw = yaml.safe_load(config_path.read_text(encoding="utf-8"))
        if raw is None:
            return Config()
        if not isinstance(raw, dict):
            logger.warning("Invalid config (not a mapping) -- using defaults")
            return Config()
        return _parse_config(raw)
    except Exception as exc:
        logger.error("Failed to load config from %s: %s -- using defaults", config_path, exc)
        return Config()


def save_config(config: Config, path: Path | str | None = None) -> None:
    """Save configuration to YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH
    config_path.parent.mkdir(parents=True, exist_ok=True)
    config_path.write_text(
        yaml.dump(config.to_dict(), default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    logger.info("Saved config to %s", config_path)


def _pick(section: dict[str, Any], key: str, default: Any, legacy_key: str | None = None) -> Any:
    """Read a snake_case key, falling back to the older camelCase spelling."""
    if key in section:
        return section[key]
    if legacy_key is not None:
        return section.get(legacy_key, default)
    return default


def _section(raw: dict[str, Any], key: str, legacy_key: str | None = None) -> dict[str, Any]:
    value = _pick(raw, key, {}, legacy_key)
    return value if isinstance(value, dict) else {}


def _parse_config(raw: dict[str, Any]) -> Config:
    """Parse raw YAML dict into Config.

    Raises ValueError when a threshold is out of range.
    """
    analysis = _section(raw, "analysis")
    promotion = _section(raw, "promotion")
    adapters = _section(raw, "session_adapters", "sessionAdapters")
    targets = _section(raw, "memory_targets", "memoryTargets")

    # Older JSON configs kept the similarity threshold under "promotion".
    similarity = _pick(
        analysis,
        "similarity_threshold",
        _pick(promotion, "similarity_threshold", 0.8, "similarityThreshold"),
        "similarityThreshold",
    )

    return Config(
        analysis=AnalysisSettings(
            window_days=_pick(analysis, "window_days", 1, "windowDays"),
            similarity_threshold=similarity,
        ),
        promotion=PromotionConfig(
            observation_count_threshold=_pick(
                promotion, "observation_count_threshold", 3, "observationCountThreshold"
            ),
            long_term_days_threshold=_pick(
                promotion, "long_term_days_threshold", 7, "longTermDaysThreshold"
            ),
        ),
        session_adapters=SessionAdapterSettings(
            claude_code=bool(_pick(adapters, "claude_code", True, "claudeCode")),
            opencode=bool(_pick(adapters, "opencode", True)),
        ),
        memory_targets=MemoryTargetSettings(
            claude_md=bool(_pick(targets, "claude_md", True, "claudeMd")),
            agents_md=bool(_pick(targets, "agents_md", True, "agentsMd")),
        ),
    )
