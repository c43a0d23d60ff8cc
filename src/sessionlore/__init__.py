"""
Sessionlore — learns recurring workflow patterns from AI coding sessions.

Patterns are extracted from session tool activity, deduplicated into
observations, and promoted through a session -> project -> global memory
hierarchy before a human-approved snapshot into long-term memory.
"""

__version__ = "0.3.0"
__author__ = "Sessionlore Team"
