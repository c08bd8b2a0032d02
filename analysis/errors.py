"""Error types for profile aggregation and minutes projection."""

from __future__ import annotations


class ProjectionCoreError(RuntimeError):
    """Base error for aggregation and projection operations."""


class NoDataError(ProjectionCoreError):
    """No played games for a player-season, or no stored profile to project from."""


class RosterNotFoundError(ProjectionCoreError):
    """No resolvable roster entries for a team-season."""
