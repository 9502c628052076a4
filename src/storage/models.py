"""
Persisted State Models.

Defines the mute configuration stored alongside the last check.
"""

from typing import List, Literal

from pydantic import BaseModel, Field

from loaders.models import PullRequestReference


class MuteUntil(BaseModel):
    """When a mute stops applying."""

    kind: Literal["next-update"] = "next-update"
    muted_at_timestamp: int


class MutedPullRequest(PullRequestReference):
    """Pull request reference muted until a condition is met."""

    until: MuteUntil


class MuteConfiguration(BaseModel):
    """Muted pull requests, unique by reference, in insertion order."""

    muted_pull_requests: List[MutedPullRequest] = Field(default_factory=list)


NOTHING_MUTED = MuteConfiguration(muted_pull_requests=[])
