"""
Badge Status Module.

The badge status is a pure function of the worker state. It is recomputed and
pushed to the badge renderer after every state change.
"""

from enum import Enum
from typing import List, NamedTuple, Optional

from pydantic import BaseModel

from loaders.models import PullRequest


class BadgeKind(Enum):
    """
    Phase shown by the badge.

    Attributes:
        INITIALIZING: Nothing loaded yet, or signed out
        RELOADING: A refresh is in flight
        LOADED: Settled with a known count
        ERROR: The last refresh failed
    """

    INITIALIZING = "initializing"
    RELOADING = "reloading"
    LOADED = "loaded"
    ERROR = "error"


class BadgeStatus(BaseModel):
    """Badge phase plus the unreviewed count where one applies."""

    kind: BadgeKind
    unreviewed_pull_request_count: Optional[int] = None

    @classmethod
    def initializing(cls) -> "BadgeStatus":
        return cls(kind=BadgeKind.INITIALIZING)

    @classmethod
    def reloading(cls, count: int) -> "BadgeStatus":
        return cls(kind=BadgeKind.RELOADING, unreviewed_pull_request_count=count)

    @classmethod
    def loaded(cls, count: int) -> "BadgeStatus":
        return cls(kind=BadgeKind.LOADED, unreviewed_pull_request_count=count)

    @classmethod
    def error(cls) -> "BadgeStatus":
        return cls(kind=BadgeKind.ERROR)


def badge_status(
    token: Optional[str],
    last_error: Optional[str],
    refreshing: bool,
    unreviewed: Optional[List[PullRequest]],
) -> BadgeStatus:
    """
    Derive the badge status from the current state.

    A recorded error wins over everything else, so a refresh started after a
    failure keeps showing the error until it succeeds.

    Args:
        token (Optional[str]): Current credential.
        last_error (Optional[str]): Message of the last failed refresh.
        refreshing (bool): Whether a refresh is in flight.
        unreviewed (Optional[List[PullRequest]]): None when nothing is loaded.

    Returns:
        BadgeStatus: The derived status.
    """
    if last_error is not None:
        return BadgeStatus.error()
    if not token or unreviewed is None:
        return BadgeStatus.initializing()
    if refreshing:
        return BadgeStatus.reloading(len(unreviewed))
    return BadgeStatus.loaded(len(unreviewed))


class BadgeAppearance(NamedTuple):
    text: str
    color: str


GREY = "#9e9e9e"
RED = "#da1e28"
GREEN = "#24a148"
BLACK = "#161616"


def badge_appearance(status: BadgeStatus) -> BadgeAppearance:
    """Text and colour a renderer should draw for a status."""
    if status.kind == BadgeKind.ERROR:
        return BadgeAppearance("!", BLACK)
    if status.kind == BadgeKind.INITIALIZING:
        return BadgeAppearance("…", GREY)

    count = status.unreviewed_pull_request_count or 0
    if status.kind == BadgeKind.RELOADING:
        return BadgeAppearance(str(count), GREY)
    if count == 0:
        return BadgeAppearance("", GREEN)
    return BadgeAppearance(str(count), RED)
