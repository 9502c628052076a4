"""
Pull request filtering.

Derives the unreviewed pull requests and the pull requests to notify about
from the last loaded state. Every mute entry present in the configuration
applies; nothing expires automatically.
"""

from typing import Iterable, List, Optional

from loaders.models import LoadedState, PullRequest, PullRequestReference
from storage.models import MuteConfiguration


def is_review_requested(pr: PullRequest, login: str) -> bool:
    return login in pr.requested_reviewers


def is_muted(reference: PullRequestReference, mute_configuration: MuteConfiguration) -> bool:
    return any(
        muted.key == reference.key for muted in mute_configuration.muted_pull_requests
    )


def unreviewed_pull_requests(
    loaded_state: Optional[LoadedState], mute_configuration: MuteConfiguration
) -> Optional[List[PullRequest]]:
    """
    Pull requests requesting the viewer's review that are not muted.

    Args:
        loaded_state (Optional[LoadedState]): Last successful check, if any.
        mute_configuration (MuteConfiguration): Current mute configuration.

    Returns:
        Optional[List[PullRequest]]: None when nothing has been loaded yet.
    """
    if loaded_state is None:
        return None
    return [
        pr
        for pr in loaded_state.open_pull_requests
        if is_review_requested(pr, loaded_state.user_login)
        and not is_muted(pr, mute_configuration)
    ]


def pull_requests_to_notify(
    loaded_state: LoadedState, notified_urls: Iterable[str]
) -> List[PullRequest]:
    """Pull requests requesting the viewer's review that were never notified."""
    already_notified = set(notified_urls)
    return [
        pr
        for pr in loaded_state.open_pull_requests
        if is_review_requested(pr, loaded_state.user_login)
        and pr.html_url not in already_notified
    ]
