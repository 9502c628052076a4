"""
Core Test Suite.

This module contains tests for the Core class, covering:
- Loading persisted state with and without a token
- Message and notification click wiring
- Token rotation
- Refresh workflow, badge sequence and notification deduplication
- Muting and unmuting
"""

import asyncio

import pytest

from environment.api import Message
from loaders.models import LoadedState, PullRequestReference
from state.badge import BadgeStatus
from state.core import Core
from storage.models import NOTHING_MUTED, MutedPullRequest, MuteConfiguration, MuteUntil

from fakes import build_testing_environment, fake_pull_request


@pytest.fixture
def env():
    """Create a fake environment for testing."""
    return build_testing_environment()


@pytest.fixture
def core(env):
    """Create Core instance wired to the fake environment."""
    return Core(env)


@pytest.fixture
def muted_configuration():
    """Create a mute configuration with a single entry."""
    return MuteConfiguration(
        muted_pull_requests=[
            MutedPullRequest(
                repo_owner="zenclabs",
                repo_name="prmonitor",
                number=1,
                until=MuteUntil(kind="next-update", muted_at_timestamp=123),
            )
        ]
    )


def review_requested_pr(number: int):
    return (
        fake_pull_request()
        .ref("zenclabs", "prmonitor", number)
        .author("kevin")
        .seen_as("fwouts")
        .review_requested(["fwouts"])
        .build()
    )


@pytest.mark.asyncio
async def test_load_without_token_ignores_stored_state(env, core, muted_configuration):
    """Test that stored state is ignored when no token is stored."""
    env.store.token.current_value = None
    env.store.last_error.current_value = "error"
    env.store.currently_refreshing.current_value = True
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[]
    )
    env.store.notified_pull_requests.current_value = ["a", "b", "c"]
    env.store.mute_configuration.current_value = muted_configuration

    await core.load()

    assert core.token is None
    assert core.last_error is None
    assert core.refreshing is False
    assert core.loaded_state is None
    assert core.mute_configuration == NOTHING_MUTED
    assert len(core.notified_pull_request_urls) == 0
    assert env.badger.updated == [BadgeStatus.initializing()]


@pytest.mark.asyncio
async def test_load_with_token_restores_stored_state(env, core, muted_configuration):
    """Test that stored state is mirrored verbatim when a token is stored."""
    state = LoadedState(user_login="fwouts", open_pull_requests=[])
    env.store.token.current_value = "valid-token"
    env.store.last_error.current_value = "error"
    env.store.currently_refreshing.current_value = True
    env.store.last_check.current_value = state
    env.store.notified_pull_requests.current_value = ["a", "b", "c"]
    env.store.mute_configuration.current_value = muted_configuration

    await core.load()

    assert core.token == "valid-token"
    assert core.last_error == "error"
    assert core.refreshing is True
    assert core.loaded_state == state
    assert core.mute_configuration == muted_configuration
    assert list(core.notified_pull_request_urls) == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_load_with_token_and_last_check_shows_loaded_badge(env, core):
    """Test the badge after loading a previous successful check."""
    env.store.token.current_value = "T"
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[]
    )

    await core.load()

    assert core.loaded_state == LoadedState(user_login="fwouts", open_pull_requests=[])
    assert env.badger.updated == [BadgeStatus.loaded(0)]


@pytest.mark.asyncio
async def test_reloads_on_reload_message(env, core):
    """Test that a reload message triggers load()."""
    assert env.store.token.load_count == 0

    results = env.messenger.trigger(Message.reload())
    await asyncio.gather(*[result for result in results if result is not None])

    assert env.store.token.load_count == 1


@pytest.mark.asyncio
async def test_ignores_non_reload_message(env, core):
    """Test that other messages do not trigger load()."""
    results = env.messenger.trigger(Message.refresh())

    assert all(result is None for result in results)
    assert env.store.token.load_count == 0


def test_opens_pull_request_on_notification_click(env, core):
    """Test that clicking a notification opens the pull request."""
    env.notifier.simulate_click("http://some-pr")

    assert env.tab_opener.opened_urls == ["http://some-pr"]


def test_open_pull_request(env, core):
    """Test that open_pull_request() delegates to the tab opener."""
    core.open_pull_request("http://some-pr")

    assert env.tab_opener.opened_urls == ["http://some-pr"]


@pytest.mark.asyncio
async def test_set_new_token_resets_state_and_requests_refresh(env, core, muted_configuration):
    """Test that a new token resets stored state and broadcasts a refresh."""
    env.store.token.current_value = "token-fwouts"
    env.store.currently_refreshing.current_value = True
    env.store.last_error.current_value = "error"
    env.store.notified_pull_requests.current_value = ["a"]
    env.store.mute_configuration.current_value = muted_configuration
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[]
    )

    await core.load()
    assert core.loaded_state.user_login == "fwouts"

    await core.set_new_token("token-kevin")

    assert core.token == "token-kevin"
    assert core.loaded_state is None
    assert core.last_error is None
    assert core.refreshing is False
    assert len(core.notified_pull_request_urls) == 0
    assert core.mute_configuration == NOTHING_MUTED
    assert env.store.token.current_value == "token-kevin"
    assert env.store.last_error.current_value is None
    assert env.store.currently_refreshing.current_value is False
    assert env.store.notified_pull_requests.current_value == []
    assert env.store.last_check.current_value is None
    assert env.store.mute_configuration.current_value == NOTHING_MUTED
    assert env.messenger.sent == [Message.refresh()]
    env.github_loader.assert_not_called()


@pytest.mark.asyncio
async def test_no_refresh_when_not_authenticated(env, core):
    """Test that refreshing without a token is a silent no-op."""
    await core.load()
    badge_updates = list(env.badger.updated)

    await core.refresh_pull_requests()

    env.github_loader.assert_not_called()
    assert core.refreshing is False
    assert core.last_error is None
    assert env.badger.updated == badge_updates
    assert env.messenger.sent == []


@pytest.mark.asyncio
async def test_no_refresh_when_offline(env, core):
    """Test that refreshing while offline is a silent no-op."""
    env.store.token.current_value = "valid-token"
    env.online = False
    await core.load()
    badge_updates = list(env.badger.updated)

    await core.refresh_pull_requests()

    env.github_loader.assert_not_called()
    assert core.refreshing is False
    assert core.last_error is None
    assert env.badger.updated == badge_updates
    assert env.messenger.sent == []


@pytest.mark.asyncio
async def test_successful_refresh_without_stored_state(env, core):
    """Test the badge sequence of a first successful refresh."""
    env.store.token.current_value = "valid-token"
    await core.load()
    assert env.badger.updated == [BadgeStatus.initializing()]

    env.github_loader.return_value = LoadedState(user_login="fwouts", open_pull_requests=[])
    await core.refresh_pull_requests()

    env.github_loader.assert_awaited_once_with("valid-token")
    assert core.refreshing is False
    assert env.store.currently_refreshing.current_value is False
    assert env.store.last_error.current_value is None
    assert env.badger.updated == [
        BadgeStatus.initializing(),
        BadgeStatus.initializing(),
        BadgeStatus.loaded(0),
    ]
    assert env.messenger.sent == [Message.reload(), Message.reload()]


@pytest.mark.asyncio
async def test_successful_refresh_after_previous_state(env, core):
    """Test that a refresh shows reloading with the previous count."""
    env.store.token.current_value = "valid-token"
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[]
    )
    await core.load()
    assert env.badger.updated == [BadgeStatus.loaded(0)]

    env.github_loader.return_value = LoadedState(user_login="fwouts", open_pull_requests=[])
    await core.refresh_pull_requests()

    assert core.refreshing is False
    assert env.store.last_error.current_value is None
    assert env.badger.updated == [
        BadgeStatus.loaded(0),
        BadgeStatus.reloading(0),
        BadgeStatus.loaded(0),
    ]
    assert env.messenger.sent == [Message.reload(), Message.reload()]


@pytest.mark.asyncio
async def test_successful_refresh_clears_previous_error(env, core):
    """Test that a successful refresh clears a stored error."""
    env.store.token.current_value = "valid-token"
    env.store.last_error.current_value = "old error"
    await core.load()
    assert env.badger.updated == [BadgeStatus.error()]

    env.github_loader.return_value = LoadedState(user_login="fwouts", open_pull_requests=[])
    await core.refresh_pull_requests()

    assert core.last_error is None
    assert env.store.last_error.current_value is None
    assert env.badger.updated == [
        BadgeStatus.error(),
        BadgeStatus.error(),
        BadgeStatus.loaded(0),
    ]
    assert env.messenger.sent == [Message.reload(), Message.reload()]


@pytest.mark.asyncio
async def test_failed_refresh_records_error_and_reraises(env, core):
    """Test that a loader failure is recorded, shown and re-raised."""
    previous_state = LoadedState(user_login="fwouts", open_pull_requests=[])
    env.store.token.current_value = "valid-token"
    env.store.last_check.current_value = previous_state
    await core.load()

    env.github_loader.side_effect = Exception("Oh noes!")
    with pytest.raises(Exception, match="Oh noes!"):
        await core.refresh_pull_requests()

    assert core.refreshing is False
    assert core.last_error == "Oh noes!"
    assert core.loaded_state == previous_state
    assert env.store.currently_refreshing.current_value is False
    assert env.store.last_error.current_value == "Oh noes!"
    assert env.badger.updated == [
        BadgeStatus.loaded(0),
        BadgeStatus.reloading(0),
        BadgeStatus.error(),
    ]
    assert env.messenger.sent == [Message.reload(), Message.reload()]


@pytest.mark.asyncio
async def test_refresh_notifies_new_pull_requests(env, core):
    """Test that new review requests are notified and remembered."""
    env.store.token.current_value = "valid-token"
    await core.load()
    assert env.store.last_check.current_value is None

    env.github_loader.return_value = LoadedState(
        user_login="fwouts", open_pull_requests=[review_requested_pr(1)]
    )
    await core.refresh_pull_requests()

    assert len(env.store.last_check.current_value.open_pull_requests) == 1
    assert len(core.unreviewed_pull_requests) == 1
    assert env.notifier.notified == [["http://github.com/zenclabs/prmonitor/1"]]
    assert env.store.notified_pull_requests.current_value == [
        "http://github.com/zenclabs/prmonitor/1"
    ]
    assert env.badger.updated[-1] == BadgeStatus.loaded(1)


@pytest.mark.asyncio
async def test_refresh_does_not_notify_twice(env, core):
    """Test that already notified pull requests are not notified again."""
    env.store.token.current_value = "valid-token"
    await core.load()

    env.github_loader.return_value = LoadedState(
        user_login="fwouts", open_pull_requests=[review_requested_pr(1)]
    )
    await core.refresh_pull_requests()

    env.github_loader.return_value = LoadedState(
        user_login="fwouts",
        open_pull_requests=[review_requested_pr(1), review_requested_pr(2)],
    )
    await core.refresh_pull_requests()

    assert env.notifier.notified == [
        ["http://github.com/zenclabs/prmonitor/1"],
        ["http://github.com/zenclabs/prmonitor/2"],
    ]
    assert env.store.notified_pull_requests.current_value == [
        "http://github.com/zenclabs/prmonitor/1",
        "http://github.com/zenclabs/prmonitor/2",
    ]


@pytest.mark.asyncio
async def test_refresh_skips_notification_without_review_request(env, core):
    """Test that pull requests not requesting the viewer's review are not notified."""
    env.store.token.current_value = "valid-token"
    await core.load()

    env.github_loader.return_value = LoadedState(
        user_login="fwouts",
        open_pull_requests=[
            fake_pull_request()
            .ref("zenclabs", "prmonitor", 3)
            .author("kevin")
            .review_requested(["someone-else"])
            .build()
        ],
    )
    await core.refresh_pull_requests()

    assert env.notifier.notified == []
    assert core.unreviewed_pull_requests == []
    assert env.store.notified_pull_requests.save_count == 0


@pytest.mark.asyncio
async def test_mute_and_unmute_update_badge(env, core):
    """Test that muting and unmuting a PR changes the unreviewed count."""
    pr1 = review_requested_pr(1)
    pr2 = review_requested_pr(2)
    env.store.token.current_value = "valid-token"
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[pr1, pr2]
    )
    await core.load()
    assert env.badger.updated == [BadgeStatus.loaded(2)]

    await core.mute_pull_request(pr1.reference(), "next-update")
    assert env.badger.updated == [BadgeStatus.loaded(2), BadgeStatus.loaded(1)]
    assert [pr.number for pr in core.unreviewed_pull_requests] == [2]
    assert env.store.mute_configuration.current_value == core.mute_configuration

    await core.unmute_pull_request(pr1.reference())
    assert env.badger.updated == [
        BadgeStatus.loaded(2),
        BadgeStatus.loaded(1),
        BadgeStatus.loaded(2),
    ]
    assert core.unreviewed_pull_requests == [pr1, pr2]
    assert env.store.mute_configuration.current_value == NOTHING_MUTED
    assert env.messenger.sent == []


@pytest.mark.asyncio
async def test_mute_does_not_duplicate_entries(env, core):
    """Test that re-muting moves the entry to the end with the new timestamp."""
    await core.load()
    pr1 = PullRequestReference(repo_owner="zenclabs", repo_name="prmonitor", number=1)
    pr2 = PullRequestReference(repo_owner="zenclabs", repo_name="prmonitor", number=2)

    env.current_time = 1
    await core.mute_pull_request(pr1, "next-update")
    env.current_time = 2
    await core.mute_pull_request(pr2, "next-update")
    env.current_time = 3
    await core.mute_pull_request(pr1, "next-update")

    muted = core.mute_configuration.muted_pull_requests
    assert len(muted) == 2
    assert muted[0] == MutedPullRequest(
        **pr2.model_dump(),
        until=MuteUntil(kind="next-update", muted_at_timestamp=2),
    )
    assert muted[1] == MutedPullRequest(
        **pr1.model_dump(),
        until=MuteUntil(kind="next-update", muted_at_timestamp=3),
    )


@pytest.mark.asyncio
async def test_unmute_unknown_pull_request_is_noop(env, core):
    """Test that unmuting a PR that is not muted keeps the configuration."""
    await core.load()
    pr = PullRequestReference(repo_owner="zenclabs", repo_name="prmonitor", number=9)

    await core.unmute_pull_request(pr)

    assert core.mute_configuration == NOTHING_MUTED


@pytest.mark.asyncio
async def test_failed_refresh_with_empty_message_shows_error(env, core):
    """Test that a failure without a message still records an error."""
    env.store.token.current_value = "valid-token"
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[]
    )
    await core.load()

    env.github_loader.side_effect = asyncio.TimeoutError()
    with pytest.raises(asyncio.TimeoutError):
        await core.refresh_pull_requests()

    assert core.last_error == "TimeoutError"
    assert env.store.last_error.current_value == "TimeoutError"
    assert env.badger.updated[-1] == BadgeStatus.error()


@pytest.mark.asyncio
async def test_load_with_empty_stored_error_shows_error(env, core):
    """Test that an empty stored error still counts as an error."""
    env.store.token.current_value = "valid-token"
    env.store.last_error.current_value = ""

    await core.load()

    assert env.badger.updated == [BadgeStatus.error()]


@pytest.mark.asyncio
async def test_refresh_keeps_muted_pull_requests_out_of_count(env, core):
    """Test that a refresh recomputes the count against the current mutes."""
    pr1 = review_requested_pr(1)
    pr2 = review_requested_pr(2)
    env.store.token.current_value = "valid-token"
    env.store.last_check.current_value = LoadedState(
        user_login="fwouts", open_pull_requests=[pr1, pr2]
    )
    await core.load()
    await core.mute_pull_request(pr1.reference(), "next-update")

    env.github_loader.return_value = LoadedState(
        user_login="fwouts", open_pull_requests=[pr1, pr2]
    )
    await core.refresh_pull_requests()
    await core.refresh_pull_requests()

    assert env.badger.updated[-1] == BadgeStatus.loaded(1)
    assert core.unreviewed_pull_requests == [pr2]
    assert len(core.mute_configuration.muted_pull_requests) == 1
    assert env.notifier.notified == [[pr1.html_url, pr2.html_url]]
