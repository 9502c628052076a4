"""
Pull Request Monitor Core.

Core owns the in-memory mirror of the persisted state, runs the refresh
workflow against the pull request loader, deduplicates notifications and
pushes the derived badge status after every change.

Each context (background worker, popup, options page) builds its own Core
from the shared store. Contexts keep each other in sync by broadcasting
"reload" messages whenever the store changes and "refresh" messages when a
new poll is needed.
"""

import asyncio
from typing import List, Optional

from config import logger
from environment.api import Environment, Message, MessageKind
from loaders.models import LoadedState, PullRequest, PullRequestReference
from state.badge import badge_status
from state.filtering import pull_requests_to_notify, unreviewed_pull_requests
from state.keyed_sequence import KeyedSequence, url_set
from storage.models import (
    NOTHING_MUTED,
    MutedPullRequest,
    MuteConfiguration,
    MuteUntil,
)


class Core:
    """
    Orchestrates loading, refreshing and muting of pull requests.

    Attributes:
        env (Environment): Injected collaborators.
        token (Optional[str]): Current credential, None when signed out.
        last_error (Optional[str]): Message of the last failed refresh.
        refreshing (bool): Whether a refresh is in flight.
        loaded_state (Optional[LoadedState]): Last successful check.
        notified_pull_request_urls (KeyedSequence[str, str]): URLs already notified.
        mute_configuration (MuteConfiguration): Muted pull requests.
    """

    def __init__(self, env: Environment):
        """Initialize Core and subscribe to messages and notification clicks.

        Args:
            env (Environment): Collaborators to use.
        """
        self.env = env
        self.token: Optional[str] = None
        self.last_error: Optional[str] = None
        self.refreshing = False
        self.loaded_state: Optional[LoadedState] = None
        self.notified_pull_request_urls = url_set()
        self.mute_configuration: MuteConfiguration = NOTHING_MUTED

        env.messenger.listen(self._on_message)
        env.notifier.on_click(self.open_pull_request)

    def _on_message(self, message: Message) -> Optional[asyncio.Task]:
        if message.kind != MessageKind.RELOAD:
            return None
        return asyncio.ensure_future(self.load())

    async def load(self) -> None:
        """Read every persisted slot and reconcile the in-memory state.

        Without a token, whatever else is stored belongs to a previous
        session and is ignored.
        """
        store = self.env.store
        (
            token,
            last_error,
            refreshing,
            last_check,
            notified_urls,
            mute_configuration,
        ) = await asyncio.gather(
            store.token.load(),
            store.last_error.load(),
            store.currently_refreshing.load(),
            store.last_check.load(),
            store.notified_pull_requests.load(),
            store.mute_configuration.load(),
        )

        self.token = token
        if token is None:
            self.last_error = None
            self.refreshing = False
            self.loaded_state = None
            self.notified_pull_request_urls = url_set()
            self.mute_configuration = NOTHING_MUTED
        else:
            self.last_error = last_error
            self.refreshing = refreshing
            self.loaded_state = last_check
            self.notified_pull_request_urls = url_set(notified_urls)
            self.mute_configuration = mute_configuration

        logger.debug(
            {
                "message": "State loaded",
                "signed_in": token is not None,
                "refreshing": self.refreshing,
                "has_last_check": self.loaded_state is not None,
            }
        )
        self._update_badge()

    async def set_new_token(self, token: Optional[str]) -> None:
        """Switch to a new credential and reset everything tied to the old one.

        The refresh itself is left to whichever context handles "refresh"
        messages.

        Args:
            token (Optional[str]): New credential, None to sign out.
        """
        logger.info({"message": "Setting new token", "signed_in": token is not None})
        self.token = token
        await self.env.store.token.save(token)
        await self._save_last_error(None)
        await self._save_refreshing(False)
        await self._save_notified_pull_request_urls(url_set())
        await self._save_loaded_state(None)
        await self._save_mute_configuration(NOTHING_MUTED)
        self._update_badge()
        self.env.messenger.send(Message.refresh())

    async def refresh_pull_requests(self) -> None:
        """Poll the loader and notify about newly requested reviews.

        Does nothing when signed out or offline. Loader failures are recorded
        as the last error and re-raised.
        """
        if not self.token:
            logger.debug({"message": "Skipping refresh, not signed in"})
            return
        if not self.env.is_online():
            logger.debug({"message": "Skipping refresh, offline"})
            return

        logger.info({"message": "Refreshing pull requests"})
        await self._save_refreshing(True)
        self._update_badge()
        self.env.messenger.send(Message.reload())

        try:
            loaded_state = await self.env.github_loader(self.token)
        except Exception as e:
            message = str(e) or type(e).__name__
            logger.error({"message": "Refresh failed", "error": message})
            await self._save_last_error(message)
            await self._finish_refresh()
            raise

        await self._save_loaded_state(loaded_state)
        await self._save_last_error(None)
        await self._notify_new_pull_requests(loaded_state)
        await self._finish_refresh()

        logger.info(
            {
                "message": "Refresh completed",
                "open_pull_requests": len(loaded_state.open_pull_requests),
                "unreviewed_pull_requests": len(self.unreviewed_pull_requests or []),
            }
        )

    async def _notify_new_pull_requests(self, loaded_state: LoadedState) -> None:
        to_notify = pull_requests_to_notify(loaded_state, self.notified_pull_request_urls)
        if not to_notify:
            return

        urls = [pr.html_url for pr in to_notify]
        self.env.notifier.notify(urls)

        notified = url_set(self.notified_pull_request_urls)
        for url in urls:
            notified.add(url)
        await self._save_notified_pull_request_urls(notified)

    async def _finish_refresh(self) -> None:
        await self._save_refreshing(False)
        self._update_badge()
        self.env.messenger.send(Message.reload())

    async def mute_pull_request(
        self, reference: PullRequestReference, until_kind: str = "next-update"
    ) -> None:
        """Silence a pull request. Muting it again moves it to the end.

        Args:
            reference (PullRequestReference): Pull request to mute.
            until_kind (str): When the mute stops applying.
        """
        muted_at = self.env.get_current_time()
        muted = self._muted_sequence()
        muted.add(
            MutedPullRequest(
                repo_owner=reference.repo_owner,
                repo_name=reference.repo_name,
                number=reference.number,
                until=MuteUntil(kind=until_kind, muted_at_timestamp=muted_at),
            )
        )
        await self._save_mute_configuration(
            MuteConfiguration(muted_pull_requests=muted.to_list())
        )
        self._update_badge()

    async def unmute_pull_request(self, reference: PullRequestReference) -> None:
        """Remove a pull request from the mute configuration, if present.

        Args:
            reference (PullRequestReference): Pull request to unmute.
        """
        muted = self._muted_sequence()
        muted.discard_key(reference.key)
        await self._save_mute_configuration(
            MuteConfiguration(muted_pull_requests=muted.to_list())
        )
        self._update_badge()

    def _muted_sequence(self) -> KeyedSequence:
        return KeyedSequence(
            lambda muted: muted.key, self.mute_configuration.muted_pull_requests
        )

    def open_pull_request(self, url: str) -> None:
        """Open a pull request in a new tab.

        Args:
            url (str): URL of the pull request.
        """
        self.env.tab_opener.open_url(url)

    @property
    def unreviewed_pull_requests(self) -> Optional[List[PullRequest]]:
        """Pull requests awaiting the viewer's review, None until loaded."""
        return unreviewed_pull_requests(self.loaded_state, self.mute_configuration)

    def _update_badge(self) -> None:
        self.env.badger.update(
            badge_status(
                self.token,
                self.last_error,
                self.refreshing,
                self.unreviewed_pull_requests,
            )
        )

    async def _save_last_error(self, last_error: Optional[str]) -> None:
        self.last_error = last_error
        await self.env.store.last_error.save(last_error)

    async def _save_refreshing(self, refreshing: bool) -> None:
        self.refreshing = refreshing
        await self.env.store.currently_refreshing.save(refreshing)

    async def _save_loaded_state(self, loaded_state: Optional[LoadedState]) -> None:
        self.loaded_state = loaded_state
        await self.env.store.last_check.save(loaded_state)

    async def _save_notified_pull_request_urls(self, urls: KeyedSequence) -> None:
        self.notified_pull_request_urls = urls
        await self.env.store.notified_pull_requests.save(urls.to_list())

    async def _save_mute_configuration(self, mute_configuration: MuteConfiguration) -> None:
        self.mute_configuration = mute_configuration
        await self.env.store.mute_configuration.save(mute_configuration)
