"""
Local Collaborator Implementations.

Implementations of the collaborator interfaces for running the worker as a
local process: notifications and badge changes are logged, pull requests open
in the default browser, and contexts share an in-process message bus.
"""

import asyncio
import socket
import time
import webbrowser
from functools import partial
from typing import Callable, List, Set

from config import Settings, logger
from environment.api import (
    Badger,
    Environment,
    Message,
    MessageHandler,
    Messenger,
    Notifier,
    TabOpener,
)
from loaders.github_loader import GitHubLoader
from state.badge import BadgeStatus, badge_appearance
from storage.store import build_file_store


class MessageBus:
    """
    In-process broadcast bus connecting several contexts.

    A message sent from one endpoint reaches the handlers of every other
    endpoint, never the sender's own.
    """

    def __init__(self):
        self.endpoints: List["BusMessenger"] = []
        self._tasks: Set[asyncio.Task] = set()

    def connect(self) -> "BusMessenger":
        endpoint = BusMessenger(self)
        self.endpoints.append(endpoint)
        return endpoint

    def deliver(self, sender: "BusMessenger", message: Message) -> None:
        for endpoint in self.endpoints:
            if endpoint is sender:
                continue
            for handler in endpoint.handlers:
                result = handler(message)
                if asyncio.iscoroutine(result):
                    result = asyncio.ensure_future(result)
                if isinstance(result, asyncio.Future):
                    self._tasks.add(result)
                    result.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Future) -> None:
        self._tasks.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error(
                {
                    "message": "Message handler failed",
                    "error": str(task.exception()),
                }
            )

    async def drain(self) -> None:
        """Wait until every handler task started so far has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class BusMessenger(Messenger):
    """Endpoint of a MessageBus owned by one context."""

    def __init__(self, bus: MessageBus):
        self.bus = bus
        self.handlers: List[MessageHandler] = []

    def send(self, message: Message) -> None:
        logger.debug({"message": "Broadcasting message", "kind": message.kind.value})
        self.bus.deliver(self, message)

    def listen(self, handler: MessageHandler) -> None:
        self.handlers.append(handler)


class LogNotifier(Notifier):
    """Notifier that logs each notification. Clicks are simulated with click()."""

    def __init__(self):
        self.click_handlers: List[Callable[[str], None]] = []

    def notify(self, urls: List[str]) -> None:
        for url in urls:
            logger.info({"message": "Pull request needs your review", "url": url})

    def on_click(self, handler: Callable[[str], None]) -> None:
        self.click_handlers.append(handler)

    def click(self, url: str) -> None:
        for handler in self.click_handlers:
            handler(url)


class LogBadger(Badger):
    def update(self, status: BadgeStatus) -> None:
        appearance = badge_appearance(status)
        logger.info(
            {
                "message": "Badge updated",
                "kind": status.kind.value,
                "text": appearance.text,
                "color": appearance.color,
            }
        )


class BrowserTabOpener(TabOpener):
    def open_url(self, url: str) -> None:
        webbrowser.open_new_tab(url)


def is_online(host: str, port: int = 443, timeout: float = 3.0) -> bool:
    """Return True when a TCP connection to host:port can be opened."""
    try:
        with socket.create_connection((host, port), timeout=timeout):
            return True
    except OSError:
        return False


def current_time_millis() -> int:
    return int(time.time() * 1000)


def build_local_environment(settings: Settings, bus: MessageBus) -> Environment:
    """Wire the local collaborators for one context.

    Args:
        settings (Settings): Application settings.
        bus (MessageBus): Bus shared by every context of the process.

    Returns:
        Environment: Collaborators for a Core instance.
    """
    return Environment(
        store=build_file_store(settings.data_dir),
        github_loader=GitHubLoader(),
        notifier=LogNotifier(),
        badger=LogBadger(),
        tab_opener=BrowserTabOpener(),
        messenger=bus.connect(),
        get_current_time=current_time_millis,
        is_online=partial(
            is_online,
            settings.connectivity_host,
            settings.connectivity_port,
            settings.connectivity_timeout,
        ),
    )
