"""
Collaborator Interfaces.

Defines the interfaces Core consumes and the Environment bundle injected into
it. Concrete implementations live in environment.local; tests substitute fakes.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

from pydantic import BaseModel

from loaders.models import LoadedState
from state.badge import BadgeStatus
from storage.store import Store


class MessageKind(Enum):
    """
    Kinds of messages exchanged between contexts.

    Attributes:
        RELOAD: Re-read persisted state from the store
        REFRESH: Poll the API for new pull requests
    """

    RELOAD = "reload"
    REFRESH = "refresh"


class Message(BaseModel):
    kind: MessageKind

    @classmethod
    def reload(cls) -> "Message":
        return cls(kind=MessageKind.RELOAD)

    @classmethod
    def refresh(cls) -> "Message":
        return cls(kind=MessageKind.REFRESH)


MessageHandler = Callable[[Message], Any]


class Messenger(ABC):
    """Broadcast channel between contexts."""

    @abstractmethod
    def send(self, message: Message) -> None:
        """Broadcast a message to the other contexts."""
        pass

    @abstractmethod
    def listen(self, handler: MessageHandler) -> None:
        """Register a handler for messages sent by other contexts."""
        pass


class Notifier(ABC):
    """Surfaces pull requests as user notifications."""

    @abstractmethod
    def notify(self, urls: list[str]) -> None:
        """Show one notification per pull request URL."""
        pass

    @abstractmethod
    def on_click(self, handler: Callable[[str], None]) -> None:
        """Register the handler receiving the URL of a clicked notification."""
        pass


class Badger(ABC):
    """Renders the badge status."""

    @abstractmethod
    def update(self, status: BadgeStatus) -> None:
        pass


class TabOpener(ABC):
    @abstractmethod
    def open_url(self, url: str) -> None:
        pass


@dataclass
class Environment:
    """
    Collaborators injected into Core.

    Attributes:
        store (Store): Persisted state slots.
        github_loader (Callable): Loads the LoadedState for a token.
        notifier (Notifier): User notifications.
        badger (Badger): Badge renderer.
        tab_opener (TabOpener): Opens URLs in a new tab.
        messenger (Messenger): Cross-context broadcast channel.
        get_current_time (Callable[[], int]): Clock, in milliseconds.
        is_online (Callable[[], bool]): Connectivity check.
    """

    store: Store
    github_loader: Callable[[str], Awaitable[LoadedState]]
    notifier: Notifier
    badger: Badger
    tab_opener: TabOpener
    messenger: Messenger
    get_current_time: Callable[[], int]
    is_online: Callable[[], bool]
