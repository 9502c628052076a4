"""
Persistent State Storage Module.

This module handles the persistent storage of the worker state as a set of
independently loadable and savable named slots. Each slot is stored as its
own JSON file so that separate contexts can re-read any slot at any time.
"""

import json
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Generic, List, Optional, TypeVar

from pydantic import TypeAdapter, ValidationError

from config import logger
from loaders.models import LoadedState
from storage.models import NOTHING_MUTED, MuteConfiguration

T = TypeVar("T")


class StorageSlot(ABC, Generic[T]):
    """A single named persisted value."""

    @abstractmethod
    async def load(self) -> T:
        """Load the stored value, or the slot default when nothing is stored."""
        pass

    @abstractmethod
    async def save(self, value: T) -> None:
        """Persist the given value, replacing whatever was stored."""
        pass


class JsonFileSlot(StorageSlot[T]):
    """
    Slot persisted as a JSON file.

    Values are (de)serialized through a Pydantic TypeAdapter, so both plain
    values and models round-trip with validation.
    """

    def __init__(
        self,
        path: Path,
        value_type: type,
        default_factory: Callable[[], T],
    ):
        """Initialize the slot.

        Args:
            path (Path): File backing this slot.
            value_type (type): Type of the stored value.
            default_factory (Callable[[], T]): Produces the value of an empty slot.
        """
        self.path = Path(path)
        self.adapter = TypeAdapter(value_type)
        self.default_factory = default_factory

    async def load(self) -> T:
        if not self.path.exists():
            return self.default_factory()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                return self.adapter.validate_python(json.load(f))
        except (json.JSONDecodeError, ValidationError) as e:
            logger.error(
                {
                    "message": "Corrupted storage slot",
                    "file": str(self.path),
                    "error": str(e),
                }
            )
            raise

    async def save(self, value: T) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self.adapter.dump_python(value, mode="json"), f, indent=2)
        os.replace(tmp_path, self.path)

        logger.debug({"message": "Storage slot saved", "file": str(self.path)})


@dataclass
class Store:
    """
    Groups every persisted slot.

    Attributes:
        token (StorageSlot[Optional[str]]): Credential, absent when signed out.
        last_error (StorageSlot[Optional[str]]): Message of the last failed refresh.
        currently_refreshing (StorageSlot[bool]): Whether a refresh is in flight.
        last_check (StorageSlot[Optional[LoadedState]]): Last successful refresh result.
        notified_pull_requests (StorageSlot[List[str]]): URLs already notified.
        mute_configuration (StorageSlot[MuteConfiguration]): Muted pull requests.
    """

    token: StorageSlot[Optional[str]]
    last_error: StorageSlot[Optional[str]]
    currently_refreshing: StorageSlot[bool]
    last_check: StorageSlot[Optional[LoadedState]]
    notified_pull_requests: StorageSlot[List[str]]
    mute_configuration: StorageSlot[MuteConfiguration]


def build_file_store(data_dir: str) -> Store:
    """Create a Store whose slots live as JSON files under data_dir.

    Args:
        data_dir (str): Base directory for the slot files.

    Returns:
        Store: The file-backed store.
    """
    storage_dir = Path(data_dir)
    storage_dir.mkdir(parents=True, exist_ok=True)

    return Store(
        token=JsonFileSlot(storage_dir / "token.json", Optional[str], lambda: None),
        last_error=JsonFileSlot(storage_dir / "last_error.json", Optional[str], lambda: None),
        currently_refreshing=JsonFileSlot(
            storage_dir / "currently_refreshing.json", bool, lambda: False
        ),
        last_check=JsonFileSlot(
            storage_dir / "last_check.json", Optional[LoadedState], lambda: None
        ),
        notified_pull_requests=JsonFileSlot(
            storage_dir / "notified_pull_requests.json", List[str], list
        ),
        mute_configuration=JsonFileSlot(
            storage_dir / "mute_configuration.json",
            MuteConfiguration,
            lambda: NOTHING_MUTED,
        ),
    )
