"""
Background Worker Entry Point.

This module runs the context that owns polling responsibility. It:
- Loads the persisted state into a Core instance
- Applies a configured token when it differs from the stored one
- Refreshes on "refresh" messages from other contexts
- Refreshes periodically, retrying failed refreshes with backoff

Retry policy lives here; Core itself never retries.
"""

import asyncio
from functools import partial
from typing import Optional

from tenacity import retry, stop_after_attempt, wait_exponential

from config import settings, logger
from environment.api import Message, MessageKind
from environment.local import MessageBus, build_local_environment
from state.core import Core


@retry(
    stop=stop_after_attempt(settings.refresh_max_attempts),
    wait=wait_exponential(multiplier=1, min=1, max=30),
    reraise=True,
)
async def refresh_with_retry(core: Core) -> None:
    """Refresh pull requests, retrying failures with exponential backoff."""
    await core.refresh_pull_requests()


async def refresh_safely(core: Core) -> None:
    """Refresh with retries, logging a final failure instead of raising it."""
    try:
        await refresh_with_retry(core)
    except Exception as e:
        logger.error({"message": "Giving up on refresh", "error": str(e)})


def handle_message(core: Core, message: Message):
    if message.kind == MessageKind.REFRESH:
        return refresh_safely(core)
    return None


async def poll(core: Core, interval_minutes: int, iterations: Optional[int] = None) -> None:
    """
    Refresh immediately, then every interval_minutes.

    Args:
        core (Core): Core owning the polling responsibility.
        interval_minutes (int): Minutes between refreshes.
        iterations (Optional[int]): Stop after this many refreshes, run forever if None.
    """
    count = 0
    while iterations is None or count < iterations:
        await refresh_safely(core)
        count += 1
        if iterations is None or count < iterations:
            await asyncio.sleep(interval_minutes * 60)


async def start_background(bus: MessageBus) -> Core:
    """Build, load and wire the background Core on the given bus."""
    env = build_local_environment(settings, bus)
    core = Core(env)
    await core.load()

    if settings.github_token is not None:
        token = settings.github_token.get_secret_value()
        if token != core.token:
            await core.set_new_token(token)

    env.messenger.listen(partial(handle_message, core))
    return core


async def main() -> None:
    """
    Execute the background worker.

    Note:
        - Stored state is read from the configured data directory
        - Runs until cancelled
    """
    logger.info("Starting background worker...")
    bus = MessageBus()
    core = await start_background(bus)

    if core.token is None:
        logger.warning({"message": "No token configured, waiting for sign-in"})

    await poll(core, settings.refresh_interval_minutes)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
