"""
Abstract Base Class for Pull Request Loaders.

Defines the interface for fetching the signed-in user's review-relevant
pull requests. All loaders (GitHub, test doubles, etc.) implement it.
"""

from abc import ABC, abstractmethod

from loaders.models import LoadedState


class PullRequestLoader(ABC):
    """
    Abstract base class for pull request loaders.

    Implementations should handle:
    - Authentication with the code-hosting service
    - Looking up the signed-in user's login
    - Fetching open pull requests relevant to that user
    - Transforming them to the common models
    """

    @abstractmethod
    async def load(self, token: str) -> LoadedState:
        """
        Fetch the signed-in user's login and open pull requests.

        Args:
            token (str): Credential to authenticate with

        Returns:
            LoadedState: The freshly loaded state

        Raises:
            Exception: On any transport, authentication or parsing failure
        """
        pass

    async def __call__(self, token: str) -> LoadedState:
        return await self.load(token)
