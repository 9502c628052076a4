"""
Pull Request Loading Data Models.

Defines the data models produced by pull request loaders and persisted as the
last successful check. Uses Pydantic for validation and serialization.
"""

from typing import List, Tuple

from pydantic import BaseModel, ConfigDict, Field


class PullRequestReference(BaseModel):
    """Composite key identifying a pull request."""

    model_config = ConfigDict(frozen=True)

    repo_owner: str
    repo_name: str
    number: int

    @property
    def key(self) -> Tuple[str, str, int]:
        return (self.repo_owner, self.repo_name, self.number)


class PullRequest(PullRequestReference):
    """Open pull request as seen by the signed-in user."""

    author: str
    title: str = ""
    requested_reviewers: List[str] = Field(default_factory=list)
    seen_as: str  # Viewer login as it appeared in the API response
    html_url: str

    def reference(self) -> PullRequestReference:
        return PullRequestReference(
            repo_owner=self.repo_owner,
            repo_name=self.repo_name,
            number=self.number,
        )


class LoadedState(BaseModel):
    """Result of the last successful check."""

    user_login: str
    open_pull_requests: List[PullRequest] = Field(default_factory=list)
