"""
GitHub Pull Request Loading Module.

This module fetches the pull requests awaiting the signed-in user's attention
from the GitHub API and transforms them into the common Pydantic models.
PyGithub calls are blocking, so each load runs in a worker thread.
"""

import asyncio
from datetime import datetime, timezone
from typing import Dict, List

from github import Auth, Github
from github.PullRequest import PullRequest as GithubPullRequest

from config import logger
from loaders.base import PullRequestLoader
from loaders.models import LoadedState, PullRequest

SEARCH_QUERIES = (
    "is:open is:pr review-requested:{login} archived:false",
    "is:open is:pr reviewed-by:{login} archived:false",
)


class GitHubLoader(PullRequestLoader):
    """
    GitHubLoader loads open pull requests that request or involve the
    signed-in user's review.
    """

    def __init__(self, base_url: str = "https://api.github.com", per_page: int = 100):
        """Initialize the GitHub loader.

        Args:
            base_url (str): GitHub API base URL.
            per_page (int): Page size used for search queries.
        """
        self.base_url = base_url
        self.per_page = per_page

    def _check_rate_limit(self, github: Github, check_name: str) -> None:
        """
        Log the GitHub API rate limit status seen on the last response.

        Args:
            github (Github): Authenticated client.
            check_name (str): Identifier for the rate limit check point.

        Raises:
            Exception: Raised when the rate limit is exhausted, indicating time until reset.
        """
        remaining, limit = github.rate_limiting
        reset_time = datetime.fromtimestamp(github.rate_limiting_resettime, timezone.utc)
        now = datetime.now(timezone.utc)

        logger.info(
            {
                "message": f"{check_name} API rate limit status",
                "remaining_points": remaining,
                "total_points": limit,
                "reset_time": reset_time.isoformat(),
            }
        )

        if 0 < remaining < limit * 0.1:
            logger.warning(
                {
                    "message": "GitHub API rate limit running low",
                    "remaining_points": remaining,
                    "reset_time": reset_time.isoformat(),
                }
            )

        if remaining == 0:
            wait_time = (reset_time - now).total_seconds()
            logger.critical(
                {
                    "message": "GitHub API rate limit exhausted",
                    "reset_time": reset_time.isoformat(),
                    "wait_time_seconds": wait_time,
                }
            )
            raise Exception(
                f"GitHub API rate limit exhausted. Resets in {wait_time/60:.1f} minutes"
            )

    def _get_pr_data(self, pr: GithubPullRequest, login: str) -> PullRequest:
        """Convert a GitHub PullRequest object to a Pydantic model.

        Args:
            pr (GithubPullRequest): The GitHub PullRequest object.
            login (str): Login of the signed-in user.

        Returns:
            PullRequest: A Pydantic model representing the PR.
        """
        users, _teams = pr.get_review_requests()
        return PullRequest(
            repo_owner=pr.base.repo.owner.login,
            repo_name=pr.base.repo.name,
            number=pr.number,
            author=pr.user.login,
            title=pr.title,
            requested_reviewers=[user.login for user in users],
            seen_as=login,
            html_url=pr.html_url,
        )

    def _load_sync(self, token: str) -> LoadedState:
        github = Github(auth=Auth.Token(token), base_url=self.base_url, per_page=self.per_page)
        try:
            login = github.get_user().login

            pull_requests: Dict[str, PullRequest] = {}
            for query in SEARCH_QUERIES:
                for issue in github.search_issues(query.format(login=login)):
                    if issue.html_url in pull_requests:
                        continue
                    pr = self._get_pr_data(issue.as_pull_request(), login)
                    pull_requests[pr.html_url] = pr

            self._check_rate_limit(github, "Pull request loading")
            open_pull_requests: List[PullRequest] = list(pull_requests.values())
            return LoadedState(user_login=login, open_pull_requests=open_pull_requests)
        finally:
            github.close()

    async def load(self, token: str) -> LoadedState:
        """
        Load the signed-in user's login and open pull requests.

        Args:
            token (str): GitHub token.

        Returns:
            LoadedState: The freshly loaded state.

        Raises:
            Exception: Raised if loading fails.
        """
        logger.info({"message": "Loading pull requests from GitHub"})
        try:
            state = await asyncio.to_thread(self._load_sync, token)
        except Exception as e:
            logger.error(
                {
                    "message": "Pull request loading failed",
                    "error": str(e),
                }
            )
            raise

        logger.info(
            {
                "message": "Pull requests loaded",
                "user_login": state.user_login,
                "open_pull_requests": len(state.open_pull_requests),
            }
        )
        return state
