"""GitHub API client implementation."""
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, List, Optional, Tuple

from github import Auth, Github, GithubException, RateLimitExceededException, UnknownObjectException
from requests.exceptions import RequestException

from aierastack.errors import RepositoryNotFoundError, UpstreamError
from aierastack.signals import (
    RECENT_COMMITS_WINDOW,
    RECENT_PULLS_WINDOW,
    ReleaseInfo,
    RepoIdentity,
    RepoInfo,
    is_typed_language,
)
from common.logging import LoggingManager
from common.retry import DEFAULT_MAX_RETRIES, retry_on_failure

logger = LoggingManager.get_logger('app.github_client')

LLMS_MANIFEST_PATHS = ("llms.txt", "llms-full.txt", ".llms/llms.txt")


class RateLimitExceeded(UpstreamError):
    """Exception raised when the GitHub API rate limit is exceeded."""

    def __init__(self, message: str, reset_time: Optional[datetime] = None):
        super().__init__(message)
        self.reset_time = reset_time


def is_retryable(error: Exception) -> bool:
    """Rate limits, 5xx responses and transport failures are worth another attempt."""
    if isinstance(error, RateLimitExceededException):
        return True
    if isinstance(error, GithubException):
        return error.status is not None and error.status >= 500
    return isinstance(error, RequestException)


def best_effort(default: Callable[[], Any]):
    """Decorator for secondary collectors: any GitHub failure yields ``default()``."""

    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(self, identity: RepoIdentity, *args, **kwargs) -> Any:
            try:
                return func(self, identity, *args, **kwargs)
            except (GithubException, RequestException) as e:
                logger.warning(f"{func.__name__} unavailable for {identity.full_name}: {str(e)}")
                return default()

        return wrapper

    return decorator


def _utc(moment: Optional[datetime]) -> Optional[datetime]:
    # PyGithub returns naive UTC datetimes in older releases
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


class GitHubClient:
    """Client for collecting repository signals from the GitHub API."""

    def __init__(self, token: Optional[str] = None, timeout: float = 10, max_retries: int = DEFAULT_MAX_RETRIES):
        """Initialize the GitHub client.

        Args:
            token: GitHub personal access token. Without one the client runs
                anonymously with a much lower rate limit.
            timeout: Per-request timeout in seconds.
            max_retries: Retry budget for transient failures.
        """
        self.token = token
        self.max_retries = max_retries
        if token:
            logger.info("Initializing GitHub client")
            self.gh = Github(auth=Auth.Token(token), per_page=100, timeout=int(timeout), retry=None)
        else:
            logger.warning("No GitHub token configured; using anonymous access (60 requests/hour)")
            self.gh = Github(per_page=100, timeout=int(timeout), retry=None)

    @classmethod
    def from_config(cls, config) -> "GitHubClient":
        return cls(token=config.github_token, timeout=config.http_timeout, max_retries=config.max_retries)

    @retry_on_failure(retryable=is_retryable)
    def _get_repo(self, full_name: str):
        return self.gh.get_repo(full_name)

    def _lazy_repo(self, identity: RepoIdentity):
        return self.gh.get_repo(identity.full_name, lazy=True)

    def get_repo_info(self, identity: RepoIdentity) -> RepoInfo:
        """Fetch core repository metadata.

        Raises:
            RepositoryNotFoundError: GitHub answered 404.
            RateLimitExceeded: the rate limit was still exhausted after retries.
            UpstreamError: any other failure after retries.
        """
        logger.info(f"Fetching metadata for repository: {identity.full_name}")
        try:
            repo = self._get_repo(identity.full_name)
        except RateLimitExceededException as e:
            raise RateLimitExceeded(f"GitHub API rate limit exceeded while fetching {identity.full_name}") from e
        except GithubException as e:
            if e.status == 404:
                raise RepositoryNotFoundError(identity.full_name) from e
            raise UpstreamError(f"Could not fetch {identity.full_name} from GitHub: {str(e)}") from e
        except RequestException as e:
            raise UpstreamError(f"Could not fetch {identity.full_name} from GitHub: {str(e)}") from e

        info = RepoInfo(
            owner=repo.owner.login,
            name=repo.name,
            full_name=repo.full_name,
            description=repo.description or "",
            stars=repo.stargazers_count,
            forks=repo.forks_count,
            open_issues=repo.open_issues_count,
            language=repo.language,
            created_at=_utc(repo.created_at),
            updated_at=_utc(repo.updated_at),
            pushed_at=_utc(repo.pushed_at),
            license=repo.license.spdx_id if repo.license else None,
            topics=list(repo.topics or []),
            is_typed=is_typed_language(repo.language),
        )
        logger.debug(f"Repository metadata: {info}")
        return info

    @best_effort(default=list)
    @retry_on_failure(retryable=is_retryable)
    def get_releases(self, identity: RepoIdentity, limit: int = 10) -> List[ReleaseInfo]:
        """Most recent releases, newest first."""
        repo = self._lazy_repo(identity)
        releases = [
            ReleaseInfo(
                tag_name=release.tag_name,
                name=release.title or "",
                published_at=_utc(release.published_at),
                is_prerelease=release.prerelease,
            )
            for release in repo.get_releases()[:limit]
        ]
        logger.debug(f"Found {len(releases)} releases for {identity.full_name}")
        return releases

    @best_effort(default=bool)
    @retry_on_failure(retryable=is_retryable)
    def has_llms_manifest(self, identity: RepoIdentity) -> bool:
        """Check for llms.txt, llms-full.txt or .llms/llms.txt."""
        repo = self._lazy_repo(identity)
        for path in LLMS_MANIFEST_PATHS:
            try:
                repo.get_contents(path)
            except UnknownObjectException:
                continue
            logger.debug(f"Found LLM manifest '{path}' for {identity.full_name}")
            return True
        return False

    @best_effort(default=lambda: (0, ""))
    @retry_on_failure(retryable=is_retryable)
    def get_readme(self, identity: RepoIdentity) -> Tuple[int, str]:
        """README size in bytes and its decoded text; (0, "") when there is none."""
        repo = self._lazy_repo(identity)
        try:
            readme = repo.get_readme()
        except UnknownObjectException:
            logger.debug(f"No README file found for {identity.full_name}.")
            return 0, ""
        text = readme.decoded_content.decode("utf-8", errors="ignore")
        return readme.size, text

    @best_effort(default=list)
    @retry_on_failure(retryable=is_retryable)
    def get_root_listing(self, identity: RepoIdentity) -> List[str]:
        """Names of the entries in the repository root."""
        repo = self._lazy_repo(identity)
        try:
            contents = repo.get_contents("")
        except UnknownObjectException:
            return []
        if not isinstance(contents, list):
            contents = [contents]
        return [item.name for item in contents]

    @best_effort(default=list)
    @retry_on_failure(retryable=is_retryable)
    def get_recent_commit_dates(self, identity: RepoIdentity, limit: int = RECENT_COMMITS_WINDOW) -> List[datetime]:
        repo = self._lazy_repo(identity)
        dates = []
        for commit in repo.get_commits()[:limit]:
            git_commit = commit.commit
            signature = git_commit.author or git_commit.committer
            if signature is not None and signature.date is not None:
                dates.append(_utc(signature.date))
        return dates

    @best_effort(default=list)
    @retry_on_failure(retryable=is_retryable)
    def get_recent_closed_pulls(self, identity: RepoIdentity,
                                limit: int = RECENT_PULLS_WINDOW) -> List[Tuple[datetime, Optional[datetime]]]:
        """(created_at, closed_at) of the most recently updated closed pull requests."""
        repo = self._lazy_repo(identity)
        pulls = repo.get_pulls(state="closed", sort="updated", direction="desc")
        return [(_utc(pr.created_at), _utc(pr.closed_at)) for pr in pulls[:limit]]

    @retry_on_failure(retryable=is_retryable)
    def get_rate_limit(self) -> dict:
        """Get the current core rate limit information.

        Returns:
            dict: remaining requests, limit and the reset time as a UTC datetime.
        """
        logger.debug("Fetching GitHub API rate limit")
        remaining, limit = self.gh.rate_limiting
        reset_time = datetime.fromtimestamp(self.gh.rate_limiting_resettime, tz=timezone.utc)
        info = {
            "remaining": remaining,
            "limit": limit,
            "reset_time": reset_time,
        }
        logger.debug(f"Rate limit info: {info}")
        return info
