"""GitHub repository analytics client."""

import asyncio
from datetime import date

import httpx

from vanity_mirror.cache import TTLCache
from vanity_mirror.config import GitHubConfig
from vanity_mirror.logging import get_logger
from vanity_mirror.metrics import round_to
from vanity_mirror.transport import AsyncHTTPTransport, ErrorMessages
from vanity_mirror.types.github import (
    GitHubAnalytics,
    GitHubMetrics,
    GitHubRepository,
    LanguageBreakdown,
    StarHistoryPoint,
)

logger = get_logger("clients.github")

GITHUB_API = "https://api.github.com"
PER_PAGE = 100

GITHUB_MESSAGES = ErrorMessages(
    unauthorized="GitHub authentication failed. Check your GITHUB_TOKEN.",
    forbidden="GitHub denied access",
    not_found="GitHub user not found",
    rate_limited="GitHub API rate limit exceeded",
    server_error="GitHub API error",
)


def language_breakdown(byte_counts: dict[str, int]) -> list[LanguageBreakdown]:
    """
    Convert GitHub's bytes-per-language map into percentages.

    Percentages have one decimal and are sorted by bytes descending;
    languages with zero bytes are dropped.
    """
    total = sum(byte_counts.values())
    if total == 0:
        return []

    languages = [
        LanguageBreakdown(
            language=language,
            bytes=count,
            percentage=round_to(count / total * 100, 1),
        )
        for language, count in byte_counts.items()
        if count > 0
    ]
    languages.sort(key=lambda entry: entry.bytes, reverse=True)
    return languages


def _to_repository(repo: dict) -> GitHubRepository:
    return GitHubRepository(
        id=repo["id"],
        name=repo["name"],
        full_name=repo["full_name"],
        description=repo.get("description"),
        url=repo["html_url"],
        stars=repo.get("stargazers_count", 0),
        forks=repo.get("forks_count", 0),
        watchers=repo.get("watchers_count", 0),
        language=repo.get("language"),
        is_archived=repo.get("archived", False),
        is_fork=repo.get("fork", False),
        is_private=repo.get("private", False),
        created_at=repo.get("created_at", ""),
        updated_at=repo.get("updated_at", ""),
        pushed_at=repo.get("pushed_at") or "",
    )


class GitHubClient:
    """Async client for an account's repositories, stars and languages."""

    def __init__(
        self,
        config: GitHubConfig,
        cache: TTLCache | None = None,
        transport: AsyncHTTPTransport | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the GitHub client.

        Args:
            config: Account name and optional token
            cache: Cache for repositories, languages and analytics
            transport: Async HTTP transport for making requests
            http_client: Shared httpx client for the default transport
        """
        self.config = config
        self.cache = cache if cache is not None else TTLCache(namespace="github")
        self.transport = transport or AsyncHTTPTransport(
            "github", messages=GITHUB_MESSAGES, http_client=http_client
        )
        self._headers = {"Accept": "application/vnd.github.v3+json"}
        if config.token:
            self._headers["Authorization"] = f"Bearer {config.token}"

    async def fetch_repo_languages(self, full_name: str) -> list[LanguageBreakdown]:
        """
        Get the language breakdown for one repository.

        Failures are logged and yield an empty breakdown; a missing language
        chart never fails the whole account.
        """
        cache_key = f"languages:{full_name}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            data = await self.transport.request_json(
                "GET", f"{GITHUB_API}/repos/{full_name}/languages", headers=self._headers
            )
        except Exception as e:
            logger.warning("Language lookup failed for %s: %s", full_name, e)
            return []

        languages = language_breakdown(data or {})
        self.cache.set(cache_key, languages)
        return languages

    async def fetch_repositories(self) -> list[GitHubRepository]:
        """
        Get every repository owned by the configured account.

        With a token the authenticated ``/user/repos`` endpoint is used so
        private repositories are included. Pages of 100 are requested until a
        short page comes back. Repositories are sorted by stars, then by most
        recently updated.
        """
        username = self.config.username
        cache_key = f"repos:{username}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        if self.config.token:
            url = f"{GITHUB_API}/user/repos"
            base_params = {"affiliation": "owner", "visibility": "all", "sort": "updated"}
        else:
            url = f"{GITHUB_API}/users/{username}/repos"
            base_params = {"type": "owner", "sort": "updated"}

        repos: list[GitHubRepository] = []
        page = 1
        while True:
            data = await self.transport.request_json(
                "GET",
                url,
                params={**base_params, "per_page": PER_PAGE, "page": page},
                headers=self._headers,
            )
            if not data:
                break

            repos.extend(_to_repository(repo) for repo in data)

            if len(data) < PER_PAGE:
                break
            page += 1

        # ISO-8601 timestamps sort lexicographically
        repos.sort(key=lambda r: r.updated_at, reverse=True)
        repos.sort(key=lambda r: r.stars, reverse=True)

        breakdowns = await asyncio.gather(
            *(self.fetch_repo_languages(repo.full_name) for repo in repos)
        )
        for repo, languages in zip(repos, breakdowns):
            repo.languages = languages

        self.cache.set(cache_key, repos)
        return repos

    async def fetch_analytics(self) -> GitHubAnalytics:
        """
        Get account-wide totals.

        Returns:
            GitHubAnalytics with aggregate metrics, repositories and star history
        """
        cache_key = f"analytics:{self.config.username}"
        cached = self.cache.get(cache_key)
        if cached is not None:
            return cached

        repositories = await self.fetch_repositories()
        total_stars = sum(repo.stars for repo in repositories)

        analytics = GitHubAnalytics(
            metrics=GitHubMetrics(
                total_stars=total_stars,
                total_forks=sum(repo.forks for repo in repositories),
                total_watchers=sum(repo.watchers for repo in repositories),
                repo_count=len(repositories),
                # No star events are fetched, so there is nothing to diff
                new_stars_this_week=0,
                stars_trend=0,
            ),
            repositories=repositories,
            star_history=star_history(total_stars),
        )

        self.cache.set(cache_key, analytics)
        return analytics


def star_history(total_stars: int, today: date | None = None) -> list[StarHistoryPoint]:
    """
    The only star-history point that is actually known: today's total.

    Past days are left out rather than reported as zero.
    """
    today = today or date.today()
    return [StarHistoryPoint(date=today.isoformat(), total_stars=total_stars, new_stars=0)]
