"""Source-control (GitHub) data models."""

from dataclasses import dataclass, field


@dataclass
class LanguageBreakdown:
    """Share of a repository's code in one language."""

    language: str
    bytes: int
    percentage: float  # 0-100, one decimal


@dataclass
class GitHubRepository:
    """Repository information."""

    id: int
    name: str
    full_name: str
    description: str | None
    url: str
    stars: int
    forks: int
    watchers: int
    language: str | None
    is_archived: bool
    is_fork: bool
    is_private: bool
    created_at: str
    updated_at: str
    pushed_at: str
    languages: list[LanguageBreakdown] = field(default_factory=list)


@dataclass
class StarHistoryPoint:
    date: str
    total_stars: int
    new_stars: int


@dataclass
class GitHubMetrics:
    total_stars: int
    total_forks: int
    total_watchers: int
    repo_count: int
    new_stars_this_week: int
    stars_trend: int


@dataclass
class GitHubAnalytics:
    """Account-wide totals; always reflects the current state."""

    metrics: GitHubMetrics
    repositories: list[GitHubRepository]
    star_history: list[StarHistoryPoint]
