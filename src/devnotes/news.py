"""DevOps news feed — NewsAPI when configured, a fixed article list otherwise."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

from devnotes.config import NewsConfig

logger = logging.getLogger(__name__)

CATEGORIES: tuple[tuple[str, str], ...] = (
    ("all", "All News"),
    ("docker", "Docker"),
    ("kubernetes", "Kubernetes"),
    ("ci-cd", "CI/CD"),
    ("security", "Security"),
    ("monitoring", "Monitoring"),
    ("cloud", "Cloud"),
    ("tools", "Tools"),
)

# Keywords used to categorise articles that arrive without a category
_CATEGORY_KEYWORDS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("docker", ("docker", "container image")),
    ("kubernetes", ("kubernetes", "k8s", "helm")),
    ("ci-cd", ("ci/cd", "github actions", "jenkins", "pipeline")),
    ("security", ("security", "vulnerability", "cve")),
    ("monitoring", ("prometheus", "grafana", "monitoring", "observability")),
    ("cloud", ("aws", "azure", "gcp", "cloud")),
)


@dataclass(frozen=True)
class NewsArticle:
    title: str
    description: str
    url: str
    published_at: str
    source: str
    category: str = "tools"

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "description": self.description,
            "url": self.url,
            "publishedAt": self.published_at,
            "source": {"name": self.source},
            "category": self.category,
        }


def _days_ago(days: int) -> str:
    return (datetime.now(timezone.utc) - timedelta(days=days)).isoformat()


def fallback_articles() -> list[NewsArticle]:
    """The simulated feed shown when NewsAPI is unavailable."""
    return [
        NewsArticle(
            title="Docker Announces New Features for Container Security",
            description="Enhanced security scanning and vulnerability detection in Docker "
            "Desktop with improved container runtime security.",
            url="#",
            published_at=_days_ago(0),
            source="Docker Blog",
            category="docker",
        ),
        NewsArticle(
            title="Kubernetes 1.28 Released with Improved Performance",
            description="Latest Kubernetes release brings significant performance "
            "improvements, enhanced networking, and new security features.",
            url="#",
            published_at=_days_ago(1),
            source="Kubernetes Blog",
            category="kubernetes",
        ),
        NewsArticle(
            title="GitHub Actions Introduces New CI/CD Templates",
            description="Pre-built workflows for common DevOps tasks, deployment scenarios, "
            "and automated testing pipelines.",
            url="#",
            published_at=_days_ago(2),
            source="GitHub Blog",
            category="ci-cd",
        ),
        NewsArticle(
            title="Terraform Cloud Adds Advanced Policy Management",
            description="Enhanced policy-as-code capabilities for infrastructure governance "
            "and compliance automation.",
            url="#",
            published_at=_days_ago(3),
            source="HashiCorp Blog",
            category="tools",
        ),
        NewsArticle(
            title="Prometheus 2.45 Released with Better Query Performance",
            description="Latest monitoring tool release focuses on query optimization and "
            "usability.",
            url="#",
            published_at=_days_ago(4),
            source="Prometheus Blog",
            category="monitoring",
        ),
    ]


def categorize(title: str, description: str) -> str:
    text = f"{title} {description}".lower()
    for category, keywords in _CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return "tools"


def filter_articles(
    articles: list[NewsArticle], category: str = "all", search: str = ""
) -> list[NewsArticle]:
    """Filter by category and a case-insensitive title/description search."""
    needle = search.strip().lower()
    result = []
    for article in articles:
        if category != "all" and article.category != category:
            continue
        if needle and needle not in article.title.lower() and needle not in article.description.lower():
            continue
        result.append(article)
    return result


class NewsClient:
    """Fetch DevOps headlines, falling back to the simulated feed."""

    def __init__(self, config: NewsConfig) -> None:
        self.config = config

    async def fetch(self) -> tuple[list[NewsArticle], bool]:
        """Return ``(articles, is_fallback)``. Never raises."""
        if not self.config.api_key:
            return fallback_articles(), True
        try:
            return await self._fetch_remote(), False
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            logger.warning("News API unavailable, using fallback articles: %s", exc)
            return fallback_articles(), True

    async def _fetch_remote(self) -> list[NewsArticle]:
        params = {
            "q": self.config.query,
            "language": "en",
            "sortBy": "publishedAt",
            "pageSize": self.config.page_size,
            "apiKey": self.config.api_key,
        }
        url = f"{self.config.base_url.rstrip('/')}/everything"
        async with httpx.AsyncClient(timeout=self.config.timeout) as client:
            resp = await client.get(url, params=params)
            resp.raise_for_status()
            data = resp.json()

        if data.get("status") == "error":
            raise ValueError(data.get("message", "News API returned an error"))
        return _parse_articles(data)


def _parse_articles(data: dict) -> list[NewsArticle]:
    """Parse a NewsAPI /everything response."""
    articles = []
    for item in data["articles"]:
        title = item.get("title") or ""
        description = item.get("description") or ""
        articles.append(NewsArticle(
            title=title,
            description=description,
            url=item.get("url") or "#",
            published_at=item.get("publishedAt") or "",
            source=(item.get("source") or {}).get("name", ""),
            category=categorize(title, description),
        ))
    return articles
