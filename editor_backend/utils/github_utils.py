"""
GitHub API utilities used by the repository importer.
"""

import asyncio
import hashlib
from datetime import datetime
from typing import Optional, Dict, Any, Tuple
from urllib.parse import urlencode

import aiohttp
import structlog
from cachetools import TTLCache

from ..config.settings import get_settings
from .auth_utils import bearer_headers
from .error_handling import AcquisitionError

logger = structlog.get_logger(__name__)


class GitHubRateLimitManager:
    """GitHub API rate limit manager."""

    def __init__(self):
        self.rate_limits = {}
        self.statistics = {
            'total_requests': 0,
            'cache_hits': 0,
            'rate_limit_hits': 0
        }

    def update_rate_limit(self, key: str, headers: Dict[str, str]):
        """Update rate limit information from response headers."""
        lowered = {k.lower(): v for k, v in headers.items()}
        if 'x-ratelimit-remaining' not in lowered:
            return
        try:
            self.rate_limits[key] = {
                'limit': int(lowered.get('x-ratelimit-limit', 5000)),
                'remaining': int(lowered.get('x-ratelimit-remaining', 5000)),
                'reset': int(lowered.get('x-ratelimit-reset', 0)),
                'resource': lowered.get('x-ratelimit-resource', 'core'),
                'last_updated': datetime.now()
            }
        except (ValueError, TypeError) as e:
            logger.warning("Failed to parse rate limit headers", error=str(e))

    def is_rate_limited(self, key: str) -> bool:
        """Whether the last response for this credential exhausted the quota."""
        info = self.rate_limits.get(key)
        return bool(info) and info['remaining'] <= 0

    def get_statistics(self) -> Dict[str, Any]:
        """Get usage statistics."""
        return dict(self.statistics)


class GitHubCacheManager:
    """GitHub API response cache manager."""

    def __init__(self, max_size: int = 1000, ttl: int = 300):
        self.cache = TTLCache(maxsize=max_size, ttl=ttl)
        self.statistics = {
            'hits': 0,
            'misses': 0,
        }

    def _generate_key(self, url: str, token_key: str, params: Optional[Dict[str, Any]] = None) -> str:
        """Generate cache key from URL, credential and parameters."""
        if params:
            url += '?' + urlencode(sorted(params.items()))
        return hashlib.md5(f"{token_key}|{url}".encode()).hexdigest()

    def get(self, url: str, token_key: str, params: Optional[Dict[str, Any]] = None) -> Optional[Any]:
        """Get cached response."""
        key = self._generate_key(url, token_key, params)
        if key in self.cache:
            self.statistics['hits'] += 1
            return self.cache[key]
        self.statistics['misses'] += 1
        return None

    def set(self, url: str, token_key: str, data: Any, params: Optional[Dict[str, Any]] = None):
        """Cache response data."""
        self.cache[self._generate_key(url, token_key, params)] = data

    def clear(self):
        """Clear all cached data."""
        self.cache.clear()


class GitHubAPIClient:
    """GitHub API client with rate limit tracking and caching."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        user_agent: Optional[str] = None,
        cache_ttl: Optional[int] = None,
        cache_size: Optional[int] = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.github_api_url).rstrip('/')
        self.timeout = aiohttp.ClientTimeout(total=timeout or settings.http_timeout_seconds)
        self.user_agent = user_agent or settings.user_agent
        self.rate_limit_manager = GitHubRateLimitManager()
        self.cache_manager = GitHubCacheManager(
            max_size=cache_size or settings.api_cache_size,
            ttl=cache_ttl or settings.api_cache_ttl_seconds,
        )
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self.timeout)
        return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _headers(self, token: Optional[str], accept: str) -> Dict[str, str]:
        headers = {
            'Accept': accept,
            'User-Agent': self.user_agent,
        }
        headers.update(bearer_headers(token))
        return headers

    async def _request(
        self,
        endpoint: str,
        token: Optional[str],
        params: Optional[Dict[str, Any]],
        accept: str,
        binary: bool,
    ) -> Tuple[Any, Dict[str, str]]:
        url = f"{self.base_url}{endpoint}"
        key = 'token' if token else 'public'
        self.rate_limit_manager.statistics['total_requests'] += 1

        try:
            session = await self._get_session()
            async with session.get(url, headers=self._headers(token, accept), params=params) as response:
                response_headers = dict(response.headers)
                self.rate_limit_manager.update_rate_limit(key, response_headers)

                if response.status == 403 and self.rate_limit_manager.is_rate_limited(key):
                    self.rate_limit_manager.statistics['rate_limit_hits'] += 1
                    raise AcquisitionError(
                        "GitHub API rate limit exceeded",
                        status=response.status,
                        details={"endpoint": endpoint},
                    )

                if response.status == 404:
                    raise AcquisitionError(
                        f"Resource not found: {endpoint}",
                        status=response.status,
                        details={"endpoint": endpoint},
                    )

                if response.status >= 400:
                    error_text = await response.text()
                    raise AcquisitionError(
                        f"GitHub API error {response.status}: {error_text[:200]}",
                        status=response.status,
                        details={"endpoint": endpoint},
                    )

                if binary:
                    return await response.read(), response_headers
                return await response.json(content_type=None), response_headers

        except asyncio.TimeoutError as e:
            logger.error("GitHub API request timed out", endpoint=endpoint, timeout=self.timeout.total)
            raise AcquisitionError(
                f"GitHub API request timed out after {self.timeout.total}s",
                details={"endpoint": endpoint},
            ) from e
        except aiohttp.ClientError as e:
            logger.error("GitHub API request failed", endpoint=endpoint, error=str(e))
            raise AcquisitionError(
                f"GitHub API request failed: {e}",
                details={"endpoint": endpoint},
            ) from e

    async def get_json(
        self,
        endpoint: str,
        token: Optional[str] = None,
        params: Optional[Dict[str, Any]] = None,
        use_cache: bool = True,
    ) -> Any:
        """Make GET request to GitHub API and decode the JSON body."""
        token_key = hashlib.sha256((token or '').encode()).hexdigest()
        url = f"{self.base_url}{endpoint}"
        if use_cache:
            cached = self.cache_manager.get(url, token_key, params)
            if cached is not None:
                self.rate_limit_manager.statistics['cache_hits'] += 1
                return cached

        data, _ = await self._request(endpoint, token, params, 'application/vnd.github+json', binary=False)
        if use_cache:
            self.cache_manager.set(url, token_key, data, params)
        return data

    async def get_bytes(self, endpoint: str, token: Optional[str] = None) -> bytes:
        """Download a binary payload (archives are never cached)."""
        data, _ = await self._request(endpoint, token, None, 'application/octet-stream', binary=True)
        return data


class GitHubService:
    """Repository operations needed to materialize a working tree."""

    def __init__(self, client: Optional[GitHubAPIClient] = None):
        self.client = client or GitHubAPIClient()

    async def close(self) -> None:
        await self.client.close()

    async def get_repository(self, owner: str, repo: str, token: Optional[str] = None) -> Dict[str, Any]:
        """Get repository details."""
        return await self.client.get_json(f'/repos/{owner}/{repo}', token)

    async def get_default_branch(self, owner: str, repo: str, token: Optional[str] = None) -> str:
        """Get the repository's default branch name."""
        details = await self.get_repository(owner, repo, token)
        return details.get('default_branch') or 'main'

    async def get_tree(self, owner: str, repo: str, ref: str, token: Optional[str] = None) -> Dict[str, Any]:
        """Get the recursive tree listing for a ref."""
        return await self.client.get_json(
            f'/repos/{owner}/{repo}/git/trees/{ref}',
            token,
            params={'recursive': '1'},
            use_cache=False,
        )

    async def get_blob(self, owner: str, repo: str, sha: str, token: Optional[str] = None) -> Dict[str, Any]:
        """Get a blob by content hash; blobs are immutable so they are cached."""
        return await self.client.get_json(f'/repos/{owner}/{repo}/git/blobs/{sha}', token)

    async def download_tarball(self, owner: str, repo: str, ref: str, token: Optional[str] = None) -> bytes:
        """Download the gzip+tar archive of a ref."""
        return await self.client.get_bytes(f'/repos/{owner}/{repo}/tarball/{ref}', token)

    async def download_zipball(self, owner: str, repo: str, ref: str, token: Optional[str] = None) -> bytes:
        """Download the zip archive of a ref."""
        return await self.client.get_bytes(f'/repos/{owner}/{repo}/zipball/{ref}', token)

    def get_statistics(self) -> Dict[str, Any]:
        """Get API usage statistics."""
        stats = self.client.rate_limit_manager.get_statistics()
        stats['cache'] = dict(self.client.cache_manager.statistics)
        return stats
