"""GitHub REST API data source."""

from __future__ import annotations

import base64
import binascii
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Iterable, Optional, TypeVar

import httpx

from ..config import DEFAULT_API_URL
from ..errors import DataSourceError, OrganizationAccessError, QuotaExhaustedError
from ..models import QuotaStatus, Run, WorkflowDescriptor
from ..utils.retry import parse_retry_after, schedule_retry
from .base import DataSource

logger = logging.getLogger(__name__)

T = TypeVar("T")

PAGE_SIZE = 100
RETRYABLE_STATUSES = frozenset({500, 502, 503, 504})


def _decode(response: httpx.Response, extract: Callable[[Any], T]) -> T:
    """Parse ``response`` as JSON and pull fields out of it with ``extract``.

    Bodies that are not JSON or lack expected fields surface as a non-fatal
    :class:`DataSourceError` for the unit being fetched.
    """

    try:
        return extract(response.json())
    except (ValueError, KeyError, TypeError, AttributeError) as exc:
        raise DataSourceError(
            f"Unexpected response from {response.url}: {exc!r}",
            status=response.status_code,
        ) from exc


def _parse_run(run: dict[str, Any]) -> Run:
    return Run(
        id=run["id"],
        run_number=run["run_number"],
        name=run.get("name") or "",
        status=run.get("status"),
        conclusion=run.get("conclusion"),
        created_at=run["created_at"],
        updated_at=run["updated_at"],
        html_url=run.get("html_url") or "",
    )


def _parse_quota(data: dict[str, Any]) -> QuotaStatus:
    rate = data["rate"]
    return QuotaStatus(
        remaining=rate["remaining"],
        limit=rate["limit"],
        reset_at=datetime.fromtimestamp(rate["reset"], tz=timezone.utc),
    )


def _is_rate_limited(response: httpx.Response) -> bool:
    if response.status_code == 429:
        return True
    return (
        response.status_code == 403
        and response.headers.get("x-ratelimit-remaining") == "0"
    )


class GitHubDataSource(DataSource):
    """Read organization, workflow and run data through the GitHub REST API."""

    def __init__(
        self,
        organization: str,
        token: str,
        api_url: str = DEFAULT_API_URL,
        timeout: float = 60.0,
        max_retries: int = 3,
        max_runs: int = PAGE_SIZE,
        quota_safety_margin: int = 100,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.organization = organization
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout
        self.max_retries = max_retries
        self.max_runs = max_runs
        self.quota_safety_margin = quota_safety_margin
        self._token = token
        self._client = client
        self._owns_client = client is None
        self._quota_warned = False

    async def connect(self) -> None:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                headers={
                    "Authorization": f"Bearer {self._token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=httpx.Timeout(self.timeout),
            )
            self._owns_client = True

    async def close(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------
    # Request helpers
    def _track_quota(self, response: httpx.Response) -> None:
        remaining = response.headers.get("x-ratelimit-remaining")
        if remaining is None or self._quota_warned:
            return
        try:
            remaining_count = int(remaining)
        except ValueError:
            return
        if remaining_count < self.quota_safety_margin:
            self._quota_warned = True
            logger.warning(
                "Only %s/%s GitHub API requests remaining",
                remaining,
                response.headers.get("x-ratelimit-limit", "?"),
            )

    async def _get(self, url: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        """GET ``url`` with retries; raise on any non-2xx outcome."""

        if self._client is None:
            await self.connect()

        attempt = 0
        while True:
            try:
                response = await self._client.get(url, params=params)
            except httpx.TransportError as exc:
                if attempt < self.max_retries:
                    attempt += 1
                    logger.debug("Retrying %s after transport error: %s", url, exc)
                    await schedule_retry(attempt)
                    continue
                raise DataSourceError(f"Request to {url} failed: {exc}") from exc

            self._track_quota(response)

            if _is_rate_limited(response):
                if attempt < self.max_retries:
                    attempt += 1
                    retry_after = parse_retry_after(response.headers.get("retry-after"))
                    logger.warning("Rate limited on %s, retrying (attempt %d)", url, attempt)
                    await schedule_retry(attempt, retry_after)
                    continue
                raise QuotaExhaustedError(
                    "GitHub API rate limit exhausted; wait for the quota to reset",
                    status=response.status_code,
                )

            if response.status_code in RETRYABLE_STATUSES and attempt < self.max_retries:
                attempt += 1
                logger.debug("Retrying %s after HTTP %d", url, response.status_code)
                await schedule_retry(attempt)
                continue

            if response.is_error:
                raise DataSourceError(
                    f"GET {url} returned HTTP {response.status_code}",
                    status=response.status_code,
                )
            return response

    # ------------------------------------------------------------------
    # DataSource API
    async def list_repositories(
        self, organization: str, exclude: Iterable[str] = ()
    ) -> list[str]:
        repositories: list[str] = []
        page = 1
        while True:
            try:
                response = await self._get(
                    f"/orgs/{organization}/repos",
                    params={"per_page": PAGE_SIZE, "page": page, "type": "all"},
                )
            except DataSourceError as exc:
                if not exc.fatal and exc.status in (401, 403, 404):
                    raise OrganizationAccessError(
                        f"Organization '{organization}' not found or you don't have access. "
                        "Ensure your GitHub token has 'read:org' permission and you are a "
                        "member of the organization.",
                        status=exc.status,
                    ) from exc
                raise
            batch = _decode(response, lambda data: [repo["name"] for repo in data])
            repositories.extend(batch)
            if len(batch) < PAGE_SIZE:
                break
            page += 1

        excluded = set(exclude)
        return [repo for repo in repositories if repo not in excluded]

    async def list_workflows(self, repository: str) -> list[WorkflowDescriptor]:
        workflows: list[WorkflowDescriptor] = []
        page = 1
        while True:
            try:
                response = await self._get(
                    f"/repos/{self.organization}/{repository}/actions/workflows",
                    params={"per_page": PAGE_SIZE, "page": page},
                )
            except DataSourceError as exc:
                if exc.status == 404:
                    return []
                raise
            batch = _decode(
                response,
                lambda data: [
                    WorkflowDescriptor(
                        id=wf["id"], name=wf["name"], path=wf["path"], state=wf["state"]
                    )
                    for wf in data.get("workflows", [])
                ],
            )
            workflows.extend(batch)
            if len(batch) < PAGE_SIZE:
                return workflows
            page += 1

    async def list_runs(
        self, repository: str, workflow_id: int, since: datetime
    ) -> list[Run]:
        created = since.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
        runs: list[Run] = []
        page = 1
        per_page = min(PAGE_SIZE, self.max_runs)
        while len(runs) < self.max_runs:
            response = await self._get(
                f"/repos/{self.organization}/{repository}/actions/workflows/{workflow_id}/runs",
                params={"per_page": per_page, "page": page, "created": f">={created}"},
            )
            batch = _decode(
                response,
                lambda data: [_parse_run(run) for run in data.get("workflow_runs", [])],
            )
            runs.extend(batch)
            if len(batch) < per_page:
                break
            page += 1
        return runs[: self.max_runs]

    async def get_definition_content(
        self, repository: str, path: str
    ) -> Optional[str]:
        try:
            response = await self._get(
                f"/repos/{self.organization}/{repository}/contents/{path}"
            )
        except DataSourceError as exc:
            if exc.status == 404:
                return None
            raise
        data = _decode(response, lambda data: data)
        if not isinstance(data, dict) or not data.get("content"):
            return None
        try:
            return base64.b64decode(data["content"]).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise DataSourceError(
                f"Could not decode {repository}:{path}: {exc}"
            ) from exc

    async def check_quota(self) -> QuotaStatus:
        response = await self._get("/rate_limit")
        return _decode(response, _parse_quota)
