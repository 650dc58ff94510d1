"""Minimalist function set of the GitLab REST API.

We must be able to list group projects, registry repositories, registry
tags, and runners, and to delete registry tags and runners.  Everything
else (including the decision which tags to delete) is GitLab's business.
"""

from collections.abc import Iterator
from types import TracebackType
from typing import Any, Self
from urllib.parse import quote

import httpx
import structlog
from pydantic import SecretStr

from ..config import ReaperConfig, RetentionPolicy
from ..models.registry import (
    JSONObject,
    Project,
    RegistryRepository,
    RegistryTag,
)
from ..models.runner import Runner

__all__ = ["GitLabClient"]


def _int_header(r: httpx.Response, name: str) -> int | None:
    # GitLab sends empty values (e.g. X-Next-Page on the last page).
    value = r.headers.get(name, "").strip()
    if not value:
        return None
    return int(value)


def _project_id(project: str | int) -> str:
    # Projects and groups may be addressed by URL-encoded path.
    return quote(str(project), safe="")


class GitLabClient:
    """Client for talking to the GitLab v4 REST API.

    Note that this is synchronous.  Every operation is a short sequence of
    dependent requests, and GitLab rate-limits API calls in any event.

    Parameters
    ----------
    cfg
        Reaper configuration; supplies the base URL, page size, and dry-run
        setting.
    transport
        Optional ``httpx`` transport.  Intended for the test suite.
    """

    def __init__(
        self,
        cfg: ReaperConfig,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._url = cfg.api_url
        self._page_size = cfg.page_size
        self._dry_run = cfg.dry_run
        self._logger = structlog.get_logger(__name__)
        self._http_client = httpx.Client(
            base_url=self._url, transport=transport
        )
        self._http_client.headers["content-type"] = "application/json"
        if cfg.token is not None:
            self.authenticate(cfg.token)

    def authenticate(self, token: SecretStr) -> None:
        """Use a personal, group, or project access token."""
        self._http_client.headers["PRIVATE-TOKEN"] = token.get_secret_value()

    def close(self) -> None:
        self._http_client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def iter_pages(
        self, path: str, params: dict[str, Any] | None = None
    ) -> Iterator[list[JSONObject]]:
        """Yield each page of a GitLab collection, in order.

        Parameters
        ----------
        path
            API path relative to ``/api/v4``.
        params
            Additional query parameters.

        Yields
        ------
        list
            The decoded items of one page.

        Raises
        ------
        httpx.HTTPError
            Raised on the first failed request; no further pages are
            requested.

        Notes
        -----
        Iteration stops when ``X-Page`` reaches ``X-Total-Pages``.  GitLab
        omits ``X-Total-Pages`` for very large collections, in which case
        we follow ``X-Next-Page`` until it is empty.
        """
        query: dict[str, Any] = dict(params or {})
        query["per_page"] = self._page_size
        page = 1
        while True:
            query["page"] = page
            self._logger.debug(f"Requesting {path}: page {page}")
            r = self._http_client.get(path, params=query)
            r.raise_for_status()
            yield r.json()
            current = _int_header(r, "x-page") or page
            total = _int_header(r, "x-total-pages")
            if total is None:
                next_page = _int_header(r, "x-next-page")
                if next_page is None:
                    break
                page = next_page
            elif current >= total:
                break
            else:
                page = current + 1

    def get_paginated(
        self, path: str, params: dict[str, Any] | None = None
    ) -> list[JSONObject]:
        """Return every item of a GitLab collection, in server order."""
        results: list[JSONObject] = []
        for items in self.iter_pages(path, params):
            results.extend(items)
        self._logger.debug(f"Found {len(results)} items at {path}")
        return results

    def iter_group_projects(self, account: str) -> Iterator[Project]:
        """Yield the projects of a group (or user namespace), one page at
        a time.
        """
        path = f"/groups/{_project_id(account)}/projects"
        for items in self.iter_pages(path):
            for item in items:
                yield Project.from_json(item)

    def list_registry_repositories(
        self, project: str
    ) -> list[RegistryRepository]:
        path = f"/projects/{_project_id(project)}/registry/repositories"
        return [
            RegistryRepository.from_json(x) for x in self.get_paginated(path)
        ]

    def list_registry_tags(
        self, project: str, repository_id: int
    ) -> list[RegistryTag]:
        path = (
            f"/projects/{_project_id(project)}/registry/repositories"
            f"/{repository_id}/tags"
        )
        return [RegistryTag.from_json(x) for x in self.get_paginated(path)]

    def delete_registry_tags(
        self, project: str, repository_id: int, policy: RetentionPolicy
    ) -> int | None:
        """Delete registry tags in bulk, according to a retention policy.

        GitLab schedules the deletion and answers 202 Accepted.

        Returns
        -------
        int or None
            HTTP status code, or `None` for a dry run.
        """
        path = (
            f"/projects/{_project_id(project)}/registry/repositories"
            f"/{repository_id}/tags"
        )
        params = policy.to_params()
        if self._dry_run:
            self._logger.info(
                f"Would delete tags in repository {repository_id} of"
                f" {project} with {params} (not really)"
            )
            return None
        r = self._http_client.delete(path, params=params)
        r.raise_for_status()
        return r.status_code

    def list_runners(self, scope: str | None = None) -> list[Runner]:
        params = {"scope": scope} if scope else None
        return [
            Runner.from_json(x) for x in self.get_paginated("/runners", params)
        ]

    def delete_runner(self, runner_id: int) -> int | None:
        """Remove a runner.

        Returns
        -------
        int or None
            HTTP status code, or `None` for a dry run.
        """
        if self._dry_run:
            self._logger.info(f"Would delete runner {runner_id} (not really)")
            return None
        r = self._http_client.delete(f"/runners/{runner_id}")
        r.raise_for_status()
        return r.status_code
