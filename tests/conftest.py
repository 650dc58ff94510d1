"""Test fixtures for GitLab registry reaper."""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
from urllib.parse import unquote

import httpx
import pytest
from pydantic import SecretStr

from gitlab_reaper.config import ReaperConfig
from gitlab_reaper.services.sweeper import Sweeper
from gitlab_reaper.storage.gitlab import GitLabClient

API_PREFIX = "/api/v4/"


@dataclass
class FakeGitLab:
    """In-memory stand-in for the parts of the GitLab API we use.

    Collections are paginated the way GitLab does it, with ``X-Page``,
    ``X-Total-Pages`` and ``X-Next-Page`` headers.
    """

    projects: dict[str, list[dict[str, Any]]] = field(default_factory=dict)
    repositories: dict[str, list[dict[str, Any]]] = field(
        default_factory=dict
    )
    tags: dict[int, list[dict[str, Any]]] = field(default_factory=dict)
    runners: list[dict[str, Any]] = field(default_factory=list)
    failing: set[tuple[str, str]] = field(default_factory=set)
    requests: list[httpx.Request] = field(default_factory=list)
    deleted_tags: list[tuple[str, int, dict[str, str]]] = field(
        default_factory=list
    )
    deleted_runners: list[int] = field(default_factory=list)

    def add_project(
        self, group: str, path: str, repositories: list[dict[str, Any]]
    ) -> None:
        projects = self.projects.setdefault(group, [])
        projects.append(
            {
                "id": 100 + len(projects),
                "name": path.rsplit("/", 1)[-1],
                "path_with_namespace": path,
            }
        )
        self.repositories[path] = repositories

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        raw = request.url.raw_path.split(b"?", 1)[0].decode()
        if not raw.startswith(API_PREFIX):
            return httpx.Response(404)
        path = raw[len(API_PREFIX) :]
        if (request.method, path) in self.failing:
            return httpx.Response(500, json={"message": "boom"})
        parts = [unquote(x) for x in path.split("/")]
        params = dict(request.url.params)
        match (request.method, parts):
            case ("GET", ["groups", group, "projects"]):
                if group not in self.projects:
                    return httpx.Response(404)
                return self._paginate(self.projects[group], params)
            case ("GET", ["projects", project, "registry", "repositories"]):
                if project not in self.repositories:
                    return httpx.Response(404)
                return self._paginate(self.repositories[project], params)
            case (
                "GET",
                ["projects", _, "registry", "repositories", repo_id, "tags"],
            ):
                return self._paginate(self.tags.get(int(repo_id), []), params)
            case (
                "DELETE",
                [
                    "projects",
                    project,
                    "registry",
                    "repositories",
                    repo_id,
                    "tags",
                ],
            ):
                self.deleted_tags.append((project, int(repo_id), params))
                return httpx.Response(202)
            case ("GET", ["runners"]):
                scope = params.get("scope")
                runners = [
                    x
                    for x in self.runners
                    if scope is None or x["status"] == scope
                ]
                return self._paginate(runners, params)
            case ("DELETE", ["runners", runner_id]):
                self.deleted_runners.append(int(runner_id))
                return httpx.Response(204)
        return httpx.Response(404)

    def _paginate(
        self, items: list[dict[str, Any]], params: dict[str, str]
    ) -> httpx.Response:
        page = int(params.get("page", "1"))
        per_page = int(params.get("per_page", "20"))
        total = max(1, math.ceil(len(items) / per_page))
        start = (page - 1) * per_page
        headers = {
            "X-Page": str(page),
            "X-Per-Page": str(per_page),
            "X-Total": str(len(items)),
            "X-Total-Pages": str(total),
            "X-Next-Page": str(page + 1) if page < total else "",
        }
        return httpx.Response(
            200, json=items[start : start + per_page], headers=headers
        )

    @property
    def mock_transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture
def fake_gitlab() -> FakeGitLab:
    """Empty fake GitLab instance."""
    return FakeGitLab()


@pytest.fixture
def config() -> ReaperConfig:
    """Reaper configuration with a small page size, so that pagination
    is exercised.
    """
    return ReaperConfig(token=SecretStr("glpat-test"), page_size=2)


@pytest.fixture
def client(config: ReaperConfig, fake_gitlab: FakeGitLab) -> GitLabClient:
    """GitLab client talking to the fake GitLab."""
    return GitLabClient(config, transport=fake_gitlab.mock_transport)


@pytest.fixture
def sweeper(config: ReaperConfig, client: GitLabClient) -> Sweeper:
    """Sweeper using the default retention policy."""
    return Sweeper(config, client=client)


@pytest.fixture
def support_dir() -> Path:
    return Path(__file__).parent / "support"
