"""Provides registry and runner cleanup services for a GitLab instance."""

import logging
from types import TracebackType
from typing import Self

import httpx
import structlog

from ..config import ReaperConfig, RetentionPolicy
from ..exceptions import (
    MalformedRepositoryPathError,
    ReaperError,
    RepositoryNotFoundError,
)
from ..models.registry import RegistryRepository, RegistryTag
from ..models.report import RunnerCleanupReport, SweepFailure, SweepReport
from ..models.runner import Runner, RunnerStatus
from ..storage.gitlab import GitLabClient

__all__ = ["Sweeper"]


class Sweeper:
    """Applies a tag retention policy to GitLab container registries, and
    removes offline runners.

    Parameters
    ----------
    cfg
        Reaper configuration.  Its retention policy is used whenever an
        operation is not given one explicitly.
    client
        GitLab client to use.  If not given, one is built from ``cfg``.
    """

    def __init__(
        self, cfg: ReaperConfig, client: GitLabClient | None = None
    ) -> None:
        # Establish debugging and dry-run first.
        self._debug = cfg.debug
        self._dry_run = cfg.dry_run

        log_level = logging.DEBUG if self._debug else logging.INFO
        structlog.configure(
            wrapper_class=structlog.make_filtering_bound_logger(log_level)
        )
        self._logger = structlog.get_logger(__name__)

        self._policy = cfg.keep
        self._fail_fast = cfg.fail_fast
        self._client = client or GitLabClient(cfg)
        self._logger.debug(f"Initialized sweeper for {cfg.url}")

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def list_repositories(self, project: str) -> list[RegistryRepository]:
        """Return every registry repository of a project."""
        repos = self._client.list_registry_repositories(project)
        if not repos:
            self._logger.info(f"No registry repositories in {project}")
        return repos

    def find_repository(
        self, project: str, repository: str = ""
    ) -> RegistryRepository:
        """Find a registry repository by exact name.

        The empty name designates the project's root repository.

        Raises
        ------
        RepositoryNotFoundError
            Raised if no repository of the project has that name.
        """
        for repo in self._client.list_registry_repositories(project):
            if repo.name == repository:
                return repo
        raise RepositoryNotFoundError(project, repository)

    def list_tags(
        self, project: str, repository: str = ""
    ) -> list[RegistryTag]:
        """Return every tag of a named registry repository."""
        repo = self.find_repository(project, repository)
        return self._client.list_registry_tags(project, repo.id)

    def clean_repository(
        self,
        project: str,
        repository: str = "",
        policy: RetentionPolicy | None = None,
    ) -> int | None:
        """Delete the tags of one registry repository that the retention
        policy does not keep.

        Parameters
        ----------
        project
            Project path, ``namespace/project``.
        repository
            Repository name; empty for the project's root repository.
        policy
            Retention policy; defaults to the configured one.

        Returns
        -------
        int or None
            HTTP status of the deletion request, or `None` for a dry run.

        Raises
        ------
        RepositoryNotFoundError
            Raised if the project has no repository of that name.
        httpx.HTTPError
            Raised if GitLab refuses a request.  Nothing is retried.
        """
        if policy is None:
            policy = self._policy
        repo = self.find_repository(project, repository)
        return self._delete_tags(project, repo, policy)

    def _delete_tags(
        self, project: str, repo: RegistryRepository, policy: RetentionPolicy
    ) -> int | None:
        self._logger.debug(f"Cleaning {project} {repo.name} ({policy})")
        status = self._client.delete_registry_tags(project, repo.id, policy)
        dry = " (not really)" if status is None else ""
        self._logger.info(f"{status or '-'} {project} {repo.name}{dry}")
        return status

    def clean_group(
        self, account: str, policy: RetentionPolicy | None = None
    ) -> SweepReport:
        """Clean every registry repository of every project in a group.

        Failures on individual projects or repositories are logged and
        recorded in the report, unless the sweeper is configured to fail
        fast, in which case the first failure is raised.  Failure to list
        the group's projects is always raised.
        """
        if policy is None:
            policy = self._policy
        report = SweepReport(account=account)
        for project in self._client.iter_group_projects(account):
            prj = project.path_with_namespace
            try:
                repos = self._client.list_registry_repositories(prj)
            except httpx.HTTPError as exc:
                self._record(report, prj, None, exc)
                continue
            for repo in repos:
                try:
                    name = repo.sub_repository
                    self._delete_tags(prj, repo, policy)
                except (httpx.HTTPError, ReaperError) as exc:
                    self._record(report, prj, repo.name, exc)
                    continue
                report.cleaned.append(f"{prj} {name}".rstrip())
        self._logger.info(report.summary())
        return report

    def _record(
        self,
        report: SweepReport,
        project: str,
        repository: str | None,
        exc: Exception,
    ) -> None:
        if self._fail_fast:
            raise exc
        if isinstance(exc, MalformedRepositoryPathError):
            self._logger.warning(f"Skipping {project}: {exc}")
        else:
            self._logger.error(f"Cleaning {project} failed: {exc}")
        report.failures.append(
            SweepFailure(
                project=project, repository=repository, error=str(exc)
            )
        )

    def list_runners(self) -> list[Runner]:
        """Return all runners visible to the token."""
        runners = self._client.list_runners()
        if not runners:
            self._logger.info("no runners found")
        return runners

    def clean_runners(self) -> RunnerCleanupReport:
        """Remove offline runners.

        A failure to remove one runner is logged and does not stop the
        others from being removed.
        """
        report = RunnerCleanupReport()
        runners = [
            x
            for x in self._client.list_runners(
                scope=RunnerStatus.OFFLINE.value
            )
            if x.removable
        ]
        if not runners:
            self._logger.info("no offline runners found")
            return report
        dry = " (not really)" if self._dry_run else ""
        for runner in runners:
            try:
                status = self._client.delete_runner(runner.id)
            except httpx.HTTPError as exc:
                self._logger.error(
                    f"deleting runner with id {runner.id} failed: {exc}"
                )
                report.failed[runner.id] = str(exc)
                continue
            self._logger.info(
                f"{status or '-'} runner with id {runner.id} deleted{dry}"
            )
            report.deleted.append(runner.id)
        return report

    def auto(
        self, account: str, policy: RetentionPolicy | None = None
    ) -> tuple[SweepReport, RunnerCleanupReport]:
        """Sweep a group, then remove offline runners."""
        sweep = self.clean_group(account, policy)
        return sweep, self.clean_runners()
