"""Exceptions raised by the GitLab registry reaper."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models.report import RunnerCleanupReport, SweepReport

__all__ = [
    "MalformedRepositoryPathError",
    "ReaperError",
    "RepositoryNotFoundError",
    "RunnerCleanupError",
    "SweepError",
]


class ReaperError(Exception):
    """Base class for errors reported to the user without a traceback."""


class RepositoryNotFoundError(ReaperError):
    """The named registry repository does not exist in the project."""

    def __init__(self, project: str, repository: str) -> None:
        self.project = project
        self.repository = repository
        label = f"'{repository}'" if repository else "(root)"
        super().__init__(
            f"Registry repository {label} not found in project '{project}'."
            " Maybe you need to specify the repository name? Check with"
            " 'show repos'."
        )


class MalformedRepositoryPathError(ReaperError):
    """A registry repository path has an unexpected number of segments."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            f"Registry repository path '{path}' is not of the form"
            " 'namespace/project' or 'namespace/project/name'"
        )


class SweepError(ReaperError):
    """A group sweep finished, but some repositories could not be cleaned."""

    def __init__(self, report: SweepReport) -> None:
        self.report = report
        count = len(report.failures)
        super().__init__(
            f"Sweep of '{report.account}' finished with {count}"
            f" failure{'s' if count != 1 else ''}"
        )


class RunnerCleanupError(ReaperError):
    """Some offline runners could not be removed."""

    def __init__(self, report: RunnerCleanupReport) -> None:
        self.report = report
        ids = ", ".join(str(x) for x in report.failed)
        super().__init__(f"Could not delete runners: {ids}")
