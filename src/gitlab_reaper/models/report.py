"""Results of bulk cleanup operations."""

from dataclasses import dataclass, field

__all__ = ["RunnerCleanupReport", "SweepFailure", "SweepReport"]


@dataclass
class SweepFailure:
    """A single project or repository that could not be cleaned."""

    project: str
    repository: str | None
    error: str

    def __str__(self) -> str:
        if self.repository is None:
            return f"{self.project}: {self.error}"
        label = self.repository or "(root)"
        return f"{self.project} {label}: {self.error}"


@dataclass
class SweepReport:
    """Outcome of cleaning every registry repository in a group."""

    account: str
    cleaned: list[str] = field(default_factory=list)
    failures: list[SweepFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        return (
            f"Sweep of '{self.account}': {len(self.cleaned)} repositories"
            f" cleaned, {len(self.failures)} failed"
        )


@dataclass
class RunnerCleanupReport:
    """Outcome of removing offline runners."""

    deleted: list[int] = field(default_factory=list)
    failed: dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed
