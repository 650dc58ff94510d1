"""Model for CI runners."""

from dataclasses import dataclass
from enum import Enum
from typing import Self

from .registry import JSONObject

__all__ = ["Runner", "RunnerStatus"]


class RunnerStatus(Enum):
    """Runner statuses reported by GitLab.  ``active`` and ``paused`` are
    only reported by older GitLab versions.
    """

    ONLINE = "online"
    OFFLINE = "offline"
    STALE = "stale"
    NEVER_CONTACTED = "never_contacted"
    ACTIVE = "active"
    PAUSED = "paused"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: str | None) -> Self:
        try:
            return cls(value)
        except ValueError:
            return cls.UNKNOWN


@dataclass
class Runner:
    """A CI runner.  Only offline runners are eligible for removal."""

    id: int
    status: RunnerStatus
    description: str = ""

    def __str__(self) -> str:
        return f"runner id {self.id} is {self.status.value}"

    @property
    def removable(self) -> bool:
        return self.status == RunnerStatus.OFFLINE

    @classmethod
    def from_json(cls, inp: JSONObject) -> Self:
        return cls(
            id=int(inp["id"]),
            status=RunnerStatus.parse(inp.get("status")),
            description=inp.get("description") or "",
        )
