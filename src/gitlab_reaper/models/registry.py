"""Model for the GitLab projects, registry repositories, and tags we
care about.
"""

from dataclasses import dataclass
from typing import Any, Self, TypeAlias

from ..exceptions import MalformedRepositoryPathError

JSONObject: TypeAlias = dict[str, Any]

__all__ = [
    "JSONObject",
    "Project",
    "RegistryRepository",
    "RegistryTag",
    "split_repository_path",
]


def split_repository_path(path: str) -> str:
    """Derive the sub-repository name from a registry repository path.

    Parameters
    ----------
    path
        Repository path as reported by GitLab, such as ``group/project``
        or ``group/project/name``.

    Returns
    -------
    str
        The empty string for the project's root repository, otherwise the
        name of the nested repository.

    Raises
    ------
    MalformedRepositoryPathError
        Raised if the path has neither two nor three segments.
    """
    parts = path.split("/")
    match len(parts):
        case 2:
            return ""
        case 3:
            return parts[2]
        case _:
            raise MalformedRepositoryPathError(path)


@dataclass
class Project:
    """A GitLab project, as found in a group project listing."""

    id: int
    name: str
    path_with_namespace: str

    @classmethod
    def from_json(cls, inp: JSONObject) -> Self:
        return cls(
            id=int(inp["id"]),
            name=inp.get("name", ""),
            path_with_namespace=inp["path_with_namespace"],
        )


@dataclass
class RegistryRepository:
    """A container registry repository within a project.

    The root repository of a project has an empty name, and its path is
    just the project path.  Nested repositories carry their name as a
    third path segment.
    """

    id: int
    name: str
    path: str
    location: str = ""

    def __str__(self) -> str:
        return self.location or self.path

    @property
    def sub_repository(self) -> str:
        """Name of the repository relative to its project."""
        return split_repository_path(self.path)

    @classmethod
    def from_json(cls, inp: JSONObject) -> Self:
        return cls(
            id=int(inp["id"]),
            name=inp.get("name") or "",
            path=inp["path"],
            location=inp.get("location") or "",
        )


@dataclass
class RegistryTag:
    """A tag in a registry repository.  Tags are never modified, only
    deleted.
    """

    name: str
    path: str = ""
    location: str = ""

    def __str__(self) -> str:
        return self.location or self.name

    @classmethod
    def from_json(cls, inp: JSONObject) -> Self:
        return cls(
            name=inp["name"],
            path=inp.get("path") or "",
            location=inp.get("location") or "",
        )
