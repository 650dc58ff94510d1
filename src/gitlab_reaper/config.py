"""Configuration for the GitLab registry reaper."""

from __future__ import annotations

from pathlib import Path
from typing import Annotated, Any, Self

import yaml
from pydantic import (
    BeforeValidator,
    Field,
    HttpUrl,
    NonNegativeInt,
    SecretStr,
)
from safir.pydantic import CamelCaseModel

DEFAULT_KEEP_COUNT = 5
DEFAULT_NAME_PATTERN = ".*"
DEFAULT_URL = "https://gitlab.com"


def _empty_str_is_none(inp: Any) -> Any:
    if isinstance(inp, str) and inp == "":
        return None
    return inp


class RetentionPolicy(CamelCaseModel):
    """Which tags survive a cleanup.

    GitLab applies the policy server-side: tags whose names match
    ``name_pattern`` are deleted, except for the newest ``keep_count`` of
    them.  If neither field is given, the newest five tags of any name are
    kept.  If either is given, no keep count is substituted; GitLab
    requires a name pattern on every deletion, so an unset pattern is sent
    as ``.*``.

    Patterns are RE2 expressions evaluated by GitLab and are not checked
    locally.
    """

    keep_count: Annotated[
        NonNegativeInt | None,
        BeforeValidator(_empty_str_is_none),
        Field(
            title="Keep count",
            description="Number of newest matching tags to retain.",
            examples=[5],
        ),
    ] = None

    name_pattern: Annotated[
        str | None,
        BeforeValidator(_empty_str_is_none),
        Field(
            title="Name pattern",
            description="RE2 expression of tag names to be cleaned up.",
            examples=[".*", "^dev-.*"],
        ),
    ] = None

    def effective(self) -> RetentionPolicy:
        """Return the policy with the default applied, if it applies."""
        if self.keep_count is None and self.name_pattern is None:
            return RetentionPolicy(
                keep_count=DEFAULT_KEEP_COUNT,
                name_pattern=DEFAULT_NAME_PATTERN,
            )
        return self.model_copy()

    def to_params(self) -> dict[str, str | int]:
        """Query parameters for GitLab's bulk tag deletion endpoint."""
        policy = self.effective()
        params: dict[str, str | int] = {
            "name_regex_delete": policy.name_pattern or DEFAULT_NAME_PATTERN
        }
        if policy.keep_count is not None:
            params["keep_n"] = policy.keep_count
        return params

    def __str__(self) -> str:
        policy = self.effective()
        keep = "all" if policy.keep_count is None else policy.keep_count
        pattern = policy.name_pattern or DEFAULT_NAME_PATTERN
        return f"keep {keep} matching '{pattern}'"


class ReaperConfig(CamelCaseModel):
    """Configuration to talk to a GitLab instance and clean it up."""

    url: Annotated[
        HttpUrl,
        Field(
            title="URL",
            description="Base URL of the GitLab instance",
            examples=[HttpUrl(DEFAULT_URL)],
        ),
    ] = HttpUrl(DEFAULT_URL)

    token: Annotated[
        SecretStr | None,
        BeforeValidator(_empty_str_is_none),
        Field(
            title="Token",
            description="GitLab access token, sent as PRIVATE-TOKEN.",
        ),
    ] = None

    keep: Annotated[
        RetentionPolicy,
        Field(
            title="Retention policy",
            description="Policy for which tags to retain.",
            default_factory=RetentionPolicy,
        ),
    ]

    page_size: Annotated[
        int,
        Field(
            title="Page size",
            description="Number of items to request per page.",
            ge=1,
            le=100,
        ),
    ] = 100

    dry_run: Annotated[
        bool,
        Field(
            title="Dry run",
            description="Do not actually delete any tags or runners.",
        ),
    ] = False

    debug: Annotated[
        bool,
        Field(
            title="Debug",
            description="Much more verbose logging.",
        ),
    ] = False

    fail_fast: Annotated[
        bool,
        Field(
            title="Fail fast",
            description=(
                "Abort a group sweep at the first repository that cannot be"
                " cleaned, rather than logging it and continuing."
            ),
        ),
    ] = False

    @property
    def api_url(self) -> str:
        return str(self.url).rstrip("/") + "/api/v4"

    @classmethod
    def from_file(cls, path: Path) -> Self:
        return cls.model_validate(yaml.safe_load(path.read_text()) or {})
