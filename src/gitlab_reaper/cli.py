"""CLI for GitLab Registry Reaper."""

import argparse
import code
import os
from pathlib import Path

import httpx
import structlog
from pydantic import ValidationError

from .config import ReaperConfig, RetentionPolicy
from .exceptions import ReaperError, RunnerCleanupError, SweepError
from .models.report import RunnerCleanupReport, SweepReport
from .services.sweeper import Sweeper


def _add_policy_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "-k",
        "--keep",
        type=int,
        help="Keep the latest N tags (default 5 if no --nameregex)",
        default=None,
    )
    parser.add_argument(
        "-n",
        "--nameregex",
        help="Regex of the tag names to be cleaned up (default '.*')",
        default=None,
    )


def _add_sweep_args(parser: argparse.ArgumentParser) -> None:
    _add_policy_args(parser)
    parser.add_argument(
        "--fail-fast",
        action="store_true",
        help="Abort at the first repository that cannot be cleaned",
        default=False,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="gitlab-reaper",
        description=(
            "Prune container registry tags and offline runners in GitLab."
        ),
    )
    parser.add_argument(
        "-t",
        "--token",
        help="GitLab access token (default: $GITLAB_TOKEN)",
        default=None,
    )
    parser.add_argument(
        "-u",
        "--url",
        help="GitLab base URL (default: $GITLAB_URL or https://gitlab.com)",
        default=None,
    )
    parser.add_argument(
        "-c",
        "--config-file",
        type=Path,
        help="reaper config file",
        default=None,
    )
    parser.add_argument(
        "-d",
        "--debug",
        action="store_true",
        help="Enable debug logging",
        default=False,
    )
    parser.add_argument(
        "-x",
        "--dry-run",
        action="store_true",
        help="Dry run only: do not delete any tags or runners",
        default=False,
    )
    parser.add_argument(
        "-i",
        "--interactive",
        action="store_true",
        help="Load config and then drop into Python REPL",
        default=False,
    )
    commands = parser.add_subparsers(dest="command", required=True)

    show = commands.add_parser("show", help="Show objects")
    show_cmds = show.add_subparsers(dest="subcommand", required=True)
    show_repos = show_cmds.add_parser("repos", help="Show repos of project")
    show_repos.add_argument(
        "project", help="Project name (user/project or group/project)"
    )
    show_tags = show_cmds.add_parser("tags", help="Show tags in repository")
    show_tags.add_argument(
        "project", help="Project name (user/project or group/project)"
    )
    show_tags.add_argument(
        "repository", nargs="?", default="", help="Name of the repository"
    )
    show_cmds.add_parser("runners", help="Show runners")

    clean = commands.add_parser("clean", help="Clean up objects")
    clean_cmds = clean.add_subparsers(dest="subcommand", required=True)
    clean_repo = clean_cmds.add_parser(
        "repo", help="Clean up tags in a repository"
    )
    clean_repo.add_argument(
        "project", help="Project name (user/project or group/project)"
    )
    clean_repo.add_argument(
        "repository", nargs="?", default="", help="Name of the repository"
    )
    _add_policy_args(clean_repo)
    clean_all = clean_cmds.add_parser(
        "all", help="Clean up tags in all projects of a user/group"
    )
    clean_all.add_argument("account", help="Name of user or group")
    _add_sweep_args(clean_all)
    clean_cmds.add_parser("runners", help="Delete offline runners")

    auto = commands.add_parser(
        "auto", help="Automatable mode (clean all + clean runners)"
    )
    auto.add_argument("account", help="Name of user or group")
    _add_sweep_args(auto)
    auto.set_defaults(subcommand=None)
    return parser


def _load_config(args: argparse.Namespace) -> ReaperConfig:
    cfg = (
        ReaperConfig.from_file(args.config_file)
        if args.config_file
        else ReaperConfig()
    )
    settings = cfg.model_dump(by_alias=False)

    # Command line beats environment beats config file
    token = args.token or os.getenv("GITLAB_TOKEN")
    if token:
        settings["token"] = token
    url = args.url or os.getenv("GITLAB_URL")
    if url:
        settings["url"] = url
    keep = getattr(args, "keep", None)
    nameregex = getattr(args, "nameregex", None)
    if keep is not None or nameregex is not None:
        settings["keep"] = RetentionPolicy(
            keep_count=keep, name_pattern=nameregex
        )
    if args.dry_run:
        settings["dry_run"] = True
    if args.debug:
        settings["debug"] = True
    if getattr(args, "fail_fast", False):
        settings["fail_fast"] = True
    return ReaperConfig.model_validate(settings)


def _report_sweep(report: SweepReport) -> None:
    print(report.summary())
    for failure in report.failures:
        print(f"  {failure}")
    if not report.ok:
        raise SweepError(report)


def _report_runners(report: RunnerCleanupReport) -> None:
    if report.deleted or report.failed:
        print(
            f"Runners: {len(report.deleted)} deleted,"
            f" {len(report.failed)} failed"
        )
    if not report.ok:
        raise RunnerCleanupError(report)


def _dispatch(sweeper: Sweeper, args: argparse.Namespace) -> None:
    match (args.command, args.subcommand):
        case ("show", "repos"):
            for repo in sweeper.list_repositories(args.project):
                print(f"{args.project} {repo.name}")
        case ("show", "tags"):
            for tag in sweeper.list_tags(args.project, args.repository):
                print(tag)
        case ("show", "runners"):
            for runner in sweeper.list_runners():
                print(runner)
        case ("clean", "repo"):
            sweeper.clean_repository(args.project, args.repository)
        case ("clean", "all"):
            _report_sweep(sweeper.clean_group(args.account))
        case ("clean", "runners"):
            _report_runners(sweeper.clean_runners())
        case ("auto", _):
            sweep, runners = sweeper.auto(args.account)
            try:
                _report_sweep(sweep)
            finally:
                _report_runners(runners)
        case _:
            raise NotImplementedError(
                f"Don't know how to '{args.command} {args.subcommand}'"
            )


def main(argv: list[str] | None = None) -> int:
    """Prune GitLab registries and runners.

    Returns the process exit status: 0 on success, 1 if anything could not
    be found or cleaned.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        cfg = _load_config(args)
    except ValidationError as exc:
        parser.error(str(exc))

    logger = structlog.get_logger(__name__)
    with Sweeper(cfg) as sweeper:
        if args.interactive:
            print("Reaper application is in variable 'sweeper'")
            print("-------------------------------------------")
            code.interact(local={"sweeper": sweeper, "args": args})
            return 0
        try:
            _dispatch(sweeper, args)
        except (ReaperError, httpx.HTTPError) as exc:
            logger.error(str(exc))
            return 1
    return 0
