"""CLI entry point for config-sync."""

import argparse
from pathlib import Path

from . import __version__
from .config import Settings
from .logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog="config-sync",
        description="Track dotfiles and config directories and sync them across machines with git",
    )
    parser.add_argument(
        "--root",
        default=None,
        help="Engine root holding config.json and synced-files (default: ~/.config-sync)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase logging verbosity (-v for INFO, -vv for DEBUG)",
    )
    parser.add_argument(
        "--log-file",
        type=Path,
        default=None,
        help="Path to write logs to file",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    commands = parser.add_subparsers(dest="command", metavar="COMMAND", required=True)

    commands.add_parser("init", help="Create the registry and git repository")

    init_from = commands.add_parser(
        "init-from", help="Clone an existing config-sync repository and restore from it"
    )
    init_from.add_argument("url", help="Repository URL")

    track = commands.add_parser("track", help="Start tracking paths")
    track.add_argument("paths", nargs="+", metavar="PATH")

    untrack = commands.add_parser("untrack", help="Stop tracking paths")
    untrack.add_argument("paths", nargs="+", metavar="PATH")

    commands.add_parser("list", help="List tracked paths")

    commands.add_parser("pull", help="Pull from the remote and restore tracked paths")

    push = commands.add_parser("push", help="Capture tracked paths, commit and push")
    push.add_argument("-m", "--message", default=None, help="Commit message")

    set_origin = commands.add_parser("set-origin-repo", help="Set the origin remote")
    set_origin.add_argument("url", help="Repository URL")
    set_origin.add_argument(
        "--force",
        action="store_true",
        help="Set the origin even if the repository appears to be public",
    )

    commands.add_parser(
        "check-updates", help="Report pending changes; silent when up to date"
    )

    return parser


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    return build_parser().parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """Main entry point."""
    args = parse_args(argv)

    # Build settings from CLI args
    settings_kwargs: dict = {}
    if args.root:
        settings_kwargs["root"] = args.root
    if args.verbose:
        settings_kwargs["verbose"] = args.verbose
    if args.log_file:
        settings_kwargs["log_file"] = args.log_file

    settings = Settings(**settings_kwargs)

    setup_logging(settings.verbose, settings.log_file, root=settings.root)

    raise SystemExit(dispatch(args, settings))


def dispatch(args: argparse.Namespace, settings: Settings) -> int:
    """Run the selected command and return its exit code."""
    # Import here to keep --help and --version fast
    from .cli.bootstrap import run_init, run_init_from, run_set_origin
    from .cli.common import default_collaborator, report_failure
    from .cli.sync import run_check_updates, run_pull, run_push
    from .cli.track import run_list, run_track, run_untrack
    from .exceptions import HomeDirectoryError

    try:
        root = settings.root_path
    except HomeDirectoryError as e:
        return report_failure("Startup", e)

    if args.command == "track":
        return run_track(root, args.paths)
    if args.command == "untrack":
        return run_untrack(root, args.paths)
    if args.command == "list":
        return run_list(root)

    collaborator = default_collaborator(root, branch=settings.branch, remote=settings.remote)

    if args.command == "init":
        return run_init(root, collaborator)
    if args.command == "init-from":
        return run_init_from(root, collaborator, args.url)
    if args.command == "pull":
        return run_pull(root, collaborator)
    if args.command == "push":
        return run_push(root, collaborator, args.message)
    if args.command == "set-origin-repo":
        return run_set_origin(collaborator, args.url, force=args.force)
    if args.command == "check-updates":
        return run_check_updates(root, collaborator)

    raise AssertionError(f"Unhandled command: {args.command}")


if __name__ == "__main__":
    main()
