# src/indexscm/cli.py

import argparse
import importlib.metadata
import json
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from indexscm import log_utils
from indexscm.config import (
    load_config,
    settings_from_config,
    validate_url,
)
from indexscm.constants import APP_NAME
from indexscm.downloader import ArtifactDownloader
from indexscm.exceptions import IndexScmError
from indexscm.revisions import RevisionDiscovery, as_utc
from indexscm.transport import HttpTransport


def parse_since(value: str) -> datetime:
    """
    Parse an ISO-8601 timestamp for `since`; a trailing Z and naive values mean UTC.

    Raises:
        argparse.ArgumentTypeError: If the value is not ISO-8601.
    """
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError as e:
        raise argparse.ArgumentTypeError(f"invalid timestamp '{value}': {e}") from e
    return as_utc(parsed)


def _emit(payload: Any) -> None:
    print(json.dumps(payload, indent=2))


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog=APP_NAME,
        description="indexscm - treat HTTP directory listings as a revision history",
    )
    parser.add_argument("--config", help="Path to the YAML configuration file")
    parser.add_argument(
        "--log-level", help="Console log level (DEBUG, INFO, WARNING, ...)"
    )
    subparsers = parser.add_subparsers(dest="command")

    latest_parser = subparsers.add_parser(
        "latest", help="Show the latest revision of a listing"
    )
    latest_parser.add_argument("url", help="Listing URL")

    since_parser = subparsers.add_parser(
        "since", help="Show revisions newer than a timestamp"
    )
    since_parser.add_argument("url", help="Listing URL")
    since_parser.add_argument(
        "since", type=parse_since, help="ISO-8601 timestamp, e.g. 2016-01-02T08:00:00Z"
    )

    match_parser = subparsers.add_parser(
        "match", help="Show the newest child whose name matches a pattern"
    )
    match_parser.add_argument("url", help="Listing URL")
    match_parser.add_argument("pattern", help="Regular expression for the whole name")
    match_parser.add_argument(
        "--dirs",
        action="store_true",
        help="Match subdirectories instead of files",
    )

    subdir_parser = subparsers.add_parser(
        "subdir", help="Show the first subdirectory matching a pattern"
    )
    subdir_parser.add_argument("url", help="Listing URL")
    subdir_parser.add_argument(
        "pattern", nargs="?", default=None, help="Optional regular expression"
    )

    files_parser = subparsers.add_parser("files", help="List the files of a revision")
    files_parser.add_argument("url", help="Listing URL")
    files_parser.add_argument("revision", help="Revision (subdirectory) name")

    download_parser = subparsers.add_parser(
        "download", help="Download the files listed at a URL"
    )
    download_parser.add_argument("url", help="Directory listing URL")
    download_parser.add_argument("target", help="Local target directory")
    download_parser.add_argument("--pattern", help="Only files matching this pattern")

    checkout_parser = subparsers.add_parser(
        "checkout", help="Download the files of a revision"
    )
    checkout_parser.add_argument("url", help="Listing URL")
    checkout_parser.add_argument("revision", help="Revision (subdirectory) name")
    checkout_parser.add_argument("target", help="Local target directory")
    checkout_parser.add_argument("--pattern", help="Only files matching this pattern")

    check_parser = subparsers.add_parser(
        "check", help="Validate a listing URL and verify it can be fetched"
    )
    check_parser.add_argument("url", help="Listing URL")

    subparsers.add_parser("version", help="Display indexscm version")
    return parser


def _prepare(args: argparse.Namespace) -> Tuple[Dict[str, Any], HttpTransport, int]:
    """
    Load configuration, apply logging options and build the transport.

    Returns:
        tuple: (config, transport, max_workers)
    """
    config = load_config(args.config)

    log_level = args.log_level or config.get("LOG_LEVEL")
    if log_level:
        log_utils.set_log_level(str(log_level))
    if config.get("LOG_DIR"):
        log_utils.add_file_logging(
            Path(config["LOG_DIR"]), str(config.get("LOG_LEVEL", "INFO"))
        )

    settings = settings_from_config(config)
    return config, HttpTransport(settings), settings.max_workers


def _run_command(args: argparse.Namespace) -> int:
    _config, transport, max_workers = _prepare(args)
    with transport:
        discovery = RevisionDiscovery(transport, max_workers=max_workers)

        if args.command == "latest":
            revision = discovery.latest_revision(args.url)
            _emit(revision.to_dict() if revision else None)
        elif args.command == "since":
            revisions = discovery.latest_revisions_since(args.url, args.since)
            _emit([revision.to_dict() for revision in revisions])
        elif args.command == "match":
            revision = discovery.latest_child_matching(
                args.url, args.pattern, directory=args.dirs
            )
            _emit(revision.to_dict() if revision else None)
        elif args.command == "subdir":
            _emit(discovery.check_sub_dir(args.url, args.pattern))
        elif args.command == "files":
            _emit(discovery.files_for(args.url, args.revision))
        elif args.command in ("download", "checkout"):
            downloader = ArtifactDownloader(transport, discovery)
            if args.command == "download":
                written = downloader.download(args.url, args.target, args.pattern)
            else:
                written = downloader.checkout(
                    args.url, args.revision, args.target, args.pattern
                )
            _emit([str(path) for path in written])
        elif args.command == "check":
            issues = validate_url(args.url)
            if issues:
                _emit({"status": "failure", "messages": [i.message for i in issues]})
                return 1
            discovery.parser.fetch(args.url)
            _emit({"status": "success", "messages": ["Successfully connected"]})
    return 0


def main(argv: Optional[List[str]] = None) -> None:
    """
    Entry point for the indexscm command-line interface.

    Parses arguments and dispatches to the discovery and download operations.
    Results are printed to stdout as JSON; progress and errors go to the log.
    Exits with status 1 when an operation fails.
    """
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return

    if args.command == "version":
        try:
            version = importlib.metadata.version(APP_NAME)
        except importlib.metadata.PackageNotFoundError:
            version = "unknown"
        print(f"{APP_NAME} v{version}")
        return

    try:
        exit_code = _run_command(args)
    except IndexScmError as e:
        log_utils.logger.error(str(e))
        sys.exit(1)
    if exit_code:
        sys.exit(exit_code)


if __name__ == "__main__":
    main()
