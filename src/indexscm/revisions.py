"""
Revision history reconstructed from autoindex listings.

Every subdirectory of a listing is a revision named after the directory and
dated by the listing's timestamp column; the content files inside that
subdirectory are the revision's files.
"""

import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Pattern, Union

from bs4 import BeautifulSoup

from indexscm.constants import DEFAULT_MAX_WORKERS
from indexscm.exceptions import PatternError
from indexscm.listing import (
    EPOCH,
    ListingEntry,
    ListingPageParser,
    entries_from_document,
    ensure_trailing_separator,
    parse_listing_timestamp,
    strip_trailing_separator,
)
from indexscm.log_utils import logger
from indexscm.transport import Transport

PatternLike = Union[str, Pattern[str], None]


@dataclass
class Revision:
    """A listing subdirectory (or file) interpreted as one version."""

    name: str
    """Anchor text without a trailing separator"""

    timestamp: datetime = EPOCH
    """Listing timestamp in UTC; EPOCH when the row had no parsable date"""

    comment: str = ""
    """Always the name; listings carry no commit messages"""

    files: Optional[List[str]] = None
    """Content files of the revision directory, None until looked up"""

    matching_groups: List[Optional[str]] = field(default_factory=list)
    """Capture groups of the pattern that selected this revision"""

    def __post_init__(self) -> None:
        if not self.comment:
            self.comment = self.name

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "timestamp": format_timestamp(self.timestamp),
            "comment": self.comment,
            "files": list(self.files) if self.files is not None else None,
            "matching_groups": list(self.matching_groups),
        }


def format_timestamp(value: datetime) -> str:
    """Render a timestamp as ISO-8601 UTC with milliseconds, e.g. 2016-01-03T14:15:00.000Z."""
    value = as_utc(value)
    return value.strftime("%Y-%m-%dT%H:%M:%S") + f".{value.microsecond // 1000:03d}Z"


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def compile_pattern(pattern: PatternLike) -> Optional[Pattern[str]]:
    """
    Compile a caller-supplied name pattern; empty or None means no pattern.

    Raises:
        PatternError: If the pattern is not a valid regular expression.
    """
    if pattern is None:
        return None
    if isinstance(pattern, re.Pattern):
        return pattern
    if not pattern:
        return None
    try:
        return re.compile(pattern)
    except re.error as e:
        raise PatternError(f"Invalid pattern '{pattern}': {e}", pattern) from e


def extract_revision(
    entry: ListingEntry, url: str, since: Optional[datetime] = None
) -> Optional[Revision]:
    """
    Turn a listing entry into a Revision.

    Rows without a text node after the anchor are skipped, as are rows not newer
    than `since` when it is given.

    Parameters:
        entry: The listing entry; callers filter directories or files beforehand.
        url: The page URL, used when reporting unparsable dates.
        since: Optional exclusive lower bound for the timestamp.

    Returns:
        Revision | None: The revision, or None when the row is skipped.
    """
    if entry.trailing_text is None:
        return None

    timestamp = parse_listing_timestamp(entry.trailing_text, url)
    if since is not None and not timestamp > as_utc(since):
        return None

    name = strip_trailing_separator(entry.display_name)
    if not name:
        return None
    return Revision(name=name, timestamp=timestamp, comment=name)


class RevisionDiscovery:
    """
    History queries over a listing URL.

    All methods block on the transport. Revisions are built fresh on every call;
    remembering what was seen before is up to the caller.
    """

    def __init__(self, transport: Transport, max_workers: int = DEFAULT_MAX_WORKERS):
        """
        Parameters:
            transport: Collaborator performing the GET requests.
            max_workers: Concurrent file listings when several revisions need their
                files; 1 keeps the lookups sequential. Result order never changes.
        """
        self.parser = ListingPageParser(transport)
        self.max_workers = max(1, int(max_workers))

    def _directory_revisions(
        self, url: str, document: BeautifulSoup, since: Optional[datetime]
    ) -> List[Revision]:
        revisions = []
        for entry in entries_from_document(document):
            if entry.is_directory:
                revision = extract_revision(entry, url, since)
                if revision is not None:
                    revisions.append(revision)
        return revisions

    def _populate_files(self, url: str, revisions: List[Revision]) -> None:
        if self.max_workers == 1 or len(revisions) < 2:
            for revision in revisions:
                revision.files = self.files_for(url, revision.name)
            return

        workers = min(self.max_workers, len(revisions))
        logger.debug(f"Listing files of {len(revisions)} revisions with {workers} workers")
        with ThreadPoolExecutor(max_workers=workers) as executor:
            file_lists = list(
                executor.map(lambda rev: self.files_for(url, rev.name), revisions)
            )
        for revision, files in zip(revisions, file_lists):
            revision.files = files

    def latest_revision(self, url: str) -> Optional[Revision]:
        """
        Return the last subdirectory of the listing, with its files.

        The listing is assumed to be sorted ascending by date, so the last row in
        document order wins; timestamps are not compared.

        Returns:
            Revision | None: The latest revision, or None when the listing has no dated subdirectories.
        """
        url = ensure_trailing_separator(url)
        revisions = self.parser.fetch_and_extract(
            url, lambda page_url, document: self._directory_revisions(page_url, document, None)
        )
        if not revisions:
            logger.info(f"No revisions found at {url}")
            return None

        latest = revisions[-1]
        self._populate_files(url, [latest])
        logger.debug(f"Latest revision at {url}: {latest.name}")
        return latest

    def latest_revisions_since(self, url: str, since: datetime) -> List[Revision]:
        """
        Return every subdirectory dated strictly after `since`, in document order, with files.

        Naive `since` values are taken as UTC.
        """
        url = ensure_trailing_separator(url)
        since = as_utc(since)
        revisions = self.parser.fetch_and_extract(
            url, lambda page_url, document: self._directory_revisions(page_url, document, since)
        )
        self._populate_files(url, revisions)
        logger.info(
            f"Found {len(revisions)} revision(s) at {url} since {format_timestamp(since)}"
        )
        return revisions

    def children(self, url: str, directory: bool) -> List[Revision]:
        """
        Return the dated directory or content-file rows of a listing as revisions.

        Hash companions and rows without a trailing text node are left out.
        """

        def extract(page_url: str, document: BeautifulSoup) -> List[Revision]:
            revisions = []
            for entry in entries_from_document(document):
                wanted = entry.is_directory if directory else entry.is_content_file
                if wanted:
                    revision = extract_revision(entry, page_url)
                    if revision is not None:
                        revisions.append(revision)
            return revisions

        return self.parser.fetch_and_extract(url, extract)

    def files_for(self, url: str, revision_name: str) -> List[str]:
        """Return the content file names of `url/revision_name/` in document order."""
        revision_url = ensure_trailing_separator(url) + revision_name
        return [child.name for child in self.children(revision_url, directory=False)]

    def latest_child_matching(
        self, url: str, pattern: PatternLike, directory: bool
    ) -> Optional[Revision]:
        """
        Return the newest child whose whole name matches `pattern`.

        Unlike latest_revision(), timestamps are compared; on equal timestamps the
        first child in document order is kept.

        Parameters:
            url: Listing URL.
            pattern: Regular expression matched against the full child name; an empty
                or missing pattern returns None without fetching anything.
            directory: Match subdirectories when True, content files when False.

        Returns:
            Revision | None: The winner with `matching_groups` set from the pattern's
            capture groups (None for groups that did not participate).
        """
        regex = compile_pattern(pattern)
        if regex is None:
            return None

        latest: Optional[Revision] = None
        for child in self.children(url, directory):
            match = regex.fullmatch(child.name)
            if match is None:
                continue
            if latest is None or latest.timestamp < child.timestamp:
                child.matching_groups = list(match.groups())
                latest = child
        return latest

    def check_files(self, url: str, pattern: PatternLike) -> Optional[str]:
        """Return the name of the newest content file matching `pattern`, if any."""
        latest = self.latest_child_matching(url, pattern, directory=False)
        return latest.name if latest is not None else None

    def check_sub_dir(self, url: str, pattern: PatternLike = None) -> Optional[str]:
        """
        Return the href of the first subdirectory whose name matches `pattern`.

        The trailing separator is stripped before matching; without a pattern the
        first subdirectory wins. Rows need no timestamp here.
        """
        regex = compile_pattern(pattern)

        def extract(_url: str, document: BeautifulSoup) -> Optional[str]:
            for entry in entries_from_document(document):
                if not entry.is_directory:
                    continue
                if regex is None or regex.fullmatch(strip_trailing_separator(entry.href)):
                    return entry.href
            return None

        return self.parser.fetch_and_extract(url, extract)
