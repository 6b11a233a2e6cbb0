"""
Autoindex listing pages: fetching, parsing and entry classification.

An Apache-style autoindex page is a sequence of anchors, each optionally
followed by a text node carrying a `dd-MMM-yyyy HH:mm` timestamp and a size:

    <a href="1.2.3/">1.2.3/</a>     03-Jan-2016 14:15    -

This module turns such a page into ListingEntry records and offers the
helpers that decide what an entry is and when it was modified.
"""

import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional, TypeVar

import requests
from bs4 import BeautifulSoup
from bs4.element import NavigableString, PreformattedString

from indexscm.constants import (
    CHARSET_KEY,
    HASH_FILE_EXTENSIONS,
    HTML_PARSER,
    LISTING_DATE_FORMAT,
    LISTING_DATE_PATTERN,
    LISTING_DATE_SHAPE,
    LISTING_DATE_WIDTH,
    PARENT_DIR,
    PATH_SEPARATOR,
)
from indexscm.exceptions import NetworkError
from indexscm.log_utils import logger
from indexscm.transport import Transport, raise_for_status

T = TypeVar("T")

# Sentinel for "unknown" timestamps; sorts before every real listing date
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class ListingEntry:
    """One anchor of a listing page."""

    href: str
    """The anchor's href attribute; empty when missing"""

    display_name: str
    """The anchor's text"""

    trailing_text: Optional[str] = None
    """Text node right after the anchor, or None when the next sibling is not text"""

    @property
    def is_directory(self) -> bool:
        return is_directory(self.href)

    @property
    def is_content_file(self) -> bool:
        return is_content_file(self.href)


def is_directory(href: Optional[str]) -> bool:
    """Return True for hrefs ending in a separator, except the parent-directory link."""
    return bool(href) and href.endswith(PATH_SEPARATOR) and href != PARENT_DIR


def is_content_file(href: Optional[str]) -> bool:
    """
    Return True for file hrefs that are not md5/sha1 hash companions.

    The extension is whatever follows the last dot, unless that dot starts the
    name (".profile" has no extension). Names without an extension are content.
    """
    if not href or href.endswith(PATH_SEPARATOR):
        return False
    stem, dot, extension = href.rpartition(".")
    if dot and stem:
        return extension not in HASH_FILE_EXTENSIONS
    return True


def strip_trailing_separator(name: str) -> str:
    if name.endswith(PATH_SEPARATOR):
        return name[: -len(PATH_SEPARATOR)]
    return name


def ensure_trailing_separator(url: str) -> str:
    if not url.endswith(PATH_SEPARATOR):
        return url + PATH_SEPARATOR
    return url


def parse_listing_timestamp(text: Optional[str], url: str = "") -> datetime:
    """
    Parse the `dd-MMM-yyyy HH:mm` timestamp at the start of a listing row's text.

    Only the first 17 characters of the stripped text are considered, so any
    trailing size column is ignored. They must have exactly the zero-padded
    form, single space included. The result is in UTC.

    Parameters:
        text: Text following the anchor; None yields EPOCH silently.
        url: Page URL, only used in the warning.

    Returns:
        datetime: The parsed time, or EPOCH when the text cannot be parsed.
    """
    if text is None:
        return EPOCH

    text = text.strip()
    candidate = text[:LISTING_DATE_WIDTH]
    try:
        if not re.fullmatch(LISTING_DATE_SHAPE, candidate):
            raise ValueError(
                f"'{candidate}' does not have the form {LISTING_DATE_PATTERN}"
            )
        parsed = datetime.strptime(candidate, LISTING_DATE_FORMAT)
    except ValueError as e:
        logger.warning(f"could not parse date: '{text}', url: {url}")
        logger.debug(f"Date parse failure: {e}")
        return EPOCH
    return parsed.replace(tzinfo=timezone.utc)


def charset_from_content_type(content_type: Optional[str]) -> Optional[str]:
    """
    Return the `charset` parameter of a Content-Type header value, if any.

    >>> charset_from_content_type("text/html; charset=ISO-8859-1")
    'ISO-8859-1'
    """
    if not content_type:
        return None
    for param in content_type.split(";")[1:]:
        param = param.strip()
        if param.lower().startswith(CHARSET_KEY):
            charset = param[len(CHARSET_KEY) :].strip().strip('"').strip("'")
            return charset or None
    return None


def _trailing_text(link) -> Optional[str]:
    sibling = link.next_sibling
    # Comments, CDATA and doctypes are NavigableStrings too, but not row text
    if isinstance(sibling, NavigableString) and not isinstance(
        sibling, PreformattedString
    ):
        return str(sibling)
    return None


def entries_from_document(document: BeautifulSoup) -> List[ListingEntry]:
    """Return every anchor of a parsed page as a ListingEntry, in document order."""
    entries = []
    for link in document.find_all("a"):
        entries.append(
            ListingEntry(
                href=link.get("href") or "",
                display_name=link.get_text().strip(),
                trailing_text=_trailing_text(link),
            )
        )
    return entries


class ListingPageParser:
    """
    Fetches listing pages through a Transport and parses them with BeautifulSoup.

    Each page is fetched once per call; `fetch_and_extract` hands the parsed
    document to a caller-supplied function so several views of the same page
    can be built without refetching.
    """

    def __init__(self, transport: Transport):
        self.transport = transport

    def fetch_and_extract(
        self, url: str, extract: Callable[[str, BeautifulSoup], T]
    ) -> T:
        """
        Fetch `url` (normalized to end with a slash) and return `extract(url, document)`.

        The response is always closed before returning, also when `extract` raises.

        Raises:
            HTTPStatusError: If the server answers with a status code of 400 or above.
            NetworkError: If the transport or the body read fails.
        """
        url = ensure_trailing_separator(url)
        logger.debug(f"Fetching listing {url}")
        with self.transport.get(url) as response:
            raise_for_status(response, url)
            charset = charset_from_content_type(response.headers.get("Content-Type"))
            try:
                body = response.content
            except requests.RequestException as e:
                raise NetworkError(
                    f"Failed reading listing body from {url}", url=url, details=str(e)
                ) from e
            document = BeautifulSoup(body, HTML_PARSER, from_encoding=charset)
            return extract(url, document)

    def fetch(self, url: str) -> List[ListingEntry]:
        """Fetch `url` and return its entries in document order."""
        return self.fetch_and_extract(
            url, lambda _url, document: entries_from_document(document)
        )
