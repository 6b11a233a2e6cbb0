from datetime import datetime, timezone

import pytest
import requests
from bs4 import BeautifulSoup

from indexscm.exceptions import HTTPStatusError, NetworkError
from indexscm.listing import (
    EPOCH,
    ListingEntry,
    ListingPageParser,
    charset_from_content_type,
    ensure_trailing_separator,
    entries_from_document,
    is_content_file,
    is_directory,
    parse_listing_timestamp,
    strip_trailing_separator,
)

URL = "http://repo.example.com/listing/"


class TestEntryClassifier:
    """Directory / content file / hash companion classification."""

    @pytest.mark.unit
    @pytest.mark.parametrize("href", ["1.2.3/", "a/", "nested/dir/", "./"])
    def test_is_directory_for_trailing_separator(self, href):
        assert is_directory(href) is True

    @pytest.mark.unit
    @pytest.mark.parametrize("href", ["../", "", None, "file.txt", "dir", "a/b"])
    def test_is_directory_false(self, href):
        assert is_directory(href) is False

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "href",
        ["foo.txt", "README", "archive.tar.gz", ".profile", "foo.MD5", "foo.sha256", "a.md5x"],
    )
    def test_is_content_file(self, href):
        assert is_content_file(href) is True

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "href", ["foo.txt.md5", "foo.txt.sha1", "foo%23%231.2.3.txt.md5", "x.sha1"]
    )
    def test_hash_companions_are_not_content(self, href):
        assert is_content_file(href) is False

    @pytest.mark.unit
    @pytest.mark.parametrize("href", ["", None, "dir/", "../"])
    def test_directories_and_empty_are_not_content(self, href):
        assert is_content_file(href) is False

    @pytest.mark.unit
    def test_listing_entry_properties(self):
        assert ListingEntry("1.2.3/", "1.2.3/").is_directory
        assert not ListingEntry("1.2.3/", "1.2.3/").is_content_file
        assert ListingEntry("a.txt", "a.txt").is_content_file


class TestTimestampParser:
    """Parsing of the dd-MMM-yyyy HH:mm column."""

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        [
            "03-Jan-2016 14:15",
            "   03-Jan-2016 14:15    -",
            "03-Jan-2016 14:15  1.2K\n",
            "\t03-Jan-2016 14:15 whatever follows",
        ],
    )
    def test_parses_prefix_regardless_of_trailing_content(self, text):
        assert parse_listing_timestamp(text, URL) == datetime(
            2016, 1, 3, 14, 15, tzinfo=timezone.utc
        )

    @pytest.mark.unit
    def test_result_is_utc(self):
        parsed = parse_listing_timestamp("31-Dec-2019 23:59", URL)
        assert parsed.tzinfo == timezone.utc
        assert parsed == datetime(2019, 12, 31, 23, 59, tzinfo=timezone.utc)

    @pytest.mark.unit
    @pytest.mark.parametrize(
        "text",
        [
            "",
            "   ",
            "-",
            "3-Jan-2016 14:15",
            "03-Foo-2016 14:15",
            "2016-01-03 14:15:00",
            "32-Jan-2016 14:15",
            "03-Jan-2016 25:15",
            "03-Jan-2016  14:15    -",
            "03-Jan-2016 4:15    -",
            "03-Jan-2016 14:5     -",
            "03-Jan-2016\t14:15",
            "03-Jan-16 14:15 12345",
        ],
    )
    def test_unparsable_text_yields_epoch_and_warns(self, mocker, text):
        mock_logger = mocker.patch("indexscm.listing.logger")

        assert parse_listing_timestamp(text, URL) == EPOCH

        mock_logger.warning.assert_called_once()
        message = mock_logger.warning.call_args[0][0]
        assert URL in message
        assert text.strip() in message

    @pytest.mark.unit
    def test_none_yields_epoch_silently(self, mocker):
        mock_logger = mocker.patch("indexscm.listing.logger")

        assert parse_listing_timestamp(None, URL) == EPOCH
        mock_logger.warning.assert_not_called()

    @pytest.mark.unit
    def test_epoch_sorts_first(self):
        parsed = parse_listing_timestamp("01-Jan-1971 00:00", URL)
        assert EPOCH < parsed
        assert min([parsed, EPOCH]) is EPOCH


class TestHelpers:
    @pytest.mark.unit
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("text/html; charset=ISO-8859-1", "ISO-8859-1"),
            ("text/html;charset=UTF-8", "UTF-8"),
            ('text/html; charset="utf-8"', "utf-8"),
            ("text/html; Charset=utf-8; foo=bar", "utf-8"),
            ("text/html", None),
            ("text/html; charset=", None),
            ("", None),
            (None, None),
        ],
    )
    def test_charset_from_content_type(self, value, expected):
        assert charset_from_content_type(value) == expected

    @pytest.mark.unit
    def test_trailing_separator_helpers(self):
        assert ensure_trailing_separator("http://x/a") == "http://x/a/"
        assert ensure_trailing_separator("http://x/a/") == "http://x/a/"
        assert strip_trailing_separator("1.2.3/") == "1.2.3"
        assert strip_trailing_separator("1.2.3") == "1.2.3"


class TestEntriesFromDocument:
    @pytest.mark.unit
    def test_entries_in_document_order(self, page_factory):
        html = page_factory(
            "/x",
            [
                ("b/", "b/", "   02-Jan-2016 10:00    -"),
                ("a.txt", "a.txt", "   01-Jan-2016 10:00    4"),
            ],
        )
        entries = entries_from_document(BeautifulSoup(html, "html.parser"))

        assert [e.href for e in entries] == ["../", "b/", "a.txt"]
        assert entries[1].display_name == "b/"
        assert entries[1].trailing_text.strip() == "02-Jan-2016 10:00    -"

    @pytest.mark.unit
    def test_anchor_without_text_sibling(self, page_factory):
        html = page_factory("/x", [("b/", "b/", None)], parent=False)
        entries = entries_from_document(BeautifulSoup(html, "html.parser"))

        assert len(entries) == 1
        assert entries[0].trailing_text is None

    @pytest.mark.unit
    def test_comment_sibling_is_not_trailing_text(self):
        html = '<pre><a href="b/">b/</a><!-- 02-Jan-2016 10:00 --></pre>'
        entries = entries_from_document(BeautifulSoup(html, "html.parser"))

        assert entries[0].trailing_text is None

    @pytest.mark.unit
    def test_anchor_at_end_of_parent(self):
        html = '<table><tr><td><a href="b/">b/</a></td><td>02-Jan-2016 10:00</td></tr></table>'
        entries = entries_from_document(BeautifulSoup(html, "html.parser"))

        assert entries[0].trailing_text is None

    @pytest.mark.unit
    def test_anchor_without_href(self):
        entries = entries_from_document(
            BeautifulSoup('<a name="top">top</a> x', "html.parser")
        )
        assert entries[0].href == ""
        assert not entries[0].is_directory
        assert not entries[0].is_content_file


class TestListingPageParser:
    @pytest.mark.unit
    def test_fetch_normalizes_url(self, fake_transport, page_factory):
        fake_transport.add(URL, page_factory("/listing", []))
        parser = ListingPageParser(fake_transport)

        entries = parser.fetch(URL.rstrip("/"))

        assert fake_transport.requested == [URL]
        assert [e.href for e in entries] == ["../"]
        assert fake_transport.all_released

    @pytest.mark.unit
    def test_fetch_and_extract_passes_normalized_url_and_document(
        self, fake_transport, page_factory
    ):
        fake_transport.add(URL, page_factory("/listing", [("a/", "a/", " 01-Jan-2016 10:00")]))
        parser = ListingPageParser(fake_transport)
        seen = {}

        def extract(url, document):
            seen["url"] = url
            return [a["href"] for a in document.find_all("a")]

        result = parser.fetch_and_extract(URL.rstrip("/"), extract)

        assert seen["url"] == URL
        assert result == ["../", "a/"]
        assert len(fake_transport.requested) == 1

    @pytest.mark.unit
    @pytest.mark.parametrize("status_code", [400, 401, 404, 500, 503])
    def test_error_status_raises(self, fake_transport, status_code):
        fake_transport.add(URL, "nope", status_code=status_code)
        parser = ListingPageParser(fake_transport)

        with pytest.raises(HTTPStatusError) as excinfo:
            parser.fetch(URL)

        assert excinfo.value.status_code == status_code
        assert excinfo.value.url == URL
        assert str(status_code) in str(excinfo.value)
        assert fake_transport.all_released

    @pytest.mark.unit
    def test_non_error_status_is_parsed(self, fake_transport, page_factory):
        fake_transport.add(URL, page_factory("/listing", []), status_code=203)
        assert len(ListingPageParser(fake_transport).fetch(URL)) == 1

    @pytest.mark.unit
    def test_charset_from_header_is_used(self, fake_transport):
        body = '<pre><a href="caf%E9.txt">café.txt</a> 01-Jan-2016 10:00</pre>'.encode(
            "iso-8859-1"
        )
        fake_transport.add(
            URL, body, headers={"Content-Type": "text/html; charset=ISO-8859-1"}
        )

        entries = ListingPageParser(fake_transport).fetch(URL)

        assert entries[0].display_name == "café.txt"

    @pytest.mark.unit
    def test_missing_charset_falls_back_to_detection(self, fake_transport):
        fake_transport.add(
            URL,
            b'<pre><a href="a.txt">a.txt</a> 01-Jan-2016 10:00</pre>',
            headers={"Content-Type": "text/html"},
        )

        entries = ListingPageParser(fake_transport).fetch(URL)

        assert entries[0].display_name == "a.txt"

    @pytest.mark.unit
    def test_transport_error_propagates(self, fake_transport):
        fake_transport.fail(URL, NetworkError("boom", url=URL))

        with pytest.raises(NetworkError):
            ListingPageParser(fake_transport).fetch(URL)

    @pytest.mark.unit
    def test_body_read_failure_is_wrapped(self, fake_transport, response_factory, mocker):
        response = response_factory(b"", 200)
        response.raw.read = mocker.Mock(
            side_effect=requests.exceptions.ConnectionError("reset")
        )
        mocker.patch.object(fake_transport, "get", return_value=response)

        with pytest.raises(NetworkError) as excinfo:
            ListingPageParser(fake_transport).fetch(URL)

        assert "reset" in str(excinfo.value)
        assert response.raw.released

    @pytest.mark.unit
    def test_response_released_when_extract_raises(self, fake_transport, page_factory):
        fake_transport.add(URL, page_factory("/listing", []))

        def extract(_url, _document):
            raise RuntimeError("extract failed")

        with pytest.raises(RuntimeError):
            ListingPageParser(fake_transport).fetch_and_extract(URL, extract)

        assert fake_transport.all_released
