import io
from pathlib import Path

import platformdirs
import pytest
import requests
from requests.structures import CaseInsensitiveDict

from indexscm.transport import Transport

_NETWORK_BLOCK_MSG = (
    "Network access is blocked during tests. Use the fake_transport fixture or mock Session.request."
)

APP_URL = "http://repo.example.com/arti/repo/app-name/"


def _block_network(*_args, **_kwargs):
    """
    Prevent network calls in tests by raising a RuntimeError.

    Raises:
        RuntimeError: with `_NETWORK_BLOCK_MSG` indicating that network access is blocked during tests.
    """
    raise RuntimeError(_NETWORK_BLOCK_MSG)


def pytest_configure(config):
    """Register the markers used across the suite."""
    config.addinivalue_line("markers", "unit: fast tests without I/O beyond tmp_path")
    config.addinivalue_line(
        "markers", "integration: tests crawling a complete fake listing site"
    )


def pytest_runtest_setup():
    """
    Prevent real network requests during tests by replacing HTTP entry points with blocking callables.
    """
    requests.get = _block_network
    requests.head = _block_network
    requests.Session.request = _block_network


@pytest.fixture(autouse=True)
def _isolate_test_environment(tmp_path_factory, monkeypatch):
    """
    Point the platformdirs config location and INDEXSCM_* variables at a temp directory.
    """
    base = tmp_path_factory.mktemp("indexscm")
    config_dir = base / "config"
    config_dir.mkdir(parents=True, exist_ok=True)

    monkeypatch.delenv("INDEXSCM_CONFIG", raising=False)
    monkeypatch.delenv("INDEXSCM_LOG_LEVEL", raising=False)
    monkeypatch.setattr(
        platformdirs, "user_config_dir", lambda *_args, **_kwargs: str(config_dir)
    )


class TrackingBody(io.BytesIO):
    """Response body that records whether the connection was released."""

    released = False

    def release_conn(self):
        self.released = True


def make_response(body=b"", status_code=200, headers=None, url=None):
    """
    Build a real requests.Response serving `body` from memory.

    Parameters:
        body (bytes | str): Response body; str is encoded as UTF-8.
        status_code (int): HTTP status code.
        headers (dict | None): Response headers.
        url (str | None): Value for `response.url`.
    """
    if isinstance(body, str):
        body = body.encode("utf-8")
    response = requests.Response()
    response.status_code = status_code
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = TrackingBody(body)
    response.url = url
    return response


class FakeTransport(Transport):
    """
    In-memory Transport serving canned pages by exact URL.

    Unknown URLs answer 404. A page registered as an exception instance is raised
    from get() instead of answering.
    """

    def __init__(self):
        self.pages = {}
        self.requested = []
        self.responses = []
        self.closed = False

    def add(self, url, body="", status_code=200, headers=None):
        self.pages[url] = (body, status_code, headers)

    def fail(self, url, error):
        self.pages[url] = error

    def get(self, url):
        self.requested.append(url)
        page = self.pages.get(url, ("Not Found", 404, None))
        if isinstance(page, Exception):
            raise page
        body, status_code, headers = page
        response = make_response(body, status_code, headers, url)
        self.responses.append(response)
        return response

    def close(self):
        self.closed = True

    @property
    def all_released(self):
        return all(response.raw.released for response in self.responses)


def listing_page(title, rows, parent=True):
    """
    Render an Apache-style autoindex page.

    Parameters:
        title (str): Path shown in the heading.
        rows (list): (href, text, trailing) tuples; trailing None omits the text node.
        parent (bool): Whether to include the "../" link.
    """
    lines = [
        "<!DOCTYPE HTML PUBLIC \"-//W3C//DTD HTML 3.2 Final//EN\">",
        "<html>",
        f"<head><title>Index of {title}</title></head>",
        "<body>",
        f"<h1>Index of {title}</h1>",
        "<pre>",
    ]
    if parent:
        lines.append('<a href="../">../</a>')
    for href, text, trailing in rows:
        if trailing is None:
            lines.append(f'<a href="{href}">{text}</a><br>')
        else:
            lines.append(f'<a href="{href}">{text}</a>{trailing}')
    lines.extend(["</pre>", "<hr></body>", "</html>"])
    return "\n".join(lines)


@pytest.fixture
def fake_transport():
    """Provides an empty FakeTransport."""
    return FakeTransport()


@pytest.fixture
def response_factory():
    """Provides make_response() for tests that need standalone responses."""
    return make_response


@pytest.fixture
def page_factory():
    """Provides listing_page() for tests that render their own listings."""
    return listing_page


@pytest.fixture
def listing_site(fake_transport):
    """
    A fake repository with three revisions in ascending date order.

    0.5.1 (01-Jan-2016 10:00), 0.9.5 (02-Jan-2016 11:45) and 1.2.3 (03-Jan-2016 14:15);
    every revision directory holds one text file plus its md5 and sha1 companions.
    """
    revisions = [
        ("0.5.1", "01-Jan-2016 10:00"),
        ("0.9.5", "02-Jan-2016 11:45"),
        ("1.2.3", "03-Jan-2016 14:15"),
    ]
    fake_transport.add(
        APP_URL,
        listing_page(
            "/arti/repo/app-name",
            [
                (f"{name}/", f"{name}/", f"                    {date}    -")
                for name, date in revisions
            ],
        ),
        headers={"Content-Type": "text/html;charset=UTF-8"},
    )
    for name, date in revisions:
        encoded = f"foo%23%23{name}.txt"
        fake_transport.add(
            f"{APP_URL}{name}/",
            listing_page(
                f"/arti/repo/app-name/{name}",
                [
                    (encoded, f"foo##{name}.txt", f"            {date}    6"),
                    (f"{encoded}.md5", f"foo##{name}.txt.md5", f"        {date}    32"),
                    (f"{encoded}.sha1", f"foo##{name}.txt.sha1", f"       {date}    40"),
                ],
            ),
            headers={"Content-Type": "text/html; charset=UTF-8"},
        )
        fake_transport.add(f"{APP_URL}{name}/{encoded}", f"foobar\n{name}\n")
    return fake_transport


@pytest.fixture
def app_url():
    """The listing URL served by listing_site."""
    return APP_URL


@pytest.fixture
def target_dir(tmp_path) -> Path:
    """A not-yet-existing download directory."""
    return tmp_path / "checkout" / "nested"
