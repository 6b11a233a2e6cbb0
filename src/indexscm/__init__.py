"""Treat HTTP directory listings (Apache autoindex pages) as a revision history."""

from indexscm.downloader import ArtifactDownloader
from indexscm.revisions import Revision, RevisionDiscovery
from indexscm.transport import HttpTransport, Transport

__all__ = [
    "ArtifactDownloader",
    "HttpTransport",
    "Revision",
    "RevisionDiscovery",
    "Transport",
]
