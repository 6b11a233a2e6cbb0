"""
Artifact downloads from listing directories.

Files are streamed to a temporary file next to the destination and moved into
place once complete, so an interrupted transfer never leaves a truncated
artifact under its final name.
"""

import os
import time
from pathlib import Path
from typing import List, Optional, Union
from urllib.parse import quote

import requests

from indexscm.constants import DEFAULT_CHUNK_SIZE, TEMP_FILE_SUFFIX
from indexscm.exceptions import FileSystemError, NetworkError, UnsafePathError
from indexscm.listing import ensure_trailing_separator
from indexscm.log_utils import logger
from indexscm.revisions import PatternLike, RevisionDiscovery, compile_pattern
from indexscm.transport import Transport, raise_for_status


def escape_name(name: str) -> str:
    """
    Percent-encode a filename (UTF-8) so it can be appended to a directory URL.

    Falls back to the unencoded name when it cannot be encoded as UTF-8.
    """
    try:
        return quote(name, safe="", encoding="utf-8", errors="strict")
    except UnicodeEncodeError as e:
        logger.warning(f"Could not URL-encode '{name}', using it as is: {e}")
        return name


def _safe_destination(target_dir: Path, filename: str) -> Path:
    if (
        not filename
        or filename in {".", ".."}
        or "/" in filename
        or "\\" in filename
        or "\x00" in filename
    ):
        raise UnsafePathError(
            f"Refusing to write unsafe filename '{filename}'", path=str(target_dir)
        )
    return target_dir / filename


class ArtifactDownloader:
    """Downloads the content files of a listing directory to local storage."""

    def __init__(
        self,
        transport: Transport,
        discovery: Optional[RevisionDiscovery] = None,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
    ):
        self.transport = transport
        self.discovery = discovery or RevisionDiscovery(transport)
        self.chunk_size = chunk_size

    def download(
        self,
        url: str,
        target_dir: Union[str, Path],
        pattern: PatternLike = None,
    ) -> List[Path]:
        """
        Download the content files listed at `url` into `target_dir`.

        `target_dir` and its parents are created when missing. Hash companions are
        never downloaded; with a pattern only files whose whole name matches are.
        Existing files of the same name are overwritten.

        Returns:
            List[Path]: The written files, in listing order.

        Raises:
            HTTPStatusError, NetworkError: On the first failing request. Files already
                written are kept.
            UnsafePathError: If a listed name would escape `target_dir`.
            FileSystemError: If `target_dir` or a file cannot be written.
            PatternError: If `pattern` is not a valid regular expression.
        """
        target_dir = Path(target_dir)
        if not target_dir.exists():
            logger.info(f"creating target dir: {target_dir}")
        try:
            target_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise FileSystemError(
                f"Could not create target dir {target_dir}",
                path=str(target_dir),
                details=str(e),
            ) from e

        url = ensure_trailing_separator(url)
        regex = compile_pattern(pattern)

        written: List[Path] = []
        for child in self.discovery.children(url, directory=False):
            filename = child.name
            if regex is not None and not regex.fullmatch(filename):
                continue

            destination = _safe_destination(target_dir, filename)
            self._download_file(url + escape_name(filename), destination)
            written.append(destination)

        logger.info(f"Downloaded {len(written)} file(s) from {url} to {target_dir}")
        return written

    def checkout(
        self,
        url: str,
        revision_name: str,
        target_dir: Union[str, Path],
        pattern: PatternLike = None,
    ) -> List[Path]:
        """Materialize the files of revision `revision_name` under `url` into `target_dir`."""
        revision_url = ensure_trailing_separator(url) + revision_name
        logger.info(f"Checking out revision {revision_name} into {target_dir}")
        return self.download(revision_url, target_dir, pattern)

    def _download_file(self, file_url: str, destination: Path) -> None:
        logger.info(f"downloading {file_url}")
        temp_path = destination.with_name(
            f"{destination.name}{TEMP_FILE_SUFFIX}.{os.getpid()}"
        )
        start_time = time.time()
        downloaded_bytes = 0
        try:
            with self.transport.get(file_url) as response:
                raise_for_status(response, file_url)
                with open(temp_path, "wb") as file:
                    for chunk in response.iter_content(chunk_size=self.chunk_size):
                        if chunk:
                            file.write(chunk)
                            downloaded_bytes += len(chunk)
            os.replace(temp_path, destination)
        except requests.RequestException as e:
            raise NetworkError(
                f"Failed reading {file_url}", url=file_url, details=str(e)
            ) from e
        except OSError as e:
            raise FileSystemError(
                f"Could not write {destination}", path=str(destination), details=str(e)
            ) from e
        finally:
            if temp_path.exists():
                try:
                    temp_path.unlink()
                except OSError as e_rm:
                    logger.error(f"Error removing temp file {temp_path}: {e_rm}")

        elapsed = time.time() - start_time
        logger.debug(
            f"Downloaded {destination.name} ({downloaded_bytes} bytes) in {elapsed:.2f}s"
        )
