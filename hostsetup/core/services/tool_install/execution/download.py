"""
L4 Execution — HTTP fetches and checksum verification.

Every network call the installer makes lives here: streaming a file to
disk and fetching a JSON document. Both take a finite timeout and fail
with ``NetworkError`` / ``NotFound`` / ``MalformedResponse`` rather than
hanging or returning partial data.
"""

from __future__ import annotations

import hashlib
import json
import logging
import urllib.error
import urllib.request
from pathlib import Path
from typing import Any

from hostsetup.core.context import DEFAULT_TIMEOUT
from hostsetup.core.errors import MalformedResponse, NetworkError, NotFound, ParseError
from hostsetup.core.services.tool_install.data.constants import USER_AGENT

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def _fmt_size(n: int | float) -> str:
    """Format byte count to human-readable string."""
    for unit in ("B", "KB", "MB", "GB"):
        if n < 1024:
            return f"{n:.1f} {unit}"
        n /= 1024
    return f"{n:.1f} TB"


def _open(url: str, headers: dict[str, str], timeout: float):
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT, **headers})
    try:
        return urllib.request.urlopen(req, timeout=timeout)
    except urllib.error.HTTPError as e:
        if e.code == 404:
            raise NotFound(f"{url} returned 404") from e
        raise NetworkError(f"{url} returned HTTP {e.code}") from e
    except (urllib.error.URLError, TimeoutError, OSError) as e:
        raise NetworkError(f"Cannot reach {url}: {e}") from e


def download_file(
    url: str,
    dest: Path,
    *,
    timeout: float = DEFAULT_TIMEOUT,
) -> int:
    """Stream ``url`` into ``dest`` and return the number of bytes written.

    ``dest`` is expected to be a scratch path: on failure it may hold a
    partial file and the caller is responsible for discarding it.

    Raises:
        NetworkError: transport failure, timeout, or non-2xx status.
        NotFound: HTTP 404.
    """
    logger.info("Downloading %s", url)
    try:
        with _open(url, {}, timeout) as resp, open(dest, "wb") as f:
            total = int(resp.headers.get("Content-Length") or 0)
            written = 0
            last_pct = -25
            while True:
                chunk = resp.read(_CHUNK)
                if not chunk:
                    break
                f.write(chunk)
                written += len(chunk)
                if total > 0:
                    pct = written * 100 // total
                    if pct >= last_pct + 25:
                        last_pct = pct
                        logger.debug("Download progress: %d%% (%s / %s)",
                                     pct, _fmt_size(written), _fmt_size(total))
    except (TimeoutError, OSError) as e:
        # read() timeouts and resets surface here, after urlopen succeeded
        raise NetworkError(f"Download of {url} failed: {e}") from e

    if total and written != total:
        raise NetworkError(
            f"Download of {url} truncated: {_fmt_size(written)} of {_fmt_size(total)}"
        )
    logger.info("Downloaded %s", _fmt_size(written))
    return written


def fetch_json(
    url: str,
    *,
    timeout: float = DEFAULT_TIMEOUT,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET ``url`` and decode its JSON body.

    Raises:
        NetworkError: transport failure or timeout.
        NotFound: HTTP 404.
        MalformedResponse: the body is not valid JSON.
    """
    try:
        with _open(url, headers or {}, timeout) as resp:
            body = resp.read()
    except (TimeoutError, OSError) as e:
        raise NetworkError(f"Reading {url} failed: {e}") from e

    try:
        return json.loads(body)
    except (ValueError, UnicodeDecodeError) as e:
        raise MalformedResponse(f"{url} did not return JSON: {e}") from e


def verify_checksum(path: Path, expected: str) -> bool:
    """Verify file checksum.  Format: ``algo:hex``.

    Supports any algorithm ``hashlib.new`` knows (sha256, sha1, md5).
    """
    algo, _, expected_hash = expected.partition(":")
    try:
        h = hashlib.new(algo)
    except ValueError as e:
        raise ParseError(f"Unsupported checksum {expected!r}: {e}") from e
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest() == expected_hash.lower()
