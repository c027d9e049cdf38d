"""Turn command-line arguments (or stdin) into checkable inputs."""

from __future__ import annotations

import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Mapping, Optional, Protocol, Sequence
from urllib.parse import urlsplit, urlunsplit

import requests

from .config import CheckOptions, apply_config
from .models import FatalError, SourceInput

logger = logging.getLogger("mdlinkcheck.inputs")

CHUNK_SIZE = 64 * 1024
URL_SCHEMES = ("http", "https")


class ByteSource(Protocol):
    """Anything that can be drained into a sequence of byte chunks."""

    description: str

    def iter_chunks(self) -> Iterator[bytes]:
        ...


class FileSource:
    """Local file opened lazily, so read errors surface while buffering."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self.description = str(path)

    def iter_chunks(self) -> Iterator[bytes]:
        with self.path.open("rb") as handle:
            while True:
                chunk = handle.read(CHUNK_SIZE)
                if not chunk:
                    break
                yield chunk


class ResponseSource:
    """Body of an already-opened streaming HTTP response."""

    def __init__(self, response: requests.Response) -> None:
        self.response = response
        self.description = response.url

    def iter_chunks(self) -> Iterator[bytes]:
        try:
            yield from self.response.iter_content(chunk_size=CHUNK_SIZE)
        finally:
            self.response.close()


class StreamSource:
    """An already-open binary stream such as ``sys.stdin.buffer``."""

    def __init__(self, stream: BinaryIO, description: str = "<stdin>") -> None:
        self.stream = stream
        self.description = description

    def iter_chunks(self) -> Iterator[bytes]:
        while True:
            chunk = self.stream.read(CHUNK_SIZE)
            if not chunk:
                break
            yield chunk


def is_url(argument: str) -> bool:
    try:
        return urlsplit(argument).scheme.lower() in URL_SCHEMES
    except ValueError:
        return False


def derive_base_url(url: str) -> str:
    """Strip query and fragment and keep the directory part of the path.

    ``https://host/docs/readme.md?x=1#top`` becomes ``https://host/docs/``.
    Returns an empty string when the URL cannot be parsed.
    """
    try:
        parts = urlsplit(url)
        if not parts.scheme or not parts.netloc:
            return ""
        path = parts.path[: parts.path.rfind("/") + 1] or "/"
        return urlunsplit((parts.scheme, parts.netloc, path, "", ""))
    except ValueError:
        logger.debug("Unable to derive a base URL from %s", url)
        return ""


def open_url(url: str, session: requests.Session, timeout: float) -> ResponseSource:
    """Start a streaming GET; unreachable hosts and 404s are fatal."""
    try:
        response = session.get(url, stream=True, timeout=timeout)
    except requests.RequestException as exc:
        raise FatalError(f"Error: cannot reach the given url {url}: {exc}") from exc
    if response.status_code == 404:
        response.close()
        raise FatalError(f"Error: 404 - File not found: {url}")
    logger.debug("Opened %s (HTTP %s)", url, response.status_code)
    return ResponseSource(response)


def resolve_argument(
    argument: str,
    options: CheckOptions,
    session: requests.Session,
    timeout: Optional[float] = None,
) -> SourceInput:
    if is_url(argument):
        source = open_url(argument, session, options.timeout if timeout is None else timeout)
        return SourceInput(
            label=argument,
            source=source,
            options=replace(options, base_url=derive_base_url(argument)),
        )

    path = Path(argument)
    if path.is_dir():
        raise FatalError(f"{argument} is a directory! Please provide a valid filename as an argument.")
    base_url = path.resolve().parent.as_uri()
    return SourceInput(
        label=argument,
        source=FileSource(path),
        options=replace(options, base_url=base_url),
    )


def resolve_inputs(
    arguments: Sequence[str],
    options: CheckOptions,
    stdin: Optional[BinaryIO] = None,
    session: Optional[requests.Session] = None,
    config: Optional[Mapping[str, Any]] = None,
) -> Iterator[SourceInput]:
    """Yield one input per argument in order, or a single stdin input.

    Inputs are produced lazily so each one is acquired right before it is
    processed. ``project_base_url`` is fixed to the working directory. URL
    documents are fetched with the config file's ``timeout`` when one is set.
    """
    options = replace(options, project_base_url=Path.cwd().resolve().as_uri())
    if not arguments:
        stream = stdin if stdin is not None else sys.stdin.buffer
        yield SourceInput(label=None, source=StreamSource(stream), options=options)
        return

    session = session or requests.Session()
    timeout = apply_config(options, config).timeout
    for argument in arguments:
        yield resolve_argument(argument, options, session, timeout)


def _drain(source: ByteSource) -> bytes:
    return b"".join(source.iter_chunks())


async def read_source(source: ByteSource) -> str:
    """Buffer a whole source into text; read failures are fatal."""
    try:
        data = await asyncio.to_thread(_drain, source)
    except FileNotFoundError as exc:
        raise FatalError(
            f"File not found! Please provide a valid filename as an argument: {source.description}"
        ) from exc
    except (OSError, requests.RequestException) as exc:
        raise FatalError(f"Error reading {source.description}: {exc}") from exc
    return data.decode("utf-8", errors="replace")
