"""Link extraction and reachability checks.

The pipeline only depends on the :class:`LinkChecker` protocol; the
:class:`HttpLinkChecker` below is the default implementation used by the CLI.
"""

from __future__ import annotations

import asyncio
import datetime as dt
import logging
import re
import sys
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Dict, List, Optional, Protocol, Tuple
from urllib.parse import unquote, urljoin, urlsplit
from urllib.request import url2pathname

import requests
from bs4 import BeautifulSoup
from tqdm import tqdm

from . import __version__
from .config import CheckOptions, parse_duration
from .models import LinkStatus, Verdict

logger = logging.getLogger("mdlinkcheck.checker")

USER_AGENT = f"mdlinkcheck/{__version__}"

_FENCED_CODE = re.compile(r"^[ ]{0,3}(`{3,}|~{3,})[^\n]*\n.*?^[ ]{0,3}\1[ \t]*$", re.M | re.S)
_INLINE_CODE = re.compile(r"(`+)[^`\n].*?\1")
_INLINE_LINK = re.compile(
    r"!?\[(?:[^\[\]]|\[[^\[\]]*\])*\]\(\s*<?([^\s()<>]+(?:\([^\s()<>]*\))?[^\s()<>]*)>?"
    r"(?:\s+(?:\"[^\"]*\"|'[^']*'|\([^)]*\)))?\s*\)"
)
_AUTOLINK = re.compile(r"<((?:https?|ftp|file|mailto):[^>\s]+)>", re.I)
_REFERENCE = re.compile(r"^[ ]{0,3}\[(?!\^)[^\]]+\]:\s*<?([^\s>]+)>?", re.M)
_BARE_URL = re.compile(r"(?<![=\"'/\w])https?://[^\s<>()\"'\]\[]+", re.I)
_HTML_TAG = re.compile(r"<[a-zA-Z][^>]*>")
_TRAILING_PUNCTUATION = ".,;:!?*_~"
_DIRECTIVE = re.compile(r"<!--\s*(?:markdown-)?link-check-(disable-next-line|disable-line|disable|enable)\s*-->")
_EMAIL = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class LinkChecker(Protocol):
    """Consumes a whole Markdown document and returns one verdict per link."""

    async def check(self, markdown: str, options: CheckOptions) -> List[Verdict]:
        ...


def strip_disabled_sections(markdown: str) -> str:
    """Drop lines excluded with ``<!-- link-check-disable -->`` style comments."""
    kept: List[str] = []
    disabled = False
    skip_next = False
    for line in markdown.splitlines():
        directives = _DIRECTIVE.findall(line)
        skipped, skip_next = skip_next, False
        for directive in directives:
            if directive == "disable":
                disabled = True
            elif directive == "enable":
                disabled = False
            elif directive == "disable-next-line":
                skip_next = True
        if skipped or disabled or "disable-line" in directives:
            continue
        kept.append(_DIRECTIVE.sub("", line))
    return "\n".join(kept)


def _blank(chars: List[str], start: int, end: int) -> None:
    for index in range(start, end):
        if chars[index] != "\n":
            chars[index] = " "


def _clean(link: str) -> str:
    link = link.strip()
    if link.startswith("<") and link.endswith(">"):
        link = link[1:-1]
    return link


def extract_links(markdown: str) -> List[str]:
    """Return the unique links of a document in order of first appearance."""
    chars = list(markdown)
    for pattern in (_FENCED_CODE, _INLINE_CODE):
        for match in pattern.finditer("".join(chars)):
            _blank(chars, match.start(), match.end())
    text = "".join(chars)

    found: List[Tuple[int, str]] = []
    for pattern in (_INLINE_LINK, _AUTOLINK, _REFERENCE):
        for match in pattern.finditer(text):
            found.append((match.start(1), _clean(match.group(1))))
            _blank(chars, match.start(), match.end())
    masked = "".join(chars)

    for match in _BARE_URL.finditer(masked):
        found.append((match.start(), match.group(0).rstrip(_TRAILING_PUNCTUATION)))

    if _HTML_TAG.search(masked):
        soup = BeautifulSoup(masked, "html.parser")
        for tag in soup.find_all(True):
            for attribute in ("href", "src"):
                value = tag.get(attribute)
                if not value:
                    continue
                position = masked.find(value)
                found.append((position if position >= 0 else len(masked), _clean(value)))

    links: List[str] = []
    seen = set()
    for _, link in sorted(found, key=lambda item: item[0]):
        if link and link not in seen:
            seen.add(link)
            links.append(link)
    return links


def apply_replacements(link: str, options: CheckOptions) -> str:
    for entry in options.replacement_patterns:
        pattern = entry.get("pattern")
        if not pattern:
            continue
        replacement = str(entry.get("replacement", "")).replace(
            "{{BASEURL}}", options.project_base_url
        )
        link = re.sub(pattern, lambda _match: replacement, link)
    return link


def is_ignored(link: str, options: CheckOptions) -> bool:
    return any(
        entry.get("pattern") and re.search(entry["pattern"], link)
        for entry in options.ignore_patterns
    )


def resolve_link(link: str, base_url: str) -> str:
    """Make ``link`` absolute against ``base_url`` when it is relative."""
    if urlsplit(link).scheme or not base_url:
        return link
    if not base_url.endswith("/"):
        base_url += "/"
    return urljoin(base_url, link)


def headers_for(url: str, options: CheckOptions) -> Dict[str, str]:
    headers = {"User-Agent": USER_AGENT}
    for entry in options.http_headers:
        prefixes = entry.get("urls") or []
        if any(url.startswith(prefix) for prefix in prefixes):
            headers.update({str(k): str(v) for k, v in (entry.get("headers") or {}).items()})
    return headers


def retry_delay(retry_after: Optional[str], fallback: float) -> float:
    """Seconds to wait before retrying a 429 response."""
    if not retry_after:
        return fallback
    try:
        return max(parse_duration(retry_after), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(retry_after)
    except (TypeError, ValueError):
        return fallback
    if when.tzinfo is None:
        when = when.replace(tzinfo=dt.timezone.utc)
    return max((when - dt.datetime.now(dt.timezone.utc)).total_seconds(), 0.0)


class HttpLinkChecker:
    """Default checker: regex/BeautifulSoup extraction and ``requests`` probes."""

    def __init__(self, session: Optional[requests.Session] = None) -> None:
        self.session = session or requests.Session()

    async def check(self, markdown: str, options: CheckOptions) -> List[Verdict]:
        if not options.ignore_disable:
            markdown = strip_disabled_sections(markdown)
        links = extract_links(markdown)
        logger.debug("Found %d links", len(links))

        verdicts: List[Verdict] = []
        progress = tqdm(
            links,
            disable=not options.show_progress_bar,
            file=sys.stderr,
            unit="link",
            leave=False,
        )
        for link in progress:
            verdicts.append(await self.check_link(link, options))
        return verdicts

    async def check_link(self, link: str, options: CheckOptions) -> Verdict:
        if is_ignored(link, options):
            return Verdict(link, LinkStatus.IGNORED)

        target = apply_replacements(link, options)
        if target.startswith("#"):
            return Verdict(link, LinkStatus.IGNORED)
        target = resolve_link(target, options.base_url)

        scheme = urlsplit(target).scheme.lower()
        if scheme in ("http", "https"):
            return await self._check_http(link, target, options)
        if scheme == "file":
            return self._check_file(link, target)
        if scheme == "mailto":
            return self._check_mailto(link, target)
        return Verdict(
            link,
            LinkStatus.ERROR,
            err=f"Unsupported link scheme: {scheme or '(relative link without base URL)'}",
        )

    def _check_file(self, link: str, target: str) -> Verdict:
        path = Path(url2pathname(urlsplit(target).path))
        if path.exists():
            return Verdict(link, LinkStatus.ALIVE, status_code=200)
        return Verdict(link, LinkStatus.DEAD, status_code=400, err=f"No such file: {path}")

    def _check_mailto(self, link: str, target: str) -> Verdict:
        address = unquote(target[len("mailto:"):].split("?", 1)[0])
        if _EMAIL.match(address):
            return Verdict(link, LinkStatus.ALIVE, status_code=200)
        return Verdict(link, LinkStatus.DEAD, status_code=400, err=f"Invalid e-mail address: {address}")

    def _probe(self, url: str, headers: Dict[str, str], options: CheckOptions) -> Tuple[int, Optional[str]]:
        response = self.session.head(
            url, headers=headers, timeout=options.timeout, allow_redirects=True
        )
        if response.status_code not in options.alive_status_codes:
            # some servers reject HEAD outright
            response = self.session.get(
                url, headers=headers, timeout=options.timeout, allow_redirects=True, stream=True
            )
            response.close()
        return response.status_code, response.headers.get("Retry-After")

    async def _check_http(self, link: str, target: str, options: CheckOptions) -> Verdict:
        headers = headers_for(target, options)
        attempt = 0
        while True:
            try:
                status_code, retry_after = await asyncio.to_thread(
                    self._probe, target, headers, options
                )
            except requests.RequestException as exc:
                logger.debug("Request to %s failed: %s", target, exc)
                return Verdict(
                    link,
                    LinkStatus.DEAD,
                    status_code=0,
                    err=f"{exc.__class__.__name__}: {exc}",
                )
            if status_code == 429 and options.retry_on_429 and attempt < options.retry_count:
                attempt += 1
                delay = retry_delay(retry_after, options.fallback_retry_delay)
                logger.info(
                    "Rate limited by %s; retrying in %.1fs (%d/%d)",
                    target,
                    delay,
                    attempt,
                    options.retry_count,
                )
                await asyncio.sleep(delay)
                continue
            break

        if status_code in options.alive_status_codes:
            return Verdict(link, LinkStatus.ALIVE, status_code=status_code)
        return Verdict(link, LinkStatus.DEAD, status_code=status_code)
