"""Console reporting of per-link verdicts."""

from __future__ import annotations

import sys
from typing import List, Optional, Sequence, TextIO

from colorama import Fore, Style

from .models import LinkStatus, Verdict

SYMBOLS = {
    LinkStatus.ALIVE: "✓",
    LinkStatus.DEAD: "✖",
    LinkStatus.IGNORED: "/",
    LinkStatus.ERROR: "⚠",
}
COLORS = {
    LinkStatus.ALIVE: Fore.GREEN,
    LinkStatus.DEAD: Fore.RED,
    LinkStatus.IGNORED: Style.DIM,
    LinkStatus.ERROR: Fore.YELLOW,
}


class ResultReporter:
    """Print verdicts for one input at a time.

    ``quiet`` hides everything except dead links; ``verbose`` adds the HTTP
    status code and error detail to every line.
    """

    def __init__(
        self,
        stream: Optional[TextIO] = None,
        quiet: bool = False,
        verbose: bool = False,
        color: bool = False,
    ) -> None:
        self.stream = stream if stream is not None else sys.stdout
        self.quiet = quiet
        self.verbose = verbose
        self.color = color

    def _paint(self, text: str, color: str) -> str:
        if not self.color:
            return text
        return f"{color}{text}{Style.RESET_ALL}"

    def _write(self, line: str = "") -> None:
        self.stream.write(line + "\n")

    def symbol(self, status: LinkStatus) -> str:
        return self._paint(SYMBOLS[status], COLORS[status])

    def start(self, label: Optional[str]) -> None:
        if label:
            self._write()
            self._write(self._paint(f"FILE: {label}", Fore.GREEN))

    def format_verdict(self, verdict: Verdict) -> str:
        line = f"  [{self.symbol(verdict.status)}] {verdict.link}"
        if self.verbose:
            line += f" → Status: {verdict.status_code if verdict.status_code is not None else '-'}"
            if verdict.err:
                line += f" {self._paint(str(verdict.err), Fore.YELLOW)}"
        return line

    def report(self, verdicts: Sequence[Verdict]) -> List[Verdict]:
        """Print all verdicts and return the dead ones."""
        if not verdicts and not self.quiet:
            self._write(self._paint("  No hyperlinks found!", Fore.YELLOW))

        for verdict in verdicts:
            if self.quiet and not verdict.is_dead:
                continue
            self._write(self.format_verdict(verdict))

        self._write()
        self._write(f"  {len(verdicts)} links checked.")

        dead = [verdict for verdict in verdicts if verdict.is_dead]
        if dead:
            self._write()
            self._write(self._paint(f"  ERROR: {len(dead)} dead links found!", Fore.RED))
            for verdict in dead:
                self._write(
                    f"  [{self.symbol(verdict.status)}] {verdict.link} → Status: {verdict.status_code}"
                )
        return dead
