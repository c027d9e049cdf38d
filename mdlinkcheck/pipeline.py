"""High-level orchestration: read inputs, check links, report and journal."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional

from .checker import LinkChecker
from .config import apply_config, describe
from .inputs import read_source
from .journal import BrokenLinkJournal
from .models import FatalError, SourceInput, Verdict
from .report import ResultReporter

logger = logging.getLogger("mdlinkcheck.pipeline")


@dataclass
class InputOutcome:
    """What happened to a single input."""

    label: Optional[str]
    verdicts: List[Verdict]
    dead: List[Verdict]
    failed: bool
    elapsed_seconds: float


async def process_input(
    item: SourceInput,
    checker: LinkChecker,
    reporter: ResultReporter,
    journal: BrokenLinkJournal,
    config: Optional[Mapping[str, Any]] = None,
) -> InputOutcome:
    """Buffer, check and report one input, recording dead links in the journal.

    Stream read errors raise :class:`FatalError`. Any other error raised by the
    checker is logged and returned as a failed outcome.
    """
    start = time.perf_counter()
    label = item.label or "<stdin>"
    reporter.start(item.label)

    markdown = await read_source(item.source)
    options = apply_config(item.options, config)
    logger.debug("Checking %s (%s)", label, ", ".join(describe(options)))

    try:
        verdicts = await checker.check(markdown, options)
    except FatalError:
        raise
    except Exception:  # pylint: disable=broad-except
        logger.exception("Error checking links in %s", label)
        return InputOutcome(item.label, [], [], True, time.perf_counter() - start)

    dead = reporter.report(verdicts)
    for verdict in dead:
        journal.record(verdict.link, item.label)
    return InputOutcome(item.label, list(verdicts), dead, False, time.perf_counter() - start)


async def run_pipeline(
    inputs: Iterable[SourceInput],
    checker: LinkChecker,
    journal: BrokenLinkJournal,
    journal_path: Path,
    reporter: ResultReporter,
    config: Optional[Mapping[str, Any]] = None,
) -> bool:
    """Process inputs strictly one after another.

    The journal is saved after every input. Returns ``False`` if any input
    failed; dead links alone do not count as a failure.
    """
    success = True
    outcomes: List[InputOutcome] = []
    for item in inputs:
        outcome = await process_input(item, checker, reporter, journal, config)
        outcomes.append(outcome)
        if outcome.failed:
            success = False
        journal.save(journal_path)

    logger.debug(
        "Processed %d inputs (%d failed, %d dead links)",
        len(outcomes),
        sum(1 for outcome in outcomes if outcome.failed),
        sum(len(outcome.dead) for outcome in outcomes),
    )
    return success
