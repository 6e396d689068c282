"""
Engine executor — the central orchestration loop.

Every requested category is an independent job. Jobs run on a bounded
thread pool; each walks its category's fallback chain and pushes one
CategoryResult into a queue. The coordinator is the single consumer of
that queue and the only writer of the collected results.

Flow:
    categories → pool of run_category jobs → queue → coordinator → results
"""

from __future__ import annotations

import logging
import os
import queue
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime

from codeaudit.adapters.base import AnalysisContext, Analyzer
from codeaudit.adapters.registry import ToolRegistry
from codeaudit.core.errors import AnalyzerError
from codeaudit.core.models.finding import HEURISTIC, Finding
from codeaudit.core.models.profile import ProjectProfile
from codeaudit.core.models.report import CategoryResult, ToolAttempt
from codeaudit.core.models.scope import Scope
from codeaudit.core.models.tool import ToolDescriptor

logger = logging.getLogger(__name__)

DEFAULT_TOOL_TIMEOUT = 120.0


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def _effective_timeout(tool_timeout: float | None, deadline: float | None) -> float | None:
    """Per-invocation timeout, capped at what is left of the run deadline."""
    if deadline is None:
        return tool_timeout
    remaining = max(0.0, deadline - time.monotonic())
    if tool_timeout is None:
        return remaining
    return min(tool_timeout, remaining)


def _applies(descriptor: ToolDescriptor, scope: Scope) -> bool:
    if not descriptor.requires_any:
        return True
    return any(
        (base / name).exists()
        for name in descriptor.requires_any
        for base in (scope.target, scope.root)
    )


def _finding_file(record: object) -> str | None:
    if isinstance(record, Finding):
        return record.file
    if isinstance(record, dict):
        file = record.get("file")
        return str(file) if file else None
    return None


def _attempt(
    analyzer: Analyzer,
    context: AnalysisContext,
) -> tuple[list | None, ToolAttempt]:
    """Run one analyzer; failures become an attempt record, never an exception."""
    start = time.monotonic()
    try:
        records = analyzer.run(context)
    except AnalyzerError as e:
        return None, ToolAttempt(
            tool=analyzer.name, status=e.status, detail=e.detail,
            duration_ms=_elapsed_ms(start),
        )
    except Exception as e:
        logger.exception("Analyzer %s raised unexpectedly", analyzer.name)
        return None, ToolAttempt(
            tool=analyzer.name, status="failed",
            detail=f"{type(e).__name__}: {e}", duration_ms=_elapsed_ms(start),
        )
    for record in records:
        if isinstance(record, dict):
            record.setdefault("provenance", (analyzer.name,))
    return list(records), ToolAttempt(
        tool=analyzer.name, status="ok", duration_ms=_elapsed_ms(start),
    )


def run_category(
    category: str,
    registry: ToolRegistry,
    profile: ProjectProfile,
    scope: Scope,
    *,
    tool_timeout: float | None = DEFAULT_TOOL_TIMEOUT,
    deadline: float | None = None,
    overrides: list[str] | None = None,
    disabled: frozenset[str] = frozenset(),
) -> CategoryResult:
    """Walk one category's fallback chain.

    Candidates are tried in registry order; the first one that runs and
    parses successfully wins. When none does, the category heuristic
    runs. The result is degraded whenever the winner is not the first
    candidate tried.

    Args:
        category: Category to analyze.
        registry: Frozen tool registry.
        profile: Detected project profile.
        scope: Scope findings are filtered to.
        tool_timeout: Per-invocation timeout in seconds.
        deadline: Absolute ``time.monotonic()`` deadline for the run.
        overrides: Tool names to try first, in order.
        disabled: Tool names never to try.

    Returns:
        CategoryResult with findings, attempts and notes.
    """
    start = time.monotonic()
    result = CategoryResult(category=category)
    candidates = registry.candidates(category, profile.languages, overrides, disabled)
    logger.debug(
        "Category %s: %d candidate(s) %s",
        category, len(candidates), [c.name for c in candidates],
    )

    for descriptor in candidates:
        if not _applies(descriptor, scope):
            result.attempts.append(ToolAttempt(
                tool=descriptor.name, status="not-applicable",
                detail="none of " + ", ".join(descriptor.requires_any) + " found",
            ))
            continue
        if not registry.probe(descriptor):
            result.attempts.append(ToolAttempt(
                tool=descriptor.name, status="unavailable",
                detail=f"'{descriptor.binary}' not found",
            ))
            continue

        context = AnalysisContext(
            category=category,
            profile=profile,
            scope=scope,
            timeout=_effective_timeout(tool_timeout, deadline),
            deadline=deadline,
        )
        records, attempt = _attempt(registry.adapter_for(descriptor), context)
        result.attempts.append(attempt)
        result.notes.extend(context.notes)

        if records is None:
            logger.info("✗ %s:%s → %s (%s)", category, descriptor.name, attempt.status, attempt.detail)
            continue

        result.findings = [r for r in records if scope.contains(_finding_file(r))]
        result.source = descriptor.name
        logger.info("✓ %s:%s → %d finding(s)", category, descriptor.name, len(result.findings))
        break
    else:
        _run_heuristic(result, registry, profile, scope, deadline)

    if result.source == HEURISTIC or any(not a.ok for a in result.attempts):
        result.status = "degraded"
    result.duration_ms = _elapsed_ms(start)
    return result


def _run_heuristic(
    result: CategoryResult,
    registry: ToolRegistry,
    profile: ProjectProfile,
    scope: Scope,
    deadline: float | None,
) -> None:
    heuristic = registry.heuristic_for(result.category)
    if heuristic is None:
        result.notes.append("no tool succeeded and no heuristic is registered")
        logger.warning("Category %s: no tool succeeded and no heuristic fallback", result.category)
        return

    context = AnalysisContext(
        category=result.category,
        profile=profile,
        scope=scope,
        timeout=_effective_timeout(None, deadline),
        deadline=deadline,
    )
    records, attempt = _attempt(heuristic, context)
    result.attempts.append(attempt)
    result.notes.extend(context.notes)
    if records is None:
        logger.info("✗ %s:%s → %s (%s)", result.category, HEURISTIC, attempt.status, attempt.detail)
        return
    result.findings = [r for r in records if scope.contains(_finding_file(r))]
    result.source = HEURISTIC
    logger.info("✓ %s:%s → %d finding(s)", result.category, HEURISTIC, len(result.findings))


def default_workers(n_categories: int) -> int:
    return max(1, min(n_categories, os.cpu_count() or 1))


def run_audit(
    categories: list[str],
    registry: ToolRegistry,
    profile: ProjectProfile,
    scope: Scope,
    *,
    workers: int | None = None,
    tool_timeout: float | None = DEFAULT_TOOL_TIMEOUT,
    deadline_seconds: float | None = None,
    overrides: dict[str, list[str]] | None = None,
    disabled: frozenset[str] = frozenset(),
) -> dict[str, CategoryResult]:
    """Run every category on a worker pool and collect the results.

    When ``deadline_seconds`` elapses the coordinator stops waiting:
    queued jobs are cancelled, unfinished categories are marked skipped
    and results arriving later are ignored.

    Returns:
        Results keyed by category, in the order categories were requested.
    """
    categories = list(dict.fromkeys(categories))
    if not categories:
        return {}

    overrides = overrides or {}
    deadline = time.monotonic() + deadline_seconds if deadline_seconds is not None else None
    n_workers = workers or default_workers(len(categories))
    results: queue.Queue[CategoryResult] = queue.Queue()
    collected: dict[str, CategoryResult] = {}

    def job(category: str) -> None:
        try:
            result = run_category(
                category, registry, profile, scope,
                tool_timeout=tool_timeout,
                deadline=deadline,
                overrides=overrides.get(category),
                disabled=disabled,
            )
        except Exception as e:
            logger.exception("Category %s crashed", category)
            result = CategoryResult(
                category=category, status="degraded",
                notes=[f"internal error: {type(e).__name__}: {e}"],
            )
        results.put(result)

    logger.info(
        "Running %d categor%s on %d worker(s)%s",
        len(categories), "y" if len(categories) == 1 else "ies", n_workers,
        f", deadline {deadline_seconds}s" if deadline is not None else "",
    )

    pool = ThreadPoolExecutor(max_workers=n_workers, thread_name_prefix="codeaudit")
    try:
        for category in categories:
            pool.submit(job, category)

        while len(collected) < len(categories):
            wait = None if deadline is None else deadline - time.monotonic()
            if wait is not None and wait <= 0:
                break
            try:
                result = results.get(timeout=wait)
            except queue.Empty:
                break
            collected[result.category] = result
    finally:
        # Late results land in the queue and are never read
        pool.shutdown(wait=deadline is None, cancel_futures=True)

    ordered = {}
    for category in categories:
        if category in collected:
            ordered[category] = collected[category]
        else:
            logger.warning("⊘ %s skipped: run deadline reached", category)
            ordered[category] = CategoryResult.skip(
                category, f"not completed within the {deadline_seconds}s deadline",
            )
    return ordered


def generate_run_id() -> str:
    """Generate a unique audit run ID."""
    now = datetime.now(UTC).strftime("%Y%m%d-%H%M%S")
    short = uuid.uuid4().hex[:6]
    return f"audit-{now}-{short}"
