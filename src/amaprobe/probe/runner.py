# SPDX-FileCopyrightText: 2025 Theori Inc.
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Bounded worker pool that probes every target and returns results in target order."""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor, as_completed

from ..cancel import CancelToken
from ..errors import ErrorCategory, categorize_exception, error_category_to_reason
from ..models.endpoints import ProbeTarget
from ..models.probe import ProbeOutcome, ProbeResult, ProbeStage
from .engine import ProbeEngine

logger = logging.getLogger(__name__)

ResultCallback = Callable[[ProbeResult], None]


def _crashed(target: ProbeTarget, exc: BaseException) -> ProbeResult:
    category = categorize_exception(exc)
    return ProbeResult(
        target=target,
        stage=ProbeStage.DNS,
        outcome=ProbeOutcome.FAIL,
        detail=f"{error_category_to_reason(category)}: {exc}",
        category=category,
    )


def run_probes(
    engine: ProbeEngine,
    targets: Sequence[ProbeTarget],
    *,
    cancel: CancelToken | None = None,
    max_workers: int | None = None,
    on_result: ResultCallback | None = None,
) -> list[ProbeResult]:
    """
    Probe all targets concurrently.

    Every target yields exactly one result. Targets still queued when the run is
    cancelled report Fail/Cancelled at the DNS stage without touching the network.
    """
    cancel = cancel or CancelToken()
    if not targets:
        return []

    workers = min(max_workers or engine.settings.worker_count(), len(targets))
    results: dict[int, ProbeResult] = {}

    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="amaprobe-probe") as executor:
        futures: dict[Future[ProbeResult], int] = {
            executor.submit(engine.probe, target, cancel): index for index, target in enumerate(targets)
        }
        for future in as_completed(futures):
            index = futures[future]
            try:
                result = future.result()
            except Exception as exc:
                logger.exception("Probe worker failed for %s", targets[index].host)
                result = _crashed(targets[index], exc)
            results[index] = result
            if on_result is not None:
                on_result(result)

    if cancel.is_set():
        skipped = sum(1 for result in results.values() if result.category == ErrorCategory.CANCELLED)
        if skipped:
            logger.warning("Run cancelled; %d target(s) not fully probed", skipped)

    return [results[index] for index in range(len(targets))]


__all__ = ["ResultCallback", "run_probes"]
