from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Protocol, Sequence

from . import report
from .context import InstallOptions, InstallResult, InstallStatus, SetupCtx
from .errors import InstallFailure

logger = logging.getLogger(__name__)


class Component(Protocol):
    """A single idempotent installer."""

    step_id: str
    label: str
    priority: int

    def is_installed(self, ctx: SetupCtx, opts: InstallOptions) -> bool:
        ...

    def run(self, ctx: SetupCtx, opts: InstallOptions) -> InstallResult:
        ...


@dataclass(frozen=True)
class PipelineResult:
    results: List[InstallResult]

    @property
    def ran(self) -> List[str]:
        return [r.component for r in self.results]

    @property
    def failed(self) -> List[str]:
        return [r.component for r in self.results if r.failed]


def order_selection(components: Sequence[Component], selection: Iterable[str]) -> List[Component]:
    """Selected components in fixed priority order, whatever order they were picked in."""

    wanted = set(selection)
    known = {c.step_id for c in components}
    unknown = wanted - known
    if unknown:
        raise ValueError(f"Unknown components: {', '.join(sorted(unknown))}")
    return sorted((c for c in components if c.step_id in wanted), key=lambda c: c.priority)


def run_components(
    ctx: SetupCtx,
    opts: InstallOptions,
    components: Sequence[Component],
    selection: Iterable[str],
) -> PipelineResult:
    """Run the selected components in order; a failure never stops its siblings."""

    results: List[InstallResult] = []
    for comp in order_selection(components, selection):
        logger.info("Running component %s", comp.step_id)
        report.step(f"{comp.label}...")
        try:
            result = comp.run(ctx, opts)
        except (InstallFailure, OSError) as e:
            # Traceback goes to the log file only; report.error below shows the message.
            logger.debug("Component %s failed", comp.step_id, exc_info=True)
            result = InstallResult(component=comp.step_id, status=InstallStatus.FAILED, message=str(e))

        for w in result.warnings:
            report.warning(f"{comp.label}: {w}")
        if result.failed:
            report.error(f"{comp.label} failed: {result.message}")
        elif result.status is InstallStatus.SKIPPED:
            report.info(f"{comp.label} skipped{': ' + result.message if result.message else ''}")
        else:
            report.success(f"{comp.label}: {result.message or result.status.value}")
        results.append(result)

    return PipelineResult(results=results)
