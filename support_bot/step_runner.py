from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

logger = logging.getLogger("support_bot.agent")

C = TypeVar("C")


@dataclass
class PipelineStep(Generic[C]):
    """Named step of a turn pipeline."""
    name: str
    fn: Callable[[C], None]
    skip_if: Optional[Callable[[C], bool]] = None


class StepRunner(Generic[C]):
    """Run an ordered list of steps over one mutable context."""

    def __init__(self, steps: List[PipelineStep[C]]) -> None:
        self._steps = steps

    @property
    def step_names(self) -> List[str]:
        return [step.name for step in self._steps]

    def run(self, context: C) -> None:
        """Purpose: Execute steps in order, honoring each step's skip_if guard.
        Inputs/Outputs: Input is a mutable context object; no return value.
        Side Effects / State: Step functions mutate the context.
        Dependencies: PipelineStep.fn and PipelineStep.skip_if.
        Failure Modes: Exceptions in step functions propagate to the caller.
        If Removed: SupportAgent cannot sequence guard, retrieval, and completion.
        Testing Notes: A skipped step must not run; order must be preserved.
        """
        for step in self._steps:
            if step.skip_if and step.skip_if(context):
                logger.debug("step=%s status=skipped", step.name)
                continue
            step.fn(context)
