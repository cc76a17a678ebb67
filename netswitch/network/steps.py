"""Ordered fallible steps with an explicit per-step failure policy."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Sequence

from .exceptions import NetSwitchError
from ..logging_utility import logger


class FailurePolicy(Enum):
    ABORT = "abort"
    CONTINUE = "continue"


@dataclass
class Step:
    description: str
    action: Callable[[], Any]
    policy: FailurePolicy = FailurePolicy.ABORT


def run_steps(steps: Sequence[Step]) -> list[NetSwitchError]:
    """
    Run steps in order, logging each outcome.

    A failing ABORT step re-raises its error and later steps are skipped.
    A failing CONTINUE step is logged and collected. Nothing already done
    is rolled back.

    Args:
        steps: Steps to run

    Returns:
        list of errors from CONTINUE steps
    """
    errors: list[NetSwitchError] = []
    for step in steps:
        logger.info(f"{step.description}...")
        try:
            step.action()
        except NetSwitchError as e:
            if step.policy is FailurePolicy.ABORT:
                logger.error(f"{step.description}: failed ({e})")
                raise
            logger.warning(f"{step.description}: failed, continuing ({e})")
            errors.append(e)
        else:
            logger.info(f"{step.description}: done")
    return errors
