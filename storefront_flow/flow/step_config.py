"""
Flow Step Configuration Resolution.

Each (store, category) carries an ordered chain of optional steps. Every node
has an enabled flag and a next_step_id pointing to another step, to "cart" or
to nothing. This module answers three questions for the controller:

- is a step enabled? (fail-open: no row means enabled)
- what comes after a step?
- what is the next step that is both enabled and applicable?

Traversal is bounded so a misconfigured chain that cycles still terminates.
"""

import logging
from typing import Callable, Optional

from .models import CART, CategoryFlowConfig, FlowStepConfig, StepType, StoreFlowConfig

logger = logging.getLogger(__name__)


# Chain used by a category that has no configured steps at all.
# Mirrors the flow editor defaults: flavor -> edge -> dough -> drink -> cart.
DEFAULT_FLOW_CHAIN: CategoryFlowConfig = {
    StepType.FLAVOR.value: FlowStepConfig(enabled=True, next_step_id=StepType.EDGE.value),
    StepType.EDGE.value: FlowStepConfig(enabled=True, next_step_id=StepType.DOUGH.value),
    StepType.DOUGH.value: FlowStepConfig(enabled=True, next_step_id=StepType.DRINK.value),
    StepType.DRINK.value: FlowStepConfig(enabled=True, next_step_id=CART),
}

MAX_STEP_HOPS = len(StepType)


class FlowStepResolver:
    """Reads a store's flow configuration. Never mutates it."""

    def __init__(self, flow_config: StoreFlowConfig | None = None):
        self._flow_config: StoreFlowConfig = flow_config or {}

    @property
    def flow_config(self) -> StoreFlowConfig:
        return self._flow_config

    def _category_steps(self, category_id: str) -> CategoryFlowConfig:
        steps = self._flow_config.get(category_id)
        if not steps:
            return DEFAULT_FLOW_CHAIN
        return steps

    def is_step_enabled(self, category_id: str, step_type: str) -> bool:
        step = self._category_steps(category_id).get(step_type)
        if step is None:
            return True
        return step.enabled

    def next_step(self, category_id: str, current_step_type: str) -> Optional[str]:
        step = self._category_steps(category_id).get(current_step_type)
        if step is None:
            return None
        return step.next_step_id

    def navigate_to_next_enabled_step(
        self,
        category_id: str,
        from_step: str,
        is_applicable: Callable[[str], bool] | None = None,
    ) -> Optional[str]:
        """
        Follow next_step_id from from_step until a usable step is found.

        A target is skipped when it is disabled or when is_applicable reports
        it has nothing to offer for the current size.

        Args:
            category_id: Category whose chain is followed
            from_step: Step type the customer is leaving
            is_applicable: Optional predicate over step type values

        Returns:
            The step type value to enter, "cart", or None (both terminal)
        """
        target = self.next_step(category_id, from_step)
        hops = 0
        while target is not None and target != CART:
            if hops >= MAX_STEP_HOPS:
                logger.warning(
                    "Flow chain for category %s exceeded %d hops from '%s'; finalizing",
                    category_id, MAX_STEP_HOPS, from_step,
                )
                return None
            hops += 1

            if self.is_step_enabled(category_id, target) and (
                is_applicable is None or is_applicable(target)
            ):
                return target

            logger.debug("Skipping step '%s' for category %s", target, category_id)
            target = self.next_step(category_id, target)

        return target
