"""
Product customization and upsell flow engine.

This package contains the framework-free core:
- models.py: read models, enums and cart lines
- pricing.py: per-size price resolution
- selection.py: the per-session Selection aggregate
- step_config.py: configured step chains and navigation
- steps.py: one FlowStep variant per StepType
- state_machine.py: FlowController, one per customization
- upsell.py: UpsellSequencer, walked after an item is finalized

Collaborators (catalog, cart, notifier) are passed in through the ABCs in
interfaces.py; nothing here touches a database or HTTP.
"""

from .errors import (
    FetchFailure,
    FlowError,
    FlowValidationError,
    InvalidTransition,
    LimitExceeded,
    StoreClosed,
)
from .state_machine import FlowController, FlowResult, UpsellHandoff
from .steps import StepChoice
from .upsell import UpsellSequencer

__all__ = [
    "FetchFailure",
    "FlowController",
    "FlowError",
    "FlowResult",
    "FlowValidationError",
    "InvalidTransition",
    "LimitExceeded",
    "StepChoice",
    "StoreClosed",
    "UpsellHandoff",
    "UpsellSequencer",
]
