"""
Pydantic request/response schemas for the HTTP surface.

    from storefront_flow.schemas.flow import FlowStateOut, StepChoiceRequest
"""

from .flow import (
    CartOut,
    FlavorToggleRequest,
    FlowStartRequest,
    FlowStartResponse,
    FlowStateOut,
    NotesRequest,
    QuickAddRequest,
    SizeChoiceRequest,
    StepChoiceRequest,
    UpsellOut,
)

__all__ = [
    "CartOut",
    "FlavorToggleRequest",
    "FlowStartRequest",
    "FlowStartResponse",
    "FlowStateOut",
    "NotesRequest",
    "QuickAddRequest",
    "SizeChoiceRequest",
    "StepChoiceRequest",
    "UpsellOut",
]
