"""
Flow Routes for the Storefront Flow Engine
==========================================

Customer-facing endpoints that drive one product customization and the
upsell prompts that follow it.

Endpoints:
----------
- POST /flow/start: Open a session for a store
- GET  /flow/{session_id}: Current state
- POST /flow/{session_id}/size: Choose a size
- POST /flow/{session_id}/flavors/toggle: Add or remove a flavor
- POST /flow/{session_id}/notes: Set notes
- POST /flow/{session_id}/continue: Leave flavor selection
- POST /flow/{session_id}/step: Submit or skip the active step
- POST /flow/{session_id}/cancel: Abandon the customization
- GET  /flow/{session_id}/upsell: Current upsell prompt
- POST /flow/{session_id}/upsell/primary|secondary|back: Prompt buttons
- POST /flow/{session_id}/upsell/quick-add: Add a suggested product
- POST /flow/{session_id}/upsell/confirm: Confirm an edge/dough/add-on/combo picker
- GET  /flow/{session_id}/cart: Lines added by this session

The catalog cache behind these endpoints has its own routes in catalog.py.

Customization Flow:
-------------------
1. /flow/start returns a session_id (and the category's sizes when asked)
2. /size enters flavor selection; /flavors/toggle and /continue follow
3. /step walks the category's configured steps until the item is finalized
4. The response that finalizes the item carries the first upsell prompt
5. /upsell/* walks the prompts until the sequencer closes or redirects

Error Handling:
---------------
- 404: unknown session, category or size
- 409: an operation the current state does not accept
- 503: the catalog could not be read while choosing a size
Requests for one session are serialized on the session lock.
Customer-facing validation messages (flavor cap, store closed, ...) are
returned in the body as `error` and `notifications`, never as HTTP errors.

Rate Limiting:
--------------
All endpoints are rate limited (default: 60/minute per client address).
"""

import logging
from contextlib import contextmanager
from typing import Iterator, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from ..catalog_cache import CatalogCache
from ..config import RATE_LIMIT_ENABLED, get_rate_limit_flow
from ..db import SessionLocal
from ..flow.errors import FetchFailure, InvalidTransition
from ..flow.interfaces import CatalogGateway
from ..flow.models import StepType
from ..flow.pricing import group_flavors
from ..flow.state_machine import FlowResult
from ..flow.steps import ComboOptions, StepChoice
from ..flow.upsell import UpsellSequencer
from ..schemas.flow import (
    CartOut,
    ComboOptionsOut,
    FlavorToggleRequest,
    FlowStartRequest,
    FlowStartResponse,
    FlowStateOut,
    NotesRequest,
    NotificationOut,
    QuickAddRequest,
    SelectionOut,
    SizeChoiceRequest,
    StepChoiceRequest,
    UpsellOut,
)
from ..services.catalog import SqlCatalogGateway
from ..services.session import FlowSession, create_session, get_session


logger = logging.getLogger(__name__)

flow_router = APIRouter(prefix="/flow", tags=["Flow"])

limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)


# =============================================================================
# Dependencies
# =============================================================================

_default_gateway: Optional[CatalogGateway] = None


def get_gateway() -> CatalogGateway:
    """
    FastAPI dependency returning the process-wide catalog gateway.

    Tests override this with a gateway bound to their own database.
    """
    global _default_gateway
    if _default_gateway is None:
        _default_gateway = CatalogCache(SqlCatalogGateway(SessionLocal))
    return _default_gateway


def _require_session(session_id: str) -> FlowSession:
    session = get_session(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Session not found")
    return session


@contextmanager
def _locked_session(session_id: str) -> Iterator[FlowSession]:
    """
    Look up a session and hold its lock for the whole request.

    InvalidTransition raised inside the block becomes a 409.
    """
    session = _require_session(session_id)
    with session.lock:
        try:
            yield session
        except InvalidTransition as e:
            logger.info("Rejected transition: %s", e.message)
            raise HTTPException(status_code=409, detail=e.message)


def _require_upsell(session: FlowSession) -> UpsellSequencer:
    if session.upsell is None or session.upsell.is_closed:
        raise HTTPException(status_code=409, detail="No upsell prompt is showing")
    return session.upsell


def _step_choice(body: StepChoiceRequest) -> StepChoice:
    return StepChoice(
        option_id=body.option_id,
        edge_id=body.edge_id,
        dough_id=body.dough_id,
        clear_edge=body.clear_edge,
        clear_dough=body.clear_dough,
        additionals=body.additionals,
    )


# =============================================================================
# Serialization
# =============================================================================

def _combo_out(combo: Optional[ComboOptions]) -> Optional[ComboOptionsOut]:
    if combo is None:
        return None
    return ComboOptionsOut(edges=combo.edges, doughs=combo.doughs, additionals=combo.additionals)


def _upsell_out(upsell: Optional[UpsellSequencer]) -> Optional[UpsellOut]:
    if upsell is None:
        return None
    view = upsell.view
    last = upsell.last_confirmation
    return UpsellOut(
        is_closed=upsell.is_closed,
        current_index=upsell.current_index,
        prompt_count=len(upsell.prompts),
        prompt=upsell.current_prompt,
        is_showing_quick_add_products=upsell.is_showing_quick_add_products,
        products=view.products if view else [],
        options=view.options if view else [],
        additionals=view.grouped_additionals() if view else {},
        combo=_combo_out(view.combo) if view else None,
        redirect_category_id=upsell.redirect_category_id,
        last_total=last.total if last else None,
        last_combo=last.combo if last else None,
    )


def _state_out(session: FlowSession, result: Optional[FlowResult] = None) -> FlowStateOut:
    controller = session.controller
    result = result or controller.view()

    selection_out = None
    if controller.selection is not None:
        selection = controller.selection
        selection_out = SelectionOut(
            size=selection.size,
            flavors=selection.flavors,
            edge=selection.edge,
            dough=selection.dough,
            additionals=selection.selected_additionals(),
            notes=selection.notes,
            max_flavors=selection.max_flavors,
            total=selection.total(),
        )

    return FlowStateOut(
        session_id=session.session_id,
        state=result.state.value,
        step=result.step.value if result.step else None,
        options=[option.model_dump() for option in result.options],
        flavor_groups=group_flavors(result.options) if result.step == StepType.FLAVOR else None,
        combo=_combo_out(result.combo),
        selection=selection_out,
        total=result.total,
        error=result.error,
        is_complete=result.is_complete,
        line_item=result.line_item,
        ancillary_lines=result.ancillary_lines,
        upsell=_upsell_out(session.upsell),
        notifications=[
            NotificationOut(level=n.level, message=n.message)
            for n in session.notifier.drain()
        ],
    )


def _after_step(session: FlowSession, result: FlowResult) -> FlowStateOut:
    """Start the upsell sequencer when a result finalized the item."""
    if result.upsell is not None:
        session.upsell = UpsellSequencer.from_handoff(
            result.upsell, session.gateway, session.cart, session.notifier,
        ).start()
    return _state_out(session, result)



# =============================================================================
# Customization Endpoints
# =============================================================================

@flow_router.post("/start", response_model=FlowStartResponse)
@limiter.limit(get_rate_limit_flow)
def flow_start(
    request: Request,
    body: FlowStartRequest,
    gateway: CatalogGateway = Depends(get_gateway),
) -> FlowStartResponse:
    """
    Open a customization session.

    When a category is given, the catalog for that category is warmed up
    and its sizes are returned.
    """
    session = create_session(body.store_id, gateway)

    sizes = []
    if body.category_id:
        if isinstance(gateway, CatalogCache):
            gateway.prefetch(body.store_id, [body.category_id])
        try:
            sizes = gateway.fetch_sizes(body.category_id)
        except FetchFailure as e:
            logger.warning("Failed to list sizes for %s: %s", body.category_id, e.message)

    return FlowStartResponse(
        session_id=session.session_id,
        store_id=body.store_id,
        is_store_open=session.controller.is_store_open(),
        sizes=sizes,
    )


@flow_router.get("/{session_id}", response_model=FlowStateOut)
def flow_state(session_id: str) -> FlowStateOut:
    with _locked_session(session_id) as session:
        return _state_out(session)


@flow_router.post("/{session_id}/size", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def flow_select_size(request: Request, session_id: str, body: SizeChoiceRequest) -> FlowStateOut:
    with _locked_session(session_id) as session:
        try:
            category = session.gateway.fetch_category(body.category_id)
            sizes = session.gateway.fetch_sizes(body.category_id) if category else []
        except FetchFailure as e:
            raise HTTPException(status_code=503, detail=e.message)

        if category is None:
            raise HTTPException(status_code=404, detail="Category not found")
        size = next((s for s in sizes if s.id == body.size_id), None)
        if size is None:
            raise HTTPException(status_code=404, detail="Size not found")

        # A new item replaces any upsell still showing for the previous one
        session.upsell = None
        result = session.controller.select_size(category, size)
        return _state_out(session, result)


@flow_router.post("/{session_id}/flavors/toggle", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def flow_toggle_flavor(request: Request, session_id: str, body: FlavorToggleRequest) -> FlowStateOut:
    with _locked_session(session_id) as session:
        result = session.controller.toggle_flavor(body.flavor_id)
        return _state_out(session, result)


@flow_router.post("/{session_id}/notes", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def flow_set_notes(request: Request, session_id: str, body: NotesRequest) -> FlowStateOut:
    with _locked_session(session_id) as session:
        result = session.controller.set_notes(body.notes)
        return _state_out(session, result)


@flow_router.post("/{session_id}/continue", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def flow_continue(request: Request, session_id: str) -> FlowStateOut:
    with _locked_session(session_id) as session:
        result = session.controller.continue_flavors()
        return _after_step(session, result)


@flow_router.post("/{session_id}/step", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def flow_complete_step(request: Request, session_id: str, body: StepChoiceRequest) -> FlowStateOut:
    with _locked_session(session_id) as session:
        result = session.controller.complete_step(_step_choice(body))
        return _after_step(session, result)


@flow_router.post("/{session_id}/cancel", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def flow_cancel(request: Request, session_id: str) -> FlowStateOut:
    with _locked_session(session_id) as session:
        result = session.controller.cancel()
        return _state_out(session, result)


# =============================================================================
# Upsell Endpoints
# =============================================================================

@flow_router.get("/{session_id}/upsell", response_model=UpsellOut)
def upsell_state(session_id: str) -> UpsellOut:
    with _locked_session(session_id) as session:
        if session.upsell is None:
            raise HTTPException(status_code=404, detail="No upsell sequence for this session")
        return _upsell_out(session.upsell)


@flow_router.post("/{session_id}/upsell/primary", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def upsell_primary(request: Request, session_id: str) -> FlowStateOut:
    with _locked_session(session_id) as session:
        _require_upsell(session).primary()
        return _state_out(session)


@flow_router.post("/{session_id}/upsell/secondary", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def upsell_secondary(request: Request, session_id: str) -> FlowStateOut:
    with _locked_session(session_id) as session:
        _require_upsell(session).secondary()
        return _state_out(session)


@flow_router.post("/{session_id}/upsell/back", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def upsell_back(request: Request, session_id: str) -> FlowStateOut:
    with _locked_session(session_id) as session:
        _require_upsell(session).back()
        return _state_out(session)


@flow_router.post("/{session_id}/upsell/quick-add", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def upsell_quick_add(request: Request, session_id: str, body: QuickAddRequest) -> FlowStateOut:
    with _locked_session(session_id) as session:
        _require_upsell(session).quick_add(body.product_id)
        return _state_out(session)


@flow_router.post("/{session_id}/upsell/confirm", response_model=FlowStateOut)
@limiter.limit(get_rate_limit_flow)
def upsell_confirm(request: Request, session_id: str, body: StepChoiceRequest) -> FlowStateOut:
    with _locked_session(session_id) as session:
        _require_upsell(session).confirm(_step_choice(body))
        return _state_out(session)


# =============================================================================
# Cart
# =============================================================================

@flow_router.get("/{session_id}/cart", response_model=CartOut)
def flow_cart(session_id: str) -> CartOut:
    with _locked_session(session_id) as session:
        return CartOut(
            session_id=session.session_id,
            lines=session.cart.lines,
            total_items=session.cart.total_items,
            total_price=session.cart.total_price,
        )
