from fastapi import APIRouter, HTTPException, Depends, Query
from typing import List, Optional
from datetime import UTC, datetime
import uuid

from shared.enums import (
    OrderPriority,
    OrderSortField,
    OrderStatus,
    OrderType,
    SortDirection,
    UserRole,
)
from shared.models import (
    AmountRange,
    DateRange,
    FileUploadRequest,
    Order,
    OrderDraft,
    OrderEditRequest,
    OrderFile,
    OrderFilters,
    OrderSortOptions,
    OrderWorkflowAction,
    Page,
    PaginationOptions,
    TransitionRequest,
    WorkflowEvent,
    WorkflowResult,
    WorkflowTask,
)
from brokerage.core.dependencies import get_engine, get_event_sink, get_order_store, get_task_store
from brokerage.core.errors import (
    OrderNotEditableError,
    OrderNotFoundError,
    StoreConflictError,
    WorkflowError,
)
from brokerage.core.order_store import OrderStore
from brokerage.core.sinks import EventSink
from brokerage.core.task_store import TaskStore
from brokerage.core.transitions import next_allowed_statuses
from brokerage.core.workflow_engine import WorkflowEngine

router = APIRouter(prefix="/orders", tags=["orders"])


def _http_error(error: WorkflowError) -> HTTPException:
    """Map a workflow error onto an HTTP status"""
    if isinstance(error, OrderNotFoundError):
        return HTTPException(status_code=404, detail=error.message)
    if isinstance(error, (OrderNotEditableError, StoreConflictError)):
        return HTTPException(status_code=409, detail=error.message)
    return HTTPException(status_code=400, detail=error.message)


async def _get_order_or_404(order_id: str, orders: OrderStore) -> Order:
    """Get an order by ID or raise 404 if not found"""
    order = await orders.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.post("", response_model=Order)
async def create_order(draft: OrderDraft,
                       engine: WorkflowEngine = Depends(get_engine)):
    """Submit a new order"""
    try:
        return await engine.submit_order(draft)
    except WorkflowError as e:
        raise _http_error(e)


@router.get("", response_model=Page[Order])
async def list_orders(
        status: Optional[List[OrderStatus]] = Query(None),
        type: Optional[List[OrderType]] = Query(None),
        exchange_id: Optional[List[str]] = Query(None),
        priority: Optional[List[OrderPriority]] = Query(None),
        assigned_admin: Optional[str] = None,
        search: Optional[str] = None,
        created_from: Optional[datetime] = None,
        created_to: Optional[datetime] = None,
        min_amount: Optional[float] = None,
        max_amount: Optional[float] = None,
        sort_field: OrderSortField = OrderSortField.CREATED,
        sort_direction: SortDirection = SortDirection.DESC,
        page: int = Query(1, ge=1),
        limit: int = Query(10, ge=1, le=500),
        orders: OrderStore = Depends(get_order_store)):
    """List orders with filters, sorting and pagination"""
    date_range = None
    if created_from or created_to:
        date_range = DateRange(
            start=created_from or datetime.min.replace(tzinfo=UTC),
            end=created_to or datetime.now(UTC))
    amount_range = None
    if min_amount is not None or max_amount is not None:
        amount_range = AmountRange(
            min=min_amount if min_amount is not None else 0,
            max=max_amount if max_amount is not None else float("inf"))

    filters = OrderFilters(status=status,
                           type=type,
                           exchange_id=exchange_id,
                           priority=priority,
                           assigned_admin=assigned_admin,
                           search=search,
                           date_range=date_range,
                           amount_range=amount_range)
    return await orders.get_orders(
        filters, OrderSortOptions(field=sort_field, direction=sort_direction),
        PaginationOptions(page=page, limit=limit))


@router.get("/{order_id}", response_model=Order)
async def get_order(order_id: str,
                    engine: WorkflowEngine = Depends(get_engine)):
    """Get a specific order"""
    order = await engine.get_order(order_id)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


@router.patch("/{order_id}", response_model=Order)
async def edit_order(order_id: str,
                     request: OrderEditRequest,
                     engine: WorkflowEngine = Depends(get_engine)):
    """Edit an order's details while it is still submitted"""
    try:
        return await engine.edit_order(order_id, request.updates,
                                       request.edited_by)
    except WorkflowError as e:
        raise _http_error(e)


@router.post("/{order_id}/transitions", response_model=WorkflowResult)
async def request_transition(order_id: str,
                             request: TransitionRequest,
                             engine: WorkflowEngine = Depends(get_engine),
                             orders: OrderStore = Depends(get_order_store)):
    """Request a status change; the change is applied asynchronously"""
    await _get_order_or_404(order_id, orders)

    result = await engine.execute_status_transition(
        order_id,
        request.new_status,
        request.performed_by,
        request.role,
        notes=request.notes,
        reason=request.reason,
        priority=request.priority,
        conditions=request.conditions,
        delay_ms=request.delay_ms)
    if not result.success:
        raise HTTPException(status_code=400, detail=result.error)
    return result


@router.get("/{order_id}/allowed-statuses")
async def allowed_statuses(order_id: str,
                           role: UserRole,
                           orders: OrderStore = Depends(get_order_store)):
    """Statuses the given role may move the order to"""
    order = await _get_order_or_404(order_id, orders)
    return {
        "order_id": order_id,
        "status": order.status.value,
        "allowed": sorted(s.value
                          for s in next_allowed_statuses(order.status, role))
    }


@router.get("/{order_id}/history", response_model=List[OrderWorkflowAction])
async def order_history(order_id: str,
                        orders: OrderStore = Depends(get_order_store)):
    """Workflow actions recorded for an order"""
    await _get_order_or_404(order_id, orders)
    return await orders.list_workflow_actions(order_id)


@router.get("/{order_id}/events", response_model=List[WorkflowEvent])
async def order_events(order_id: str,
                       orders: OrderStore = Depends(get_order_store),
                       events: EventSink = Depends(get_event_sink)):
    """Workflow events emitted for an order"""
    await _get_order_or_404(order_id, orders)
    return await events.list_for_order(order_id)


@router.get("/{order_id}/tasks", response_model=List[WorkflowTask])
async def order_tasks(order_id: str,
                      orders: OrderStore = Depends(get_order_store),
                      tasks: TaskStore = Depends(get_task_store)):
    """All task attempts for an order"""
    await _get_order_or_404(order_id, orders)
    return await tasks.list_tasks(order_id=order_id)


@router.post("/{order_id}/files", response_model=Order)
async def upload_file(order_id: str,
                      upload: FileUploadRequest,
                      engine: WorkflowEngine = Depends(get_engine)):
    """Attach a stored file (screenshot or document) to an order"""
    file = OrderFile(id=str(uuid.uuid4()),
                     uploaded_at=datetime.now(UTC),
                     **upload.model_dump())
    try:
        return await engine.attach_file(order_id, file)
    except WorkflowError as e:
        raise _http_error(e)
