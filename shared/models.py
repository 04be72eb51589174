"""Domain model definitions for orders, workflow tasks, events and notifications"""
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List, Dict, Union, Generic, TypeVar
from datetime import datetime

from .enums import (
    UserRole,
    OrderType,
    OrderStatus,
    OrderPriority,
    OrderAction,
    OrderSource,
    CommissionType,
    FileCategory,
    TaskPriority,
    TaskStatus,
    ConditionType,
    ConditionOperator,
    WorkflowEventType,
    EventSeverity,
    NotificationType,
    NotificationPriority,
    SortDirection,
    OrderSortField,
)

# Values allowed in metadata and event detail bags
Scalar = Union[str, int, float, bool]

T = TypeVar("T")


class Actor(BaseModel):
    """The user (or system principal) performing an action"""
    id: str
    role: UserRole


class CommissionRate(BaseModel):
    """Commission charged by an exchange, fixed JOD or percentage"""
    type: CommissionType
    value: float


class CliqDetails(BaseModel):
    alias_name: Optional[str] = None
    mobile_number: Optional[str] = None
    description: Optional[str] = None


class RecipientDetails(BaseModel):
    name: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    notes: Optional[str] = None


class SenderDetails(BaseModel):
    name: Optional[str] = None
    bank_name: Optional[str] = None
    reference: Optional[str] = None


class OrderFile(BaseModel):
    """Metadata of a file attached to an order (bytes live elsewhere)"""
    id: str
    file_name: str
    original_name: Optional[str] = None
    file_type: str = "image/jpeg"
    file_size: int = 0
    url: str
    thumbnail_url: Optional[str] = None
    uploaded_by: str
    uploaded_by_role: UserRole = UserRole.EXCHANGE
    uploaded_at: datetime
    description: Optional[str] = None
    category: FileCategory = FileCategory.SCREENSHOT
    is_required: bool = False


class Order(BaseModel):
    """A transfer order submitted by an exchange office"""
    order_id: str  # TYYMMXXXX
    exchange_id: str
    type: OrderType
    status: OrderStatus = OrderStatus.SUBMITTED
    priority: OrderPriority = OrderPriority.NORMAL
    submitted_amount: float
    final_amount: Optional[float] = None
    commission: float = 0
    commission_rate: Optional[CommissionRate] = None
    net_amount: float = 0
    cliq_details: Optional[CliqDetails] = None
    recipient_details: Optional[RecipientDetails] = None
    sender_details: Optional[SenderDetails] = None
    bank_used: Optional[str] = None
    platform_bank_used: Optional[str] = None
    screenshots: List[OrderFile] = []
    documents: List[OrderFile] = []
    admin_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    cancellation_reason: Optional[str] = None
    assigned_admin: Optional[str] = None
    edited_by: Optional[str] = None
    # created, updated, plus one entry per status reached
    timestamps: Dict[str, datetime]
    source: OrderSource = OrderSource.WEB
    tags: List[str] = []


class OrderDraft(BaseModel):
    """Fields an exchange supplies when submitting a new order"""
    exchange_id: str
    type: OrderType
    submitted_amount: float = Field(ge=0)
    commission_rate: Optional[CommissionRate] = None
    priority: OrderPriority = OrderPriority.NORMAL
    cliq_details: Optional[CliqDetails] = None
    recipient_details: Optional[RecipientDetails] = None
    sender_details: Optional[SenderDetails] = None
    bank_used: Optional[str] = None
    platform_bank_used: Optional[str] = None
    screenshots: List[OrderFile] = []
    documents: List[OrderFile] = []
    source: OrderSource = OrderSource.WEB
    tags: List[str] = []


class OrderUpdate(BaseModel):
    """Editable order fields while the order is still submitted"""
    submitted_amount: Optional[float] = Field(default=None, ge=0)
    priority: Optional[OrderPriority] = None
    cliq_details: Optional[CliqDetails] = None
    recipient_details: Optional[RecipientDetails] = None
    sender_details: Optional[SenderDetails] = None
    bank_used: Optional[str] = None
    platform_bank_used: Optional[str] = None
    admin_notes: Optional[str] = None
    assigned_admin: Optional[str] = None
    tags: Optional[List[str]] = None


class OrderWorkflowAction(BaseModel):
    """Audit record written by the order store for every status change or edit"""
    id: str
    order_id: str
    action: OrderAction
    performed_by: str
    performed_by_role: UserRole
    previous_status: OrderStatus
    new_status: OrderStatus
    notes: Optional[str] = None
    reason: Optional[str] = None
    timestamp: datetime
    metadata: Optional[Dict[str, Scalar]] = None


class WorkflowCondition(BaseModel):
    """A declarative guard evaluated against an order"""
    model_config = ConfigDict(frozen=True)

    type: ConditionType = ConditionType.CUSTOM
    operator: ConditionOperator
    field: str
    value: Scalar
    description: str = ""


class WorkflowTask(BaseModel):
    """Deferred work: transition order X to status Y"""
    id: str
    order_id: str
    action: OrderAction
    target_status: OrderStatus
    performed_by: str
    performed_by_role: UserRole
    priority: TaskPriority = TaskPriority.NORMAL
    scheduled_at: datetime
    executed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    retry_count: int = 0
    max_retries: int = 3
    status: TaskStatus = TaskStatus.PENDING
    error: Optional[str] = None
    metadata: Dict[str, Scalar] = {}
    dependencies: List[str] = []
    conditions: List[WorkflowCondition] = []
    retry_of: Optional[str] = None  # attempt this task retries
    root_task_id: Optional[str] = None  # first attempt of the chain
    created_at: datetime
    updated_at: datetime

    @property
    def actor(self) -> Actor:
        return Actor(id=self.performed_by, role=self.performed_by_role)


class TaskSpec(BaseModel):
    """What a caller supplies to schedule a workflow task"""
    order_id: str
    action: OrderAction
    target_status: OrderStatus
    performed_by: str
    performed_by_role: UserRole
    priority: TaskPriority = TaskPriority.NORMAL
    scheduled_at: Optional[datetime] = None
    max_retries: Optional[int] = Field(default=None, ge=0)
    metadata: Dict[str, Scalar] = {}
    dependencies: List[str] = []
    conditions: List[WorkflowCondition] = []


class WorkflowEvent(BaseModel):
    """Immutable audit record of something the engine did"""
    model_config = ConfigDict(frozen=True)

    id: str
    order_id: str
    task_id: Optional[str] = None
    type: WorkflowEventType
    timestamp: datetime
    details: Dict[str, Scalar] = {}
    severity: EventSeverity = EventSeverity.INFO


class Notification(BaseModel):
    """A per-recipient message generated by the engine"""
    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    order_id: Optional[str] = None
    priority: NotificationPriority = NotificationPriority.NORMAL
    is_read: bool = False
    read_at: Optional[datetime] = None
    action_url: Optional[str] = None
    action_text: Optional[str] = None
    metadata: Dict[str, Scalar] = {}
    created_at: datetime


class WorkflowResult(BaseModel):
    """Outcome of a public engine operation"""
    success: bool
    error: Optional[str] = None
    task_id: Optional[str] = None


class ConditionResult(BaseModel):
    passed: bool
    failed_condition: Optional[str] = None


class DateRange(BaseModel):
    start: datetime
    end: datetime


class AmountRange(BaseModel):
    min: float
    max: float


class OrderFilters(BaseModel):
    """Filters for order listing"""
    status: Optional[List[OrderStatus]] = None
    type: Optional[List[OrderType]] = None
    exchange_id: Optional[List[str]] = None
    priority: Optional[List[OrderPriority]] = None
    date_range: Optional[DateRange] = None
    amount_range: Optional[AmountRange] = None
    assigned_admin: Optional[str] = None
    search: Optional[str] = None


class OrderSortOptions(BaseModel):
    field: OrderSortField = OrderSortField.CREATED
    direction: SortDirection = SortDirection.DESC


class PaginationOptions(BaseModel):
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=10, ge=1, le=500)


class Page(BaseModel, Generic[T]):
    """One page of a listing"""
    items: List[T]
    total: int
    page: int
    limit: int
    total_pages: int
    has_next: bool
    has_previous: bool


class WorkflowStatistics(BaseModel):
    total_tasks: int
    completed_tasks: int
    failed_tasks: int
    avg_execution_time_ms: float
    retry_rate: float  # percent
    error_rate: float  # percent


# ============================================================================
# API request bodies
# ============================================================================


class TransitionRequest(BaseModel):
    """Request to move an order to a new status"""
    new_status: OrderStatus
    performed_by: str
    role: UserRole
    notes: Optional[str] = None
    reason: Optional[str] = None
    priority: TaskPriority = TaskPriority.NORMAL
    conditions: List[WorkflowCondition] = []
    delay_ms: int = Field(default=0, ge=0)


class OrderEditRequest(BaseModel):
    edited_by: str
    updates: OrderUpdate


class FileUploadRequest(BaseModel):
    """Metadata of an already stored file to attach to an order"""
    file_name: str
    url: str
    uploaded_by: str
    uploaded_by_role: UserRole = UserRole.EXCHANGE
    original_name: Optional[str] = None
    file_type: str = "image/jpeg"
    file_size: int = Field(default=0, ge=0)
    thumbnail_url: Optional[str] = None
    description: Optional[str] = None
    category: FileCategory = FileCategory.SCREENSHOT
