"""SQLAlchemy ORM models for persistent storage"""
from sqlalchemy import Column, String, DateTime, JSON, Integer, Float, Boolean, Identity, Enum as SQLEnum
from sqlalchemy.orm import declarative_base
from shared.enums import (
    EventSeverity,
    NotificationPriority,
    NotificationType,
    OrderAction,
    OrderPriority,
    OrderStatus,
    OrderType,
    TaskPriority,
    TaskStatus,
    UserRole,
    WorkflowEventType,
)

Base = declarative_base()


class OrderModel(Base):
    """Persistent order storage.

    The full order document lives in ``data``; the other columns mirror the
    fields used for filtering and sorting.
    """
    __tablename__ = "orders"

    order_id = Column(String, primary_key=True)
    exchange_id = Column(String, nullable=False, index=True)
    type = Column(SQLEnum(OrderType), nullable=False)
    status = Column(SQLEnum(OrderStatus), nullable=False, index=True)
    priority = Column(SQLEnum(OrderPriority), nullable=False)
    submitted_amount = Column(Float, nullable=False)
    assigned_admin = Column(String, nullable=True)
    recipient_name = Column(String, nullable=True)
    sender_name = Column(String, nullable=True)
    data = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class OrderCounterModel(Base):
    """Monthly order id sequence, one row per ``orders_YYMM`` key"""
    __tablename__ = "order_counters"

    key = Column(String, primary_key=True)
    count = Column(Integer, nullable=False, default=0)


class OrderWorkflowActionModel(Base):
    """Audit trail of status changes and edits"""
    __tablename__ = "order_workflow_actions"

    id = Column(String, primary_key=True)
    order_id = Column(String, nullable=False, index=True)
    action = Column(SQLEnum(OrderAction), nullable=False)
    performed_by = Column(String, nullable=False)
    performed_by_role = Column(SQLEnum(UserRole), nullable=False)
    previous_status = Column(SQLEnum(OrderStatus), nullable=False)
    new_status = Column(SQLEnum(OrderStatus), nullable=False)
    notes = Column(String, nullable=True)
    reason = Column(String, nullable=True)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    # "metadata" is reserved on declarative classes
    action_metadata = Column("metadata", JSON, nullable=True)


class WorkflowTaskModel(Base):
    """Persistent workflow task storage; the pending rows are the queue"""
    __tablename__ = "workflow_tasks"

    id = Column(String, primary_key=True)
    order_id = Column(String, nullable=False, index=True)
    action = Column(SQLEnum(OrderAction), nullable=False)
    target_status = Column(SQLEnum(OrderStatus), nullable=False)
    performed_by = Column(String, nullable=False)
    performed_by_role = Column(SQLEnum(UserRole), nullable=False)
    priority = Column(SQLEnum(TaskPriority), nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False)
    executed_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    failed_at = Column(DateTime(timezone=True), nullable=True)
    retry_count = Column(Integer, default=0)
    max_retries = Column(Integer, default=3)
    status = Column(SQLEnum(TaskStatus), nullable=False, index=True)
    error = Column(String, nullable=True)
    task_metadata = Column("metadata", JSON, default=dict)
    dependencies = Column(JSON, default=list)  # List of task IDs
    conditions = Column(JSON, default=list)
    retry_of = Column(String, nullable=True)
    root_task_id = Column(String, nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)


class WorkflowEventModel(Base):
    """Append-only workflow event log"""
    __tablename__ = "workflow_events"

    id = Column(String, primary_key=True)
    seq = Column(Integer, Identity(), unique=True)  # append order
    order_id = Column(String, nullable=False, index=True)
    task_id = Column(String, nullable=True)
    type = Column(SQLEnum(WorkflowEventType), nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    details = Column(JSON, default=dict)
    severity = Column(SQLEnum(EventSeverity), nullable=False)


class NotificationModel(Base):
    """Per-user notifications"""
    __tablename__ = "notifications"

    id = Column(String, primary_key=True)
    user_id = Column(String, nullable=False, index=True)
    type = Column(SQLEnum(NotificationType), nullable=False)
    title = Column(String, nullable=False)
    message = Column(String, nullable=False)
    order_id = Column(String, nullable=True)
    priority = Column(SQLEnum(NotificationPriority), nullable=False)
    is_read = Column(Boolean, default=False)
    read_at = Column(DateTime(timezone=True), nullable=True)
    action_url = Column(String, nullable=True)
    action_text = Column(String, nullable=True)
    notification_metadata = Column("metadata", JSON, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False)
