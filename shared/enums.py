"""Enum definitions for the brokerage order workflow"""
from enum import Enum


class UserRole(str, Enum):
    """Roles that can act on an order"""
    ADMIN = "admin"
    EXCHANGE = "exchange"


class OrderType(str, Enum):
    """Direction of a transfer order"""
    INCOMING = "incoming"
    OUTGOING = "outgoing"


class OrderStatus(str, Enum):
    """Lifecycle status of an order"""
    SUBMITTED = "submitted"
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSING = "processing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    CANCELLATION_REQUESTED = "cancellation_requested"


class OrderPriority(str, Enum):
    """Handling priority shown on the admin dashboard"""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    URGENT = "urgent"


class OrderAction(str, Enum):
    """Actions recorded in the order workflow history"""
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    PROCESS = "process"
    COMPLETE = "complete"
    CANCEL = "cancel"
    REQUEST_CANCELLATION = "request_cancellation"
    EDIT = "edit"
    ADD_NOTE = "add_note"
    UPLOAD_SCREENSHOT = "upload_screenshot"


class OrderSource(str, Enum):
    WEB = "web"
    MOBILE = "mobile"
    API = "api"


class CommissionType(str, Enum):
    FIXED = "fixed"
    PERCENTAGE = "percentage"


class FileCategory(str, Enum):
    """Categories of files attached to an order"""
    SCREENSHOT = "screenshot"
    DOCUMENT = "document"
    RECEIPT = "receipt"
    OTHER = "other"


class TaskPriority(str, Enum):
    """Scheduling priority of a workflow task"""
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class TaskStatus(str, Enum):
    """Status values for workflow task execution"""
    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ConditionType(str, Enum):
    TIME_BASED = "time_based"
    AMOUNT_BASED = "amount_based"
    USER_BASED = "user_based"
    CUSTOM = "custom"


class ConditionOperator(str, Enum):
    EQUALS = "equals"
    GREATER_THAN = "greater_than"
    LESS_THAN = "less_than"
    CONTAINS = "contains"


class UnknownFieldPolicy(str, Enum):
    """How conditions on fields the evaluator does not know are treated"""
    PASS = "pass"
    FAIL = "fail"


class WorkflowEventType(str, Enum):
    """Types of audit events emitted by the workflow engine"""
    TASK_SCHEDULED = "task_scheduled"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"
    TASK_RETRIED = "task_retried"
    TASK_CANCELLED = "task_cancelled"
    WORKFLOW_COMPLETED = "workflow_completed"
    WORKFLOW_FAILED = "workflow_failed"
    STATUS_CHANGED = "status_changed"
    NOTIFICATION_SENT = "notification_sent"


class EventSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class NotificationType(str, Enum):
    """Types of in-app notifications"""
    ORDER_CREATED = "order_created"
    ORDER_STATUS_CHANGED = "order_status_changed"
    ORDER_APPROVED = "order_approved"
    ORDER_REJECTED = "order_rejected"
    ORDER_COMPLETED = "order_completed"
    ORDER_CANCELLED = "order_cancelled"
    SYSTEM_ALERT = "system_alert"


class NotificationPriority(str, Enum):
    LOW = "low"
    NORMAL = "normal"
    HIGH = "high"
    CRITICAL = "critical"


class NotificationChannel(str, Enum):
    IN_APP = "in-app"
    EMAIL = "email"
    SMS = "sms"


class SortDirection(str, Enum):
    ASC = "asc"
    DESC = "desc"


class OrderSortField(str, Enum):
    ORDER_ID = "orderId"
    CREATED = "created"
    UPDATED = "updated"
    AMOUNT = "amount"
    STATUS = "status"
    PRIORITY = "priority"


class MessageType(str, Enum):
    """Types of messages exchanged on the order monitoring socket"""
    # Client -> Service
    HEARTBEAT = "heartbeat"

    # Service -> Client
    HEARTBEAT_ACK = "heartbeat_ack"
    ORDER_SNAPSHOT = "order_snapshot"
    ORDER_CHANGED = "order_changed"
    ERROR = "error"
