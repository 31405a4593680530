"""Business logic services."""

from .assets import AssetService, MaintenanceReminder
from .audit import AuditService
from .callout_coordinator import (
    CallOutCoordinator,
    CallOutView,
    CreateCallOutInput,
    RespondInput,
)
from .chat import ChatService, MessageView
from .checklists import ChecklistService, ItemUpdate, derive_status
from .errors import (
    CallOutClosedError,
    ConflictError,
    CoordinationError,
    ForbiddenError,
    IncidentClosedError,
    InvalidStateError,
    InvalidTransitionError,
    MissionClosedError,
    NotFoundError,
    ResourceAlreadyAssignedError,
    UnauthorizedError,
    ValidationFailedError,
)
from .incident_engine import AssignResourceInput, CreateIncidentInput, IncidentEngine
from .mission_engine import (
    AreaInput,
    CreateMissionInput,
    MissionEngine,
    PublicStatus,
    UpdateAreaInput,
    UpdateMissionInput,
)
from .notification_dispatcher import (
    DeliveryChannel,
    LoggingChannel,
    NotificationDispatcher,
    PushChannel,
)
from .notifications import NotificationService, OutboundNotification
from .review_workflow import ReportInput, ReportView, ReviewWorkflow
from .users import UserService

__all__ = [
    # Services
    "AssetService",
    "AuditService",
    "CallOutCoordinator",
    "ChatService",
    "ChecklistService",
    "IncidentEngine",
    "MissionEngine",
    "NotificationService",
    "ReviewWorkflow",
    "UserService",
    # Delivery
    "DeliveryChannel",
    "LoggingChannel",
    "NotificationDispatcher",
    "OutboundNotification",
    "PushChannel",
    # DTOs
    "AreaInput",
    "AssignResourceInput",
    "CallOutView",
    "CreateCallOutInput",
    "CreateIncidentInput",
    "CreateMissionInput",
    "ItemUpdate",
    "MaintenanceReminder",
    "MessageView",
    "PublicStatus",
    "ReportInput",
    "ReportView",
    "RespondInput",
    "UpdateAreaInput",
    "UpdateMissionInput",
    "derive_status",
    # Errors
    "CoordinationError",
    "UnauthorizedError",
    "ForbiddenError",
    "NotFoundError",
    "InvalidStateError",
    "InvalidTransitionError",
    "CallOutClosedError",
    "IncidentClosedError",
    "MissionClosedError",
    "ConflictError",
    "ResourceAlreadyAssignedError",
    "ValidationFailedError",
]
