"""SQLAlchemy ORM Models for the APSAR coordination store."""

from .base import Base, SoftDeleteMixin, TimestampMixin, UUIDMixin, as_utc, utcnow
from .models import (
    # Enums
    AreaStatus,
    AuditAction,
    CallOutResponseStatus,
    CallOutStatus,
    CallOutType,
    ChatMessageType,
    ChatRoomType,
    ChecklistItemStatus,
    ChecklistStatus,
    ChecklistType,
    EquipmentCategory,
    EquipmentCondition,
    EquipmentStatus,
    IncidentStatus,
    MaintenanceType,
    MissionStatus,
    MissionType,
    ModerationStatus,
    NotificationChannel,
    NotificationType,
    ReportStatus,
    ResourceStatus,
    ResourceType,
    ReviewAction,
    UserRole,
    VehicleStatus,
    VehicleType,
    # Roles
    COMMAND_ROLE,
    ROLE_RANK,
    has_role,
    # Users
    User,
    # Call-outs
    CallOut,
    CallOutResponse,
    # Missions & incidents
    Incident,
    IncidentResource,
    SARMission,
    SARMissionArea,
    # Reports
    CalloutReport,
    CalloutReportReview,
    # Checklists
    Checklist,
    ChecklistTemplate,
    # Chat
    ChatMessage,
    ChatRoom,
    ChatRoomMember,
    MessageReadReceipt,
    # Assets
    Equipment,
    EquipmentInspection,
    MaintenanceLog,
    Vehicle,
    # Notifications & audit
    AuditLog,
    Notification,
)

__all__ = [
    # Base
    "Base",
    "UUIDMixin",
    "TimestampMixin",
    "SoftDeleteMixin",
    "utcnow",
    "as_utc",
    # Enums
    "AreaStatus",
    "AuditAction",
    "CallOutResponseStatus",
    "CallOutStatus",
    "CallOutType",
    "ChatMessageType",
    "ChatRoomType",
    "ChecklistItemStatus",
    "ChecklistStatus",
    "ChecklistType",
    "EquipmentCategory",
    "EquipmentCondition",
    "EquipmentStatus",
    "IncidentStatus",
    "MaintenanceType",
    "MissionStatus",
    "MissionType",
    "ModerationStatus",
    "NotificationChannel",
    "NotificationType",
    "ReportStatus",
    "ResourceStatus",
    "ResourceType",
    "ReviewAction",
    "UserRole",
    "VehicleStatus",
    "VehicleType",
    # Roles
    "COMMAND_ROLE",
    "ROLE_RANK",
    "has_role",
    # Entities
    "User",
    "CallOut",
    "CallOutResponse",
    "Incident",
    "IncidentResource",
    "SARMission",
    "SARMissionArea",
    "CalloutReport",
    "CalloutReportReview",
    "Checklist",
    "ChecklistTemplate",
    "ChatMessage",
    "ChatRoom",
    "ChatRoomMember",
    "MessageReadReceipt",
    "Equipment",
    "EquipmentInspection",
    "MaintenanceLog",
    "Vehicle",
    "AuditLog",
    "Notification",
]
