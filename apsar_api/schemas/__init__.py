"""APSAR API Schemas.

Request and response models, organized by domain:
- base: common config, error envelope, references
- auth: login, tokens, user administration
- callouts: call-outs and availability responses
- operations: incidents, incident resources, SAR missions
- reports: callout reports and review history
- checklists: templates and checklist instances
- chat: rooms, messages, read receipts
- assets: vehicles, maintenance, equipment
- notifications: in-app notifications and audit logs
"""

from .assets import (
    AssignRequest,
    EquipmentCreate,
    EquipmentResponse,
    EquipmentUpdate,
    InspectionCreate,
    InspectionResponse,
    MaintenanceLogCreate,
    MaintenanceLogResponse,
    MaintenanceReminderResponse,
    VehicleCreate,
    VehicleResponse,
    VehicleUpdate,
)
from .auth import (
    LoginRequest,
    PushTokenRequest,
    RefreshRequest,
    RoleUpdate,
    TokenResponse,
    UserCreate,
    UserResponse,
    VerifyResponse,
)
from .base import (
    ApiModel,
    ErrorResponse,
    ListParams,
    MessageResponse,
    TimestampMixin,
    UserRef,
    UTCTimestamp,
)
from .callouts import (
    CallOutClose,
    CallOutCreate,
    CallOutDetail,
    CallOutRespond,
    CallOutResponseRead,
    CallOutSummary,
)
from .chat import (
    ChatMessageResponse,
    FlagRequest,
    MessageCreate,
    MessageUpdate,
    ModerateRequest,
    ReceiptResponse,
    RoomCreate,
    RoomMemberResponse,
    RoomReadResponse,
    RoomResponse,
)
from .checklists import (
    ChecklistComplete,
    ChecklistCreate,
    ChecklistItemResponse,
    ChecklistItemUpdate,
    ChecklistResponse,
    ChecklistUpdate,
    TemplateCreate,
    TemplateItem,
    TemplateItemInput,
    TemplateResponse,
    TemplateUpdate,
)
from .notifications import AuditLogResponse, NotificationResponse, UnreadCountResponse
from .operations import (
    AreaCreate,
    AreaResponse,
    AreaUpdate,
    IncidentCreate,
    IncidentResourceResponse,
    IncidentResponse,
    MissionCreate,
    MissionResponse,
    MissionUpdate,
    PublicMission,
    PublicStatusResponse,
    ResourceAssign,
    ResourceStatusUpdate,
)
from .reports import (
    ReportContent,
    ReportCreate,
    ReportResponse,
    ReportUpdate,
    ReviewHistoryEntry,
    ReviewRequest,
)

__all__ = [
    # Base
    "ApiModel",
    "ErrorResponse",
    "ListParams",
    "MessageResponse",
    "TimestampMixin",
    "UserRef",
    "UTCTimestamp",
    # Auth
    "LoginRequest",
    "PushTokenRequest",
    "RefreshRequest",
    "RoleUpdate",
    "TokenResponse",
    "UserCreate",
    "UserResponse",
    "VerifyResponse",
    # Call-outs
    "CallOutClose",
    "CallOutCreate",
    "CallOutDetail",
    "CallOutRespond",
    "CallOutResponseRead",
    "CallOutSummary",
    # Operations
    "AreaCreate",
    "AreaResponse",
    "AreaUpdate",
    "IncidentCreate",
    "IncidentResourceResponse",
    "IncidentResponse",
    "MissionCreate",
    "MissionResponse",
    "MissionUpdate",
    "PublicMission",
    "PublicStatusResponse",
    "ResourceAssign",
    "ResourceStatusUpdate",
    # Reports
    "ReportContent",
    "ReportCreate",
    "ReportResponse",
    "ReportUpdate",
    "ReviewHistoryEntry",
    "ReviewRequest",
    # Checklists
    "ChecklistComplete",
    "ChecklistCreate",
    "ChecklistItemResponse",
    "ChecklistItemUpdate",
    "ChecklistResponse",
    "ChecklistUpdate",
    "TemplateCreate",
    "TemplateItem",
    "TemplateItemInput",
    "TemplateResponse",
    "TemplateUpdate",
    # Chat
    "ChatMessageResponse",
    "FlagRequest",
    "MessageCreate",
    "MessageUpdate",
    "ModerateRequest",
    "ReceiptResponse",
    "RoomCreate",
    "RoomMemberResponse",
    "RoomReadResponse",
    "RoomResponse",
    # Assets
    "AssignRequest",
    "EquipmentCreate",
    "EquipmentResponse",
    "EquipmentUpdate",
    "InspectionCreate",
    "InspectionResponse",
    "MaintenanceLogCreate",
    "MaintenanceLogResponse",
    "MaintenanceReminderResponse",
    "VehicleCreate",
    "VehicleResponse",
    "VehicleUpdate",
    # Notifications & audit
    "AuditLogResponse",
    "NotificationResponse",
    "UnreadCountResponse",
]
