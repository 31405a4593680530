"""SQLAlchemy ORM Models for the call-out / incident coordination store.

Field names mirror the mobile client's data model. Denormalized ``*_name``
columns (``user_name``, ``submitted_by_name``, ``assigned_to_name`` ...) are
snapshots taken when the row is written, not live joins: a later rename of
the user must not rewrite historical records.
"""

from datetime import datetime
from enum import Enum as PyEnum
from uuid import UUID

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import JSONType, Base, SoftDeleteMixin, TimestampMixin, UTCDateTime, UUIDMixin, utcnow


def _enum(enum_cls: type[PyEnum], name: str) -> Enum:
    return Enum(enum_cls, name=name, values_callable=lambda x: [e.value for e in x])


# =============================================================================
# ENUMS
# =============================================================================


class UserRole(str, PyEnum):
    MEMBER = "member"
    OFFICER = "officer"
    ADMIN = "admin"


ROLE_RANK = {
    UserRole.MEMBER: 0,
    UserRole.OFFICER: 1,
    UserRole.ADMIN: 2,
}

# "Command" gating (active missions, incidents, call-outs, report review)
COMMAND_ROLE = UserRole.OFFICER


def has_role(role: UserRole | str, minimum: UserRole) -> bool:
    """Single role-hierarchy check: member < officer < admin."""
    return ROLE_RANK[UserRole(role)] >= ROLE_RANK[minimum]


class CallOutType(str, PyEnum):
    ALL = "all"
    UNIT = "unit"
    ROLE = "role"
    SPECIFIC_USERS = "specific_users"


class CallOutStatus(str, PyEnum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CallOutResponseStatus(str, PyEnum):
    AVAILABLE = "available"
    EN_ROUTE = "en_route"
    UNAVAILABLE = "unavailable"


class MissionType(str, PyEnum):
    ACTIVE = "active"
    TRAINING = "training"


class MissionStatus(str, PyEnum):
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class AreaStatus(str, PyEnum):
    UNASSIGNED = "unassigned"
    SEARCHING = "searching"
    CLEARED = "cleared"
    COMPLETED = "completed"


class IncidentStatus(str, PyEnum):
    ACTIVE = "active"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class ResourceType(str, PyEnum):
    PERSONNEL = "personnel"
    EQUIPMENT = "equipment"
    VEHICLE = "vehicle"


class ResourceStatus(str, PyEnum):
    ASSIGNED = "assigned"
    EN_ROUTE = "en_route"
    ON_SCENE = "on_scene"
    UNAVAILABLE = "unavailable"


class ReportStatus(str, PyEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReviewAction(str, PyEnum):
    APPROVE = "approve"
    REJECT = "reject"


class ChatRoomType(str, PyEnum):
    DIRECT = "direct"
    GROUP = "group"
    UNIT = "unit"
    GENERAL = "general"


class ChatMessageType(str, PyEnum):
    TEXT = "text"
    IMAGE = "image"
    FILE = "file"
    SYSTEM = "system"


class ModerationStatus(str, PyEnum):
    PENDING = "pending"
    APPROVED = "approved"
    HIDDEN = "hidden"
    REMOVED = "removed"


class ChecklistType(str, PyEnum):
    CALLOUT = "callout"
    VEHICLE = "vehicle"
    EQUIPMENT = "equipment"
    TRAINING = "training"
    GENERAL = "general"


class ChecklistStatus(str, PyEnum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ChecklistItemStatus(str, PyEnum):
    PENDING = "pending"
    COMPLETE = "complete"
    NA = "na"


class VehicleType(str, PyEnum):
    TRUCK = "truck"
    ATV = "atv"
    SNOWMOBILE = "snowmobile"
    BOAT = "boat"
    TRAILER = "trailer"
    OTHER = "other"


class VehicleStatus(str, PyEnum):
    READY = "ready"
    IN_SERVICE = "in_service"
    MAINTENANCE = "maintenance"
    OUT_OF_SERVICE = "out_of_service"


class MaintenanceType(str, PyEnum):
    ROUTINE = "routine"
    REPAIR = "repair"
    INSPECTION = "inspection"
    OIL_CHANGE = "oil_change"
    TIRE_ROTATION = "tire_rotation"
    OTHER = "other"


class EquipmentCategory(str, PyEnum):
    MEDICAL = "medical"
    ROPE = "rope"
    COMMS = "comms"
    NAVIGATION = "navigation"
    SAFETY = "safety"
    TOOLS = "tools"
    OTHER = "other"


class EquipmentCondition(str, PyEnum):
    READY = "ready"
    NEEDS_SERVICE = "needs_service"
    OUT_OF_SERVICE = "out_of_service"


class EquipmentStatus(str, PyEnum):
    AVAILABLE = "available"
    ASSIGNED = "assigned"
    IN_USE = "in_use"
    MAINTENANCE = "maintenance"
    RETIRED = "retired"


class NotificationType(str, PyEnum):
    CHAT = "chat"
    CHAT_MENTION = "chat_mention"
    MAINTENANCE_DUE = "maintenance_due"
    MAINTENANCE_OVERDUE = "maintenance_overdue"
    EQUIPMENT_INSPECTION = "equipment_inspection"
    EQUIPMENT_ASSIGNED = "equipment_assigned"
    CALLOUT = "callout"
    CALLOUT_RESPONSE = "callout_response"
    CHECKLIST_ASSIGNED = "checklist_assigned"
    REPORT_APPROVED = "report_approved"
    REPORT_REJECTED = "report_rejected"
    REPORT_REVIEW_REQUESTED = "report_review_requested"
    VEHICLE_STATUS_CHANGE = "vehicle_status_change"
    GENERAL = "general"


class NotificationChannel(str, PyEnum):
    PUSH = "push"
    EMAIL = "email"
    SMS = "sms"
    IN_APP = "in_app"


class AuditAction(str, PyEnum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    APPROVE = "approve"
    REJECT = "reject"
    ASSIGN = "assign"
    COMPLETE = "complete"


# =============================================================================
# USERS
# =============================================================================


class User(Base, UUIDMixin, TimestampMixin):
    """Emergency-services personnel account. Deactivated, never deleted."""

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), unique=True)
    phone: Mapped[str | None] = mapped_column(String(50), unique=True)
    role: Mapped[UserRole] = mapped_column(
        _enum(UserRole, "user_role"), default=UserRole.MEMBER, nullable=False
    )
    unit: Mapped[str | None] = mapped_column(String(100))
    badge_number: Mapped[str | None] = mapped_column(String(50))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(255))
    push_token: Mapped[str | None] = mapped_column(String(255))
    last_login_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    __table_args__ = (
        Index("idx_users_role", "role"),
        Index("idx_users_unit", "unit"),
    )


# =============================================================================
# CALL-OUTS
# =============================================================================


class CallOut(Base, UUIDMixin, TimestampMixin):
    """Broadcast request for personnel availability."""

    __tablename__ = "call_outs"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    call_out_type: Mapped[CallOutType] = mapped_column(
        _enum(CallOutType, "call_out_type"), default=CallOutType.ALL, nullable=False
    )
    target_unit: Mapped[str | None] = mapped_column(String(100))
    target_role: Mapped[str | None] = mapped_column(String(50))
    target_user_ids: Mapped[list] = mapped_column(JSONType, default=list)
    status: Mapped[CallOutStatus] = mapped_column(
        _enum(CallOutStatus, "call_out_status"), default=CallOutStatus.ACTIVE, nullable=False
    )
    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    closed_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))

    def is_expired(self, now: datetime | None = None) -> bool:
        """Expiry is computed at read time, never written by a sweep."""
        if self.expires_at is None:
            return False
        return (now or utcnow()) > self.expires_at

    def accepts_responses(self, now: datetime | None = None) -> bool:
        return self.status == CallOutStatus.ACTIVE and not self.is_expired(now)

    def targets(self, user: "User") -> bool:
        """Whether ``user`` is in this call-out's broadcast scope."""
        if self.call_out_type == CallOutType.ALL:
            return True
        if self.call_out_type == CallOutType.UNIT:
            return bool(user.unit) and user.unit == self.target_unit
        if self.call_out_type == CallOutType.ROLE:
            return user.role == self.target_role
        return str(user.id) in (self.target_user_ids or [])

    __table_args__ = (
        Index("idx_call_outs_status", "status"),
        Index("idx_call_outs_created_at", "created_at"),
    )


class CallOutResponse(Base, UUIDMixin):
    """One row per (call-out, responder); re-responding updates in place."""

    __tablename__ = "call_out_responses"

    call_out_id: Mapped[UUID] = mapped_column(
        ForeignKey("call_outs.id"), nullable=False
    )
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[CallOutResponseStatus] = mapped_column(
        _enum(CallOutResponseStatus, "call_out_response_status"), nullable=False
    )
    estimated_arrival: Mapped[datetime | None] = mapped_column(UTCDateTime())
    notes: Mapped[str | None] = mapped_column(Text)
    responded_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("call_out_id", "user_id"),
        Index("idx_call_out_responses_call_out", "call_out_id"),
    )


# =============================================================================
# SAR MISSIONS
# =============================================================================


class SARMission(Base, UUIDMixin, TimestampMixin):
    """Search-and-rescue operation composed of searchable areas."""

    __tablename__ = "sar_missions"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    mission_type: Mapped[MissionType] = mapped_column(
        _enum(MissionType, "mission_type"), nullable=False
    )
    status: Mapped[MissionStatus] = mapped_column(
        _enum(MissionStatus, "mission_status"), default=MissionStatus.PLANNING, nullable=False
    )
    incident_commander_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    incident_commander_name: Mapped[str | None] = mapped_column(String(255))
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    started_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    is_public_visible: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    public_message: Mapped[str | None] = mapped_column(Text)

    areas: Mapped[list["SARMissionArea"]] = relationship(
        back_populates="mission",
        order_by="SARMissionArea.position",
        lazy="selectin",
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in (MissionStatus.COMPLETED, MissionStatus.CANCELLED)

    __table_args__ = (
        Index("idx_sar_missions_status", "status"),
    )


class SARMissionArea(Base, UUIDMixin, TimestampMixin):
    """A searchable sector of a mission."""

    __tablename__ = "sar_mission_areas"

    mission_id: Mapped[UUID] = mapped_column(
        ForeignKey("sar_missions.id"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    coordinates: Mapped[list] = mapped_column(JSONType, default=list)
    status: Mapped[AreaStatus] = mapped_column(
        _enum(AreaStatus, "area_status"), default=AreaStatus.UNASSIGNED, nullable=False
    )
    assigned_to: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    assigned_to_name: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)

    mission: Mapped["SARMission"] = relationship(back_populates="areas")

    __table_args__ = (
        UniqueConstraint("mission_id", "position"),
    )


# =============================================================================
# INCIDENTS
# =============================================================================


class Incident(Base, UUIDMixin, TimestampMixin):
    """Tracked emergency event with assigned resources."""

    __tablename__ = "incidents"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    incident_type: Mapped[str] = mapped_column(String(100), nullable=False)
    status: Mapped[IncidentStatus] = mapped_column(
        _enum(IncidentStatus, "incident_status"), default=IncidentStatus.ACTIVE, nullable=False
    )
    incident_commander_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    incident_commander_name: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[dict | None] = mapped_column(JSONType)
    created_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    started_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    resolved_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    cancelled_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    resources: Mapped[list["IncidentResource"]] = relationship(
        back_populates="incident",
        order_by="IncidentResource.assigned_at",
        lazy="selectin",
    )

    @property
    def type(self) -> str:
        return self.incident_type

    @property
    def is_terminal(self) -> bool:
        return self.status != IncidentStatus.ACTIVE

    __table_args__ = (
        CheckConstraint(
            "(status = 'resolved') = (resolved_at IS NOT NULL)",
            name="resolved_at_iff_resolved",
        ),
        Index("idx_incidents_status", "status"),
    )


class IncidentResource(Base, UUIDMixin, TimestampMixin):
    """A personnel, equipment or vehicle unit assigned to an incident."""

    __tablename__ = "incident_resources"

    incident_id: Mapped[UUID] = mapped_column(
        ForeignKey("incidents.id"), nullable=False
    )
    resource_type: Mapped[ResourceType] = mapped_column(
        _enum(ResourceType, "resource_type"), nullable=False
    )
    # User, vehicle or equipment id the assignment refers to, when known
    resource_ref_id: Mapped[UUID | None] = mapped_column()
    resource_name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[ResourceStatus] = mapped_column(
        _enum(ResourceStatus, "resource_status"), default=ResourceStatus.ASSIGNED, nullable=False
    )
    assigned_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    assigned_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    notes: Mapped[str | None] = mapped_column(Text)

    incident: Mapped["Incident"] = relationship(back_populates="resources")

    @property
    def resource_id(self) -> UUID | None:
        return self.resource_ref_id

    __table_args__ = (
        # A resource name may only hold one live assignment per incident
        Index(
            "uq_incident_resources_live_name",
            "incident_id",
            "resource_name",
            unique=True,
            postgresql_where=text("status <> 'unavailable'"),
            sqlite_where=text("status <> 'unavailable'"),
        ),
        Index("idx_incident_resources_incident", "incident_id"),
    )


# =============================================================================
# CALLOUT REPORTS
# =============================================================================


class CalloutReport(Base, UUIDMixin, TimestampMixin):
    """After-action report for a call-out or mission, subject to review."""

    __tablename__ = "callout_reports"

    callout_id: Mapped[UUID | None] = mapped_column(ForeignKey("call_outs.id"))
    mission_id: Mapped[UUID | None] = mapped_column(ForeignKey("sar_missions.id"))
    submitted_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    submitted_by_name: Mapped[str | None] = mapped_column(String(255))
    date: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    start_time: Mapped[datetime | None] = mapped_column(UTCDateTime())
    end_time: Mapped[datetime | None] = mapped_column(UTCDateTime())
    incident_type: Mapped[str] = mapped_column(String(100), nullable=False)
    location: Mapped[dict | None] = mapped_column(JSONType)
    location_description: Mapped[str | None] = mapped_column(Text)
    role_on_scene: Mapped[str | None] = mapped_column(String(100))
    equipment_used: Mapped[list] = mapped_column(JSONType, default=list)
    notes: Mapped[str | None] = mapped_column(Text)
    observations: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[list] = mapped_column(JSONType, default=list)
    documents: Mapped[list] = mapped_column(JSONType, default=list)
    status: Mapped[ReportStatus] = mapped_column(
        _enum(ReportStatus, "report_status"), default=ReportStatus.DRAFT, nullable=False
    )
    submitted_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    reviewed_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    reviewed_by_name: Mapped[str | None] = mapped_column(String(255))
    reviewed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    review_notes: Mapped[str | None] = mapped_column(Text)

    reviews: Mapped[list["CalloutReportReview"]] = relationship(
        back_populates="report",
        order_by="CalloutReportReview.reviewed_at",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(
            "status <> 'approved' OR (reviewed_by IS NOT NULL AND reviewed_at IS NOT NULL)",
            name="approved_has_reviewer",
        ),
        Index("idx_callout_reports_status", "status"),
        Index("idx_callout_reports_submitted_by", "submitted_by"),
    )


class CalloutReportReview(Base, UUIDMixin):
    """Append-only history of review decisions on a report."""

    __tablename__ = "callout_report_reviews"

    report_id: Mapped[UUID] = mapped_column(
        ForeignKey("callout_reports.id"), nullable=False
    )
    action: Mapped[ReviewAction] = mapped_column(
        _enum(ReviewAction, "review_action"), nullable=False
    )
    reviewer_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    reviewer_name: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)
    reviewed_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    report: Mapped["CalloutReport"] = relationship(back_populates="reviews")


# =============================================================================
# CHECKLISTS
# =============================================================================


class ChecklistTemplate(Base, UUIDMixin, TimestampMixin):
    """Ordered checklist item definitions."""

    __tablename__ = "checklist_templates"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    checklist_type: Mapped[ChecklistType] = mapped_column(
        _enum(ChecklistType, "checklist_type"), nullable=False
    )
    description: Mapped[str | None] = mapped_column(Text)
    # [{"id", "text", "description", "required", "order", "item_type", "options"}]
    items: Mapped[list] = mapped_column(JSONType, default=list)
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    is_locked: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    updated_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))

    @property
    def type(self) -> ChecklistType:
        return self.checklist_type


class Checklist(Base, UUIDMixin, TimestampMixin):
    """A checklist instance; items are a snapshot of the template's."""

    __tablename__ = "checklists"

    template_id: Mapped[UUID] = mapped_column(
        ForeignKey("checklist_templates.id"), nullable=False
    )
    template_name: Mapped[str | None] = mapped_column(String(255))
    template_version: Mapped[int | None] = mapped_column(Integer)
    checklist_type: Mapped[ChecklistType] = mapped_column(
        _enum(ChecklistType, "checklist_type"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    assigned_to: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    assigned_to_name: Mapped[str | None] = mapped_column(String(255))
    assigned_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    assigned_by_name: Mapped[str | None] = mapped_column(String(255))
    status: Mapped[ChecklistStatus] = mapped_column(
        _enum(ChecklistStatus, "checklist_status"),
        default=ChecklistStatus.NOT_STARTED,
        nullable=False,
    )
    # [{"item_id", "item_text", "required", "status", "response", "notes",
    #   "photo_url", "completed_at"}]
    items: Mapped[list] = mapped_column(JSONType, default=list)
    completed_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    completed_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    signature: Mapped[str | None] = mapped_column(Text)
    notes: Mapped[str | None] = mapped_column(Text)
    location: Mapped[dict | None] = mapped_column(JSONType)
    is_offline: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    synced_at: Mapped[datetime | None] = mapped_column(UTCDateTime())

    @property
    def type(self) -> ChecklistType:
        return self.checklist_type

    @property
    def is_terminal(self) -> bool:
        return self.status in (ChecklistStatus.COMPLETED, ChecklistStatus.CANCELLED)

    __table_args__ = (
        Index("idx_checklists_assigned_to", "assigned_to"),
    )


# =============================================================================
# CHAT
# =============================================================================


class ChatRoom(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "chat_rooms"

    name: Mapped[str | None] = mapped_column(String(255))
    room_type: Mapped[ChatRoomType] = mapped_column(
        _enum(ChatRoomType, "chat_room_type"), nullable=False
    )
    unit_name: Mapped[str | None] = mapped_column(String(100))
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    is_moderated: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    allow_file_uploads: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    allow_member_invites: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    members: Mapped[list["ChatRoomMember"]] = relationship(
        back_populates="room",
        order_by="ChatRoomMember.joined_at",
        lazy="selectin",
    )

    @property
    def type(self) -> ChatRoomType:
        return self.room_type

    def member(self, user_id: UUID) -> "ChatRoomMember | None":
        return next((m for m in self.members if m.user_id == user_id), None)


class ChatRoomMember(Base, UUIDMixin):
    __tablename__ = "chat_room_members"

    room_id: Mapped[UUID] = mapped_column(ForeignKey("chat_rooms.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(20), default="member", nullable=False)
    joined_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    last_read_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    is_muted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    muted_until: Mapped[datetime | None] = mapped_column(UTCDateTime())

    room: Mapped["ChatRoom"] = relationship(back_populates="members")

    __table_args__ = (
        UniqueConstraint("room_id", "user_id"),
    )


class ChatMessage(Base, UUIDMixin, TimestampMixin):
    """Append-only message log; edits and deletes are flags, not removals."""

    __tablename__ = "chat_messages"

    room_id: Mapped[UUID] = mapped_column(ForeignKey("chat_rooms.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    message_type: Mapped[ChatMessageType] = mapped_column(
        _enum(ChatMessageType, "chat_message_type"), default=ChatMessageType.TEXT, nullable=False
    )
    file_url: Mapped[str | None] = mapped_column(String(500))
    is_edited: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # [{"message", "edited_at"}] - prior text, oldest first
    edit_history: Mapped[list] = mapped_column(JSONType, default=list)
    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    deleted_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    is_flagged: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    flagged_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    flagged_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    flag_reason: Mapped[str | None] = mapped_column(Text)
    moderation_status: Mapped[ModerationStatus | None] = mapped_column(
        _enum(ModerationStatus, "moderation_status")
    )

    __table_args__ = (
        Index("idx_chat_messages_room_created", "room_id", "created_at"),
    )


class MessageReadReceipt(Base, UUIDMixin):
    __tablename__ = "message_read_receipts"

    message_id: Mapped[UUID] = mapped_column(ForeignKey("chat_messages.id"), nullable=False)
    room_id: Mapped[UUID] = mapped_column(ForeignKey("chat_rooms.id"), nullable=False)
    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(255))
    read_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint("message_id", "user_id"),
    )


# =============================================================================
# VEHICLES & EQUIPMENT
# =============================================================================


class Vehicle(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "vehicles"

    unit_number: Mapped[str] = mapped_column(String(50), unique=True, nullable=False)
    vehicle_type: Mapped[VehicleType] = mapped_column(
        _enum(VehicleType, "vehicle_type"), nullable=False
    )
    make: Mapped[str | None] = mapped_column(String(100))
    model: Mapped[str | None] = mapped_column(String(100))
    year: Mapped[int | None] = mapped_column(Integer)
    vin: Mapped[str | None] = mapped_column(String(50))
    license_plate: Mapped[str | None] = mapped_column(String(20))
    current_mileage: Mapped[int | None] = mapped_column(Integer)
    status: Mapped[VehicleStatus] = mapped_column(
        _enum(VehicleStatus, "vehicle_status"), default=VehicleStatus.READY, nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))


class MaintenanceLog(Base, UUIDMixin):
    __tablename__ = "maintenance_logs"

    vehicle_id: Mapped[UUID] = mapped_column(ForeignKey("vehicles.id"), nullable=False)
    maintenance_type: Mapped[MaintenanceType] = mapped_column(
        _enum(MaintenanceType, "maintenance_type"), nullable=False
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    mileage: Mapped[int | None] = mapped_column(Integer)
    cost: Mapped[float | None] = mapped_column(Float)
    performed_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    performed_by_name: Mapped[str | None] = mapped_column(String(255))
    performed_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    next_due_mileage: Mapped[int | None] = mapped_column(Integer)
    next_due_date: Mapped[datetime | None] = mapped_column(UTCDateTime())
    documents: Mapped[list] = mapped_column(JSONType, default=list)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))

    __table_args__ = (
        Index("idx_maintenance_logs_vehicle", "vehicle_id", "performed_at"),
    )


class Equipment(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "equipment"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    category: Mapped[EquipmentCategory] = mapped_column(
        _enum(EquipmentCategory, "equipment_category"), nullable=False
    )
    serial_number: Mapped[str | None] = mapped_column(String(100))
    manufacturer: Mapped[str | None] = mapped_column(String(100))
    model: Mapped[str | None] = mapped_column(String(100))
    condition: Mapped[EquipmentCondition] = mapped_column(
        _enum(EquipmentCondition, "equipment_condition"),
        default=EquipmentCondition.READY,
        nullable=False,
    )
    status: Mapped[EquipmentStatus] = mapped_column(
        _enum(EquipmentStatus, "equipment_status"),
        default=EquipmentStatus.AVAILABLE,
        nullable=False,
    )
    assigned_to: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    assigned_to_name: Mapped[str | None] = mapped_column(String(255))
    location: Mapped[str | None] = mapped_column(String(255))
    expiration_date: Mapped[datetime | None] = mapped_column(UTCDateTime())
    last_inspection_date: Mapped[datetime | None] = mapped_column(UTCDateTime())
    next_inspection_date: Mapped[datetime | None] = mapped_column(UTCDateTime())
    inspection_frequency: Mapped[int | None] = mapped_column(Integer)  # days
    notes: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[list] = mapped_column(JSONType, default=list)
    created_by: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))


class EquipmentInspection(Base, UUIDMixin):
    __tablename__ = "equipment_inspections"

    equipment_id: Mapped[UUID] = mapped_column(ForeignKey("equipment.id"), nullable=False)
    equipment_name: Mapped[str | None] = mapped_column(String(255))
    inspected_by: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    inspected_by_name: Mapped[str | None] = mapped_column(String(255))
    inspected_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)
    condition: Mapped[EquipmentCondition] = mapped_column(
        _enum(EquipmentCondition, "equipment_condition"), nullable=False
    )
    notes: Mapped[str | None] = mapped_column(Text)
    photos: Mapped[list] = mapped_column(JSONType, default=list)
    next_inspection_date: Mapped[datetime | None] = mapped_column(UTCDateTime())
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)


# =============================================================================
# NOTIFICATIONS & AUDIT
# =============================================================================


class Notification(Base, UUIDMixin):
    """In-app notification row, one per recipient."""

    __tablename__ = "notifications"

    user_id: Mapped[UUID] = mapped_column(ForeignKey("users.id"), nullable=False)
    notification_type: Mapped[NotificationType] = mapped_column(
        _enum(NotificationType, "notification_type"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    data: Mapped[dict] = mapped_column(JSONType, default=dict)
    channels: Mapped[list] = mapped_column(JSONType, default=list)
    is_read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime())
    action_url: Mapped[str | None] = mapped_column(String(500))
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    @property
    def type(self) -> NotificationType:
        return self.notification_type

    __table_args__ = (
        Index("idx_notifications_user_read", "user_id", "is_read"),
        Index("idx_notifications_created_at", "created_at"),
    )


class AuditLog(Base, UUIDMixin):
    """Who changed what, written in the same transaction as the change."""

    __tablename__ = "audit_logs"

    user_id: Mapped[UUID | None] = mapped_column(ForeignKey("users.id"))
    user_name: Mapped[str | None] = mapped_column(String(255))
    action: Mapped[AuditAction] = mapped_column(
        _enum(AuditAction, "audit_action"), nullable=False
    )
    entity: Mapped[str] = mapped_column(String(50), nullable=False)
    entity_id: Mapped[UUID] = mapped_column(nullable=False)
    entity_name: Mapped[str | None] = mapped_column(String(255))
    changes: Mapped[dict] = mapped_column(JSONType, default=dict)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime(), default=utcnow, nullable=False)

    __table_args__ = (
        Index("idx_audit_logs_entity", "entity", "entity_id"),
        Index("idx_audit_logs_created_at", "created_at"),
    )
