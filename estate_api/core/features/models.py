"""
Feature Flag Models - SQLAlchemy model for flag records.

Table:
- feature_flags: Flag definitions with targeting rules and audit stamps
"""

from datetime import datetime
from uuid import UUID, uuid4
from sqlalchemy import JSON, Boolean, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from estate_api.models.base import AuditMixin, Base, TimestampMixin


class FeatureFlagModel(Base, TimestampMixin, AuditMixin):
    """
    Feature flag definition.

    Targeting is stored as one JSON document:
    {"user_ids": [...], "emails": [...], "roles": [...], "percentage": 0}
    """

    __tablename__ = "feature_flags"

    id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    key: Mapped[str] = mapped_column(
        String(100),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="", nullable=False)

    # Global kill-switch
    enabled: Mapped[bool] = mapped_column(
        Boolean,
        default=False,
        nullable=False,
        index=True,
    )

    targeting: Mapped[dict] = mapped_column(JSON, default=dict, nullable=False)

    last_toggled_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        status = "ON" if self.enabled else "OFF"
        return f"<FeatureFlag {self.key} [{status}]>"
