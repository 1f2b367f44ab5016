"""AdminLog model — audit trail for manual premium grants."""

import uuid

from sqlalchemy import JSON, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column

from bonlog.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class AdminLog(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """One row per administrator action on a user's membership."""

    __tablename__ = "admin_logs"

    admin_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    action: Mapped[str] = mapped_column(String(50), nullable=False)
    target_type: Mapped[str] = mapped_column(String(50), nullable=False, default="user")
    target_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    def __repr__(self) -> str:
        return f"<AdminLog(action={self.action}, admin_id={self.admin_id}, target_id={self.target_id})>"
