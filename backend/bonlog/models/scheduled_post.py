"""ScheduledPost model — premium-only posts queued for later publishing."""

import enum
import uuid
from datetime import datetime

from sqlalchemy import JSON, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from bonlog.database import Base, TimestampMixin, UUIDPrimaryKeyMixin


class ScheduledPostStatus(str, enum.Enum):
    """Lifecycle states of a scheduled post."""

    PENDING = "pending"
    PUBLISHED = "published"
    FAILED = "failed"
    CANCELLED = "cancelled"


class ScheduledPost(UUIDPrimaryKeyMixin, TimestampMixin, Base):
    """A post the user asked to publish at ``scheduled_at``."""

    __tablename__ = "scheduled_posts"

    user_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    content: Mapped[str | None] = mapped_column(Text, nullable=True)
    # [{"url": "...", "type": "image" | "video"}, ...]
    media: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    scheduled_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=ScheduledPostStatus.PENDING.value, index=True
    )

    def __repr__(self) -> str:
        return f"<ScheduledPost(id={self.id}, user_id={self.user_id}, status={self.status})>"
