"""SQLAlchemy models for BON-LOG premium billing.

All models are imported here so that Alembic's autogenerate can discover
them via Base.metadata. If you add a new model, import it in this file.
"""

from bonlog.models.admin_log import AdminLog
from bonlog.models.payment import Payment
from bonlog.models.scheduled_post import ScheduledPost, ScheduledPostStatus
from bonlog.models.user import User

__all__ = [
    "AdminLog",
    "Payment",
    "ScheduledPost",
    "ScheduledPostStatus",
    "User",
]
