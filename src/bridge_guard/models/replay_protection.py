"""Models supporting replay protection for signed requests."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, Text, UniqueConstraint, func
from sqlalchemy.orm import Mapped, mapped_column

from bridge_guard.db.session import Base


class UserNonce(Base):
    """Record indicating that a nonce has already been used by a user."""

    __tablename__ = "user_nonces"
    # (user_id, nonce) -> existence means "already seen".
    __table_args__ = (UniqueConstraint("user_id", "nonce", name="uq_user_nonce"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    nonce: Mapped[str] = mapped_column(Text, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
