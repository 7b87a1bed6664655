"""SQLAlchemy models for gateway accounts and their signing keys."""

from __future__ import annotations

from sqlalchemy import Boolean, ForeignKey, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bridge_guard.db.session import Base


class User(Base):
    """Account that can authenticate with basic credentials or a public key."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(Text, primary_key=True)
    hashpass: Mapped[str] = mapped_column(Text, nullable=False)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    role: Mapped[str] = mapped_column(Text, nullable=False, default="user")

    public_keys: Mapped[list[PublicKey]] = relationship(
        "PublicKey",
        back_populates="user",
        cascade="all, delete-orphan",
    )


class PublicKey(Base):
    """Hex-encoded secp256k1 public key registered to a user."""

    __tablename__ = "public_keys"

    key: Mapped[str] = mapped_column(Text, primary_key=True)
    user_id: Mapped[str] = mapped_column(
        Text,
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    label: Mapped[str | None] = mapped_column(Text, nullable=True)

    user: Mapped[User] = relationship("User", back_populates="public_keys")

    @property
    def id(self) -> str:
        """Return the key identifier."""
        return self.key
