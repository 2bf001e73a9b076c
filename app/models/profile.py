"""
LoveConnect — Profile and profile-edge models.

``ProfileEdge`` rows hold the like / super-like / match sets of a profile so
that appending to a set is a single idempotent INSERT.
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID as PgUUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.database import Base


class Profile(Base):
    __tablename__ = "profiles"

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    display_name: Mapped[str] = mapped_column(String(50), nullable=False)
    age: Mapped[int] = mapped_column(Integer, nullable=False)
    gender: Mapped[str] = mapped_column(
        String, nullable=False, comment="male / female / non-binary / other"
    )
    interested_in: Mapped[str] = mapped_column(
        String, nullable=False, default="everyone", comment="men / women / everyone"
    )
    relationship_type: Mapped[str] = mapped_column(
        String, nullable=False, default="", server_default=""
    )
    looking_for: Mapped[str] = mapped_column(
        String, nullable=False, default="", server_default=""
    )
    interests: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, comment="Up to 4 vocabulary interests"
    )
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String, nullable=True)
    bio: Mapped[str | None] = mapped_column(String(500), nullable=True)
    activity_score: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    profile_completeness: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default="0"
    )
    is_premium: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default="false"
    )

    # ── Preference block ───────────────────────────────────────────
    pref_age_min: Mapped[int] = mapped_column(
        Integer, nullable=False, default=18, server_default="18"
    )
    pref_age_max: Mapped[int] = mapped_column(
        Integer, nullable=False, default=100, server_default="100"
    )
    pref_distance: Mapped[float] = mapped_column(
        Float, nullable=False, default=50.0, server_default="50", comment="km"
    )
    pref_relationship_type: Mapped[str] = mapped_column(
        String, nullable=False, default="", server_default=""
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), onupdate=func.now(), nullable=True
    )

    # ── Relationships ──────────────────────────────────────────────
    edges: Mapped[list["ProfileEdge"]] = relationship(
        "ProfileEdge",
        back_populates="profile",
        cascade="all, delete-orphan",
        lazy="selectin",
        foreign_keys="ProfileEdge.user_id",
    )

    def __repr__(self) -> str:
        return f"<Profile {self.display_name!r} id={self.id}>"


class ProfileEdge(Base):
    __tablename__ = "profile_edges"
    __table_args__ = (
        UniqueConstraint("user_id", "kind", "target_id", name="uq_profile_edge"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    kind: Mapped[str] = mapped_column(
        String, nullable=False, comment="likes / super_likes / matches"
    )
    target_id: Mapped[uuid.UUID] = mapped_column(
        PgUUID(as_uuid=True), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    profile: Mapped["Profile"] = relationship(
        "Profile", back_populates="edges", foreign_keys=[user_id]
    )

    def __repr__(self) -> str:
        return f"<ProfileEdge {self.user_id} -{self.kind}-> {self.target_id}>"
