"""Membership model definitions."""

from sqlalchemy import Boolean, CheckConstraint, Column, ForeignKey, Integer, String
from clinicbook.database import Base


class Membership(Base):
    """Per-user membership; premium members carry free booking credits."""
    __tablename__ = "memberships"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    membership_type = Column(String, nullable=False, default="basic")  # basic/premium
    is_active = Column(Boolean, nullable=False, default=True)
    free_bookings_remaining = Column(Integer, nullable=False, default=0)

    __table_args__ = (
        CheckConstraint("free_bookings_remaining >= 0", name="ck_memberships_free_bookings_non_negative"),
    )
