"""Doctor model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String
from clinicbook.database import Base


class Doctor(Base):
    """Represents a practising doctor that patients can book."""
    __tablename__ = "doctors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, index=True)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    consultation_fee = Column(Integer, nullable=False, default=0)  # cents, settled with the doctor
    is_available = Column(Boolean, default=True)

    @property
    def display_name(self) -> str:
        return f"Dr. {self.first_name} {self.last_name}".strip()
