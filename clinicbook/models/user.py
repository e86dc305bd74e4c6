"""Patient and doctor account profiles."""

from sqlalchemy import Column, Integer, String
from clinicbook.database import Base

USER_ROLES = ("patient", "doctor", "admin")


class User(Base):
    """An authenticated account; doctors additionally own a ``Doctor`` row."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    first_name = Column(String, default="")
    last_name = Column(String, default="")
    role = Column(String, nullable=False, default="patient")
