from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from b2b_portal.db.base import Base


class UserProfile(Base):
    """B2B customer profile; the email is the natural key."""

    __tablename__ = "user_profiles"

    email: Mapped[str] = mapped_column(String, unique=True, index=True, nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    first_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    last_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    mobile_phone: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    company_name: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    company_rut: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    company_giro: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    company_address: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    region: Mapped[Optional[str]] = mapped_column(String, nullable=True)
    comuna: Mapped[Optional[str]] = mapped_column(String, nullable=True)

    profile_completed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<UserProfile(id={self.id}, email='{self.email}')>"
