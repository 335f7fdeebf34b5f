from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from packhub.db.base import Base


class Username(Base):
    """A registered player name."""

    __tablename__ = "usernames"

    username: Mapped[str] = mapped_column(String(255), nullable=False, unique=True, index=True)
