"""Pack, version and screenshot models."""

from __future__ import annotations

from typing import Any
from uuid import UUID

from sqlalchemy import JSON, Boolean, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from packhub.db.base import Base


class Pack(Base):
    """A distributable bundle with its artwork and published versions."""

    __tablename__ = "packs"

    # Public identifier used in URLs (creation timestamp in milliseconds)
    public_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True, index=True)
    sort_index: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    status: Mapped[str | None] = mapped_column(String(64), nullable=True)
    jvm_args: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Asset references (bare filenames inside the upload tree)
    thumbnail: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    background: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    main_version: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)

    versions: Mapped[list[PackVersion]] = relationship(
        "PackVersion",
        back_populates="pack",
        cascade="all, delete-orphan",
        order_by="PackVersion.position",
        lazy="selectin",
    )
    screenshots: Mapped[list[PackScreenshot]] = relationship(
        "PackScreenshot",
        back_populates="pack",
        cascade="all, delete-orphan",
        order_by="PackScreenshot.position",
        lazy="selectin",
    )


class PackVersion(Base):
    """One published version of a pack, pointing at its archive."""

    __tablename__ = "pack_versions"

    pack_id: Mapped[UUID] = mapped_column(
        ForeignKey("packs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pack: Mapped[Pack] = relationship("Pack", back_populates="versions")

    version_id: Mapped[str | None] = mapped_column(String(64), nullable=True, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    zip: Mapped[str | None] = mapped_column(String(512), nullable=True, index=True)
    size: Mapped[str | None] = mapped_column(String(64), nullable=True)
    changelog: Mapped[str | None] = mapped_column(Text, nullable=True)
    date: Mapped[str | None] = mapped_column(String(64), nullable=True)
    visible: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    clean: Mapped[bool | None] = mapped_column(Boolean, nullable=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)


class PackScreenshot(Base):
    """A screenshot slot on a pack."""

    __tablename__ = "pack_screenshots"

    pack_id: Mapped[UUID] = mapped_column(
        ForeignKey("packs.id", ondelete="CASCADE"), nullable=False, index=True
    )
    pack: Mapped[Pack] = relationship("Pack", back_populates="screenshots")

    filename: Mapped[str] = mapped_column(String(512), nullable=False, index=True)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
