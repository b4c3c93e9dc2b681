# communiserver/models.py
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, List, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .db import Base


def utcnow() -> datetime:
    # naive UTC; SQLite drops tzinfo and comparisons must stay consistent
    return datetime.now(timezone.utc).replace(tzinfo=None)


class AbstractEntity:
    """Columns every table carries: uuid key, timestamps and the soft-delete marker."""

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)
    deleted_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True, default=None)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    def soft_delete(self) -> None:
        self.deleted_at = utcnow()


def live(model):
    """WHERE clause that hides soft-deleted rows."""
    return model.deleted_at.is_(None)


# -----------------------------
# Location hierarchy
# -----------------------------
class Province(AbstractEntity, Base):
    __tablename__ = "provinces"

    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)

    districts: Mapped[List["District"]] = relationship(back_populates="province")


class District(AbstractEntity, Base):
    __tablename__ = "districts"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    province_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("provinces.id"), nullable=False, index=True)

    province: Mapped["Province"] = relationship(back_populates="districts")
    sectors: Mapped[List["Sector"]] = relationship(back_populates="district")


class Sector(AbstractEntity, Base):
    __tablename__ = "sectors"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    district_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("districts.id"), nullable=False, index=True)

    district: Mapped["District"] = relationship(back_populates="sectors")
    cells: Mapped[List["Cell"]] = relationship(back_populates="sector")


class Cell(AbstractEntity, Base):
    __tablename__ = "cells"

    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    sector_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("sectors.id"), nullable=False, index=True)

    has_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # profile id of the leader; no FK because profiles reference cells
    leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    sector: Mapped["Sector"] = relationship(back_populates="cells")
    villages: Mapped[List["Village"]] = relationship(back_populates="cell")


class Village(AbstractEntity, Base):
    __tablename__ = "villages"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    cell_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("cells.id"), nullable=False, index=True)

    has_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    cell: Mapped["Cell"] = relationship(back_populates="villages")
    isibos: Mapped[List["Isibo"]] = relationship(back_populates="village")
    activities: Mapped[List["Activity"]] = relationship(back_populates="village")


class Isibo(AbstractEntity, Base):
    __tablename__ = "isibos"

    name: Mapped[str] = mapped_column(String(120), nullable=False)
    village_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("villages.id"), nullable=False, index=True)

    has_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    leader_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    # roster of {"names", "email", "phone"} records
    members: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)

    village: Mapped["Village"] = relationship(back_populates="isibos")
    houses: Mapped[List["House"]] = relationship(back_populates="isibo")


class House(AbstractEntity, Base):
    __tablename__ = "houses"

    code: Mapped[str] = mapped_column(String(60), nullable=False)
    street: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    isibo_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("isibos.id"), nullable=False, index=True)
    representative_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, nullable=True)

    isibo: Mapped["Isibo"] = relationship(back_populates="houses")


# -----------------------------
# Identity
# -----------------------------
class Profile(AbstractEntity, Base):
    __tablename__ = "profiles"

    names: Mapped[str] = mapped_column(String(160), nullable=False)

    is_cell_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_village_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_isibo_leader: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    cell_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("cells.id"), nullable=True, index=True)
    village_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("villages.id"), nullable=True, index=True)
    isibo_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("isibos.id"), nullable=True, index=True)
    house_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid, ForeignKey("houses.id"), nullable=True, index=True)

    user: Mapped[Optional["User"]] = relationship(back_populates="profile", uselist=False)


class User(AbstractEntity, Base):
    __tablename__ = "users"

    email: Mapped[str] = mapped_column(String(200), nullable=False, unique=True, index=True)
    phone: Mapped[str] = mapped_column(String(40), nullable=False, unique=True)
    password: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[str] = mapped_column(String(40), nullable=False, default="CITIZEN")
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    activated: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    profile_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid, ForeignKey("profiles.id"), nullable=True, unique=True
    )
    profile: Mapped[Optional["Profile"]] = relationship(back_populates="user")


class Verification(AbstractEntity, Base):
    __tablename__ = "verifications"

    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("users.id"), nullable=False, unique=True)

    user: Mapped["User"] = relationship()


class Setting(AbstractEntity, Base):
    __tablename__ = "settings"

    name: Mapped[str] = mapped_column(String(120), nullable=False, unique=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")


# -----------------------------
# Activities / tasks / reports
# -----------------------------
class Activity(AbstractEntity, Base):
    __tablename__ = "activities"

    title: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    village_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("villages.id"), nullable=False, index=True)

    village: Mapped["Village"] = relationship(back_populates="activities")
    tasks: Mapped[List["Task"]] = relationship(back_populates="activity", order_by="Task.created_at")

    @property
    def live_tasks(self) -> list["Task"]:
        return [t for t in self.tasks if t.deleted_at is None]


class Task(AbstractEntity, Base):
    __tablename__ = "tasks"
    __table_args__ = (UniqueConstraint("activity_id", "isibo_id", name="uq_tasks_activity_isibo"),)

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending", index=True)

    activity_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("activities.id"), nullable=False, index=True)
    isibo_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("isibos.id"), nullable=False, index=True)

    estimated_cost: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    actual_cost: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    expected_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expected_financial_impact: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    actual_financial_impact: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    activity: Mapped["Activity"] = relationship(back_populates="tasks")
    isibo: Mapped["Isibo"] = relationship()
    reports: Mapped[List["Report"]] = relationship(back_populates="task")


class Report(AbstractEntity, Base):
    __tablename__ = "reports"

    task_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("tasks.id"), nullable=False, index=True)
    activity_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("activities.id"), nullable=False, index=True)

    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    evidence_urls: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    attendance: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    materials_used: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    challenges_faced: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    suggestions: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    estimated_cost: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    actual_cost: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    expected_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    actual_participants: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    expected_financial_impact: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)
    actual_financial_impact: Mapped[float] = mapped_column(Numeric(12, 2, asdecimal=False), nullable=False, default=0)

    task: Mapped["Task"] = relationship(back_populates="reports")
    activity: Mapped["Activity"] = relationship()
