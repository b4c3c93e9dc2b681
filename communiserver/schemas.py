# communiserver/schemas.py
from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from .domain.leadership import assignments
from .domain.task_status import TaskStatus


def _clean_name(v: str) -> str:
    v = (v or "").strip()
    if not v:
        raise ValueError("name must not be blank")
    return v.upper()


class _Entity(BaseModel):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime
    deleted_at: Optional[datetime] = None
    model_config = ConfigDict(from_attributes=True)


class PersonRecord(BaseModel):
    """Isibo roster entry / report attendee."""

    names: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None


# -------------------- Locations --------------------

class NameIn(BaseModel):
    name: str

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: str) -> str:
        return _clean_name(v)


class NameUpdate(BaseModel):
    name: Optional[str] = None

    @field_validator("name")
    @classmethod
    def normalize_name(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)


class ProvinceCreate(NameIn):
    pass


class ProvinceOut(_Entity):
    name: str


class DistrictCreate(NameIn):
    province_id: uuid.UUID


class DistrictOut(_Entity):
    name: str
    province_id: uuid.UUID


class SectorCreate(NameIn):
    district_id: uuid.UUID


class SectorOut(_Entity):
    name: str
    district_id: uuid.UUID


class CellCreate(NameIn):
    sector_id: uuid.UUID


class CellOut(_Entity):
    name: str
    sector_id: uuid.UUID
    has_leader: bool
    leader_id: Optional[uuid.UUID] = None


class VillageCreate(NameIn):
    cell_id: uuid.UUID


class VillageOut(_Entity):
    name: str
    cell_id: uuid.UUID
    has_leader: bool
    leader_id: Optional[uuid.UUID] = None


class IsiboCreate(NameIn):
    village_id: uuid.UUID
    members: list[PersonRecord] = Field(default_factory=list)


class IsiboUpdate(NameUpdate):
    members: Optional[list[PersonRecord]] = None


class IsiboMembersIn(BaseModel):
    members: list[PersonRecord]


class IsiboOut(_Entity):
    name: str
    village_id: uuid.UUID
    has_leader: bool
    leader_id: Optional[uuid.UUID] = None
    members: list[dict[str, Any]] = Field(default_factory=list)


class HouseCreate(BaseModel):
    code: str
    street: Optional[str] = None
    isibo_id: uuid.UUID

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: str) -> str:
        return _clean_name(v)


class HouseUpdate(BaseModel):
    code: Optional[str] = None
    street: Optional[str] = None

    @field_validator("code")
    @classmethod
    def normalize_code(cls, v: Optional[str]) -> Optional[str]:
        return None if v is None else _clean_name(v)


class HouseOut(_Entity):
    code: str
    street: Optional[str] = None
    isibo_id: uuid.UUID
    representative_id: Optional[uuid.UUID] = None


class AssignUserIn(BaseModel):
    user_id: uuid.UUID


class LocationHit(BaseModel):
    type: str
    id: uuid.UUID
    name: str
    parent_id: Optional[uuid.UUID] = None


# -------------------- Identity --------------------

class LeadershipOut(BaseModel):
    level: str
    role: str
    location_id: uuid.UUID


class ProfileOut(_Entity):
    names: str
    is_cell_leader: bool
    is_village_leader: bool
    is_isibo_leader: bool
    cell_id: Optional[uuid.UUID] = None
    village_id: Optional[uuid.UUID] = None
    isibo_id: Optional[uuid.UUID] = None
    house_id: Optional[uuid.UUID] = None

    @computed_field  # type: ignore[misc]
    @property
    def leadership(self) -> list[LeadershipOut]:
        return [LeadershipOut(**a.as_dict()) for a in assignments(self)]


class ProfileUpdate(BaseModel):
    names: Optional[str] = None
    cell_id: Optional[uuid.UUID] = None
    village_id: Optional[uuid.UUID] = None
    isibo_id: Optional[uuid.UUID] = None
    house_id: Optional[uuid.UUID] = None


class UserOut(_Entity):
    email: str
    phone: str
    role: str
    verified_at: Optional[datetime] = None
    activated: bool
    profile_id: Optional[uuid.UUID] = None
    profile: Optional[ProfileOut] = None


class UserCreate(BaseModel):
    """Admin/leader-created account. Password is optional; a random one is set when missing."""

    email: str
    phone: str
    names: str
    role: str = "CITIZEN"
    password: Optional[str] = None
    cell_id: Optional[uuid.UUID] = None
    village_id: Optional[uuid.UUID] = None
    isibo_id: Optional[uuid.UUID] = None
    house_id: Optional[uuid.UUID] = None


class UserUpdate(BaseModel):
    phone: Optional[str] = None
    names: Optional[str] = None
    activated: Optional[bool] = None


class SignUpIn(BaseModel):
    email: str
    phone: str
    names: str
    password: str = Field(min_length=8)


class SignInIn(BaseModel):
    email: str
    password: str


class RefreshIn(BaseModel):
    refresh_token: str


class TokenOut(BaseModel):
    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    user: UserOut


class MeOut(BaseModel):
    user: Optional[UserOut] = None
    role: str
    permissions: list[str]
    system: bool = False


class VerificationIssueIn(BaseModel):
    email: str


class VerificationVerifyIn(BaseModel):
    email: str
    code: str


class ForgotPasswordIn(BaseModel):
    email: str


class ResetPasswordIn(BaseModel):
    email: str
    code: str
    password: str = Field(min_length=8)


# -------------------- Activities / tasks / reports --------------------

class TaskDraft(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    isibo_id: uuid.UUID
    estimated_cost: float = Field(default=0, ge=0)
    expected_participants: Optional[int] = Field(default=None, ge=0)
    expected_financial_impact: float = 0


class TaskCreate(TaskDraft):
    activity_id: uuid.UUID


class TaskUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    status: Optional[TaskStatus] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    actual_cost: Optional[float] = Field(default=None, ge=0)
    expected_participants: Optional[int] = Field(default=None, ge=0)
    actual_participants: Optional[int] = Field(default=None, ge=0)
    expected_financial_impact: Optional[float] = None
    actual_financial_impact: Optional[float] = None


class _Variance(BaseModel):
    estimated_cost: float
    actual_cost: float
    expected_participants: int
    actual_participants: int
    expected_financial_impact: float
    actual_financial_impact: float

    @computed_field  # type: ignore[misc]
    @property
    def cost_variance(self) -> float:
        return self.actual_cost - self.estimated_cost

    @computed_field  # type: ignore[misc]
    @property
    def participant_variance(self) -> int:
        return self.actual_participants - self.expected_participants

    @computed_field  # type: ignore[misc]
    @property
    def impact_variance(self) -> float:
        return self.actual_financial_impact - self.expected_financial_impact


class TaskOut(_Variance, _Entity):
    title: str
    description: str
    status: str
    activity_id: uuid.UUID
    isibo_id: uuid.UUID


class ActivityCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str = ""
    date: datetime
    village_id: uuid.UUID
    tasks: list[TaskDraft] = Field(default_factory=list)


class ActivityUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    date: Optional[datetime] = None


class ActivityOut(_Entity):
    title: str
    description: str
    date: datetime
    village_id: uuid.UUID
    tasks: list[TaskOut] = Field(default_factory=list, validation_alias="live_tasks")


class ReportCreate(BaseModel):
    task_id: uuid.UUID
    activity_id: uuid.UUID
    comment: Optional[str] = None
    evidence_urls: list[str] = Field(default_factory=list)
    attendance: list[PersonRecord] = Field(default_factory=list)
    materials_used: list[str] = Field(default_factory=list)
    challenges_faced: Optional[str] = None
    suggestions: Optional[str] = None

    estimated_cost: float = Field(default=0, ge=0)
    actual_cost: float = Field(default=0, ge=0)
    expected_participants: int = Field(default=0, ge=0)
    actual_participants: int = Field(default=0, ge=0)
    expected_financial_impact: float = 0
    actual_financial_impact: float = 0

    # drives the owning task through the status machine when set
    task_status: Optional[TaskStatus] = None


class ReportUpdate(BaseModel):
    comment: Optional[str] = None
    evidence_urls: Optional[list[str]] = None
    attendance: Optional[list[PersonRecord]] = None
    materials_used: Optional[list[str]] = None
    challenges_faced: Optional[str] = None
    suggestions: Optional[str] = None
    estimated_cost: Optional[float] = Field(default=None, ge=0)
    actual_cost: Optional[float] = Field(default=None, ge=0)
    expected_participants: Optional[int] = Field(default=None, ge=0)
    actual_participants: Optional[int] = Field(default=None, ge=0)
    expected_financial_impact: Optional[float] = None
    actual_financial_impact: Optional[float] = None
    task_status: Optional[TaskStatus] = None


class ReportOut(_Variance, _Entity):
    task_id: uuid.UUID
    activity_id: uuid.UUID
    comment: Optional[str] = None
    evidence_urls: list[str] = Field(default_factory=list)
    attendance: list[dict[str, Any]] = Field(default_factory=list)
    materials_used: list[str] = Field(default_factory=list)
    challenges_faced: Optional[str] = None
    suggestions: Optional[str] = None


# -------------------- Settings / uploads --------------------

class SettingOut(BaseModel):
    name: str
    value: str
    model_config = ConfigDict(from_attributes=True)


class SettingPatch(BaseModel):
    name: str
    value: str


class UploadOut(BaseModel):
    urls: list[str]

