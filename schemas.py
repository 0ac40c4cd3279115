"""
Request and response schemas for the HTTP API.

Input limits mirror the report and user constraints stored in the database;
anything that fails them is rejected with 422 before reaching the core.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from models import AreaUnit, ImpactLevel, ReportCategory, ReportSeverity, ReportStatus, UserRole


# --- USERS ---
class UserCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=3, max_length=30, pattern=r"^[a-zA-Z0-9_]+$")
    email: EmailStr
    password: str = Field(min_length=6)
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    role: UserRole = UserRole.community
    organization: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = None

class LoginRequest(BaseModel): email: EmailStr; password: str = Field(min_length=1)

class ProfileUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    organization: Optional[str] = Field(None, max_length=100)
    location: Optional[str] = None

class PasswordChange(BaseModel):
    current_password: str = Field(min_length=1)
    new_password: str = Field(min_length=6)

class UserSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    username: str
    first_name: str
    last_name: str
    organization: Optional[str] = None

class UserProfile(UserSummary):
    email: str
    role: UserRole
    location: Optional[str] = None
    is_active: bool
    points: int
    reports_submitted: int
    reports_validated: int
    last_login: Optional[datetime] = None
    created_at: Optional[datetime] = None

class LeaderboardEntry(UserSummary):
    role: UserRole
    points: int
    reports_submitted: int
    reports_validated: int

class AuthResponse(BaseModel):
    message: str
    token: str
    user: UserProfile


# --- REPORTS ---
class EstimatedArea(BaseModel):
    value: Optional[float] = Field(None, ge=0)
    unit: AreaUnit = AreaUnit.sq_meters

class ImpactAssessment(BaseModel):
    biodiversity: Optional[ImpactLevel] = None
    carbon_storage: Optional[ImpactLevel] = None
    coastal_protection: Optional[ImpactLevel] = None

class ReportCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = Field(min_length=5, max_length=200)
    description: str = Field(min_length=20, max_length=1000)
    category: ReportCategory
    severity: ReportSeverity = ReportSeverity.medium
    latitude: float = Field(ge=-90, le=90)
    longitude: float = Field(ge=-180, le=180)
    street: Optional[str] = None
    city: Optional[str] = Field(None, max_length=100)
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    region: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    estimated_area: Optional[EstimatedArea] = None
    impact_assessment: Optional[ImpactAssessment] = None
    is_public: bool = True

class ReportUpdate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    title: Optional[str] = Field(None, min_length=5, max_length=200)
    description: Optional[str] = Field(None, min_length=20, max_length=1000)
    category: Optional[ReportCategory] = None
    severity: Optional[ReportSeverity] = None
    tags: Optional[List[str]] = None
    estimated_area: Optional[EstimatedArea] = None
    impact_assessment: Optional[ImpactAssessment] = None
    follow_up_required: Optional[bool] = None
    follow_up_notes: Optional[str] = Field(None, max_length=500)

    @field_validator("title", "description", "category", "severity", "tags", "follow_up_required")
    @classmethod
    def not_null(cls, value):
        # Omit a field to leave it unchanged; these columns cannot be cleared
        if value is None:
            raise ValueError("may not be null")
        return value

class ValidateRequest(BaseModel):
    status: Literal["approved", "rejected", "under_investigation"]
    validation_notes: Optional[str] = Field(None, max_length=500)

class ReviewRequest(BaseModel):
    action: Literal["approve", "reject"]
    notes: Optional[str] = Field(None, max_length=500)

class PhotoOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    filename: str
    original_name: Optional[str] = None
    url: str
    uploaded_at: Optional[datetime] = None

class ReportOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: str
    category: ReportCategory
    severity: ReportSeverity
    latitude: float
    longitude: float
    street: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None
    postal_code: Optional[str] = None
    region: Optional[str] = None
    full_location: str
    tags: List[str] = []
    estimated_area_value: Optional[float] = None
    estimated_area_unit: Optional[AreaUnit] = None
    impact_biodiversity: Optional[ImpactLevel] = None
    impact_carbon_storage: Optional[ImpactLevel] = None
    impact_coastal_protection: Optional[ImpactLevel] = None
    follow_up_required: bool = False
    follow_up_notes: Optional[str] = None
    is_public: bool
    status: ReportStatus
    status_color: str
    reporter_id: int
    reporter: Optional[UserSummary] = None
    validator_id: Optional[int] = None
    validator: Optional[UserSummary] = None
    validation_notes: Optional[str] = None
    validated_at: Optional[datetime] = None
    photos: List[PhotoOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

class ReportResponse(BaseModel):
    message: Optional[str] = None
    report: ReportOut

class ReportSubmitResponse(ReportResponse):
    points_earned: int

class Pagination(BaseModel):
    current_page: int
    total_pages: int
    total_reports: int
    has_next: bool
    has_prev: bool

class ReportListResponse(BaseModel):
    reports: List[ReportOut]
    pagination: Pagination

class MessageResponse(BaseModel): message: str

class ReportBrief(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    category: ReportCategory
    status: ReportStatus
    severity: ReportSeverity
    created_at: Optional[datetime] = None

class PublicProfileResponse(BaseModel):
    user: LeaderboardEntry
    recent_reports: List[ReportBrief]

class LeaderboardResponse(BaseModel):
    leaderboard: List[LeaderboardEntry]
    total_users: int

class UserSearchResponse(BaseModel):
    users: List[LeaderboardEntry]
    total_results: int
    query: str

class UserReportsResponse(BaseModel):
    reports: List[ReportBrief]
    pagination: Pagination

class UserStatusResponse(BaseModel):
    message: str
    user: UserProfile
