import enum
from sqlalchemy import Column, Integer, String, Boolean, DateTime, Float, ForeignKey, Enum, Text, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base

class UserRole(str, enum.Enum):
    community = "community"
    ngo = "ngo"
    government = "government"
    researcher = "researcher"

class ReportCategory(str, enum.Enum):
    cutting = "cutting"
    dumping = "dumping"
    reclamation = "reclamation"
    pollution = "pollution"
    other = "other"

class ReportSeverity(str, enum.Enum):
    low = "low"
    medium = "medium"
    high = "high"
    critical = "critical"

class ReportStatus(str, enum.Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    under_investigation = "under_investigation"

class AreaUnit(str, enum.Enum):
    sq_meters = "sq_meters"
    sq_kilometers = "sq_kilometers"
    acres = "acres"
    hectares = "hectares"

class ImpactLevel(str, enum.Enum):
    none = "none"
    low = "low"
    medium = "medium"
    high = "high"
    severe = "severe"

class LedgerReason(str, enum.Enum):
    report_submitted = "report_submitted"
    report_approved = "report_approved"
    report_deleted = "report_deleted"

STATUS_COLORS = {
    ReportStatus.pending: "yellow",
    ReportStatus.approved: "green",
    ReportStatus.rejected: "red",
    ReportStatus.under_investigation: "blue",
}

class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    username = Column(String(30), unique=True, index=True, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    organization = Column(String(100), nullable=True)
    location = Column(String, nullable=True)
    role = Column(Enum(UserRole), default=UserRole.community, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)

    # Only ever changed through ledger.apply_points_delta
    points = Column(Integer, default=0, nullable=False)
    reports_submitted = Column(Integer, default=0, nullable=False)
    reports_validated = Column(Integer, default=0, nullable=False)

    last_login = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reports = relationship("Report", back_populates="reporter", foreign_keys="Report.reporter_id")

class Report(Base):
    __tablename__ = "reports"
    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(200), nullable=False, index=True)
    description = Column(Text, nullable=False)
    category = Column(Enum(ReportCategory), nullable=False, index=True)
    severity = Column(Enum(ReportSeverity), default=ReportSeverity.medium, nullable=False)

    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)
    street = Column(String, nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String, nullable=True)
    country = Column(String, nullable=True)
    postal_code = Column(String, nullable=True)
    region = Column(String, nullable=True)

    tags = Column(JSON, default=list, nullable=False)
    estimated_area_value = Column(Float, nullable=True)
    estimated_area_unit = Column(Enum(AreaUnit), default=AreaUnit.sq_meters, nullable=True)
    impact_biodiversity = Column(Enum(ImpactLevel), nullable=True)
    impact_carbon_storage = Column(Enum(ImpactLevel), nullable=True)
    impact_coastal_protection = Column(Enum(ImpactLevel), nullable=True)
    follow_up_required = Column(Boolean, default=False, nullable=False)
    follow_up_notes = Column(Text, nullable=True)
    is_public = Column(Boolean, default=True, nullable=False)

    status = Column(Enum(ReportStatus), default=ReportStatus.pending, nullable=False, index=True)
    reporter_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    validator_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    validation_notes = Column(String(500), nullable=True)
    validated_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), index=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    reporter = relationship("User", back_populates="reports", foreign_keys=[reporter_id])
    validator = relationship("User", foreign_keys=[validator_id])
    photos = relationship("ReportPhoto", back_populates="report", cascade="all, delete-orphan")

    @property
    def full_location(self):
        address = " ".join(part for part in (self.street, self.city, self.state, self.country) if part)
        if address:
            return address
        return f"{self.latitude}, {self.longitude}"

    @property
    def status_color(self):
        return STATUS_COLORS.get(self.status, "gray")

class ReportPhoto(Base):
    __tablename__ = "report_photos"
    id = Column(Integer, primary_key=True, index=True)
    filename = Column(String, nullable=False)
    original_name = Column(String, nullable=True)
    path = Column(String, nullable=True)
    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
    report_id = Column(Integer, ForeignKey("reports.id", ondelete="CASCADE"), nullable=False)

    report = relationship("Report", back_populates="photos")

    @property
    def url(self):
        return f"/uploads/{self.filename}"

class PointEvent(Base):
    __tablename__ = "point_events"
    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # Not a foreign key: deletion events outlive their report
    report_id = Column(Integer, nullable=True)
    reason = Column(Enum(LedgerReason), nullable=False)
    points = Column(Integer, nullable=False)
    reports_submitted = Column(Integer, default=0, nullable=False)
    reports_validated = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
