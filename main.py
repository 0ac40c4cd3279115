import logging
from typing import List, Literal, Optional

from fastapi import FastAPI, Depends, File, Form, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from pydantic import ValidationError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

import accounts
import config
import lifecycle
import models
import queries
import schemas
from database import SessionLocal, engine, get_db
from errors import AuthenticationError, ReportingError, ValidationFailedError
from ledger import POINTS_FOR_SUBMISSION
from security import create_access_token, get_current_user
from storage import LocalPhotoStorage, get_storage

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Mangrove Watch API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Ensure the uploads directory exists before serving it
config.UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
app.mount("/uploads", StaticFiles(directory=config.UPLOAD_DIR), name="uploads")


# --- STARTUP: TABLES + ADMIN ACCOUNT ---
@app.on_event("startup")
def on_startup():
    models.Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        accounts.ensure_admin(db, config.ADMIN_EMAIL, config.ADMIN_USERNAME, config.ADMIN_PASSWORD)
    finally:
        db.close()


# --- ERROR RESPONSES ---
@app.exception_handler(ReportingError)
async def reporting_error_handler(request: Request, exc: ReportingError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail}, headers=headers)


def _report_out(report) -> schemas.ReportOut:
    return schemas.ReportOut.model_validate(report)


# --- BASIC ---
@app.get("/")
def root():
    return {"message": "Mangrove Watch API running"}

@app.get("/health")
def health(db: Session = Depends(get_db)):
    info = {"backend": "running", "database": "connected"}
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.warning("Health check database error: %s", e)
        info["database"] = f"error: {str(e)[:80]}"
    return info


# --- AUTH ---
@app.post("/api/auth/register", response_model=schemas.AuthResponse, status_code=status.HTTP_201_CREATED)
def register(user: schemas.UserCreate, db: Session = Depends(get_db)):
    db_user = accounts.register_user(db, user)
    return {"message": "User registered successfully", "token": create_access_token(db_user.id), "user": db_user}

@app.post("/api/auth/login", response_model=schemas.AuthResponse)
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    user = accounts.authenticate_user(db, credentials.email, credentials.password)
    return {"message": "Login successful", "token": create_access_token(user.id), "user": user}

@app.get("/api/auth/profile")
def read_profile(current_user: models.User = Depends(get_current_user)):
    return {"user": schemas.UserProfile.model_validate(current_user)}

@app.put("/api/auth/profile")
def edit_profile(body: schemas.ProfileUpdate, db: Session = Depends(get_db),
                 current_user: models.User = Depends(get_current_user)):
    user = accounts.update_profile(db, current_user, body.model_dump(exclude_unset=True))
    return {"message": "Profile updated successfully", "user": schemas.UserProfile.model_validate(user)}

@app.post("/api/auth/change-password", response_model=schemas.MessageResponse)
def change_password(body: schemas.PasswordChange, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    accounts.change_password(db, current_user, body.current_password, body.new_password)
    return {"message": "Password changed successfully"}

@app.post("/api/auth/refresh", response_model=schemas.AuthResponse)
def refresh_token(current_user: models.User = Depends(get_current_user)):
    return {"message": "Token refreshed successfully", "token": create_access_token(current_user.id), "user": current_user}


# --- REPORTS ---
@app.post("/api/reports", response_model=schemas.ReportSubmitResponse, status_code=status.HTTP_201_CREATED)
def create_report(
    title: str = Form(...),
    description: str = Form(...),
    category: str = Form(...),
    latitude: float = Form(...),
    longitude: float = Form(...),
    severity: str = Form(models.ReportSeverity.medium.value),
    street: Optional[str] = Form(None),
    city: Optional[str] = Form(None),
    state: Optional[str] = Form(None),
    country: Optional[str] = Form(None),
    postal_code: Optional[str] = Form(None),
    region: Optional[str] = Form(None),
    tags: List[str] = Form([]),
    estimated_area_value: Optional[float] = Form(None),
    estimated_area_unit: str = Form(models.AreaUnit.sq_meters.value),
    impact_biodiversity: Optional[str] = Form(None),
    impact_carbon_storage: Optional[str] = Form(None),
    impact_coastal_protection: Optional[str] = Form(None),
    is_public: bool = Form(True),
    photos: Optional[List[UploadFile]] = File(None),
    db: Session = Depends(get_db),
    storage: LocalPhotoStorage = Depends(get_storage),
    current_user: models.User = Depends(get_current_user),
):
    try:
        payload = schemas.ReportCreate(
            title=title, description=description, category=category, severity=severity,
            latitude=latitude, longitude=longitude, street=street, city=city, state=state,
            country=country, postal_code=postal_code, region=region, tags=tags, is_public=is_public,
            estimated_area={"value": estimated_area_value, "unit": estimated_area_unit},
            impact_assessment={
                "biodiversity": impact_biodiversity,
                "carbon_storage": impact_carbon_storage,
                "coastal_protection": impact_coastal_protection,
            },
        )
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False))

    stored = storage.save_uploads(photos or [])
    try:
        report = lifecycle.submit_report(db, current_user, payload, stored)
    except ReportingError:
        for photo in stored:
            storage.delete(photo.filename)
        raise

    return {"message": "Report submitted successfully", "report": _report_out(report), "points_earned": POINTS_FOR_SUBMISSION}

@app.get("/api/reports", response_model=schemas.ReportListResponse)
def get_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    report_status: Optional[models.ReportStatus] = Query(None, alias="status"),
    category: Optional[models.ReportCategory] = None,
    reporter: Optional[int] = None,
    search: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    if sort_by not in queries.SORTABLE_FIELDS:
        raise ValidationFailedError(f"Cannot sort by '{sort_by}'")

    filters = queries.ReportFilters(status=report_status, category=category, reporter_id=reporter, search=search)
    result = queries.list_reports(db, current_user, filters, page=page, page_size=limit,
                                  sort_field=sort_by, sort_order=sort_order)
    return {"reports": [_report_out(r) for r in result.items], "pagination": result.pagination()}

@app.get("/api/reports/stats/summary")
def get_report_summary(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return queries.summary(db, current_user)

@app.get("/api/reports/stats")
def get_admin_stats(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return queries.admin_stats(db, current_user)

@app.get("/api/reports/{report_id}", response_model=schemas.ReportResponse)
def get_report(report_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    report = lifecycle.get_report(db, report_id, current_user)
    return {"report": _report_out(report)}

@app.put("/api/reports/{report_id}", response_model=schemas.ReportResponse)
def update_report(report_id: int, body: schemas.ReportUpdate, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    report = lifecycle.update_report(db, report_id, current_user, body.model_dump(exclude_unset=True))
    return {"message": "Report updated successfully", "report": _report_out(report)}

@app.delete("/api/reports/{report_id}", response_model=schemas.MessageResponse)
def delete_report(report_id: int, db: Session = Depends(get_db), storage: LocalPhotoStorage = Depends(get_storage),
                  current_user: models.User = Depends(get_current_user)):
    lifecycle.delete_report(db, report_id, current_user, storage)
    return {"message": "Report deleted successfully"}

@app.post("/api/reports/{report_id}/validate", response_model=schemas.ReportResponse)
def review_report(report_id: int, body: schemas.ReviewRequest, db: Session = Depends(get_db),
                  current_user: models.User = Depends(get_current_user)):
    report = lifecycle.review_report(db, report_id, current_user, body.action, body.notes)
    return {"message": f"Report {body.action}d successfully", "report": _report_out(report)}

@app.put("/api/reports/{report_id}/validate", response_model=schemas.ReportResponse)
def validate_report(report_id: int, body: schemas.ValidateRequest, db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    report = lifecycle.validate_report(db, report_id, current_user, body.status, body.validation_notes)
    return {"message": f"Report status updated to {body.status}", "report": _report_out(report)}


# --- USERS ---
@app.get("/api/users/leaderboard", response_model=schemas.LeaderboardResponse)
def get_leaderboard(limit: int = Query(20, ge=1, le=100), db: Session = Depends(get_db),
                    current_user: models.User = Depends(get_current_user)):
    users = queries.leaderboard(db, limit)
    return {"leaderboard": users, "total_users": len(users)}

@app.get("/api/users/profile/{user_id}", response_model=schemas.PublicProfileResponse)
def get_user_profile(user_id: int, db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return accounts.get_public_profile(db, user_id)

@app.get("/api/users/search", response_model=schemas.UserSearchResponse)
def search_users(
    q: str = Query(..., min_length=2),
    role: Optional[models.UserRole] = None,
    limit: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    users = queries.search_users(db, current_user, q, role=role, limit=limit)
    return {"users": users, "total_results": len(users), "query": q}

@app.get("/api/users/stats")
def get_user_stats(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    stats = queries.user_stats(db, current_user)
    for key in ("top_contributors", "recent_registrations"):
        stats[key] = [schemas.LeaderboardEntry.model_validate(u) for u in stats[key]]
    return stats

@app.put("/api/users/{user_id}/status", response_model=schemas.UserStatusResponse)
def update_user_status(user_id: int, account_status: Literal["active", "inactive"] = Query(..., alias="status"),
                       db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    active = account_status == "active"
    user = accounts.set_user_active(db, current_user, user_id, active)
    verb = "activated" if active else "deactivated"
    return {"message": f"User account {verb} successfully", "user": user}

@app.get("/api/users/me/reports", response_model=schemas.UserReportsResponse)
def get_my_reports(
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    report_status: Optional[models.ReportStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    result = queries.user_reports(db, current_user, status=report_status, page=page, page_size=limit)
    return {"reports": result.items, "pagination": result.pagination()}

@app.get("/api/users/me/achievements")
def get_my_achievements(db: Session = Depends(get_db), current_user: models.User = Depends(get_current_user)):
    return queries.achievements(db, current_user)
