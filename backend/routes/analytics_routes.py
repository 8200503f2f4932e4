from fastapi import APIRouter, Depends, Request, status, Query
from sqlalchemy.orm import Session
from typing import Optional
from datetime import datetime
import logging

from backend.core.database import get_db
from backend.core.dependencies import (
    get_current_active_user,
    get_current_admin_user,
    get_course_owner_or_admin,
    get_user_or_404,
)
from backend.core.middleware import get_client_ip
from backend.crud import analytics_crud
from backend.models.course_model import Course
from backend.models.user_model import User
from backend.schemas import analytics_schema as schemas

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/analytics", tags=["Analytics"])

def _tenant_scope(current_admin: User, tenant_id: Optional[str]) -> Optional[str]:
    """Admins bound to a tenant only ever see that tenant; platform admins may pick one or see all."""
    return current_admin.tenant_id or tenant_id

# --- Tracking ---
@router.post("/events", response_model=schemas.TrackResponse, status_code=status.HTTP_201_CREATED)
def track_analytics_event(
    event_in: schemas.AnalyticsEventCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    event = analytics_crud.track_event(
        db,
        event_in,
        user_id=current_user.id,
        tenant_id=current_user.tenant_id,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return schemas.TrackResponse(id=event.id)

@router.post("/activity", response_model=schemas.TrackResponse, status_code=status.HTTP_201_CREATED)
def track_activity(
    activity_in: schemas.UserActivityCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    activity = analytics_crud.track_user_activity(
        db,
        current_user.id,
        activity_in,
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )
    return schemas.TrackResponse(id=activity.id)

# --- Reports ---
@router.get("/overview", response_model=schemas.AnalyticsOverview)
def read_analytics_overview(
    tenant_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: users, enrollments and revenue for the period (last 30 days by default)."""
    return analytics_crud.get_analytics_overview(db, _tenant_scope(current_admin, tenant_id), start_date, end_date)

@router.get("/revenue", response_model=schemas.RevenueAnalytics)
def read_revenue_analytics(
    tenant_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return analytics_crud.get_revenue_analytics(db, _tenant_scope(current_admin, tenant_id), start_date, end_date)

@router.get("/engagement", response_model=schemas.EngagementAnalytics)
def read_engagement_analytics(
    tenant_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return analytics_crud.get_engagement_analytics(db, _tenant_scope(current_admin, tenant_id), start_date, end_date)

@router.get("/courses/{course_id}", response_model=schemas.CourseAnalytics)
def read_course_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    course: Course = Depends(get_course_owner_or_admin),
    db: Session = Depends(get_db)
):
    """Enrollments, revenue and lesson completion for one course. (Course instructor or Admin)"""
    return analytics_crud.get_course_analytics(db, course, start_date, end_date)

@router.get("/users/me", response_model=schemas.UserLearningAnalytics)
def read_my_learning_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user)
):
    return analytics_crud.get_user_learning_analytics(db, current_user.id, start_date, end_date)

@router.get("/users/{user_id}", response_model=schemas.UserLearningAnalytics)
def read_user_learning_analytics(
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    user: User = Depends(get_user_or_404),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    return analytics_crud.get_user_learning_analytics(db, user.id, start_date, end_date)

@router.get("/export/{export_type}", response_model=schemas.AnalyticsExport)
def export_analytics(
    export_type: str,
    tenant_id: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None),
    end_date: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    current_admin: User = Depends(get_current_admin_user)
):
    """Admin: overview, revenue or engagement report as a single JSON document."""
    logger.info(f"Admin {current_admin.email} exporting {export_type} analytics")
    return analytics_crud.export_analytics_data(
        db, export_type, _tenant_scope(current_admin, tenant_id), start_date, end_date
    )
