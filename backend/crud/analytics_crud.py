from sqlalchemy.orm import Session
from sqlalchemy import func, case, distinct, select
from decimal import Decimal
from datetime import datetime, timedelta, timezone
from typing import Optional, Tuple

from backend.core.database import commit_or_rollback
from backend.models.user_model import User
from backend.models.course_model import Course, CourseModule, Lesson, Enrollment, LessonProgress
from backend.models.payment_model import Payment
from backend.models.analytics_model import AnalyticsEvent, UserActivity
from backend.models.enums import EnrollmentStatus, PaymentStatus
from backend.schemas import analytics_schema as schemas

import logging
logger = logging.getLogger(__name__)

DEFAULT_RANGE_DAYS = 30
TOP_ITEMS_LIMIT = 10
TWO_PLACES = Decimal("0.01")

# --- Helpers ---
def resolve_date_range(start: Optional[datetime] = None, end: Optional[datetime] = None) -> Tuple[datetime, datetime]:
    """Defaults to the last 30 days ending now. Naive datetimes are taken as UTC."""
    end = end or datetime.now(timezone.utc)
    start = start or end - timedelta(days=DEFAULT_RANGE_DAYS)
    if start.tzinfo is None:
        start = start.replace(tzinfo=timezone.utc)
    if end.tzinfo is None:
        end = end.replace(tzinfo=timezone.utc)
    if start > end:
        raise ValueError("Start date must be before end date.")
    return start, end

def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(TWO_PLACES)

def _ratio(value) -> float:
    return round(float(value or 0), 2)

def _tenant_user_ids(tenant_id: str):
    return select(User.id).where(User.tenant_id == tenant_id)

def _scope_to_tenant(query, user_column, tenant_id: Optional[str]):
    if tenant_id:
        query = query.filter(user_column.in_(_tenant_user_ids(tenant_id)))
    return query

# --- Tracking ---
def track_event(
    db: Session,
    event_in: schemas.AnalyticsEventCreate,
    user_id: Optional[int] = None,
    tenant_id: Optional[str] = None,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> AnalyticsEvent:
    properties = dict(event_in.properties)
    event = AnalyticsEvent(
        tenant_id=tenant_id,
        user_id=user_id,
        session_id=event_in.session_id,
        event_type=event_in.event_type,
        event_category=event_in.event_category or properties.get("category") or "general",
        event_action=event_in.event_action or properties.get("action") or event_in.event_type,
        event_label=event_in.event_label or properties.get("label") or "",
        event_value=event_in.event_value,
        course_id=event_in.course_id,
        lesson_id=event_in.lesson_id,
        search_query=event_in.search_query or properties.get("query"),
        properties=properties,
        page=event_in.page,
        referrer=event_in.referrer,
        user_agent=(user_agent or "")[:500] or None,
        ip_address=ip_address,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(event)
    commit_or_rollback(db, event)
    logger.debug(f"Tracked event '{event.event_type}' (ID: {event.id}) for user {user_id}.")
    return event

def track_user_activity(
    db: Session,
    user_id: int,
    activity_in: schemas.UserActivityCreate,
    ip_address: Optional[str] = None,
    user_agent: Optional[str] = None,
) -> UserActivity:
    activity = UserActivity(
        user_id=user_id,
        activity_type=activity_in.activity_type,
        description=activity_in.resource_type or "",
        metadata_={
            "resource_id": activity_in.resource_id,
            "resource_type": activity_in.resource_type,
            "details": activity_in.details,
        },
        ip_address=ip_address,
        user_agent=(user_agent or "")[:500] or None,
        timestamp=datetime.now(timezone.utc),
    )
    db.add(activity)
    commit_or_rollback(db, activity)
    logger.debug(f"Tracked activity '{activity.activity_type}' (ID: {activity.id}) for user {user_id}.")
    return activity

# --- Platform overview ---
def get_analytics_overview(
    db: Session, tenant_id: Optional[str] = None, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> schemas.AnalyticsOverview:
    start, end = resolve_date_range(start, end)
    logger.debug(f"Calculating analytics overview for tenant {tenant_id or 'all'} from {start} to {end}.")

    active_users_query = db.query(func.count(distinct(UserActivity.user_id))).filter(
        UserActivity.timestamp >= start, UserActivity.timestamp <= end
    )
    active_users = _scope_to_tenant(active_users_query, UserActivity.user_id, tenant_id).scalar() or 0

    enrollment_query = db.query(
        func.count(Enrollment.id),
        func.count(distinct(Enrollment.course_id)),
        func.count(distinct(Enrollment.user_id)),
        func.count(case((Enrollment.status == EnrollmentStatus.COMPLETED, 1))),
    ).filter(Enrollment.enrolled_at >= start, Enrollment.enrolled_at <= end)
    total, courses, students, completed = _scope_to_tenant(enrollment_query, Enrollment.user_id, tenant_id).one()

    revenue_query = db.query(func.sum(Payment.amount), func.count(Payment.id)).filter(
        Payment.status == PaymentStatus.COMPLETED, Payment.created_at >= start, Payment.created_at <= end
    )
    revenue_total, transactions = _scope_to_tenant(revenue_query, Payment.user_id, tenant_id).one()

    completion_rate = round((completed or 0) / total * 100, 2) if total else 0.0

    return schemas.AnalyticsOverview(
        active_users=active_users,
        enrollments=schemas.EnrollmentStats(
            total_enrollments=total or 0, total_courses=courses or 0, total_students=students or 0
        ),
        completion_rate=completion_rate,
        revenue=schemas.RevenueTotals(total_revenue=_money(revenue_total), transactions=transactions or 0),
        date_range=schemas.DateRange(start=start, end=end),
    )

# --- Per course ---
def get_course_analytics(
    db: Session, course: Course, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> schemas.CourseAnalytics:
    start, end = resolve_date_range(start, end)
    logger.debug(f"Calculating analytics for course {course.id} from {start} to {end}.")

    total, completed, active, avg_progress = db.query(
        func.count(Enrollment.id),
        func.count(case((Enrollment.status == EnrollmentStatus.COMPLETED, 1))),
        func.count(case((Enrollment.status == EnrollmentStatus.ACTIVE, 1))),
        func.avg(Enrollment.progress),
    ).filter(
        Enrollment.course_id == course.id, Enrollment.enrolled_at >= start, Enrollment.enrolled_at <= end
    ).one()

    revenue_total, revenue_count = db.query(func.sum(Payment.amount), func.count(Payment.id)).filter(
        Payment.course_id == course.id,
        Payment.status == PaymentStatus.COMPLETED,
        Payment.created_at >= start,
        Payment.created_at <= end,
    ).one()

    # Progress rows on this course's lessons
    lesson_ids = select(Lesson.id).join(CourseModule, Lesson.module_id == CourseModule.id).where(CourseModule.course_id == course.id)
    lesson_total, lesson_completed, avg_watch = db.query(
        func.count(LessonProgress.id),
        func.count(case((LessonProgress.is_completed == True, 1))),
        func.avg(LessonProgress.watch_time),
    ).filter(
        LessonProgress.lesson_id.in_(lesson_ids), LessonProgress.created_at >= start, LessonProgress.created_at <= end
    ).one()

    day = func.date(Enrollment.enrolled_at)
    trend_rows = (
        db.query(day.label("day"), func.count(Enrollment.id))
        .filter(Enrollment.course_id == course.id, Enrollment.enrolled_at >= start, Enrollment.enrolled_at <= end)
        .group_by(day)
        .order_by(day)
        .all()
    )

    return schemas.CourseAnalytics(
        course_id=course.id,
        course_title=course.title,
        enrollments=schemas.CourseEnrollmentStats(
            total=total or 0, completed=completed or 0, active=active or 0, avg_progress=_ratio(avg_progress)
        ),
        revenue=schemas.CourseRevenueStats(total=_money(revenue_total), count=revenue_count or 0),
        lesson_stats=schemas.LessonStats(
            total_lessons=lesson_total or 0, completed_lessons=lesson_completed or 0, avg_watch_time=_ratio(avg_watch)
        ),
        enrollment_trend=[schemas.DailyCount(date=d, count=c) for d, c in trend_rows],
        date_range=schemas.DateRange(start=start, end=end),
    )

# --- Per learner ---
def get_user_learning_analytics(
    db: Session, user_id: int, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> schemas.UserLearningAnalytics:
    start, end = resolve_date_range(start, end)

    enrollment_rows = (
        db.query(Enrollment, Course.title)
        .join(Course, Enrollment.course_id == Course.id)
        .filter(Enrollment.user_id == user_id, Enrollment.enrolled_at >= start, Enrollment.enrolled_at <= end)
        .order_by(Enrollment.enrolled_at.desc())
        .all()
    )

    total_time, sessions = db.query(func.sum(LessonProgress.watch_time), func.count(LessonProgress.id)).filter(
        LessonProgress.user_id == user_id, LessonProgress.created_at >= start, LessonProgress.created_at <= end
    ).one()

    day = func.date(LessonProgress.created_at)
    activity_rows = (
        db.query(
            day.label("day"),
            func.sum(LessonProgress.watch_time),
            func.count(case((LessonProgress.is_completed == True, 1))),
        )
        .filter(LessonProgress.user_id == user_id, LessonProgress.created_at >= start, LessonProgress.created_at <= end)
        .group_by(day)
        .order_by(day)
        .all()
    )

    completed = sum(1 for e, _ in enrollment_rows if e.status == EnrollmentStatus.COMPLETED)
    in_progress = sum(1 for e, _ in enrollment_rows if e.status == EnrollmentStatus.ACTIVE)
    avg_progress = (sum(e.progress for e, _ in enrollment_rows) / len(enrollment_rows)) if enrollment_rows else 0

    return schemas.UserLearningAnalytics(
        user_id=user_id,
        enrollments=[
            schemas.LearnerEnrollment(
                enrollment_id=e.id,
                course_id=e.course_id,
                course_title=title,
                status=e.status.value,
                progress=e.progress,
                enrolled_at=e.enrolled_at,
            )
            for e, title in enrollment_rows
        ],
        study_time=schemas.StudyTime(total_time=int(total_time or 0), sessions_count=sessions or 0),
        learning_activity=[
            schemas.DailyLearning(date=d, watch_time=int(w or 0), lessons_completed=c or 0) for d, w, c in activity_rows
        ],
        completion_stats=schemas.LearnerCompletionStats(
            total=len(enrollment_rows), completed=completed, in_progress=in_progress, avg_progress=_ratio(avg_progress)
        ),
        date_range=schemas.DateRange(start=start, end=end),
    )

# --- Revenue ---
def get_revenue_analytics(
    db: Session, tenant_id: Optional[str] = None, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> schemas.RevenueAnalytics:
    start, end = resolve_date_range(start, end)

    def completed_in_range(query):
        query = query.filter(
            Payment.status == PaymentStatus.COMPLETED, Payment.created_at >= start, Payment.created_at <= end
        )
        return _scope_to_tenant(query, Payment.user_id, tenant_id)

    revenue_total, transactions, avg_value = completed_in_range(
        db.query(func.sum(Payment.amount), func.count(Payment.id), func.avg(Payment.amount))
    ).one()

    day = func.date(Payment.created_at)
    trend_rows = completed_in_range(
        db.query(day.label("day"), func.sum(Payment.amount), func.count(Payment.id))
    ).group_by(day).order_by(day).all()

    method_rows = completed_in_range(
        db.query(Payment.payment_method, func.sum(Payment.amount), func.count(Payment.id))
    ).group_by(Payment.payment_method).all()

    revenue_sum = func.sum(Payment.amount)
    course_rows = completed_in_range(
        db.query(Payment.course_id, Course.title, revenue_sum, func.count(Payment.id))
        .outerjoin(Course, Payment.course_id == Course.id)
    ).group_by(Payment.course_id, Course.title).order_by(revenue_sum.desc()).all()

    return schemas.RevenueAnalytics(
        overview=schemas.RevenueOverview(
            total_revenue=_money(revenue_total), total_transactions=transactions or 0, avg_order_value=_money(avg_value)
        ),
        trend=[schemas.RevenueDataPoint(date=d, revenue=_money(r), transactions=n) for d, r, n in trend_rows],
        by_method=[schemas.RevenueByMethod(method=m, revenue=_money(r), transactions=n) for m, r, n in method_rows],
        by_course=[
            schemas.RevenueByCourse(course_id=cid, course_title=title, revenue=_money(r), transactions=n)
            for cid, title, r, n in course_rows
        ],
        date_range=schemas.DateRange(start=start, end=end),
    )

# --- Engagement ---
def get_engagement_analytics(
    db: Session, tenant_id: Optional[str] = None, start: Optional[datetime] = None, end: Optional[datetime] = None
) -> schemas.EngagementAnalytics:
    start, end = resolve_date_range(start, end)

    def activity_in_range(query):
        query = query.filter(UserActivity.timestamp >= start, UserActivity.timestamp <= end)
        return _scope_to_tenant(query, UserActivity.user_id, tenant_id)

    def events_in_range(query, event_type: str):
        query = query.filter(
            AnalyticsEvent.event_type == event_type,
            AnalyticsEvent.timestamp >= start,
            AnalyticsEvent.timestamp <= end,
        )
        if tenant_id:
            query = query.filter(AnalyticsEvent.tenant_id == tenant_id)
        return query

    total_sessions, unique_users = activity_in_range(
        db.query(func.count(UserActivity.id), func.count(distinct(UserActivity.user_id)))
        .filter(UserActivity.activity_type == "session")
    ).one()

    day = func.date(UserActivity.timestamp)
    dau_rows = activity_in_range(
        db.query(day.label("day"), func.count(distinct(UserActivity.user_id)))
    ).group_by(day).order_by(day).all()

    views = func.count(AnalyticsEvent.id)
    course_rows = events_in_range(
        db.query(AnalyticsEvent.course_id, Course.title, views, func.count(distinct(AnalyticsEvent.user_id)))
        .outerjoin(Course, AnalyticsEvent.course_id == Course.id),
        "view_course",
    ).group_by(AnalyticsEvent.course_id, Course.title).order_by(views.desc()).limit(TOP_ITEMS_LIMIT).all()

    lesson_rows = events_in_range(
        db.query(AnalyticsEvent.lesson_id, Lesson.title, views, func.count(distinct(AnalyticsEvent.user_id)))
        .outerjoin(Lesson, AnalyticsEvent.lesson_id == Lesson.id),
        "view_lesson",
    ).group_by(AnalyticsEvent.lesson_id, Lesson.title).order_by(views.desc()).limit(TOP_ITEMS_LIMIT).all()

    search_rows = events_in_range(
        db.query(AnalyticsEvent.search_query, views).filter(AnalyticsEvent.search_query.isnot(None)),
        "search",
    ).group_by(AnalyticsEvent.search_query).order_by(views.desc()).limit(TOP_ITEMS_LIMIT).all()

    return schemas.EngagementAnalytics(
        session_stats=schemas.SessionStats(total_sessions=total_sessions or 0, unique_users=unique_users or 0),
        daily_active_users=[schemas.DailyCount(date=d, count=c) for d, c in dau_rows],
        active_courses=[schemas.TopItem(id=i, title=t, views=v, unique_users=u) for i, t, v, u in course_rows],
        active_lessons=[schemas.TopItem(id=i, title=t, views=v, unique_users=u) for i, t, v, u in lesson_rows],
        search_terms=[schemas.SearchTerm(term=term, count=c) for term, c in search_rows],
        date_range=schemas.DateRange(start=start, end=end),
    )

# --- Export ---
EXPORT_TYPES = ("overview", "revenue", "engagement")

def export_analytics_data(
    db: Session, export_type: str, tenant_id: Optional[str] = None,
    start: Optional[datetime] = None, end: Optional[datetime] = None,
) -> schemas.AnalyticsExport:
    builders = {
        "overview": get_analytics_overview,
        "revenue": get_revenue_analytics,
        "engagement": get_engagement_analytics,
    }
    builder = builders.get(export_type)
    if builder is None:
        raise ValueError(f"Invalid export type '{export_type}'. Expected one of: {', '.join(EXPORT_TYPES)}.")
    report = builder(db, tenant_id=tenant_id, start=start, end=end)
    logger.info(f"Analytics export '{export_type}' generated for tenant {tenant_id or 'all'}.")
    return schemas.AnalyticsExport(
        export_type=export_type,
        export_data=report.model_dump(mode="json"),
        export_date=datetime.now(timezone.utc),
        download_url=f"/api/analytics/export/{export_type}",
    )
