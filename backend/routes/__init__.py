# This file makes the 'routes' directory a Python package.

from fastapi import APIRouter

from backend.core.config import settings
from .auth_routes import router as auth_router
from .course_routes import router as course_router
from .payment_routes import router as payment_router
from .webhook_routes import router as webhook_router
from .subscription_routes import router as subscription_router
from .certificate_routes import router as certificate_router
from .live_class_routes import router as live_class_router
from .white_label_routes import router as white_label_router
from .analytics_routes import router as analytics_router
from .notification_routes import router as notification_router
from .admin_routes import router as admin_router

# Every HTTP route lives under /api; the edge middleware keys its route tables off this prefix
api_router = APIRouter(prefix=settings.API_PREFIX)

api_router.include_router(auth_router)
api_router.include_router(course_router)
api_router.include_router(payment_router)
api_router.include_router(webhook_router)
api_router.include_router(subscription_router)
api_router.include_router(certificate_router)
api_router.include_router(live_class_router)
api_router.include_router(white_label_router)
api_router.include_router(analytics_router)
api_router.include_router(notification_router)

# Admin routes are already prefixed with /admin, so they land on /api/admin/...
api_router.include_router(admin_router)

__all__ = [
    "api_router"
]
