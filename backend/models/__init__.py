# This file makes the 'models' directory a Python package.

from backend.core.database import Base # Base must be imported before models that use it

from .enums import ( # Import all enums
    UserRole, CourseLevel, LessonType, EnrollmentStatus,
    PaymentMethod, PaymentStatus, InvoiceStatus, RefundReason, RefundStatus, WebhookStatus,
    PlanInterval, SubscriptionStatus,
    CertificateStatus, CertificateOrientation, PaperSize, SignatureType, VerificationStatus,
    LiveClassPlatform, LiveClassStatus,
    DomainVerificationMethod, DomainStatus, EmailTemplateType, TimeFormat,
    NotificationType, NotificationCategory
)

from .user_model import User
from .course_model import Category, Course, CourseModule, Lesson, Enrollment, LessonProgress
from .subscription_model import SubscriptionPlan, Subscription
from .payment_model import Invoice, Payment, Refund, PaymentWebhook
from .certificate_model import Certificate, CertificateTemplate, DigitalSignature, CertificateVerification
from .live_class_model import LiveClass
from .white_label_model import WhiteLabelSettings, CustomDomain, EmailTemplate, LandingPage
from .analytics_model import AnalyticsEvent, UserActivity, Notification


__all__ = [
    "Base",
    # Models
    "User",
    "Category",
    "Course",
    "CourseModule",
    "Lesson",
    "Enrollment",
    "LessonProgress",
    "SubscriptionPlan",
    "Subscription",
    "Invoice",
    "Payment",
    "Refund",
    "PaymentWebhook",
    "Certificate",
    "CertificateTemplate",
    "DigitalSignature",
    "CertificateVerification",
    "LiveClass",
    "WhiteLabelSettings",
    "CustomDomain",
    "EmailTemplate",
    "LandingPage",
    "AnalyticsEvent",
    "UserActivity",
    "Notification",
    # Enums
    "UserRole",
    "CourseLevel",
    "LessonType",
    "EnrollmentStatus",
    "PaymentMethod",
    "PaymentStatus",
    "InvoiceStatus",
    "RefundReason",
    "RefundStatus",
    "WebhookStatus",
    "PlanInterval",
    "SubscriptionStatus",
    "CertificateStatus",
    "CertificateOrientation",
    "PaperSize",
    "SignatureType",
    "VerificationStatus",
    "LiveClassPlatform",
    "LiveClassStatus",
    "DomainVerificationMethod",
    "DomainStatus",
    "EmailTemplateType",
    "TimeFormat",
    "NotificationType",
    "NotificationCategory",
]
