import enum

class UserRole(str, enum.Enum):
    STUDENT = "student"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"

class CourseLevel(str, enum.Enum):
    BEGINNER = "beginner"
    INTERMEDIATE = "intermediate"
    ADVANCED = "advanced"

class LessonType(str, enum.Enum):
    VIDEO = "video"
    TEXT = "text"
    QUIZ = "quiz"
    ASSIGNMENT = "assignment"
    LIVE = "live"

class EnrollmentStatus(str, enum.Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    DROPPED = "dropped"

class PaymentMethod(str, enum.Enum):
    RAZORPAY = "razorpay"
    CASHFREE = "cashfree"

class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"

class InvoiceStatus(str, enum.Enum):
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled" # Draft voided because the order could not be opened

class RefundReason(str, enum.Enum):
    REQUESTED_BY_CUSTOMER = "requested_by_customer"
    DUPLICATE = "duplicate"
    FRAUDULENT = "fraudulent"
    SUBSCRIPTION_CANCELLATION = "subscription_cancellation"

class RefundStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"

class WebhookStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSED = "processed"
    FAILED = "failed"

class PlanInterval(str, enum.Enum):
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"

class SubscriptionStatus(str, enum.Enum):
    ACTIVE = "active"
    PAUSED = "paused"
    CANCELLED = "cancelled" # Still usable until current_period_end
    EXPIRED = "expired"

class CertificateStatus(str, enum.Enum):
    ISSUED = "issued"
    REVOKED = "revoked"
    EXPIRED = "expired"

class CertificateOrientation(str, enum.Enum):
    PORTRAIT = "portrait"
    LANDSCAPE = "landscape"

class PaperSize(str, enum.Enum):
    A4 = "A4"
    A3 = "A3"
    LETTER = "Letter"

class SignatureType(str, enum.Enum):
    IMAGE = "image"
    TEXT = "text"
    DRAWN = "drawn"

class VerificationStatus(str, enum.Enum):
    VALID = "valid"
    INVALID = "invalid"
    EXPIRED = "expired"
    REVOKED = "revoked"

class LiveClassPlatform(str, enum.Enum):
    ZOOM = "zoom"
    GOOGLE_MEET = "google_meet"
    CUSTOM = "custom"

class LiveClassStatus(str, enum.Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class DomainVerificationMethod(str, enum.Enum):
    DNS = "dns"
    FILE = "file"

class DomainStatus(str, enum.Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    VERIFIED = "verified"
    FAILED = "failed"

class EmailTemplateType(str, enum.Enum):
    WELCOME = "welcome"
    ENROLLMENT = "enrollment"
    COMPLETION = "completion"
    CERTIFICATE = "certificate"
    PAYMENT = "payment"
    REMINDER = "reminder"
    CUSTOM = "custom"

class NotificationType(str, enum.Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"

class NotificationCategory(str, enum.Enum):
    SYSTEM = "system"
    COURSE = "course"
    PAYMENT = "payment"
    CERTIFICATE = "certificate"
    LIVE_CLASS = "live_class"

class TimeFormat(str, enum.Enum):
    TWELVE_HOUR = "12h"
    TWENTY_FOUR_HOUR = "24h"

# SAEnum columns use `values_callable` so the lowercase string values are stored, not the member names.
