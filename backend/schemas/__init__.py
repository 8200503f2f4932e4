# This file makes the 'schemas' directory a Python package.

from .user_schema import (
    UserBase, UserCreateInternal, UserDisplay, TokenData,
    UserRegisterRequest, TokenRequest, TokenResponse, AuthResponse, UserUpdate,
    AdminUserUpdate
)

from .course_schema import (
    CategoryBase, CategoryCreate, CategoryDisplay,
    CourseBase, CourseCreate, CourseUpdate, CourseDisplay, CourseDetailDisplay, InstructorRef,
    CourseModuleBase, CourseModuleCreate, CourseModuleUpdate, CourseModuleDisplay,
    LessonBase, LessonCreate, LessonUpdate, LessonDisplay,
    EnrollmentProgressUpdate, EnrollmentDisplay, PaginatedCourseList,
    LessonProgressUpdate, LessonProgressDisplay
)

from .payment_schema import (
    InvoiceDisplay, PaymentCreate, PaymentVerify, PaymentDisplay, PaymentHistoryItem,
    CreateOrderResponse, PaymentVerifyResponse, RefundCreate, RefundDisplay,
    WebhookAck, PaymentWebhookDisplay, PaginatedPayments
)

from .subscription_schema import (
    SubscriptionPlanBase, SubscriptionPlanCreate, SubscriptionPlanUpdate, SubscriptionPlanDisplay,
    SubscriptionCreate, SubscriptionDisplay, SubscriptionCreateResponse
)

from .certificate_schema import (
    TextElementLayout, SignatureLayout, CertificateLayout, CertificateTemplateData,
    CertificateTemplateBase, CertificateTemplateCreate, CertificateTemplateDisplay,
    DigitalSignatureCreate, DigitalSignatureDisplay,
    CertificateCreate, CertificateRevoke, CertificateDisplay, CertificateVerificationResult
)

from .live_class_schema import (
    LiveClassBase, LiveClassCreate, LiveClassUpdate, LiveClassDisplay, LiveClassHostDisplay
)

from .white_label_schema import (
    SocialLinks, ContactInfo, BillingAddress, PaymentMethodsConfig, FeatureFlags, TenantLimits,
    WhiteLabelSettingsBase, WhiteLabelSettingsUpsert, WhiteLabelSettingsDisplay,
    CustomDomainCreate, CustomDomainDisplay,
    EmailTemplateBase, EmailTemplateCreate, EmailTemplateUpdate, EmailTemplateDisplay,
    EmailTemplateRenderRequest, EmailTemplateRenderResponse,
    LandingPageBlock, LandingPageBase, LandingPageCreate, LandingPageDisplay
)

from .analytics_schema import (
    DateRange, AnalyticsEventCreate, UserActivityCreate, TrackResponse,
    AnalyticsOverview, CourseAnalytics, UserLearningAnalytics,
    RevenueAnalytics, EngagementAnalytics, AnalyticsExport,
    NotificationCreate, NotificationDisplay, NotificationList
)


__all__ = [
    # User Schemas
    "UserBase", "UserCreateInternal", "UserDisplay", "TokenData",
    "UserRegisterRequest", "TokenRequest", "TokenResponse", "AuthResponse", "UserUpdate",
    "AdminUserUpdate",

    # Course Schemas
    "CategoryBase", "CategoryCreate", "CategoryDisplay",
    "CourseBase", "CourseCreate", "CourseUpdate", "CourseDisplay", "CourseDetailDisplay", "InstructorRef",
    "CourseModuleBase", "CourseModuleCreate", "CourseModuleUpdate", "CourseModuleDisplay",
    "LessonBase", "LessonCreate", "LessonUpdate", "LessonDisplay",
    "EnrollmentProgressUpdate", "EnrollmentDisplay", "PaginatedCourseList",
    "LessonProgressUpdate", "LessonProgressDisplay",

    # Payment Schemas
    "InvoiceDisplay", "PaymentCreate", "PaymentVerify", "PaymentDisplay", "PaymentHistoryItem",
    "CreateOrderResponse", "PaymentVerifyResponse", "RefundCreate", "RefundDisplay",
    "WebhookAck", "PaymentWebhookDisplay", "PaginatedPayments",

    # Subscription Schemas
    "SubscriptionPlanBase", "SubscriptionPlanCreate", "SubscriptionPlanUpdate", "SubscriptionPlanDisplay",
    "SubscriptionCreate", "SubscriptionDisplay", "SubscriptionCreateResponse",

    # Certificate Schemas
    "TextElementLayout", "SignatureLayout", "CertificateLayout", "CertificateTemplateData",
    "CertificateTemplateBase", "CertificateTemplateCreate", "CertificateTemplateDisplay",
    "DigitalSignatureCreate", "DigitalSignatureDisplay",
    "CertificateCreate", "CertificateRevoke", "CertificateDisplay", "CertificateVerificationResult",

    # Live Class Schemas
    "LiveClassBase", "LiveClassCreate", "LiveClassUpdate", "LiveClassDisplay", "LiveClassHostDisplay",

    # White-label Schemas
    "SocialLinks", "ContactInfo", "BillingAddress", "PaymentMethodsConfig", "FeatureFlags", "TenantLimits",
    "WhiteLabelSettingsBase", "WhiteLabelSettingsUpsert", "WhiteLabelSettingsDisplay",
    "CustomDomainCreate", "CustomDomainDisplay",
    "EmailTemplateBase", "EmailTemplateCreate", "EmailTemplateUpdate", "EmailTemplateDisplay",
    "EmailTemplateRenderRequest", "EmailTemplateRenderResponse",
    "LandingPageBlock", "LandingPageBase", "LandingPageCreate", "LandingPageDisplay",

    # Analytics & Notification Schemas
    "DateRange", "AnalyticsEventCreate", "UserActivityCreate", "TrackResponse",
    "AnalyticsOverview", "CourseAnalytics", "UserLearningAnalytics",
    "RevenueAnalytics", "EngagementAnalytics", "AnalyticsExport",
    "NotificationCreate", "NotificationDisplay", "NotificationList",
]
