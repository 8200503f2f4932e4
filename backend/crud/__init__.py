# This file makes the 'crud' directory a Python package.

from .user_crud import (
    get_user_by_id,
    get_user_by_email,
    get_user_by_firebase_uid,
    create_user,
    update_user,
    get_users,
    count_users,
    update_user_by_admin
)

from .course_crud import (
    create_category, get_categories, get_category,
    create_course, get_course, get_course_by_slug, get_course_with_modules, get_published_courses,
    get_courses_by_instructor, update_course, set_course_published, delete_course,
    create_course_module, get_module, get_modules_for_course, update_course_module, delete_course_module,
    create_lesson, get_lesson, update_lesson, delete_lesson,
    get_enrollment, get_user_enrollments, get_course_enrollments, create_enrollment,
    update_enrollment_progress, complete_enrollment, mark_certificate_issued, record_lesson_progress
)

from .payment_crud import (
    create_invoice, get_invoice_by_id, get_invoice_by_number, get_invoices_for_user, cancel_invoice,
    create_payment_record, get_payment_by_id, get_payment_by_order_id, get_payment_history,
    get_payments, count_payments, mark_payment_completed, mark_payment_failed,
    create_refund_record, get_refund_by_provider_id, get_refunds_for_payment, mark_refund_succeeded,
    get_webhook_record, create_webhook_record, mark_webhook_processed, mark_webhook_failed, get_webhook_records
)

from .subscription_crud import (
    create_subscription_plan, get_subscription_plan, get_active_subscription_plans, update_subscription_plan,
    create_subscription, get_subscription, get_user_subscriptions, get_active_user_subscription,
    cancel_subscription, get_all_subscriptions, count_all_subscriptions
)

from .certificate_crud import (
    create_certificate, get_certificate_by_id, get_certificate_by_public_id, get_certificate_by_verification_code,
    get_issued_certificate, get_certificates_for_user, get_certificates_for_course,
    update_certificate_url, revoke_certificate, increment_download_count, log_verification,
    create_template, get_template, get_default_template, get_active_templates,
    create_signature, get_signatures_for_signer, get_default_signature
)

from .live_class_crud import (
    create_live_class, get_live_class, update_live_class, delete_live_class,
    get_live_classes_by_instructor, get_live_classes_by_course, get_upcoming_live_classes
)

from .white_label_crud import (
    get_settings, get_settings_by_domain, upsert_settings,
    create_custom_domain, get_custom_domain, get_custom_domains,
    mark_domain_verified, mark_domain_failed, delete_custom_domain,
    create_email_template, get_email_template, get_email_templates, update_email_template, delete_email_template,
    create_landing_page, update_landing_page, get_landing_page, get_landing_page_by_slug, get_landing_pages,
    publish_landing_page, increment_landing_page_views, delete_landing_page
)

from .analytics_crud import (
    track_event, track_user_activity,
    get_analytics_overview, get_course_analytics, get_user_learning_analytics,
    get_revenue_analytics, get_engagement_analytics, export_analytics_data
)

from .notification_crud import (
    create_notification, get_notification, mark_notification_read,
    mark_all_notifications_read, get_user_notifications
)
