from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from sqlalchemy.sql import func
import logging
from typing import List, Optional, Dict, Any

from backend.models.user_model import User
from backend.models.enums import EmailTemplateType
from backend.schemas.user_schema import UserCreateInternal, UserUpdate, AdminUserUpdate
from backend.services import email_service

logger = logging.getLogger(__name__)


# Helper function to apply filters to a query
def _apply_user_filters(query, filters: Optional[Dict[str, Any]] = None):
    if not filters:
        return query

    if filters.get("email_contains"):
        query = query.filter(User.email.ilike(f"%{filters['email_contains']}%"))
    if filters.get("role"):
        query = query.filter(User.role == filters["role"])
    if filters.get("tenant_id"):
        query = query.filter(User.tenant_id == filters["tenant_id"])
    if filters.get("is_active") is not None:
        query = query.filter(User.is_active == filters["is_active"])
    return query

def get_user_by_id(db: Session, user_id: int) -> User | None:
    """Fetches a user by their internal database ID."""
    logger.debug(f"Fetching user by ID: {user_id}")
    return db.query(User).filter(User.id == user_id).first()

def get_user_by_email(db: Session, email: str) -> User | None:
    """Fetches a user by their email address."""
    logger.debug(f"Fetching user by email: {email}")
    return db.query(User).filter(User.email == email).first()

def get_user_by_firebase_uid(db: Session, firebase_uid: str) -> User | None:
    """Fetches a user by their Firebase UID."""
    logger.debug(f"Fetching user by Firebase UID: {firebase_uid}")
    return db.query(User).filter(User.firebase_uid == firebase_uid).first()

def create_user(db: Session, user_data: UserCreateInternal, send_welcome_email: bool = True) -> User:
    """
    Creates a new user in the database.

    Raises:
        ValueError if the email or Firebase UID is already registered.
    """
    logger.info(f"Attempting to create user for email: {user_data.email}")

    if user_data.firebase_uid and get_user_by_firebase_uid(db, user_data.firebase_uid):
        logger.warning(f"User creation failed: Firebase UID {user_data.firebase_uid} already exists.")
        raise ValueError("An account is already registered for this identity.")
    if get_user_by_email(db, user_data.email):
        logger.warning(f"User creation failed: Email {user_data.email} already exists.")
        raise ValueError(f"Email '{user_data.email}' is already registered.")

    db_user = User(**user_data.model_dump())

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
        logger.info(f"User created successfully: {db_user.email} (ID: {db_user.id}, role: {db_user.role})")
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Database integrity error during user creation for {user_data.email}: {e}", exc_info=True)
        raise ValueError(f"Email '{user_data.email}' is already registered.") from e
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error during user creation for {user_data.email}: {e}", exc_info=True)
        raise

    if send_welcome_email:
        try:
            email_service.send_templated_email(
                to_email=db_user.email,
                subject="Welcome to Our Platform!",
                html_template_name="welcome.html",
                context={"user_name": db_user.name},
                template_type=EmailTemplateType.WELCOME,
                tenant_id=db_user.tenant_id,
                db=db,
            )
        except Exception as e_mail_exc:
            # Log email sending failure but don't let it fail user creation
            logger.error(f"Failed to send welcome email to {db_user.email}: {e_mail_exc}", exc_info=True)

    return db_user

def update_user(db: Session, db_user: User, data_in: UserUpdate) -> User:
    update_data = data_in.model_dump(exclude_unset=True)
    for field, value in update_data.items():
        setattr(db_user, field, value)
    try:
        db.commit()
        db.refresh(db_user)
        logger.info(f"User ID {db_user.id} updated profile fields: {list(update_data)}")
        return db_user
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating user {db_user.id}: {e}", exc_info=True)
        raise


# --- Admin User Management CRUD ---

def get_users(
    db: Session,
    skip: int = 0,
    limit: int = 100,
    filters: Optional[Dict[str, Any]] = None
) -> List[User]:
    """
    Retrieves a list of users with pagination and optional filtering.
    """
    logger.debug(f"Fetching users with skip: {skip}, limit: {limit}, filters: {filters}")
    query = db.query(User)
    query = _apply_user_filters(query, filters)
    return query.order_by(User.id.asc()).offset(skip).limit(limit).all()

def count_users(db: Session, filters: Optional[Dict[str, Any]] = None) -> int:
    """
    Counts users with optional filtering.
    """
    logger.debug(f"Counting users with filters: {filters}")
    query = db.query(func.count(User.id))
    query = _apply_user_filters(query, filters)
    return query.scalar() or 0


def update_user_by_admin(db: Session, user_id: int, data_in: AdminUserUpdate) -> Optional[User]:
    """
    Updates a user's role, activation flag or tenant on behalf of an admin.
    """
    db_user = get_user_by_id(db, user_id)
    if not db_user:
        logger.warning(f"User with ID {user_id} not found for admin update.")
        return None

    update_data = data_in.model_dump(exclude_unset=True)
    logger.info(f"Admin updating user ID {user_id} with data: {update_data}")

    for field, value in update_data.items():
        setattr(db_user, field, value)

    try:
        db.commit()
        db.refresh(db_user)
        logger.info(f"User ID {user_id} updated successfully by admin.")
        return db_user
    except Exception as e:
        db.rollback()
        logger.error(f"Unexpected error during admin update for user {user_id}: {e}", exc_info=True)
        raise
