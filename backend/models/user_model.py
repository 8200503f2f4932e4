from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, UniqueConstraint, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from backend.core.database import Base
from backend.models.enums import UserRole

class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # Set only for accounts that sign in with a Firebase ID token
    firebase_uid = Column(String(255), unique=True, index=True, nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    avatar = Column(String(500), nullable=True)

    role = Column(SAEnum(UserRole, name="user_role_enum", values_callable=lambda obj: [e.value for e in obj]),
                  nullable=False, default=UserRole.STUDENT)
    is_active = Column(Boolean, nullable=False, default=True)

    # Owning tenant for white-labelled deployments; NULL means the default platform tenant
    tenant_id = Column(String(64), nullable=True, index=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), default=func.now(), onupdate=func.now())

    # Relationships
    courses_taught = relationship("Course", back_populates="instructor")
    enrollments = relationship("Enrollment", back_populates="user", cascade="all, delete-orphan")
    certificates = relationship("Certificate", back_populates="user", cascade="all, delete-orphan",
                                foreign_keys="[Certificate.user_id]")
    subscriptions = relationship("Subscription", back_populates="user", cascade="all, delete-orphan")
    payments = relationship("Payment", back_populates="user", cascade="all, delete-orphan")
    notifications = relationship("Notification", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (
        UniqueConstraint('email', name='uq_user_email'),
        UniqueConstraint('firebase_uid', name='uq_user_firebase_uid'),
    )

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role='{self.role}')>"
