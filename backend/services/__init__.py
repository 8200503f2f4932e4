# This package contains the multi-step business logic that sits between the routes and crud.
# Only email_service is imported eagerly: crud.user_crud depends on it, and the other services depend on crud.

from . import email_service

__all__ = [
    "email_service",
]
