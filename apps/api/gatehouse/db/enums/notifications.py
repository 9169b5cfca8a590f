"""Notification enums."""

from enum import Enum


class NotificationType(str, Enum):
    ROLE_REQUEST_APPROVED = "role_request_approved"
    ROLE_REQUEST_REJECTED = "role_request_rejected"
    HOUSEHOLD_LINKED = "household_linked"
    HOUSEHOLD_REVOKED = "household_revoked"
    ACCOUNT_APPROVED = "account_approved"
    ACCOUNT_REJECTED = "account_rejected"
