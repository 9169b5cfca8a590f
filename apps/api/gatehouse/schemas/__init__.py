"""Pydantic schemas for API request/response models."""

from gatehouse.schemas.account import (
    AccountDecisionFailure,
    AccountDecisionRequest,
    AccountDecisionResponse,
)
from gatehouse.schemas.audit import AuditChainStatus, AuditEntryRead, AuditListResponse
from gatehouse.schemas.auth import AccessRead, TokenPayload
from gatehouse.schemas.household import HouseholdLinkCreate, HouseholdLinkRead, HouseholdLinkResult
from gatehouse.schemas.module import ModuleRead, ModuleUpdate
from gatehouse.schemas.notification import NotificationRead
from gatehouse.schemas.role_request import (
    RoleRequestCreate,
    RoleRequestDecision,
    RoleRequestListResponse,
    RoleRequestRead,
)
