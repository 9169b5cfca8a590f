"""Household delegation enums."""

from enum import Enum


class RelationshipType(str, Enum):
    TENANT = "tenant"
    FAMILY_MEMBER = "family_member"


class ConversionStep(str, Enum):
    """Ordered steps of the confirmed resident -> guest conversion."""

    DEACTIVATE_RESIDENT = "deactivate_resident"
    ACTIVATE_GUEST = "activate_guest"
    COPY_SCOPE = "copy_scope"
    UPSERT_LINK = "upsert_link"
