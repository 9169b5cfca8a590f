"""Community module schemas."""

from pydantic import BaseModel


class ModuleRead(BaseModel):
    key: str
    label: str
    category: str
    delegable: bool
    enabled: bool


class ModuleUpdate(BaseModel):
    enabled: bool
