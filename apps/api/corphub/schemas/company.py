"""Pydantic schemas for companies and the org chart."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from corphub.db.enums import Role


class CompanyCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class CompanyUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None


class CompanyRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: str | None
    created_at: datetime


class OrgChartNode(BaseModel):
    """One person in the org chart, with their direct reports nested."""
    id: int
    first_name: str
    last_name: str
    role: Role
    reports: list["OrgChartNode"] = []


class OrgChart(BaseModel):
    """
    Company hierarchy.

    company_admins sit at the top; managers carry their employees;
    unassigned lists employees without a manager.
    """
    company: CompanyRead
    company_admins: list[OrgChartNode]
    managers: list[OrgChartNode]
    unassigned: list[OrgChartNode]
