"""
HR demo entity kinds.

Companies and employees are uni-temporal (only the recording history is
kept); departments, positions, salaries and assignments are bi-temporal so
reorganisations and pay changes can be scheduled ahead of time.
"""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field

from chronostore.repository import Chronostore, EntityKind, TemporalRepository
from chronostore.temporal.record import Temporality


class Company(BaseModel):
    name: str = Field(..., min_length=1)


class Department(BaseModel):
    company_id: int
    name: str = Field(..., min_length=1)
    description: str | None = None
    parent_department_id: int | None = None


class Position(BaseModel):
    company_id: int
    name: str = Field(..., min_length=1)
    level: int = Field(..., ge=1)
    description: str | None = None


class Employee(BaseModel):
    company_id: int
    employee_number: str
    name: str
    email: str
    hire_date: date


class Salary(BaseModel):
    employee_id: int
    amount: int = Field(..., ge=0)
    currency: str = "JPY"
    updated_by: str | None = None


class EmployeeAssignment(BaseModel):
    employee_id: int
    department_id: int
    position_id: int
    updated_by: str | None = None


# =============================================================================
# Kinds
# =============================================================================

COMPANY = EntityKind("Company", Company, Temporality.UNI)
DEPARTMENT = EntityKind("Department", Department, Temporality.BI)
POSITION = EntityKind("Position", Position, Temporality.BI)
EMPLOYEE = EntityKind("Employee", Employee, Temporality.UNI)
SALARY = EntityKind("Salary", Salary, Temporality.BI)
EMPLOYEE_ASSIGNMENT = EntityKind("EmployeeAssignment", EmployeeAssignment, Temporality.BI)

HR_KINDS = (COMPANY, DEPARTMENT, POSITION, EMPLOYEE, SALARY, EMPLOYEE_ASSIGNMENT)


def register_hr_kinds(chronostore: Chronostore) -> dict[str, TemporalRepository]:
    """Register every HR kind and return the repositories by kind name."""
    return {kind.name: chronostore.register(kind) for kind in HR_KINDS}
