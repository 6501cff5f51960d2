"""
YAML organisation fixtures.

Creates a company with its positions, departments and employees (each with a
salary and an assignment), then applies any scheduled changes. Everything goes
through the repositories, so seeding exercises the same mutation protocol as
application code.

Example:
    company:
      name: Acme
      effective_date: 2024-01-01
    positions:
      - key: engineer
        name: Engineer
        level: 3
    departments:
      - key: eng
        name: Engineering
    employees:
      - employee_number: E001
        name: Hanako Sato
        email: hanako@example.com
        hire_date: 2024-01-01
        department: eng
        position: engineer
        salary: 5000000
    scheduled:
      - type: salary
        employee: E001
        effective_date: 2024-07-01
        amount: 5500000
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from pathlib import Path
from typing import Literal, Union

import yaml
from pydantic import BaseModel, Field

from chronostore.hr.schemas import register_hr_kinds
from chronostore.repository import Chronostore

logger = logging.getLogger(__name__)


# =============================================================================
# Fixture format
# =============================================================================


class CompanySpec(BaseModel):
    name: str
    effective_date: date


class PositionSpec(BaseModel):
    key: str
    name: str
    level: int
    description: str | None = None
    effective_date: date | None = Field(None, description="Defaults to the company's effective date")


class DepartmentSpec(BaseModel):
    key: str
    name: str
    description: str | None = None
    parent: str | None = Field(None, description="Key of the parent department")
    effective_date: date | None = None


class EmployeeSpec(BaseModel):
    employee_number: str
    name: str
    email: str
    hire_date: date
    department: str
    position: str
    salary: int
    currency: str = "JPY"


class TransferSpec(BaseModel):
    type: Literal["transfer"]
    employee: str
    effective_date: date
    department: str | None = None
    position: str | None = None


class SalaryChangeSpec(BaseModel):
    type: Literal["salary"]
    employee: str
    effective_date: date
    amount: int


class SeedSpec(BaseModel):
    company: CompanySpec
    positions: list[PositionSpec] = Field(default_factory=list)
    departments: list[DepartmentSpec] = Field(default_factory=list)
    employees: list[EmployeeSpec] = Field(default_factory=list)
    scheduled: list[Union[TransferSpec, SalaryChangeSpec]] = Field(default_factory=list)


@dataclass
class SeedResult:
    """Identities allocated while seeding, by fixture key."""

    company_id: int
    positions: dict[str, int] = field(default_factory=dict)
    departments: dict[str, int] = field(default_factory=dict)
    employees: dict[str, int] = field(default_factory=dict)
    salaries: dict[str, int] = field(default_factory=dict)
    assignments: dict[str, int] = field(default_factory=dict)


# =============================================================================
# Loading
# =============================================================================


def load_seed_file(path: str | Path, chronostore: Chronostore) -> SeedResult:
    """Load a fixture from a YAML file."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed file not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        return load_seed(f.read(), chronostore)


def load_seed(yaml_text: str, chronostore: Chronostore) -> SeedResult:
    """Apply a YAML fixture to a Chronostore.

    The chronostore needs an identity allocator; every entity is created
    without a caller-supplied id.

    Raises:
        ValueError: the fixture is malformed or references an unknown key
        ConfigurationError: the chronostore has no identity allocator
    """
    content = yaml.safe_load(yaml_text)
    if not isinstance(content, dict):
        raise ValueError("Seed fixture must be a mapping")
    spec = SeedSpec.model_validate(content)
    return _apply(spec, chronostore)


def _apply(spec: SeedSpec, chronostore: Chronostore) -> SeedResult:
    repos = register_hr_kinds(chronostore)
    start = spec.company.effective_date

    company = repos["Company"].insert({"name": spec.company.name})
    result = SeedResult(company_id=company.entity_id)

    for position in spec.positions:
        created = repos["Position"].insert(
            {
                "company_id": result.company_id,
                "name": position.name,
                "level": position.level,
                "description": position.description,
            },
            effective_date=position.effective_date or start,
        )
        result.positions[position.key] = created.entity_id

    for department in spec.departments:
        parent_id = None
        if department.parent is not None:
            parent_id = _lookup(result.departments, department.parent, "department")
        created = repos["Department"].insert(
            {
                "company_id": result.company_id,
                "name": department.name,
                "description": department.description,
                "parent_department_id": parent_id,
            },
            effective_date=department.effective_date or start,
        )
        result.departments[department.key] = created.entity_id

    for employee in spec.employees:
        created = repos["Employee"].insert(
            {
                "company_id": result.company_id,
                "employee_number": employee.employee_number,
                "name": employee.name,
                "email": employee.email,
                "hire_date": employee.hire_date,
            }
        )
        employee_id = created.entity_id
        result.employees[employee.employee_number] = employee_id

        salary = repos["Salary"].insert(
            {"employee_id": employee_id, "amount": employee.salary, "currency": employee.currency},
            effective_date=employee.hire_date,
        )
        result.salaries[employee.employee_number] = salary.entity_id

        assignment = repos["EmployeeAssignment"].insert(
            {
                "employee_id": employee_id,
                "department_id": _lookup(result.departments, employee.department, "department"),
                "position_id": _lookup(result.positions, employee.position, "position"),
            },
            effective_date=employee.hire_date,
        )
        result.assignments[employee.employee_number] = assignment.entity_id

    for change in spec.scheduled:
        if isinstance(change, SalaryChangeSpec):
            salary_id = _lookup(result.salaries, change.employee, "employee")
            repos["Salary"].transfer(salary_id, {"amount": change.amount}, change.effective_date)
        else:
            changes = {}
            if change.department is not None:
                changes["department_id"] = _lookup(result.departments, change.department, "department")
            if change.position is not None:
                changes["position_id"] = _lookup(result.positions, change.position, "position")
            assignment_id = _lookup(result.assignments, change.employee, "employee")
            repos["EmployeeAssignment"].transfer(assignment_id, changes, change.effective_date)

    logger.info(
        "Seeded company %s: %d positions, %d departments, %d employees, %d scheduled changes",
        spec.company.name,
        len(result.positions),
        len(result.departments),
        len(result.employees),
        len(spec.scheduled),
    )
    return result


def _lookup(ids: dict[str, int], key: str, what: str) -> int:
    try:
        return ids[key]
    except KeyError:
        raise ValueError(f"Unknown {what} in seed fixture: {key}") from None
