"""
Scheduled changes: future-dated organisational changes as of today.

A change is any currently believed version whose business interval starts
after the start of today: transfers (assignments), salary adjustments, and
departments or positions that come into existence later.
"""

from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum
from typing import Any, Literal, Union

from pydantic import BaseModel, Field

from chronostore.hr.schemas import (
    DEPARTMENT,
    EMPLOYEE,
    EMPLOYEE_ASSIGNMENT,
    POSITION,
    SALARY,
)
from chronostore.repository import Chronostore, TemporalRepository, Versioned


class ChangeType(str, Enum):
    TRANSFER = "TRANSFER"
    SALARY = "SALARY"
    DEPARTMENT = "DEPARTMENT"
    POSITION = "POSITION"


class TransferDetails(BaseModel):
    kind: Literal["transfer"] = "transfer"
    from_department_id: int | None = None
    from_department_name: str | None = None
    to_department_id: int
    to_department_name: str
    from_position_id: int | None = None
    from_position_name: str | None = None
    to_position_id: int
    to_position_name: str


class SalaryAdjustmentDetails(BaseModel):
    kind: Literal["salary"] = "salary"
    from_amount: int | None = Field(None, description="Previous amount (None for a first salary)")
    to_amount: int
    currency: str


class DepartmentCreationDetails(BaseModel):
    kind: Literal["department"] = "department"
    department_name: str
    description: str | None = None
    parent_department_id: int | None = None
    parent_department_name: str | None = None


class PositionCreationDetails(BaseModel):
    kind: Literal["position"] = "position"
    position_name: str
    level: int
    description: str | None = None


ChangeDetails = Union[
    TransferDetails,
    SalaryAdjustmentDetails,
    DepartmentCreationDetails,
    PositionCreationDetails,
]


class ScheduledChange(BaseModel):
    """One future-dated change."""

    effective_date: datetime = Field(..., description="Business date the change takes effect")
    change_type: ChangeType
    entity_type: str = Field(..., description="EMPLOYEE, DEPARTMENT or POSITION")
    entity_id: Any
    entity_name: str
    details: ChangeDetails = Field(..., discriminator="kind")
    record_id: Any = Field(..., description="Identity of the versioned record that changes")


class ScheduledChanges:
    """Lists scheduled changes from a Chronostore with the HR kinds registered."""

    def __init__(self, chronostore: Chronostore):
        self.chronostore = chronostore
        self.employees = chronostore.register(EMPLOYEE)
        self.departments = chronostore.register(DEPARTMENT)
        self.positions = chronostore.register(POSITION)
        self.salaries = chronostore.register(SALARY)
        self.assignments = chronostore.register(EMPLOYEE_ASSIGNMENT)

    def upcoming(self, company_id: int | None = None, today: date | None = None) -> list[ScheduledChange]:
        """Changes taking effect after the start of today, oldest first.

        Args:
            company_id: Restrict to one company (None for all)
            today: Reference day (default: the clock's current UTC day)
        """
        if today is None:
            today = self.chronostore.clock.now().astimezone(timezone.utc).date()
        start_of_today = datetime.combine(today, time.min, tzinfo=timezone.utc)

        changes = [
            *self._transfers(start_of_today, company_id),
            *self._salary_adjustments(start_of_today, company_id),
            *self._new_departments(start_of_today, company_id),
            *self._new_positions(start_of_today, company_id),
        ]
        # sorted() is stable: same-day changes keep the order above
        return sorted(changes, key=lambda change: change.effective_date)

    # =========================================================================
    # Change collectors
    # =========================================================================

    def _transfers(self, after: datetime, company_id: int | None) -> list[ScheduledChange]:
        changes = []
        for assignment in self.assignments.scheduled(after):
            employee = self._employee(assignment.model.employee_id, company_id)
            if employee is None:
                continue
            previous = self._preceding(self.assignments, "employee_id", assignment)
            to_department = self._latest_name(self.departments, assignment.model.department_id)
            to_position = self._latest_name(self.positions, assignment.model.position_id)
            origin = {}
            if previous is not None:
                origin = {
                    "from_department_id": previous.model.department_id,
                    "from_department_name": self._latest_name(
                        self.departments, previous.model.department_id
                    ),
                    "from_position_id": previous.model.position_id,
                    "from_position_name": self._latest_name(
                        self.positions, previous.model.position_id
                    ),
                }
            details = TransferDetails(
                to_department_id=assignment.model.department_id,
                to_department_name=to_department or "Unknown",
                to_position_id=assignment.model.position_id,
                to_position_name=to_position or "Unknown",
                **origin,
            )
            changes.append(
                ScheduledChange(
                    effective_date=assignment.business.start,
                    change_type=ChangeType.TRANSFER,
                    entity_type="EMPLOYEE",
                    entity_id=employee.entity_id,
                    entity_name=employee.model.name,
                    details=details,
                    record_id=assignment.entity_id,
                )
            )
        return changes

    def _salary_adjustments(self, after: datetime, company_id: int | None) -> list[ScheduledChange]:
        changes = []
        for salary in self.salaries.scheduled(after):
            employee = self._employee(salary.model.employee_id, company_id)
            if employee is None:
                continue
            previous = self._preceding(self.salaries, "employee_id", salary)
            changes.append(
                ScheduledChange(
                    effective_date=salary.business.start,
                    change_type=ChangeType.SALARY,
                    entity_type="EMPLOYEE",
                    entity_id=employee.entity_id,
                    entity_name=employee.model.name,
                    details=SalaryAdjustmentDetails(
                        from_amount=previous.model.amount if previous is not None else None,
                        to_amount=salary.model.amount,
                        currency=salary.model.currency,
                    ),
                    record_id=salary.entity_id,
                )
            )
        return changes

    def _new_departments(self, after: datetime, company_id: int | None) -> list[ScheduledChange]:
        changes = []
        for department in self.departments.scheduled(after):
            model = department.model
            if company_id is not None and model.company_id != company_id:
                continue
            changes.append(
                ScheduledChange(
                    effective_date=department.business.start,
                    change_type=ChangeType.DEPARTMENT,
                    entity_type="DEPARTMENT",
                    entity_id=department.entity_id,
                    entity_name=model.name,
                    details=DepartmentCreationDetails(
                        department_name=model.name,
                        description=model.description,
                        parent_department_id=model.parent_department_id,
                        parent_department_name=(
                            self._latest_name(self.departments, model.parent_department_id)
                            if model.parent_department_id is not None
                            else None
                        ),
                    ),
                    record_id=department.entity_id,
                )
            )
        return changes

    def _new_positions(self, after: datetime, company_id: int | None) -> list[ScheduledChange]:
        changes = []
        for position in self.positions.scheduled(after):
            model = position.model
            if company_id is not None and model.company_id != company_id:
                continue
            changes.append(
                ScheduledChange(
                    effective_date=position.business.start,
                    change_type=ChangeType.POSITION,
                    entity_type="POSITION",
                    entity_id=position.entity_id,
                    entity_name=model.name,
                    details=PositionCreationDetails(
                        position_name=model.name,
                        level=model.level,
                        description=model.description,
                    ),
                    record_id=position.entity_id,
                )
            )
        return changes

    # =========================================================================
    # Lookups
    # =========================================================================

    def _employee(self, employee_id: int, company_id: int | None) -> Versioned | None:
        employee = self.employees.find_by_id(employee_id)
        if employee is None:
            return None
        if company_id is not None and employee.model.company_id != company_id:
            return None
        return employee

    @staticmethod
    def _preceding(
        repository: TemporalRepository, owner_field: str, change: Versioned
    ) -> Versioned | None:
        """The believed version for the same owner that the change follows."""
        owner = getattr(change.model, owner_field)
        candidates = [
            version
            for version in repository.current_versions()
            if getattr(version.model, owner_field) == owner
            and version.business.start < change.business.start
        ]
        if not candidates:
            return None
        return max(candidates, key=lambda version: version.business.start)

    @staticmethod
    def _latest_name(repository: TemporalRepository, entity_id: int | None) -> str | None:
        if entity_id is None:
            return None
        latest = repository.chain(entity_id).latest()
        return latest.attributes.get("name") if latest is not None else None
