"""HR demo domain - entity kinds, scheduled changes, and YAML seeding."""

from chronostore.hr.schemas import (
    COMPANY,
    DEPARTMENT,
    EMPLOYEE,
    EMPLOYEE_ASSIGNMENT,
    HR_KINDS,
    POSITION,
    SALARY,
    Company,
    Department,
    Employee,
    EmployeeAssignment,
    Position,
    Salary,
    register_hr_kinds,
)
from chronostore.hr.service import (
    ChangeType,
    DepartmentCreationDetails,
    PositionCreationDetails,
    SalaryAdjustmentDetails,
    ScheduledChange,
    ScheduledChanges,
    TransferDetails,
)
from chronostore.hr.seed import SeedResult, load_seed, load_seed_file

__all__ = [
    # Schemas
    "Company",
    "Department",
    "Position",
    "Employee",
    "Salary",
    "EmployeeAssignment",
    # Kinds
    "COMPANY",
    "DEPARTMENT",
    "POSITION",
    "EMPLOYEE",
    "SALARY",
    "EMPLOYEE_ASSIGNMENT",
    "HR_KINDS",
    "register_hr_kinds",
    # Scheduled changes
    "ChangeType",
    "TransferDetails",
    "SalaryAdjustmentDetails",
    "DepartmentCreationDetails",
    "PositionCreationDetails",
    "ScheduledChange",
    "ScheduledChanges",
    # Seeding
    "SeedResult",
    "load_seed",
    "load_seed_file",
]
