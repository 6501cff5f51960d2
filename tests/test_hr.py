"""
Tests for the HR demo: YAML seeding and the scheduled changes listing.
"""

from datetime import date, datetime, timezone

import pytest

from chronostore.hr import (
    ChangeType,
    DepartmentCreationDetails,
    SalaryAdjustmentDetails,
    ScheduledChanges,
    TransferDetails,
    load_seed,
    load_seed_file,
    register_hr_kinds,
)

SEED_YAML = """
company:
  name: Acme
  effective_date: 2024-01-01

positions:
  - key: engineer
    name: Engineer
    level: 3
  - key: manager
    name: Manager
    level: 5

departments:
  - key: eng
    name: Engineering
  - key: sales
    name: Sales
  - key: research
    name: Research
    parent: eng
    effective_date: 2026-04-01

employees:
  - employee_number: E001
    name: Hanako Sato
    email: hanako@example.com
    hire_date: 2024-04-01
    department: eng
    position: engineer
    salary: 5000000
  - employee_number: E002
    name: Taro Suzuki
    email: taro@example.com
    hire_date: 2025-04-01
    department: sales
    position: manager
    salary: 6000000

scheduled:
  - type: transfer
    employee: E001
    effective_date: 2026-04-01
    department: sales
    position: manager
  - type: salary
    employee: E002
    effective_date: 2026-07-01
    amount: 6500000
"""


def at(year: int, month: int, day: int) -> datetime:
    return datetime(year, month, day, tzinfo=timezone.utc)


@pytest.fixture
def seeded(chronostore):
    return load_seed(SEED_YAML, chronostore)


class TestSeed:
    """Test fixture loading."""

    def test_creates_organisation(self, chronostore, seeded):
        repos = register_hr_kinds(chronostore)

        assert repos["Company"].get(seeded.company_id).model.name == "Acme"
        assert set(seeded.positions) == {"engineer", "manager"}
        assert set(seeded.departments) == {"eng", "sales", "research"}
        assert set(seeded.employees) == {"E001", "E002"}

        employee = repos["Employee"].get(seeded.employees["E001"])
        assert employee.model.hire_date == date(2024, 4, 1)
        assert employee.model.company_id == seeded.company_id

    def test_parent_department(self, chronostore, seeded):
        departments = register_hr_kinds(chronostore)["Department"]

        research = departments.get(seeded.departments["research"], "2026-04-01")

        assert research.model.parent_department_id == seeded.departments["eng"]
        assert not departments.exists(seeded.departments["research"], "2026-03-31")

    def test_scheduled_transfer_applied(self, chronostore, seeded):
        assignments = register_hr_kinds(chronostore)["EmployeeAssignment"]
        assignment_id = seeded.assignments["E001"]

        before = assignments.get(assignment_id, "2026-03-31")
        after = assignments.get(assignment_id, "2026-04-01")

        assert before.model.department_id == seeded.departments["eng"]
        assert after.model.department_id == seeded.departments["sales"]
        assert after.model.position_id == seeded.positions["manager"]

    def test_scheduled_salary_applied(self, chronostore, seeded):
        salaries = register_hr_kinds(chronostore)["Salary"]
        salary_id = seeded.salaries["E002"]

        assert salaries.get(salary_id, "2026-06-30").model.amount == 6_000_000
        assert salaries.get(salary_id, "2026-07-01").model.amount == 6_500_000
        assert salaries.find_by_id(salary_id, "2025-03-31") is None

    def test_load_seed_file(self, chronostore, tmp_path):
        path = tmp_path / "seed.yaml"
        path.write_text(SEED_YAML, encoding="utf-8")

        result = load_seed_file(path, chronostore)

        assert len(result.employees) == 2

    def test_missing_file(self, chronostore, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_seed_file(tmp_path / "missing.yaml", chronostore)

    def test_fixture_must_be_mapping(self, chronostore):
        with pytest.raises(ValueError):
            load_seed("- just\n- a list\n", chronostore)

    def test_unknown_reference(self, chronostore):
        fixture = """
company:
  name: Acme
  effective_date: 2024-01-01
departments:
  - key: eng
    name: Engineering
    parent: nowhere
"""
        with pytest.raises(ValueError, match="nowhere"):
            load_seed(fixture, chronostore)


class TestScheduledChanges:
    """Test the upcoming changes listing."""

    def test_upcoming_in_date_order(self, chronostore, seeded):
        changes = ScheduledChanges(chronostore).upcoming()

        assert [(c.change_type, c.effective_date) for c in changes] == [
            (ChangeType.TRANSFER, at(2026, 4, 1)),
            (ChangeType.DEPARTMENT, at(2026, 4, 1)),
            (ChangeType.SALARY, at(2026, 7, 1)),
        ]

    def test_transfer_details(self, chronostore, seeded):
        transfer = ScheduledChanges(chronostore).upcoming()[0]

        assert transfer.entity_type == "EMPLOYEE"
        assert transfer.entity_id == seeded.employees["E001"]
        assert transfer.entity_name == "Hanako Sato"
        assert transfer.record_id == seeded.assignments["E001"]
        assert isinstance(transfer.details, TransferDetails)
        assert transfer.details.from_department_name == "Engineering"
        assert transfer.details.to_department_name == "Sales"
        assert transfer.details.from_position_name == "Engineer"
        assert transfer.details.to_position_name == "Manager"

    def test_salary_details(self, chronostore, seeded):
        salary = ScheduledChanges(chronostore).upcoming()[-1]

        assert isinstance(salary.details, SalaryAdjustmentDetails)
        assert salary.details.from_amount == 6_000_000
        assert salary.details.to_amount == 6_500_000
        assert salary.details.currency == "JPY"
        assert salary.entity_name == "Taro Suzuki"

    def test_new_department_details(self, chronostore, seeded):
        department = ScheduledChanges(chronostore).upcoming()[1]

        assert isinstance(department.details, DepartmentCreationDetails)
        assert department.entity_type == "DEPARTMENT"
        assert department.details.department_name == "Research"
        assert department.details.parent_department_name == "Engineering"

    def test_reference_day(self, chronostore, seeded):
        changes = ScheduledChanges(chronostore).upcoming(today=date(2026, 5, 1))

        assert [c.change_type for c in changes] == [ChangeType.SALARY]

    def test_company_filter(self, chronostore, seeded):
        listing = ScheduledChanges(chronostore)

        assert len(listing.upcoming(company_id=seeded.company_id)) == 3
        assert listing.upcoming(company_id=seeded.company_id + 1) == []

    def test_nothing_scheduled(self, chronostore):
        assert ScheduledChanges(chronostore).upcoming() == []

    def test_serializes_to_json(self, chronostore, seeded):
        change = ScheduledChanges(chronostore).upcoming()[0]

        data = change.model_dump(mode="json")

        assert data["change_type"] == "TRANSFER"
        assert data["details"]["kind"] == "transfer"
