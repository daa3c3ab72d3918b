"""Test factories for creating test data."""

from tests.factories.employees import (
    Employee,
    EmployeeFactory,
    FakeClock,
    InMemoryEmployeeService,
)

__all__ = [
    "Employee",
    "EmployeeFactory",
    "FakeClock",
    "InMemoryEmployeeService",
]
