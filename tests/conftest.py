"""
Pytest configuration and shared fixtures for sheetstore tests

APPROACH: Use an InMemoryStore seeded per test
- Each test gets a fresh store (no shared state)
- Repositories and queries run the same code paths as with SheetsStore
"""

import pytest

from sheetstore import InMemoryStore, RepositoryContainer


def sample_records():
    """Fresh copy of the seed data used by most tests."""
    return {
        "users": [
            {"id": "u1", "name": "John", "email": "john@example.com", "role": "admin",
             "status": "active", "department_id": "d1", "role_id": "r1", "created_at": "2024-01-03"},
            {"id": "u2", "name": "Jane", "email": "jane@example.com", "role": "manager",
             "status": "active", "department_id": "d1", "role_id": "r2", "created_at": "2024-01-01"},
            {"id": "u3", "name": "Ajohn", "email": "ajohn@example.com", "role": "staff",
             "status": "inactive", "department_id": "d2", "role_id": "", "created_at": "2024-01-02"},
            {"id": "u4", "name": "Bob", "email": "bob@example.com", "role": "admin",
             "status": "inactive", "department_id": "d9", "role_id": "r1", "created_at": "2024-01-04"},
        ],
        "departments": [
            {"id": "d1", "name": "Eng"},
            {"id": "d2", "name": "Sales"},
            {"id": "d3", "name": "Empty"},
        ],
        "roles": [
            {"id": "r1", "name": "admin"},
            {"id": "r2", "name": "manager"},
        ],
    }


@pytest.fixture
def records():
    """Seed data as a plain dict, for tests that build their own store."""
    return sample_records()


@pytest.fixture
def store(records):
    """InMemoryStore seeded with users, departments and roles."""
    return InMemoryStore.from_records(records)


@pytest.fixture
def repos(store):
    """RepositoryContainer over the seeded store."""
    return RepositoryContainer(store)


@pytest.fixture
def users(repos):
    return repos.users


@pytest.fixture
def departments(repos):
    return repos.departments
