from __future__ import annotations

import os
import sys
import tempfile
import uuid
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

ROOT = Path(__file__).resolve().parents[1]
API_DIR = ROOT / "API"
if str(API_DIR) not in sys.path:
    sys.path.insert(0, str(API_DIR))

# Test-mode runtime guards:
# - throwaway SQLite database instead of Postgres
# - downstream AI services are monkeypatched per test, never called
_DB_DIR = Path(tempfile.mkdtemp(prefix="entitlements-tests-"))
os.environ.setdefault("APP_ENV", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_DB_DIR / 'api.db'}")
os.environ.setdefault("QUOTA_BACKEND", "sql")
os.environ.setdefault("GATEWAY_AUTH_ENABLED", "false")
os.environ.setdefault("DOWNSTREAM_MAX_RETRIES", "0")

from entitlements.main import app  # noqa: E402


@pytest.fixture(scope="session")
def client() -> TestClient:
    with TestClient(app) as tc:
        yield tc


def _uid(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}"


@pytest.fixture
def seeded(client):
    """A registered student and a three-module path; returns the ids."""
    student_id = _uid("student")
    path_id = _uid("path")
    chapters = [[_uid("ch") for _ in range(2)] for _ in range(3)]
    assert client.post("/api/students", json={"studentId": student_id, "name": "Test Student"}).status_code == 200
    body = {
        "title": "Algebra",
        "modules": [
            {
                "title": f"Module {m}",
                "submodules": [{"title": "Basics", "chapters": [{"chapterId": c, "title": c} for c in ids]}],
            }
            for m, ids in enumerate(chapters)
        ],
    }
    resp = client.put(f"/api/learning-paths/{path_id}", json=body)
    assert resp.status_code == 200, resp.text
    return {"student_id": student_id, "path_id": path_id, "chapters": chapters}
