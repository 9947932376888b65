"""Root conftest — shared fixtures."""

from __future__ import annotations

from unittest.mock import patch

import pytest


@pytest.fixture
def audit_root(tmp_path):
    """Redirect the audit log into a temporary directory."""
    with patch("sqlgate.auditlog._LOG_ROOT", tmp_path), patch(
        "sqlgate.auditlog.os.getcwd", return_value="/test/project"
    ):
        yield tmp_path / "test-project"


@pytest.fixture(autouse=True)
def _no_user_policies(tmp_path, monkeypatch):
    """Keep a developer's ~/.sqlgate/policies.toml out of the test run."""
    monkeypatch.setenv("SQLGATE_POLICIES", str(tmp_path / "absent-policies.toml"))
