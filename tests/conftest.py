from __future__ import annotations

import os

import pytest

from badgeauth.core.audit import AuthAuditLogger
from badgeauth.core.config.manager import ConfigManager
from badgeauth.core.config.paths import ConfigFsPaths
from badgeauth.core.store import EmployeeStore

from .helpers.fakes import FakeClock, FakeIdentityProvider, FakeNotificationGateway, ListLogger
from .helpers.harness import DIRECTORY, build_harness


@pytest.fixture
def tmp_config_root(tmp_path):
    """
    Provides an isolated root with config/ under tmp_path.
    """
    fs = ConfigFsPaths(root=str(tmp_path))
    os.makedirs(fs.config_dir, exist_ok=True)
    return fs


@pytest.fixture
def config_manager(tmp_config_root):
    cm = ConfigManager(fs=tmp_config_root, logger=None, read_only=False, environ={})
    cm.load_all()
    return cm


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store(tmp_path):
    s = EmployeeStore(db_path=str(tmp_path / "data" / "badgeauth.db"))
    s.import_employees(DIRECTORY)
    return s


@pytest.fixture
def audit_path(tmp_path):
    return str(tmp_path / "logs" / "auth_audit.jsonl")


@pytest.fixture
def audit(audit_path):
    return AuthAuditLogger(path=audit_path)


@pytest.fixture
def idp():
    return FakeIdentityProvider()


@pytest.fixture
def gateway():
    return FakeNotificationGateway()


@pytest.fixture
def list_logger():
    return ListLogger()


@pytest.fixture
def harness(store, clock, idp, gateway, audit, list_logger):
    return build_harness(store=store, clock=clock, idp=idp, gateway=gateway, audit=audit, logger=list_logger)
