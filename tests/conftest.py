"""Shared pytest fixtures: an isolated workspace, its lock, state store and signals."""

from __future__ import annotations

import pytest

from src.coordination.lock import WorkspaceLock
from src.coordination.signals import RefactorTrigger, Termination
from src.coordination.state import StateStore
from src.tools.workspace import Workspace


@pytest.fixture()
def workspace_dir(tmp_path):
    ws = tmp_path / "workspace"
    ws.mkdir()
    return ws


@pytest.fixture()
def lock():
    return WorkspaceLock()


@pytest.fixture()
def workspace(workspace_dir, lock):
    return Workspace(workspace_dir, lock)


@pytest.fixture()
def store(workspace_dir):
    return StateStore(workspace_dir / ".agent" / "state.json")


@pytest.fixture()
def trigger():
    return RefactorTrigger()


@pytest.fixture()
def termination():
    return Termination()
