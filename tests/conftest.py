"""tests/conftest.py — Shared fixtures."""

import pytest
from fastapi.testclient import TestClient

from frame_service.app import app
from frame_service.core.session_registry import SessionRegistry
from frame_service.core.state_machine import FrameStateMachine
from frame_service.models.schemas import ListContext, LoadListEvent


@pytest.fixture
def machine():
    return FrameStateMachine()


@pytest.fixture
def registry(machine):
    r = SessionRegistry(machine=machine)
    yield r
    r.close()


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


class MachineDriver:
    """Feeds events through a machine, tracking (state, context)."""

    def __init__(self, machine):
        self.machine = machine
        self.state, self.context = machine.start()

    def send(self, event):
        self.state, self.context = self.machine.step(self.state, self.context, event)
        return self

    @property
    def path(self):
        return self.state.current.as_path()


@pytest.fixture
def driver(machine):
    return MachineDriver(machine)


def load_entity(frames):
    return LoadListEvent(frames=frames, list_context=ListContext.ENTITY)


def load_general(frames):
    return LoadListEvent(frames=frames, list_context=ListContext.GENERAL)
