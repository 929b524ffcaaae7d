import threading

import pytest

from softbake.hooks import NoopHook
from softbake.state import BuildState, StepAction
from softbake.ui import NullUi

pytestmark = [pytest.mark.xdist_group("unit")]


class TestBuildState:
    def test_defaults(self, config, client):
        state = BuildState(config=config, client=client)
        assert isinstance(state.ui, NullUi)
        assert isinstance(state.hook, NoopHook)
        assert state.instance_id is None
        assert state.image_id == ""
        assert state.error is None
        assert not state.is_cancelled

    def test_fail_records_error(self, state):
        error = RuntimeError("x")
        assert state.fail(error) is StepAction.HALT_WITH_ERROR
        assert state.error is error

    def test_shares_cancel_event(self, config, client):
        cancelled = threading.Event()
        state = BuildState(config=config, client=client, cancelled=cancelled)
        cancelled.set()
        assert state.is_cancelled

    def test_states_do_not_share_cancel_event(self, config, client):
        first = BuildState(config=config, client=client)
        second = BuildState(config=config, client=client)
        first.cancelled.set()
        assert not second.is_cancelled
