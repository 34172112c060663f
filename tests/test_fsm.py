"""Tests for patchrun.workflow.fsm module."""

import pytest
from transitions import MachineError

from patchrun.workflow.fsm import (
    ResetFSM,
    SKIP_STATES,
    STATES,
    TRANSITIONS,
)


def run_sequence(fsm):
    fsm.inspect()
    fsm.abort_ops()
    fsm.discard()
    fsm.switch_trunk()
    fsm.prune()
    fsm.sync()
    fsm.finish()


class TestFSMStates:
    """Tests for FSM state definitions."""

    def test_all_states_defined(self):
        expected = [
            "unknown", "not_found", "not_repo", "inspected", "aborting_ops",
            "hard_reset", "on_trunk", "branches_pruned", "remote_synced",
            "done", "failed",
        ]
        assert set(STATES) == set(expected)

    def test_skip_states(self):
        assert SKIP_STATES == {"not_found", "not_repo"}

    def test_every_transition_targets_a_known_state(self):
        for transition in TRANSITIONS:
            assert transition["dest"] in STATES


class TestFSMBasic:

    def test_initial_state(self):
        fsm = ResetFSM("common")
        assert fsm.state == "unknown"
        assert fsm.skipped is False

    def test_full_sequence(self):
        fsm = ResetFSM("common")
        run_sequence(fsm)
        assert fsm.state == "done"
        assert fsm.skipped is False
        assert fsm.history == [
            "unknown", "inspected", "aborting_ops", "hard_reset", "on_trunk",
            "branches_pruned", "remote_synced", "done",
        ]

    def test_missing_directory(self):
        fsm = ResetFSM("common")
        fsm.mark_missing()
        assert fsm.state == "not_found"
        assert fsm.skipped is True

    def test_not_a_repository(self):
        fsm = ResetFSM("common")
        fsm.mark_not_repo()
        assert fsm.skipped is True


class TestFSMTransitions:

    def test_steps_cannot_be_skipped(self):
        fsm = ResetFSM("common")
        fsm.inspect()
        with pytest.raises(MachineError):
            fsm.prune()

    def test_no_auto_transitions(self):
        fsm = ResetFSM("common")
        assert not hasattr(fsm, "to_done")

    def test_fail_from_working_state(self):
        fsm = ResetFSM("common")
        fsm.inspect()
        fsm.abort_ops()
        fsm.discard()
        fsm.fail()
        assert fsm.state == "failed"
        assert fsm.skipped is False

    def test_cannot_fail_before_inspection(self):
        fsm = ResetFSM("common")
        assert fsm.can("fail") is False
        assert fsm.can("inspect") is True

    def test_done_is_final(self):
        fsm = ResetFSM("common")
        run_sequence(fsm)
        assert fsm.can("fail") is False
        with pytest.raises(MachineError):
            fsm.inspect()


class TestFSMCallbacks:

    def test_history_records_each_state(self):
        fsm = ResetFSM("common")
        fsm.inspect()
        fsm.abort_ops()
        fsm.fail()
        assert fsm.history == ["unknown", "inspected", "aborting_ops", "failed"]

    def test_transitions_logged_at_debug(self, caplog):
        caplog.set_level("DEBUG", logger="patchrun")
        ResetFSM("components/io").inspect()
        assert "[FSM] components/io: unknown -> inspected (inspect)" in caplog.text
