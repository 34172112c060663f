"""Per-repository reset state machine using transitions library.

Tracks where a repository is in the reset sequence:

    unknown -> not_found | not_repo | inspected
    inspected -> aborting_ops -> hard_reset -> on_trunk
              -> branches_pruned -> remote_synced -> done

not_found and not_repo end the sequence with a skip. Any working state can
move to failed. Degraded steps (an abort that fails, a branch that cannot be
deleted, an unreachable remote) are logged by the engine and still advance.

Usage:
    from patchrun.workflow.fsm import ResetFSM

    fsm = ResetFSM("components/io")
    fsm.inspect()
    fsm.abort_ops()
"""

import logging

from transitions import Machine

logger = logging.getLogger(__name__)


STATES = [
    "unknown",
    "not_found",
    "not_repo",
    "inspected",
    "aborting_ops",
    "hard_reset",
    "on_trunk",
    "branches_pruned",
    "remote_synced",
    "done",
    "failed",
]

WORKING_STATES = [
    "inspected",
    "aborting_ops",
    "hard_reset",
    "on_trunk",
    "branches_pruned",
    "remote_synced",
]

SKIP_STATES = {"not_found", "not_repo"}

# Transitions defined as (trigger, source, dest)
# Each trigger becomes a method on the FSM
TRANSITIONS = [
    # Existence checks
    {"trigger": "mark_missing", "source": "unknown", "dest": "not_found"},
    {"trigger": "mark_not_repo", "source": "unknown", "dest": "not_repo"},
    {"trigger": "inspect", "source": "unknown", "dest": "inspected"},

    # Reset sequence
    {"trigger": "abort_ops", "source": "inspected", "dest": "aborting_ops"},
    {"trigger": "discard", "source": "aborting_ops", "dest": "hard_reset"},
    {"trigger": "switch_trunk", "source": "hard_reset", "dest": "on_trunk"},
    {"trigger": "prune", "source": "on_trunk", "dest": "branches_pruned"},
    {"trigger": "sync", "source": "branches_pruned", "dest": "remote_synced"},
    {"trigger": "finish", "source": "remote_synced", "dest": "done"},

    # Hard failure from any working state
    {"trigger": "fail", "source": WORKING_STATES, "dest": "failed"},
]


class ResetFSM:
    """State machine for one repository's reset.

    Wraps the transitions library and logs every transition at debug level.
    """

    def __init__(self, name: str):
        self.name = name
        self.history: list[str] = ["unknown"]

        self.machine = Machine(
            model=self,
            states=STATES,
            transitions=TRANSITIONS,
            initial="unknown",
            auto_transitions=False,  # Only explicit transitions
            send_event=True,  # Pass EventData to callbacks
            after_state_change="on_state_change",  # Callback after any transition
        )

    def on_state_change(self, event) -> None:
        from_state = event.transition.source
        to_state = event.transition.dest
        trigger = event.event.name

        logger.debug(f"[FSM] {self.name}: {from_state} -> {to_state} ({trigger})")
        self.history.append(to_state)

    @property
    def skipped(self) -> bool:
        return self.state in SKIP_STATES

    def can(self, trigger: str) -> bool:
        """Check if a trigger can be executed in current state."""
        return trigger in self.machine.get_triggers(self.state)
