"""Tests for generation stages and transition validation."""

import pytest

from sitegen.domain.stages import STAGE_LABELS, STAGE_ORDER, Stage, StageMachine, can_transition, next_stage

pytestmark = pytest.mark.unit


class TestStageEnum:
    def test_wire_values(self):
        """Stage values are the kebab-case names sent on the wire."""
        assert Stage.CONFIG_ASSEMBLY == "config-assembly"
        assert Stage.DESIGN_SYSTEM == "design-system"
        assert Stage.COMPLETE.value == "complete"

    def test_every_stage_has_a_label(self):
        assert set(STAGE_LABELS) == set(Stage)

    def test_order_ends_in_complete(self):
        assert STAGE_ORDER[0] == Stage.CONFIG_ASSEMBLY
        assert STAGE_ORDER[-1] == Stage.COMPLETE
        assert Stage.ERROR not in STAGE_ORDER


class TestTransitions:
    def test_forward_path(self):
        machine = StageMachine()
        for stage in STAGE_ORDER[1:]:
            machine.advance(stage)
        assert machine.current == Stage.COMPLETE
        assert machine.is_terminal

    @pytest.mark.parametrize("stage", STAGE_ORDER[:-1])
    def test_error_reachable_from_live_stages(self, stage):
        assert can_transition(stage, Stage.ERROR)

    def test_skipping_a_stage_is_rejected(self):
        machine = StageMachine()
        with pytest.raises(ValueError, match="Invalid stage transition"):
            machine.advance(Stage.BLUEPRINT)
        assert machine.current == Stage.CONFIG_ASSEMBLY

    def test_terminal_stages_have_no_exits(self):
        assert not can_transition(Stage.COMPLETE, Stage.ERROR)
        assert not can_transition(Stage.ERROR, Stage.CONFIG_ASSEMBLY)

    def test_backwards_is_rejected(self):
        assert not StageMachine.can_transition(Stage.COMPONENTS, Stage.BLUEPRINT)


class TestNextStage:
    def test_next_stage(self):
        assert next_stage(Stage.BLUEPRINT) == Stage.COMPONENTS
        assert next_stage(Stage.ASSEMBLY) == Stage.COMPLETE

    def test_terminal_has_no_next(self):
        assert next_stage(Stage.COMPLETE) is None
        assert next_stage(Stage.ERROR) is None
