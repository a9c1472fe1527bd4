"""Generation stage enum and transition validation.

Pure domain logic with no external dependencies.
"""

from enum import StrEnum


class Stage(StrEnum):
    """Linear generation pipeline stages plus the ``error`` sink."""

    CONFIG_ASSEMBLY = "config-assembly"
    DESIGN_SYSTEM = "design-system"
    BLUEPRINT = "blueprint"
    COMPONENTS = "components"
    ASSEMBLY = "assembly"
    COMPLETE = "complete"
    ERROR = "error"


# Forward order. COMPLETE and ERROR are terminal.
STAGE_ORDER: list[Stage] = [
    Stage.CONFIG_ASSEMBLY,
    Stage.DESIGN_SYSTEM,
    Stage.BLUEPRINT,
    Stage.COMPONENTS,
    Stage.ASSEMBLY,
    Stage.COMPLETE,
]

STAGE_LABELS: dict[Stage, str] = {
    Stage.CONFIG_ASSEMBLY: "Preparing configuration...",
    Stage.DESIGN_SYSTEM: "Creating design system...",
    Stage.BLUEPRINT: "Planning pages...",
    Stage.COMPONENTS: "Writing components...",
    Stage.ASSEMBLY: "Assembling project...",
    Stage.COMPLETE: "Site generated!",
    Stage.ERROR: "Generation failed",
}


class StageMachine:
    """Validates stage transitions: one step forward, or into ERROR from any live stage."""

    TRANSITIONS: dict[Stage, list[Stage]] = {
        Stage.CONFIG_ASSEMBLY: [Stage.DESIGN_SYSTEM, Stage.ERROR],
        Stage.DESIGN_SYSTEM: [Stage.BLUEPRINT, Stage.ERROR],
        Stage.BLUEPRINT: [Stage.COMPONENTS, Stage.ERROR],
        Stage.COMPONENTS: [Stage.ASSEMBLY, Stage.ERROR],
        Stage.ASSEMBLY: [Stage.COMPLETE, Stage.ERROR],
        Stage.COMPLETE: [],  # Terminal state
        Stage.ERROR: [],  # Terminal state
    }

    def __init__(self, initial: Stage = Stage.CONFIG_ASSEMBLY):
        self.current = initial

    @classmethod
    def can_transition(cls, current: Stage, target: Stage) -> bool:
        return target in cls.TRANSITIONS[current]

    def advance(self, target: Stage) -> Stage:
        """Move to ``target``.

        Raises:
            ValueError: If the transition is not allowed
        """
        if not self.can_transition(self.current, target):
            raise ValueError(f"Invalid stage transition: {self.current} -> {target}")
        self.current = target
        return self.current

    @property
    def is_terminal(self) -> bool:
        return not self.TRANSITIONS[self.current]


def next_stage(current: Stage) -> Stage | None:
    """Return the stage after ``current`` on the success path, or None if terminal."""
    if current in (Stage.COMPLETE, Stage.ERROR):
        return None
    return STAGE_ORDER[STAGE_ORDER.index(current) + 1]


def can_transition(current: Stage, target: Stage) -> bool:
    return StageMachine.can_transition(current, target)
