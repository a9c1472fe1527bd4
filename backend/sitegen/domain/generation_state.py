"""Pure progress reducer: (state, event) -> state.

Folds generation events into a view model (current stage, progress
counters, per-component status, generated files). Every call returns a
new state object; nothing is mutated in place, so transitions can be
tested without a UI or a network.
"""

from dataclasses import dataclass, field, replace
from enum import StrEnum
from types import MappingProxyType
from typing import Mapping

from sitegen.domain.event_log import trim_history
from sitegen.domain.stages import Stage
from sitegen.schemas.events import GenerationEvent

UNKNOWN_ERROR = "An unknown error occurred"


class ComponentStatus(StrEnum):
    PENDING = "pending"
    GENERATING = "generating"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass(frozen=True)
class ComponentState:
    name: str
    status: ComponentStatus
    file_path: str | None = None
    chunks: tuple[str, ...] = ()


@dataclass(frozen=True)
class Progress:
    total: int = 0
    completed: int = 0


def _frozen(mapping: dict) -> Mapping:
    return MappingProxyType(mapping)


@dataclass(frozen=True)
class GenerationProgressState:
    project_id: str | None = None
    current_stage: Stage | None = None
    progress: Progress = Progress()
    components: Mapping[str, ComponentState] = field(default_factory=lambda: _frozen({}))
    is_generating: bool = False
    error: str | None = None
    events: tuple[GenerationEvent, ...] = ()
    files: Mapping[str, str] = field(default_factory=lambda: _frozen({}))


INITIAL_STATE = GenerationProgressState()


def start_generation(project_id: str) -> GenerationProgressState:
    """Fresh state for a new run of ``project_id``."""
    return GenerationProgressState(project_id=project_id, is_generating=True)


def fail_generation(state: GenerationProgressState, error: str) -> GenerationProgressState:
    """Record a failure that did not arrive as an ``error`` event (e.g. transport)."""
    return replace(state, current_stage=Stage.ERROR, is_generating=False, error=error)


def reduce_generation_state(state: GenerationProgressState, event: GenerationEvent) -> GenerationProgressState:
    events = trim_history((*state.events, event))

    match event.type:
        case "stage-start":
            changes = {"current_stage": event.stage}
            if event.stage == Stage.COMPONENTS and event.total_files:
                changes["progress"] = Progress(total=event.total_files, completed=0)
            return replace(state, events=events, **changes)

        case "stage-complete":
            return replace(state, events=events)

        case "component-start":
            components = dict(state.components)
            components[event.component_name] = ComponentState(
                name=event.component_name, status=ComponentStatus.GENERATING
            )
            return replace(state, components=_frozen(components), events=events)

        case "component-chunk":
            existing = state.components.get(event.component_name)
            if existing is None or not event.chunk:
                return replace(state, events=events)
            components = dict(state.components)
            components[event.component_name] = replace(existing, chunks=(*existing.chunks, event.chunk))
            return replace(state, components=_frozen(components), events=events)

        case "component-complete":
            components = dict(state.components)
            previous = components.get(event.component_name)
            components[event.component_name] = ComponentState(
                name=event.component_name,
                status=ComponentStatus.COMPLETE,
                file_path=event.file.path,
                chunks=previous.chunks if previous else (),
            )
            files = {**state.files, event.file.path: event.file.content}
            return replace(
                state,
                components=_frozen(components),
                progress=Progress(total=event.total_files, completed=event.completed_files),
                files=_frozen(files),
                events=events,
            )

        case "generation-complete":
            return replace(
                state,
                current_stage=Stage.COMPLETE,
                is_generating=False,
                progress=Progress(total=event.total_files, completed=event.total_files),
                events=events,
            )

        case "error":
            return replace(
                state,
                current_stage=Stage.ERROR,
                is_generating=False,
                error=event.error or UNKNOWN_ERROR,
                events=events,
            )

    return replace(state, events=events)
