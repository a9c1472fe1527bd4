"""Generation event model.

A closed set of tagged messages describing pipeline progress. Every run
produces exactly one terminal event (``generation-complete`` or ``error``)
and it is always the last one.

Wire keys are camelCase (``componentName``, ``totalFiles``); optional fields
that are unset are omitted on the wire.
"""

from typing import Annotated, Literal

from pydantic import ConfigDict, Field, TypeAdapter

from sitegen.domain.stages import Stage
from sitegen.schemas.base import CamelModel


class _Event(CamelModel):
    model_config = ConfigDict(frozen=True)


class FilePayload(_Event):
    path: str
    content: str


class StageStartEvent(_Event):
    type: Literal["stage-start"] = "stage-start"
    stage: Stage
    total_files: int | None = None


class StageCompleteEvent(_Event):
    type: Literal["stage-complete"] = "stage-complete"
    stage: Stage


class ComponentStartEvent(_Event):
    type: Literal["component-start"] = "component-start"
    component_name: str
    stage: Stage | None = None


class ComponentChunkEvent(_Event):
    type: Literal["component-chunk"] = "component-chunk"
    component_name: str
    chunk: str
    stage: Stage | None = None


class ComponentCompleteEvent(_Event):
    type: Literal["component-complete"] = "component-complete"
    component_name: str
    file: FilePayload
    completed_files: int
    total_files: int
    stage: Stage | None = None


class GenerationCompleteEvent(_Event):
    type: Literal["generation-complete"] = "generation-complete"
    total_files: int


class ErrorEvent(_Event):
    type: Literal["error"] = "error"
    stage: Stage
    error: str


GenerationEvent = Annotated[
    StageStartEvent
    | StageCompleteEvent
    | ComponentStartEvent
    | ComponentChunkEvent
    | ComponentCompleteEvent
    | GenerationCompleteEvent
    | ErrorEvent,
    Field(discriminator="type"),
]

TERMINAL_EVENT_TYPES = frozenset({"generation-complete", "error"})

_event_adapter: TypeAdapter[GenerationEvent] = TypeAdapter(GenerationEvent)


def parse_event(data: str | bytes | dict) -> GenerationEvent:
    """Validate a JSON string or dict into a typed event.

    Raises:
        pydantic.ValidationError: If the payload is not a known event
    """
    if isinstance(data, dict):
        return _event_adapter.validate_python(data)
    return _event_adapter.validate_json(data)


def event_to_json(event: GenerationEvent) -> str:
    """Serialize to compact camelCase JSON, omitting unset optional fields."""
    return event.model_dump_json(by_alias=True, exclude_none=True)


def is_terminal(event: GenerationEvent) -> bool:
    return event.type in TERMINAL_EVENT_TYPES
