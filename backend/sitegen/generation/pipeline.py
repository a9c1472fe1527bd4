"""Generation pipeline: config -> ordered stream of GenerationEvents.

Stages:
    config-assembly -> design-system -> blueprint -> components -> assembly -> complete

Any exception raised by the backend inside a stage becomes one ``error``
event naming that stage, and the stream ends. Exceptions never escape the
runner; callers always see exactly one terminal event, last.
"""

from collections.abc import AsyncIterator
from contextlib import aclosing

import structlog

from sitegen.domain.stages import Stage, StageMachine
from sitegen.generation.backend import GenerationBackend
from sitegen.generation.parsers import extract_completed_blocks, extract_component_name, find_open_block_path
from sitegen.generation.scaffold import build_scaffold_files
from sitegen.schemas.events import (
    ComponentChunkEvent,
    ComponentCompleteEvent,
    ComponentStartEvent,
    ErrorEvent,
    FilePayload,
    GenerationCompleteEvent,
    GenerationEvent,
    StageCompleteEvent,
    StageStartEvent,
)
from sitegen.schemas.generation import GenerationConfig

logger = structlog.get_logger(__name__)

STAGE_ERROR_PREFIX: dict[Stage, str] = {
    Stage.CONFIG_ASSEMBLY: "Config assembly failed",
    Stage.DESIGN_SYSTEM: "Design system generation failed",
    Stage.BLUEPRINT: "Blueprint generation failed",
    Stage.COMPONENTS: "Component generation failed",
    Stage.ASSEMBLY: "Project assembly failed",
}


def assemble_config(config: GenerationConfig) -> GenerationConfig:
    """Normalise user input: trim business fields, order and renumber sections, trim the prompt."""
    business = config.business.model_copy(
        update={
            "name": config.business.name.strip(),
            "description": config.business.description.strip(),
            "industry": config.business.industry.strip(),
            "target_audience": config.business.target_audience.strip(),
        }
    )
    sections = [
        section.model_copy(update={"order": idx})
        for idx, section in enumerate(sorted(config.sections, key=lambda s: s.order))
    ]
    return config.model_copy(
        update={
            "business": business,
            "sections": sections,
            "ai_prompt": (config.ai_prompt or "").strip(),
        }
    )


class FileEmitter:
    """Turns discovered files into start/chunk/complete cycles.

    Owns the invariants shared by the components and assembly stages:
    - a path is emitted at most once
    - every complete is preceded by exactly one start for the same name
    - component names are unique within a run (basename, or the full path on collision)
    - completed/total counters only move forward
    """

    def __init__(self) -> None:
        self.completed = 0
        self.total = 0
        self.files: dict[str, str] = {}
        self._names: dict[str, str] = {}  # path -> name
        self._used_names: set[str] = set()
        self._started: set[str] = set()  # paths with a start event

    def has(self, path: str) -> bool:
        return path in self.files

    def name_for(self, path: str, preferred: str | None = None) -> str:
        if path not in self._names:
            name = preferred or extract_component_name(path) or path
            if name in self._used_names:
                name = path
            self._names[path] = name
            self._used_names.add(name)
        return self._names[path]

    def start(self, path: str, stage: Stage, name: str | None = None) -> ComponentStartEvent | None:
        if path in self._started or path in self.files:
            return None
        self._started.add(path)
        return ComponentStartEvent(component_name=self.name_for(path, name), stage=stage)

    def complete(self, path: str, content: str, stage: Stage, name: str | None = None) -> list[GenerationEvent]:
        """Start (if not yet started) and complete ``path``. Duplicates give no events."""
        if path in self.files:
            return []
        events: list[GenerationEvent] = []
        start = self.start(path, stage, name)
        if start is not None:
            events.append(start)

        self.files[path] = content
        self.completed += 1
        self.total = max(self.total, self.completed)
        events.append(
            ComponentCompleteEvent(
                component_name=self.name_for(path),
                file=FilePayload(path=path, content=content),
                completed_files=self.completed,
                total_files=self.total,
                stage=stage,
            )
        )
        return events


async def _component_events(
    stream: AsyncIterator[str],
    emitter: FileEmitter,
) -> AsyncIterator[GenerationEvent]:
    """Split streamed model text into per-file event cycles."""
    buffer = ""
    current: str | None = None  # path of the file being streamed

    async for chunk in stream:
        buffer += chunk

        if current is not None:
            yield ComponentChunkEvent(component_name=emitter.name_for(current), chunk=chunk, stage=Stage.COMPONENTS)

        blocks, remaining = extract_completed_blocks(buffer)
        for block in blocks:
            for event in emitter.complete(block.file_path, block.content, Stage.COMPONENTS):
                yield event
        # A closed block ends the open file, even one too empty to emit
        if remaining != buffer:
            current = None
        buffer = remaining

        if current is None:
            path = find_open_block_path(buffer)
            if path is not None and not emitter.has(path):
                start = emitter.start(path, Stage.COMPONENTS)
                if start is not None:
                    current = path
                    yield start

    # A trailing block the model never closed
    if buffer.strip():
        blocks, _ = extract_completed_blocks(buffer + "\n```")
        for block in blocks:
            for event in emitter.complete(block.file_path, block.content, Stage.COMPONENTS):
                yield event


async def run_generation_pipeline(
    config: GenerationConfig,
    backend: GenerationBackend,
) -> AsyncIterator[GenerationEvent]:
    """Run all stages, yielding progress events. Always ends with exactly one terminal event."""
    machine = StageMachine()
    emitter = FileEmitter()
    log = logger.bind(business=config.business.name, model=backend.model_name)

    def fail(stage: Stage, exc: Exception) -> ErrorEvent:
        machine.advance(Stage.ERROR)
        log.warning("generation_stage_failed", stage=stage, error=str(exc), error_type=type(exc).__name__)
        return ErrorEvent(stage=stage, error=f"{STAGE_ERROR_PREFIX[stage]}: {exc}")

    # ── Stage 1: Config assembly ─────────────────────────────────────────
    yield StageStartEvent(stage=Stage.CONFIG_ASSEMBLY)
    try:
        config = assemble_config(config)
    except Exception as exc:
        yield fail(Stage.CONFIG_ASSEMBLY, exc)
        return
    yield StageCompleteEvent(stage=Stage.CONFIG_ASSEMBLY)

    # ── Stage 2: Design system ──────────────────────────────────────────
    machine.advance(Stage.DESIGN_SYSTEM)
    yield StageStartEvent(stage=Stage.DESIGN_SYSTEM)
    try:
        design_system = await backend.generate_design_system(config)
    except Exception as exc:
        yield fail(Stage.DESIGN_SYSTEM, exc)
        return
    yield StageCompleteEvent(stage=Stage.DESIGN_SYSTEM)

    # ── Stage 3: Blueprint ──────────────────────────────────────────────
    machine.advance(Stage.BLUEPRINT)
    yield StageStartEvent(stage=Stage.BLUEPRINT)
    try:
        blueprint = await backend.generate_blueprint(config, design_system)
    except Exception as exc:
        yield fail(Stage.BLUEPRINT, exc)
        return
    yield StageCompleteEvent(stage=Stage.BLUEPRINT)

    # ── Stage 4: Components (streaming) ─────────────────────────────────
    machine.advance(Stage.COMPONENTS)
    emitter.total = blueprint.expected_file_count()
    yield StageStartEvent(stage=Stage.COMPONENTS, total_files=emitter.total)
    try:
        async with aclosing(backend.stream_components(config, design_system, blueprint)) as stream:
            async for event in _component_events(stream, emitter):
                yield event
    except Exception as exc:
        yield fail(Stage.COMPONENTS, exc)
        return
    yield StageCompleteEvent(stage=Stage.COMPONENTS)
    log.info("generation_components_done", files=emitter.completed, expected=blueprint.expected_file_count())

    # ── Stage 5: Assembly ───────────────────────────────────────────────
    machine.advance(Stage.ASSEMBLY)
    yield StageStartEvent(stage=Stage.ASSEMBLY)
    try:
        scaffold = build_scaffold_files(config, design_system, existing_paths=set(emitter.files))
        emitter.total = emitter.completed + len(scaffold)
        for path, content in scaffold:
            for event in emitter.complete(path, content, Stage.ASSEMBLY, name=path):
                yield event
    except Exception as exc:
        yield fail(Stage.ASSEMBLY, exc)
        return
    yield StageCompleteEvent(stage=Stage.ASSEMBLY)

    # ── Done ────────────────────────────────────────────────────────────
    machine.advance(Stage.COMPLETE)
    log.info("generation_pipeline_complete", total_files=emitter.completed)
    yield GenerationCompleteEvent(total_files=emitter.completed)
