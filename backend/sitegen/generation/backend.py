"""GenerationBackend protocol and implementations.

The backend is the black-box generation capability the pipeline drives:
- generate_design_system: config -> DesignSystem
- generate_blueprint: config + design system -> PageBlueprint
- stream_components: config + design system + blueprint -> text deltas holding fenced files

AnthropicGenerationBackend talks to Claude. FakeGenerationBackend returns
deterministic, instant output for named scenarios so the pipeline and
everything downstream of it can be tested without an API key.
"""

from collections.abc import AsyncIterator
from typing import Any, Protocol, runtime_checkable

import anthropic
import structlog
from anthropic._exceptions import OverloadedError
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from sitegen.core.config import Settings, get_settings
from sitegen.core.exceptions import BlueprintParseError, DesignSystemParseError, GenerationBackendError
from sitegen.generation.parsers import parse_blueprint, parse_design_system
from sitegen.generation.prompts import (
    BLUEPRINT_SYSTEM_PROMPT,
    DESIGN_SYSTEM_SYSTEM_PROMPT,
    build_blueprint_prompt,
    build_component_prompt,
    build_component_system_prompt,
    build_design_system_prompt,
)
from sitegen.schemas.generation import DesignSystem, GenerationConfig, PageBlueprint

logger = structlog.get_logger(__name__)


@runtime_checkable
class GenerationBackend(Protocol):
    """Protocol for the generation service driven by the pipeline."""

    model_name: str

    async def generate_design_system(self, config: GenerationConfig) -> DesignSystem:
        """Produce design tokens for the site.

        Raises:
            GenerationBackendError: If the service fails or returns unusable output
        """
        ...

    async def generate_blueprint(self, config: GenerationConfig, design_system: DesignSystem) -> PageBlueprint:
        """Plan pages, sections and shared components.

        Raises:
            GenerationBackendError: If the service fails or returns unusable output
        """
        ...

    def stream_components(
        self,
        config: GenerationConfig,
        design_system: DesignSystem,
        blueprint: PageBlueprint,
    ) -> AsyncIterator[str]:
        """Stream raw text holding ```lang:path fenced files, in arbitrary chunk sizes."""
        ...


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


@retry(
    retry=retry_if_exception_type(OverloadedError),
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=2, min=2, max=30),
    reraise=True,
    before_sleep=lambda rs: logger.warning(
        "claude_overloaded_retrying",
        attempt=rs.attempt_number,
        sleep_seconds=rs.next_action.sleep,
    ),
)
async def _invoke_with_retry(client: Any, model: str, system: str, prompt: str, max_tokens: int) -> str:
    """Invoke messages.create() with retry on Claude 529 overload.

    Only OverloadedError is retried. All other exceptions propagate immediately.

    Returns:
        Text of the first text block in the response
    """
    response = await client.messages.create(
        model=model,
        system=system,
        messages=[{"role": "user", "content": prompt}],
        max_tokens=max_tokens,
    )
    for block in response.content:
        if getattr(block, "type", None) == "text":
            return block.text
    raise GenerationBackendError("No text content in response")


class AnthropicGenerationBackend:
    """Generation backend backed by the Anthropic Messages API."""

    def __init__(self, client: Any | None = None, settings: Settings | None = None):
        self.settings = settings or get_settings()
        self.model_name = self.settings.generation_model
        self._client = client or anthropic.AsyncAnthropic(api_key=self.settings.anthropic_api_key)

    async def generate_design_system(self, config: GenerationConfig) -> DesignSystem:
        text = await _invoke_with_retry(
            self._client,
            self.model_name,
            DESIGN_SYSTEM_SYSTEM_PROMPT,
            build_design_system_prompt(config),
            self.settings.design_system_max_tokens,
        )
        return parse_design_system(text)

    async def generate_blueprint(self, config: GenerationConfig, design_system: DesignSystem) -> PageBlueprint:
        text = await _invoke_with_retry(
            self._client,
            self.model_name,
            BLUEPRINT_SYSTEM_PROMPT,
            build_blueprint_prompt(config, design_system),
            self.settings.blueprint_max_tokens,
        )
        return parse_blueprint(text)

    async def stream_components(
        self,
        config: GenerationConfig,
        design_system: DesignSystem,
        blueprint: PageBlueprint,
    ) -> AsyncIterator[str]:
        # Not retried: a stream that already produced text cannot be replayed safely
        async with self._client.messages.stream(
            model=self.model_name,
            max_tokens=self.settings.component_max_tokens,
            system=build_component_system_prompt(design_system),
            messages=[{"role": "user", "content": build_component_prompt(config, blueprint)}],
        ) as stream:
            async for text in stream.text_stream:
                yield text


# ---------------------------------------------------------------------------
# Fake
# ---------------------------------------------------------------------------

FAKE_DESIGN_SYSTEM = {
    "colors": {
        "primary": {"50": "#eff6ff", "500": "#2563eb", "900": "#1e3a8a"},
        "secondary": {"50": "#f8fafc", "500": "#0f172a", "900": "#020617"},
        "accent": {"50": "#fffbeb", "500": "#f59e0b", "900": "#78350f"},
        "neutral": {"50": "#fafafa", "500": "#737373", "900": "#171717"},
    },
    "typography": {
        "headingFont": "Inter",
        "bodyFont": "Inter",
        "scale": {"base": {"size": "1rem", "lineHeight": "1.5rem", "weight": "400"}},
    },
    "spacing": {"sm": "0.5rem", "md": "1rem", "lg": "1.5rem"},
    "borderRadius": {"md": "0.375rem", "full": "9999px"},
    "shadows": {"md": "0 4px 6px -1px rgb(0 0 0 / 0.1)"},
}

FAKE_BLUEPRINT = {
    "pages": [
        {
            "path": "/",
            "title": "Home",
            "sections": [
                {"componentName": "Hero", "props": {}, "order": 0},
                {"componentName": "Features", "props": {}, "order": 1},
            ],
            "metadata": {"title": "Home", "description": "Welcome"},
        }
    ],
    "sharedComponents": ["Navbar", "Footer"],
    "dataRequirements": {},
}

# (language, path, content) in emission order
FAKE_FILES: list[tuple[str, str, str]] = [
    ("tsx", "src/components/Navbar.tsx", "export default function Navbar() {\n  return <nav>Acme</nav>;\n}"),
    ("tsx", "src/components/Hero.tsx", "export default function Hero() {\n  return <h1>Hello World</h1>;\n}"),
    ("tsx", "src/components/Features.tsx", "export default function Features() {\n  return <section>Fast</section>;\n}"),
    ("tsx", "src/components/Footer.tsx", "export default function Footer() {\n  return <footer>(c) Acme</footer>;\n}"),
    (
        "tsx",
        "src/app/page.tsx",
        "import Hero from '@/components/Hero';\nimport Features from '@/components/Features';\n\n"
        "export default function Page() {\n  return (<main><Hero /><Features /></main>);\n}",
    ),
]


def render_fake_output(files: list[tuple[str, str, str]] = FAKE_FILES) -> str:
    return "".join(f"```{lang}:{path}\n{content}\n```\n\n" for lang, path, content in files)


class FakeGenerationBackend:
    """Scenario-based test double for GenerationBackend.

    Scenarios:
    - happy_path: valid design system, blueprint, and five component files
    - design_system_failure: the design system response cannot be parsed
    - blueprint_failure: the blueprint response cannot be parsed
    - component_failure: the component stream breaks after the first file
    """

    VALID_SCENARIOS = {"happy_path", "design_system_failure", "blueprint_failure", "component_failure"}

    def __init__(self, scenario: str = "happy_path", chunk_size: int = 24):
        """
        Raises:
            ValueError: If scenario is not recognized
        """
        if scenario not in self.VALID_SCENARIOS:
            raise ValueError(f"Unknown scenario: {scenario}. Valid scenarios: {self.VALID_SCENARIOS}")
        self.scenario = scenario
        self.chunk_size = chunk_size
        self.model_name = "fake-generation-model"
        self.stream_closed = False

    async def generate_design_system(self, config: GenerationConfig) -> DesignSystem:
        if self.scenario == "design_system_failure":
            raise DesignSystemParseError("Failed to parse design system JSON: Expecting value: line 1 column 1 (char 0)")
        return DesignSystem.model_validate(FAKE_DESIGN_SYSTEM)

    async def generate_blueprint(self, config: GenerationConfig, design_system: DesignSystem) -> PageBlueprint:
        if self.scenario == "blueprint_failure":
            raise BlueprintParseError("Blueprint validation failed:\n  - pages: List should have at least 1 item")
        return PageBlueprint.model_validate(FAKE_BLUEPRINT)

    async def stream_components(
        self,
        config: GenerationConfig,
        design_system: DesignSystem,
        blueprint: PageBlueprint,
    ) -> AsyncIterator[str]:
        files = FAKE_FILES[:1] if self.scenario == "component_failure" else FAKE_FILES
        text = render_fake_output(files)
        try:
            for i in range(0, len(text), self.chunk_size):
                yield text[i : i + self.chunk_size]
            if self.scenario == "component_failure":
                raise GenerationBackendError("Component stream interrupted: connection reset by peer")
        finally:
            self.stream_closed = True
