"""Pydantic schemas for generation inputs and intermediate products.

- GenerationConfig: what the user asked for (business, branding, sections)
- DesignSystem: stage 2 output (palette, typography, tokens)
- PageBlueprint: stage 3 output (pages, sections, shared components)
- PendingChange: one visual-editor edit awaiting save
- Request/response bodies for the generation and visual-editor routes
"""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import Field

from sitegen.schemas.base import CamelModel

# ==================== GENERATION CONFIG ====================


class BusinessInfo(CamelModel):
    name: str
    tagline: str | None = None
    description: str = ""
    industry: str = ""
    target_audience: str = ""


class Branding(CamelModel):
    primary_color: str = "#2563eb"
    secondary_color: str = "#0f172a"
    accent_color: str = "#f59e0b"
    surface_color: str | None = None
    font_heading: str = "Inter"
    font_body: str = "Inter"
    logo_url: str | None = None
    style: str = "modern"


class SectionConfig(CamelModel):
    id: str
    type: str
    content: dict[str, str] | None = None
    items: list[dict[str, Any]] | None = None
    variant: str | None = None
    order: int = 0


class ProductConfig(CamelModel):
    name: str
    description: str = ""
    price: float
    image_url: str | None = None
    category: str | None = None


class EcommerceConfig(CamelModel):
    products: list[ProductConfig] = Field(default_factory=list)
    currency: str = "USD"
    cart_enabled: bool = True
    checkout_type: Literal["simple", "multi-step"] = "simple"


class FeatureConfig(CamelModel):
    title: str
    description: str = ""
    icon: str | None = None


class PricingTier(CamelModel):
    name: str
    price: float
    interval: Literal["month", "year"] = "month"
    features: list[str] = Field(default_factory=list)
    highlighted: bool | None = None


class SaasConfig(CamelModel):
    features: list[FeatureConfig] = Field(default_factory=list)
    pricing_tiers: list[PricingTier] = Field(default_factory=list)
    has_auth: bool = False
    has_dashboard: bool = False


class SocialLink(CamelModel):
    platform: str
    url: str


class NavigationConfig(CamelModel):
    navbar_style: str | None = None
    navbar_position: str | None = None
    footer_style: str | None = None
    social_links: list[SocialLink] | None = None


class GenerationConfig(CamelModel):
    """Everything the user described about the site they want."""

    site_type: str = "business"
    business: BusinessInfo
    branding: Branding = Field(default_factory=Branding)
    sections: list[SectionConfig] = Field(default_factory=list)
    ecommerce: EcommerceConfig | None = None
    saas: SaasConfig | None = None
    ai_prompt: str = ""
    reference_urls: list[str] | None = None
    navigation: NavigationConfig | None = None


# ==================== STAGE PRODUCTS ====================


class TypeScaleEntry(CamelModel):
    size: str
    line_height: str
    weight: str


class Typography(CamelModel):
    heading_font: str
    body_font: str
    scale: dict[str, TypeScaleEntry]


class ColorPalette(CamelModel):
    primary: dict[str, str]
    secondary: dict[str, str]
    accent: dict[str, str]
    neutral: dict[str, str]


class DesignSystem(CamelModel):
    colors: ColorPalette
    typography: Typography
    spacing: dict[str, str]
    border_radius: dict[str, str]
    shadows: dict[str, str]


class PageSection(CamelModel):
    component_name: str = Field(..., min_length=1)
    props: dict[str, Any] = Field(default_factory=dict)
    order: int = Field(..., ge=0)


class PageMetadata(CamelModel):
    title: str
    description: str


class BlueprintPage(CamelModel):
    path: str = Field(..., min_length=1)
    title: str = Field(..., min_length=1)
    sections: list[PageSection] = Field(..., min_length=1)
    metadata: PageMetadata


class PageBlueprint(CamelModel):
    pages: list[BlueprintPage] = Field(..., min_length=1)
    shared_components: list[str] = Field(default_factory=list)
    data_requirements: dict[str, Any] = Field(default_factory=dict)

    def expected_file_count(self) -> int:
        """Distinct section and shared components plus one file per page."""
        names = {section.component_name for page in self.pages for section in page.sections}
        names.update(self.shared_components)
        return len(names) + len(self.pages)


class ComponentOutput(CamelModel):
    """One fenced code block extracted from the model's component output."""

    file_path: str
    content: str
    language: str


# ==================== VISUAL EDITS ====================


class PendingChange(CamelModel):
    """A single visual-editor edit. ``text`` uses old/new text, ``style`` uses property/values."""

    id: str
    type: Literal["text", "style"]
    css_path: str
    old_text: str | None = None
    new_text: str | None = None
    property: str | None = None
    old_value: str | None = None
    new_value: str | None = None


# ==================== API BODIES ====================


class GenerateStreamRequest(CamelModel):
    project_id: UUID
    config: GenerationConfig


class VisualEditorSaveRequest(CamelModel):
    project_id: UUID
    changes: list[PendingChange]


class VisualEditorSaveResponse(CamelModel):
    success: bool
    version_id: UUID
    version_number: int
    changes_applied: int


class LatestVersionSummary(CamelModel):
    id: UUID
    version_number: int
    status: str
    trigger_type: str
    generation_time_ms: int | None = None
    error_message: str | None = None
    created_at: datetime | None = None
    completed_at: datetime | None = None


class GenerationStatusResponse(CamelModel):
    project_status: str
    last_generated_at: datetime | None = None
    latest_version: LatestVersionSummary | None = None
    file_count: int = 0
