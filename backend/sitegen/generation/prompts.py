"""Prompts for the three model-backed generation stages.

- Design system: brand inputs -> JSON design tokens
- Blueprint: config + tokens -> JSON page/section plan
- Components: tokens + blueprint -> fenced ```lang:path files, one per file
"""

from sitegen.schemas.generation import DesignSystem, GenerationConfig, PageBlueprint

DESIGN_SYSTEM_SYSTEM_PROMPT = """You are a design system expert. Given a business description and branding preferences, generate a comprehensive Tailwind CSS design system as a JSON object.

Return ONLY valid JSON -- no markdown, no explanation, no code fences.

The JSON must match this exact structure:
{
  "colors": {
    "primary":   { "50": "#...", "100": "#...", ..., "900": "#...", "950": "#..." },
    "secondary": { "50": "#...", ..., "950": "#..." },
    "accent":    { "50": "#...", ..., "950": "#..." },
    "neutral":   { "50": "#...", ..., "950": "#..." }
  },
  "typography": {
    "headingFont": "Font Name",
    "bodyFont": "Font Name",
    "scale": {
      "base": { "size": "1rem", "lineHeight": "1.5rem", "weight": "400" }
    }
  },
  "spacing": { "xs": "0.25rem", "sm": "0.5rem", "md": "1rem", "lg": "1.5rem", "xl": "2rem" },
  "borderRadius": { "none": "0", "sm": "0.125rem", "md": "0.375rem", "lg": "0.5rem", "full": "9999px" },
  "shadows": { "sm": "...", "md": "...", "lg": "..." }
}

Generate color scales that harmonize with the provided brand colors. Each scale needs shades from 50 (lightest) through 950 (darkest). The provided hex colors should map to the 500 shade.
"""

BLUEPRINT_SYSTEM_PROMPT = """You are a website architecture expert. Given a site configuration and design system, generate a page blueprint as a JSON object.

Return ONLY valid JSON -- no markdown, no explanation, no code fences.

The JSON must match this exact structure:
{
  "pages": [
    {
      "path": "/",
      "title": "Home",
      "sections": [
        { "componentName": "Hero", "props": {}, "order": 0 },
        { "componentName": "Features", "props": {}, "order": 1 }
      ],
      "metadata": { "title": "Page Title", "description": "Meta description" }
    }
  ],
  "sharedComponents": ["Navbar", "Footer"],
  "dataRequirements": {}
}

**Rules:**
- Component names must be PascalCase.
- Each page must have at least one section.
- Include all shared components (Navbar, Footer, etc.) in sharedComponents.
- The props object can include content hints for the component generator.
- For e-commerce sites, include dataRequirements for product data.
- For SaaS sites, include dataRequirements for pricing/features data.
"""

COMPONENT_SYSTEM_PROMPT = """You are an expert React, Next.js 14 (App Router), TypeScript, and Tailwind CSS developer.
You generate production-quality website components.

**Output format:**
Return ONLY fenced code blocks. Each block MUST use a language tag followed by a colon and the file path relative to the project root. Example:

```tsx:src/components/Hero.tsx
export default function Hero() {{ ... }}
```

Do NOT include any commentary, explanations, or markdown outside the code blocks.
Write each file exactly once.

**Coding standards:**
- Strongly-typed TypeScript. Never use `any`.
- React Server Components by default; add 'use client' only when hooks or handlers are needed.
- Mobile-first responsive design with Tailwind breakpoints.
- Semantic HTML and ARIA attributes, targeting WCAG 2.1 AA.
- Icons from `lucide-react`; images through `next/image` with alt text.
- PascalCase file names for components, kebab-case for utilities.

**Design system tokens:**
Colors:
{color_tokens}

Typography:
{typography}

Spacing: {spacing}
Border radius: {radius}
Shadows: {shadows}
"""

# Per site type: the pages and extra files the component stage should produce
SITE_TYPE_STRUCTURE: dict[str, str] = {
    "landing-page": "A multi-page marketing site: Home (/), About (/about), Pricing (/pricing), Contact (/contact).",
    "business": "A business portfolio: Home (/), Services (/services), About (/about), Contact (/contact).",
    "ecommerce": "A storefront: Home (/), Shop (/shop), product detail (/shop/[slug]), Cart (/cart). Put product data in src/data/products.ts.",
    "saas": "A SaaS marketing site: Home (/), Features (/features), Pricing (/pricing), Login (/login).",
    "local-service": "A local service business site: Home (/), Services (/services), Book (/book), Contact (/contact).",
}


def _pairs(mapping: dict[str, str]) -> str:
    return ", ".join(f"{k}: {v}" for k, v in mapping.items())


def build_design_system_prompt(config: GenerationConfig) -> str:
    branding = config.branding
    return (
        "Generate a design system for:\n"
        f'Business: "{config.business.name}" ({config.business.industry})\n'
        f"Style: {branding.style}\n"
        f"Primary color: {branding.primary_color}\n"
        f"Secondary color: {branding.secondary_color}\n"
        f"Accent color: {branding.accent_color}\n"
        f"Heading font: {branding.font_heading}\n"
        f"Body font: {branding.font_body}"
    )


def build_blueprint_prompt(config: GenerationConfig, design_system: DesignSystem) -> str:
    sections = ", ".join(f"{s.type} (order: {s.order})" for s in config.sections)
    lines = [
        "Generate a page blueprint for:",
        f"Site type: {config.site_type}",
        f'Business: "{config.business.name}" ({config.business.industry})',
        f"Requested sections: {sections}",
        f"Design style: {config.branding.style}",
        f"Heading font: {design_system.typography.heading_font}",
        f"Body font: {design_system.typography.body_font}",
    ]
    if config.ecommerce:
        cart = "enabled" if config.ecommerce.cart_enabled else "disabled"
        lines.append(f"E-commerce: {len(config.ecommerce.products)} products, cart {cart}")
    if config.saas:
        saas = config.saas
        lines.append(
            f"SaaS: {len(saas.features)} features, {len(saas.pricing_tiers)} pricing tiers, "
            f"auth {'yes' if saas.has_auth else 'no'}, dashboard {'yes' if saas.has_dashboard else 'no'}"
        )
    return "\n".join(lines)


def build_component_system_prompt(design_system: DesignSystem) -> str:
    colors = design_system.colors.model_dump()
    color_tokens = "\n".join(
        f"  {group}: " + ", ".join(f"{k}={v}" for k, v in shades.items()) for group, shades in colors.items()
    )
    typo = design_system.typography
    scale = ", ".join(f"{name} ({t.size}/{t.line_height} w{t.weight})" for name, t in typo.scale.items())
    typography = f'Heading font: "{typo.heading_font}"\nBody font: "{typo.body_font}"\nType scale: {scale}'

    return COMPONENT_SYSTEM_PROMPT.format(
        color_tokens=color_tokens,
        typography=typography,
        spacing=_pairs(design_system.spacing),
        radius=_pairs(design_system.border_radius),
        shadows=_pairs(design_system.shadows),
    )


def build_component_prompt(config: GenerationConfig, blueprint: PageBlueprint) -> str:
    business = config.business
    structure = SITE_TYPE_STRUCTURE.get(config.site_type, SITE_TYPE_STRUCTURE["business"])

    section_lines = []
    for s in config.sections:
        line = f"- {s.type}"
        if s.variant:
            line += f" (variant: {s.variant})"
        if s.content:
            line += " | hints: " + ", ".join(f'{k}="{v}"' for k, v in s.content.items())
        section_lines.append(line)

    page_lines = []
    for page in blueprint.pages:
        names = ", ".join(sec.component_name for sec in sorted(page.sections, key=lambda x: x.order))
        page_lines.append(f"- {page.path} ({page.title}): {names}")

    parts = [
        "Generate a complete, production-ready website.",
        structure,
        "",
        "=== BUSINESS CONTEXT ===",
        f'Business name: "{business.name}"',
    ]
    if business.tagline:
        parts.append(f'Tagline: "{business.tagline}"')
    parts += [
        f'Description: "{business.description}"',
        f'Industry: "{business.industry}"',
        f'Target audience: "{business.target_audience}"',
        "",
        "=== REQUESTED SECTIONS ===",
        *section_lines,
        "",
        "=== BLUEPRINT ===",
        *page_lines,
        f"Shared components: {', '.join(blueprint.shared_components) or 'none'}",
        "",
        "Write each section component to src/components/<Name>.tsx and each page to src/app/<route>/page.tsx.",
    ]
    if config.ai_prompt:
        parts += ["", "=== ADDITIONAL INSTRUCTIONS ===", config.ai_prompt]
    return "\n".join(parts)
