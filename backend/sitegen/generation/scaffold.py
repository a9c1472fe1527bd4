"""Deterministic project scaffold emitted during the assembly stage.

These files do not come from the model. They make the generated component
set a buildable Next.js project wired to the generated design system.
"""

import json
import re

from sitegen.schemas.generation import DesignSystem, GenerationConfig

GLOBALS_CSS_PATH = "src/app/globals.css"

POSTCSS_CONFIG = """module.exports = {
  plugins: {
    tailwindcss: {},
    autoprefixer: {},
  },
};
"""

NEXT_CONFIG = """/** @type {import('next').NextConfig} */
const nextConfig = {
  reactStrictMode: true,
  images: {
    remotePatterns: [
      { protocol: 'https', hostname: 'images.unsplash.com' },
      { protocol: 'https', hostname: 'via.placeholder.com' },
    ],
  },
};

module.exports = nextConfig;
"""

TSCONFIG = {
    "compilerOptions": {
        "target": "ES2017",
        "lib": ["dom", "dom.iterable", "esnext"],
        "allowJs": True,
        "skipLibCheck": True,
        "strict": True,
        "noEmit": True,
        "esModuleInterop": True,
        "module": "esnext",
        "moduleResolution": "bundler",
        "resolveJsonModule": True,
        "isolatedModules": True,
        "jsx": "preserve",
        "incremental": True,
        "plugins": [{"name": "next"}],
        "paths": {"@/*": ["./src/*"]},
    },
    "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
    "exclude": ["node_modules"],
}

BASE_DEPENDENCIES = {
    "next": "^14.2.0",
    "react": "^18.3.0",
    "react-dom": "^18.3.0",
    "tailwindcss": "^3.4.0",
    "autoprefixer": "^10.4.0",
    "postcss": "^8.4.0",
    "clsx": "^2.1.0",
    "tailwind-merge": "^2.4.0",
    "lucide-react": "^0.400.0",
}

DEV_DEPENDENCIES = {
    "@types/node": "^20.0.0",
    "@types/react": "^18.3.0",
    "@types/react-dom": "^18.3.0",
    "typescript": "^5.4.0",
    "eslint": "^8.57.0",
    "eslint-config-next": "^14.2.0",
}

# Site types that ship client-side state (cart, dashboard)
_STATEFUL_SITE_TYPES = {"ecommerce", "saas"}


def package_name(business_name: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", business_name.lower()).strip("-")
    return slug or "generated-site"


def generate_package_json(config: GenerationConfig) -> str:
    deps = dict(BASE_DEPENDENCIES)
    if config.site_type in _STATEFUL_SITE_TYPES:
        deps["zustand"] = "^4.5.0"

    pkg = {
        "name": package_name(config.business.name),
        "version": "0.1.0",
        "private": True,
        "scripts": {
            "dev": "next dev",
            "build": "next build",
            "start": "next start",
            "lint": "next lint",
        },
        "dependencies": deps,
        "devDependencies": DEV_DEPENDENCIES,
    }
    return json.dumps(pkg, indent=2)


def generate_tailwind_config(design_system: DesignSystem) -> str:
    theme = {
        "colors": design_system.colors.model_dump(),
        "fontFamily": {
            "heading": [design_system.typography.heading_font, "sans-serif"],
            "body": [design_system.typography.body_font, "sans-serif"],
        },
        "spacing": design_system.spacing,
        "borderRadius": design_system.border_radius,
        "boxShadow": design_system.shadows,
    }
    return (
        "/** @type {import('tailwindcss').Config} */\n"
        "module.exports = {\n"
        "  content: ['./src/**/*.{js,ts,jsx,tsx,mdx}'],\n"
        f"  theme: {{\n    extend: {json.dumps(theme, indent=2)},\n  }},\n"
        "  plugins: [],\n"
        "};\n"
    )


def generate_globals_css(design_system: DesignSystem) -> str:
    heading = design_system.typography.heading_font
    body = design_system.typography.body_font
    return f"""@tailwind base;
@tailwind components;
@tailwind utilities;

@import url('https://fonts.googleapis.com/css2?family={heading.replace(" ", "+")}:wght@400;500;600;700;800&family={body.replace(" ", "+")}:wght@300;400;500;600&display=swap');

@layer base {{
  body {{
    @apply bg-white text-neutral-900 antialiased;
    font-family: '{body}', sans-serif;
  }}

  h1, h2, h3, h4, h5, h6 {{
    font-family: '{heading}', sans-serif;
  }}
}}
"""


def build_scaffold_files(
    config: GenerationConfig,
    design_system: DesignSystem,
    existing_paths: set[str] | frozenset[str] = frozenset(),
) -> list[tuple[str, str]]:
    """Return (path, content) pairs for scaffold files not already generated.

    ``globals.css`` is only scaffolded when the model did not write one, since
    visual style edits are appended to it later.
    """
    files = [
        ("package.json", generate_package_json(config)),
        ("next.config.js", NEXT_CONFIG),
        ("tsconfig.json", json.dumps(TSCONFIG, indent=2)),
        ("tailwind.config.js", generate_tailwind_config(design_system)),
        ("postcss.config.js", POSTCSS_CONFIG),
        ("src/lib/design-system.json", design_system.model_dump_json(by_alias=True, indent=2)),
        (GLOBALS_CSS_PATH, generate_globals_css(design_system)),
    ]
    return [(path, content) for path, content in files if path not in existing_paths]
