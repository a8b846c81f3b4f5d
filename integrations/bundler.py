"""Package the generated file set into a runnable project archive.

Missing project scaffolding (package.json, tsconfig, Next/Tailwind configs,
.env.example, .gitignore, README) is generated from what the files use.
"""

import io
import json
import re
import zipfile
from pathlib import Path
from typing import Dict, Iterable, List, Tuple, Union

from contracts import GeneratedFile


# Substring found in the sources -> (npm package, version, dev dependency)
DEPENDENCY_PATTERNS: Dict[str, Tuple[str, str, bool]] = {
    # React ecosystem
    "framer-motion": ("framer-motion", "^11.0.0", False),
    "zustand": ("zustand", "^4.5.0", False),
    "react-hook-form": ("react-hook-form", "^7.50.0", False),
    "@hookform/resolvers": ("@hookform/resolvers", "^3.3.0", False),
    "zod": ("zod", "^3.22.0", False),
    "swr": ("swr", "^2.2.0", False),
    "@tanstack/react-query": ("@tanstack/react-query", "^5.20.0", False),
    # UI
    "lucide-react": ("lucide-react", "^0.330.0", False),
    "@radix-ui": ("@radix-ui/react-slot", "^1.0.2", False),
    "class-variance-authority": ("class-variance-authority", "^0.7.0", False),
    "clsx": ("clsx", "^2.1.0", False),
    "tailwind-merge": ("tailwind-merge", "^2.2.0", False),
    "sonner": ("sonner", "^1.4.0", False),
    "recharts": ("recharts", "^2.12.0", False),
    # Database
    "@supabase/supabase-js": ("@supabase/supabase-js", "^2.40.0", False),
    "@supabase/ssr": ("@supabase/ssr", "^0.1.0", False),
    "@prisma/client": ("@prisma/client", "^5.10.0", False),
    "drizzle-orm": ("drizzle-orm", "^0.29.0", False),
    # Auth
    "next-auth": ("next-auth", "^4.24.0", False),
    "bcrypt": ("bcryptjs", "^2.4.3", False),
    "jsonwebtoken": ("jsonwebtoken", "^9.0.0", False),
    # Payments
    "stripe": ("stripe", "^14.17.0", False),
    "@stripe/stripe-js": ("@stripe/stripe-js", "^3.0.0", False),
    # Utilities
    "date-fns": ("date-fns", "^3.3.0", False),
    "axios": ("axios", "^1.6.0", False),
    "uuid": ("uuid", "^9.0.0", False),
    "nanoid": ("nanoid", "^5.0.0", False),
    # Dev dependencies
    "prisma": ("prisma", "^5.10.0", True),
    "@types/uuid": ("@types/uuid", "^9.0.8", True),
}

BASE_DEPENDENCIES = {
    "next": "^14.1.0",
    "react": "^18.2.0",
    "react-dom": "^18.2.0",
}

BASE_DEV_DEPENDENCIES = {
    "typescript": "^5.3.0",
    "@types/node": "^20.11.0",
    "@types/react": "^18.2.0",
    "@types/react-dom": "^18.2.0",
    "tailwindcss": "^3.4.0",
    "postcss": "^8.4.0",
    "autoprefixer": "^10.4.0",
    "eslint": "^8.56.0",
    "eslint-config-next": "^14.1.0",
}

ENV_VAR_RE = re.compile(r"process\.env\.([A-Z_][A-Z0-9_]*)")

TAILWIND_CONFIG = """import type { Config } from 'tailwindcss'

const config: Config = {
  darkMode: ['class'],
  content: [
    './pages/**/*.{js,ts,jsx,tsx,mdx}',
    './components/**/*.{js,ts,jsx,tsx,mdx}',
    './app/**/*.{js,ts,jsx,tsx,mdx}',
  ],
  theme: {
    extend: {
      colors: {
        border: 'hsl(var(--border))',
        background: 'hsl(var(--background))',
        foreground: 'hsl(var(--foreground))',
        primary: {
          DEFAULT: 'hsl(var(--primary))',
          foreground: 'hsl(var(--primary-foreground))',
        },
      },
      borderRadius: {
        lg: 'var(--radius)',
        md: 'calc(var(--radius) - 2px)',
        sm: 'calc(var(--radius) - 4px)',
      },
    },
  },
  plugins: [],
}

export default config
"""

POSTCSS_CONFIG = """module.exports = {
  plugins: {
    tailwindcss: {},
    autoprefixer: {},
  },
}
"""

GITIGNORE = """# Dependencies
node_modules

# Next.js
.next/
out/
build

# Misc
.DS_Store
*.pem
npm-debug.log*

# Local env files
.env
.env*.local

# TypeScript
*.tsbuildinfo
next-env.d.ts
"""


def generate_package_json(name: str, files: List[GeneratedFile]) -> str:
    """package.json with dependencies detected from file contents."""
    all_content = "\n".join(f.content for f in files)
    deps = dict(BASE_DEPENDENCIES)
    dev_deps = dict(BASE_DEV_DEPENDENCIES)
    for pattern, (pkg, version, dev) in DEPENDENCY_PATTERNS.items():
        if pattern in all_content:
            (dev_deps if dev else deps)[pkg] = version

    return json.dumps({
        "name": re.sub(r"\s+", "-", name.lower()),
        "version": "0.1.0",
        "private": True,
        "scripts": {
            "dev": "next dev",
            "build": "next build",
            "start": "next start",
            "lint": "next lint",
        },
        "dependencies": deps,
        "devDependencies": dev_deps,
    }, indent=2)


def generate_tsconfig() -> str:
    return json.dumps({
        "compilerOptions": {
            "target": "es5",
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
            "paths": {"@/*": ["./*"]},
        },
        "include": ["next-env.d.ts", "**/*.ts", "**/*.tsx", ".next/types/**/*.ts"],
        "exclude": ["node_modules"],
    }, indent=2)


def generate_next_config(files: List[GeneratedFile]) -> str:
    all_content = "\n".join(f.content for f in files)
    images = ""
    if "<Image" in all_content or "next/image" in all_content:
        images = """
  images: {
    remotePatterns: [{ protocol: 'https', hostname: '**' }],
  },"""
    return f"""import type {{ NextConfig }} from 'next'

const nextConfig: NextConfig = {{{images}
}}

export default nextConfig
"""


def detect_env_vars(files: List[GeneratedFile]) -> List[str]:
    """Environment variables the code reads, plus ones implied by its libraries."""
    all_content = "\n".join(f.content for f in files)
    env_vars = set(ENV_VAR_RE.findall(all_content))
    if "@supabase" in all_content:
        env_vars.update({
            "NEXT_PUBLIC_SUPABASE_URL",
            "NEXT_PUBLIC_SUPABASE_ANON_KEY",
            "SUPABASE_SERVICE_ROLE_KEY",
        })
    if "stripe" in all_content:
        env_vars.update({
            "STRIPE_SECRET_KEY",
            "NEXT_PUBLIC_STRIPE_PUBLISHABLE_KEY",
            "STRIPE_WEBHOOK_SECRET",
        })
    if "openai" in all_content or "ai/" in all_content:
        env_vars.add("OPENAI_API_KEY")
    return sorted(env_vars)


def generate_readme(name: str, files: List[GeneratedFile], env_vars: List[str]) -> str:
    by_dir: Dict[str, List[str]] = {}
    for f in files:
        top = f.path.split("/")[0] if "/" in f.path else "root"
        by_dir.setdefault(top, []).append(f.path)

    lines = [
        f"# {name}",
        "",
        "Generated by App-Factory.",
        "",
        "## Getting Started",
        "",
        "1. Install dependencies: `npm install`",
    ]
    step = 2
    if env_vars:
        lines.append(f"{step}. Copy `.env.example` to `.env.local` and fill in:")
        lines.extend(f"   - `{v}`" for v in env_vars)
        step += 1
    lines.append(f"{step}. Run the development server: `npm run dev`")
    lines.append(f"{step + 1}. Open http://localhost:3000 in your browser.")
    lines.extend(["", "## Project Structure", ""])
    for top, paths in by_dir.items():
        lines.append(f"### {top}/")
        lines.extend(f"- `{p}`" for p in paths)
        lines.append("")
    return "\n".join(lines)


def scaffold_files(files: List[GeneratedFile], project_name: str) -> Dict[str, str]:
    """Extra project files to add, keyed by path; never overrides a generated file."""
    paths = {f.path for f in files}
    extra: Dict[str, str] = {}

    if "package.json" not in paths:
        extra["package.json"] = generate_package_json(project_name, files)

    uses_tailwind = any("className=" in f.content for f in files)
    if uses_tailwind and not any("tailwind.config" in p for p in paths):
        extra["tailwind.config.ts"] = TAILWIND_CONFIG
    if uses_tailwind and not any("postcss.config" in p for p in paths):
        extra["postcss.config.js"] = POSTCSS_CONFIG

    if "tsconfig.json" not in paths:
        extra["tsconfig.json"] = generate_tsconfig()
    if not any("next.config" in p for p in paths):
        extra["next.config.ts"] = generate_next_config(files)

    env_vars = detect_env_vars(files)
    if env_vars and ".env.example" not in paths:
        extra[".env.example"] = "\n".join(f"{v}=" for v in env_vars) + "\n"
    if ".gitignore" not in paths:
        extra[".gitignore"] = GITIGNORE
    if not any("readme" in p.lower() for p in paths):
        extra["README.md"] = generate_readme(project_name, files, env_vars)
    return extra


def bundle(files: Iterable[GeneratedFile], project_name: str = "app-factory-app") -> bytes:
    """ZIP archive with every file under a ``project_name/`` folder."""
    file_list = list(files)
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=9) as archive:
        for f in file_list:
            archive.writestr(f"{project_name}/{f.path}", f.content)
        for path, content in scaffold_files(file_list, project_name).items():
            archive.writestr(f"{project_name}/{path}", content)
    return buffer.getvalue()


def write_bundle(
    files: Iterable[GeneratedFile],
    output_dir: Union[str, Path],
    project_name: str = "app-factory-app",
) -> Path:
    """Write the archive to ``output_dir/project_name.zip`` and return its path."""
    out = Path(output_dir)
    out.mkdir(parents=True, exist_ok=True)
    path = out / f"{project_name}.zip"
    path.write_bytes(bundle(files, project_name))
    return path
