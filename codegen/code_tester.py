"""Heuristic structural validation of the accumulated file set.

This is not a compiler: it checks delimiter balance with a string- and
comment-aware scanner, resolves local imports against the known paths,
flags placeholder code, and checks that the entry files exist. Errors make
a run fail; warnings never do.
"""

import html
import json
import posixpath
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Set, Union

from contracts import GeneratedFile, TestOptions, TestResult


SCRIPT_EXTENSIONS = {"ts", "tsx", "js", "jsx", "mjs", "cjs"}
JSX_EXTENSIONS = {"tsx", "jsx"}
STYLE_EXTENSIONS = {"css", "scss"}
RESOLVE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

BRACKETS = {"{": "}", "(": ")", "[": "]"}
BRACKET_NAMES = {"{": "curly braces", "(": "parentheses", "[": "square brackets"}
QUOTE_NAMES = {"'": "single quote string", '"': "double quote string"}

IMPORT_RE = re.compile(
    r"""(?:^|[;\s])(?:import|export)\s+(?:[\w*${}\s,]+?\s+from\s+)?['"]([^'"\n]+)['"]"""
)

PLACEHOLDER_PATTERNS = [
    re.compile(r"//\s*TODO"),
    re.compile(r"\bFIXME\b"),
    re.compile(r"\{\{\s*[A-Z][A-Z0-9_]*\s*\}\}"),
    re.compile(r"\[(?:YOUR|INSERT)[A-Z _-]*\]"),
    re.compile(r"<(?:PLACEHOLDER|YOUR_[A-Z_]+)>"),
]


@dataclass
class DelimiterScan:
    """Counts collected by one pass of the scanner."""
    opened: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in BRACKETS})
    closed: Dict[str, int] = field(default_factory=lambda: {k: 0 for k in BRACKETS})
    problems: List[str] = field(default_factory=list)


def _extension(path: str) -> str:
    name = path.rsplit("/", 1)[-1]
    return name.rsplit(".", 1)[-1].lower() if "." in name else ""


def _basename(path: str) -> str:
    return path.rsplit("/", 1)[-1]


def scan_delimiters(code: str, line_comments: bool = True, jsx: bool = False) -> DelimiterScan:
    """Count brackets outside of strings and comments.

    Quote strings cannot span lines. In JSX an unterminated quote is read as
    a literal apostrophe in text content rather than an error.
    """
    scan = DelimiterScan()
    closers = {v: k for k, v in BRACKETS.items()}
    i, n = 0, len(code)

    while i < n:
        ch = code[i]

        if line_comments and code.startswith("//", i):
            newline = code.find("\n", i)
            i = n if newline == -1 else newline + 1
            continue

        if code.startswith("/*", i):
            end = code.find("*/", i + 2)
            if end == -1:
                scan.problems.append("Unclosed block comment")
                break
            i = end + 2
            continue

        if ch in QUOTE_NAMES:
            j = i + 1
            while j < n and code[j] != ch and code[j] != "\n":
                j += 2 if code[j] == "\\" else 1
            if j < n and code[j] == ch:
                i = j + 1
            elif jsx:
                i += 1
            else:
                scan.problems.append(f"Unclosed {QUOTE_NAMES[ch]}")
                i = j
            continue

        if ch == "`":
            j, depth = i + 1, 0
            while j < n:
                c = code[j]
                if c == "\\":
                    j += 2
                    continue
                if depth == 0:
                    if c == "`":
                        break
                    if code.startswith("${", j):
                        depth = 1
                        j += 2
                        continue
                elif c == "{":
                    depth += 1
                elif c == "}":
                    depth -= 1
                j += 1
            if j >= n:
                scan.problems.append("Unclosed template literal")
                break
            i = j + 1
            continue

        if ch in BRACKETS:
            scan.opened[ch] += 1
        elif ch in closers:
            scan.closed[closers[ch]] += 1
        i += 1

    return scan


def validate_syntax(code: str, file_path: str) -> List[str]:
    """Structural syntax problems for one file; empty when it looks balanced."""
    ext = _extension(file_path)
    errors: List[str] = []

    if ext == "json":
        try:
            json.loads(code)
        except json.JSONDecodeError as e:
            errors.append(f"Invalid JSON: {e.msg} (line {e.lineno})")
        return errors

    if ext in SCRIPT_EXTENSIONS:
        scan = scan_delimiters(code, line_comments=True, jsx=ext in JSX_EXTENSIONS)
        kinds = BRACKETS
    elif ext in STYLE_EXTENSIONS:
        scan = scan_delimiters(code, line_comments=(ext == "scss"))
        kinds = {"{": "}"}
    else:
        return errors

    for opener in kinds:
        opened, closed = scan.opened[opener], scan.closed[opener]
        if opened != closed:
            errors.append(f"Unbalanced {BRACKET_NAMES[opener]}: {opened} open, {closed} close")
    errors.extend(scan.problems)

    if ext in SCRIPT_EXTENSIONS:
        name = _basename(file_path)
        if name.startswith(("page.", "layout.")) and "export default" not in code:
            errors.append("Missing default export")
        if ext in JSX_EXTENSIONS and "export default function" in code and "return" not in code:
            errors.append("Component function may be missing return statement")

    return errors


def _import_candidates(base: str) -> List[str]:
    candidates = [base]
    candidates.extend(base + ext for ext in RESOLVE_EXTENSIONS)
    candidates.extend(f"{base}/index{ext}" for ext in RESOLVE_EXTENSIONS)
    return candidates


def resolve_import(specifier: str, importer: str, available: Set[str]) -> bool:
    """Whether a local import resolves to a known file. External packages always do."""
    if specifier.startswith("@/"):
        base = specifier[2:]
        roots = [base, f"src/{base}"]
    elif specifier.startswith(("./", "../")):
        joined = posixpath.normpath(posixpath.join(posixpath.dirname(importer), specifier))
        if joined.startswith(".."):
            return False
        roots = [joined]
    else:
        return True

    return any(
        candidate in available
        for root in roots
        for candidate in _import_candidates(root)
    )


def check_imports(code: str, file_path: str, available: Set[str]) -> List[str]:
    """Local import specifiers in a file that do not resolve."""
    if _extension(file_path) not in SCRIPT_EXTENSIONS:
        return []
    missing = []
    for specifier in IMPORT_RE.findall(code):
        if not resolve_import(specifier, file_path, available) and specifier not in missing:
            missing.append(specifier)
    return missing


def find_placeholders(code: str) -> List[str]:
    """Placeholder markers left in generated code."""
    found = []
    for pattern in PLACEHOLDER_PATTERNS:
        match = pattern.search(code)
        if match:
            found.append(match.group(0).strip())
    if "..." in code and "implementation" in code.lower():
        found.append("...")
    return found


def _has_entry(paths: Iterable[str], prefix: str) -> bool:
    return any(
        _basename(p).startswith(prefix) and _extension(p) in SCRIPT_EXTENSIONS
        for p in paths
    )


def validate_required_files(paths: List[str]) -> tuple:
    """Errors and warnings about missing entry files."""
    errors, warnings = [], []
    if not _has_entry(paths, "page."):
        errors.append("Missing app/page.tsx - app will not have a homepage")
    if not _has_entry(paths, "layout."):
        warnings.append("Missing app/layout.tsx - may cause rendering issues")
    return errors, warnings


def test_generated_files(
    files: Union[Mapping[str, GeneratedFile], Iterable[GeneratedFile]],
    options: Optional[TestOptions] = None,
) -> TestResult:
    """Run every enabled check over the file set and collect one fresh result."""
    opts = options or TestOptions()
    file_list = list(files.values()) if isinstance(files, Mapping) else list(files)
    paths = [f.path for f in file_list]
    available = set(paths)

    errors: List[str] = []
    warnings: List[str] = []
    syntax_errors: List[str] = []
    missing_imports: List[str] = []
    placeholders: List[str] = []

    for f in file_list:
        if opts.check_syntax:
            for problem in validate_syntax(f.content, f.path):
                syntax_errors.append(f"{f.path}: {problem}")
                errors.append(f"{f.path}: {problem}")

        if opts.check_imports:
            for specifier in check_imports(f.content, f.path, available):
                missing_imports.append(f"{f.path}: missing {specifier}")
                warnings.append(f"{f.path}: potentially missing import {specifier}")

        if opts.check_placeholders:
            markers = find_placeholders(f.content)
            if markers:
                placeholders.append(f"{f.path}: {', '.join(markers)}")
                warnings.append(f"{f.path}: Contains placeholder code ({', '.join(markers)})")

    if opts.check_required_files:
        required_errors, required_warnings = validate_required_files(paths)
        errors.extend(required_errors)
        warnings.extend(required_warnings)

    return TestResult(
        passed=not errors,
        errors=errors,
        warnings=warnings,
        syntax_errors=syntax_errors,
        missing_imports=missing_imports,
        placeholders=placeholders,
    )


# Keep pytest from collecting the public entry point when it is imported into tests
test_generated_files.__test__ = False


def generate_preview_html(files: Iterable[GeneratedFile]) -> str:
    """Static HTML preview listing the files and showing the main page source."""
    file_list = list(files)
    page = next((f for f in file_list if _basename(f.path).startswith("page.")), None)
    globals_css = next((f for f in file_list if f.path.endswith("globals.css")), None)
    items = "\n".join(f"          <li>{html.escape(f.path)}</li>" for f in file_list)
    page_source = html.escape(page.content) if page else "No page.tsx found"

    return f"""<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1">
  <title>App-Factory Preview</title>
  <script src="https://cdn.tailwindcss.com"></script>
  <style>
{globals_css.content if globals_css else ""}
  </style>
</head>
<body>
  <div id="preview-root">
    <div class="p-8 max-w-4xl mx-auto">
      <div class="mb-6 p-4 bg-yellow-50 border border-yellow-200 rounded-lg">
        <p class="text-yellow-800 text-sm">
          <strong>Preview Mode:</strong> This is a static preview.
          Full interactivity requires running the built project.
        </p>
      </div>
      <div class="mb-8">
        <h2 class="text-lg font-semibold mb-2">Generated Files:</h2>
        <ul class="list-disc list-inside text-sm text-gray-600">
{items}
        </ul>
      </div>
      <div class="border rounded-lg p-4 bg-gray-50">
        <h3 class="font-medium mb-2">Main Page Preview:</h3>
        <pre class="text-xs overflow-auto max-h-96 p-2 bg-white rounded border">{page_source}</pre>
      </div>
    </div>
  </div>
</body>
</html>
"""
