"""Parse one iteration's raw model output into discrete files.

The generator is instructed to emit file blocks of the form::

    === FILE: app/page.tsx ===
    ...content...
    === END FILE ===

followed by an optional progress block. Models drift from that format, so
parsing is a cascade of strategies tried in priority order; the first one
that yields at least one file wins. Nothing here raises on malformed input.
"""

import json
import logging
import re
from typing import Callable, Dict, List, Optional

from pydantic import ValidationError

from contracts import GeneratedFile, ProgressUpdate
from config import settings

logger = logging.getLogger(__name__)


FILE_START = r"=== FILE:\s*([^\n=]+?)\s*==="
END_FILE_MARKER = "=== END FILE ==="

FILE_START_RE = re.compile(FILE_START)
# Block bodies never run across another start marker
PAIRED_BLOCK_RE = re.compile(FILE_START + r"((?:(?!=== FILE:)[\s\S])*?)=== END FILE ===")
OPEN_BLOCK_RE = re.compile(FILE_START + r"([\s\S]*?)(?==== FILE:|=== PROGRESS|\Z)")
FENCED_FILE_RE = re.compile(r"```([\w+-]+)?[ \t]*file=[\"']([^\"']+)[\"']([\s\S]*?)```")
JSON_FILES_START_RE = re.compile(r"\{\s*\"files\"\s*:")
PROGRESS_BLOCK_RE = re.compile(
    r"=== PROGRESS UPDATE ===([\s\S]*?)=== END PROGRESS ===", re.IGNORECASE
)

OPENING_FENCE_RE = re.compile(r"^```[^\n]*\n?")
CLOSING_FENCE_RE = re.compile(r"\n?```\s*$")

LANGUAGE_BY_EXTENSION: Dict[str, str] = {
    "ts": "typescript",
    "tsx": "typescript",
    "js": "javascript",
    "jsx": "javascript",
    "mjs": "javascript",
    "cjs": "javascript",
    "css": "css",
    "scss": "scss",
    "json": "json",
    "md": "markdown",
    "html": "html",
    "sql": "sql",
    "py": "python",
    "env": "plaintext",
    "yaml": "yaml",
    "yml": "yaml",
}


def language_for_path(path: str) -> str:
    """Derive a language name from a file extension."""
    name = path.rsplit("/", 1)[-1]
    if "." not in name:
        return "text"
    ext = name.rsplit(".", 1)[-1].lower()
    return LANGUAGE_BY_EXTENSION.get(ext, "text")


def sanitize_path(path: str) -> str:
    """Turn an untrusted path into a safe relative path.

    Parent and current directory segments are dropped, leading slashes go,
    repeated slashes collapse, and whitespace runs become dashes. The result
    never contains "..".
    """
    cleaned = re.sub(r"\s+", "-", path.strip().replace("\\", "/"))
    segments = []
    for segment in cleaned.split("/"):
        if segment in ("", ".", ".."):
            continue
        while ".." in segment:
            segment = segment.replace("..", ".")
        if segment == ".":
            continue
        segments.append(segment)
    return "/".join(segments)


def clean_content(content: str) -> str:
    """Strip residual code fences and normalize line endings."""
    text = content.replace("\r\n", "\n").replace("\r", "\n").strip()
    text = OPENING_FENCE_RE.sub("", text)
    text = CLOSING_FENCE_RE.sub("", text)
    return text.strip()


def _make_file(path: str, content: str, iteration: Optional[int]) -> Optional[GeneratedFile]:
    safe_path = sanitize_path(path)
    body = clean_content(content)
    if not safe_path or not body:
        return None
    return GeneratedFile(
        path=safe_path,
        content=body,
        language=language_for_path(safe_path),
        iteration=iteration,
    )


def _parse_paired_markers(text: str, iteration: Optional[int]) -> List[GeneratedFile]:
    matches = list(PAIRED_BLOCK_RE.finditer(text))
    # Some block lacks its end marker; the open-marker pass handles the mix
    if len(matches) < len(FILE_START_RE.findall(text)):
        return []
    files = []
    for match in matches:
        generated = _make_file(match.group(1), match.group(2), iteration)
        if generated:
            files.append(generated)
    return files


def _parse_open_markers(text: str, iteration: Optional[int]) -> List[GeneratedFile]:
    files = []
    for match in OPEN_BLOCK_RE.finditer(text):
        content = match.group(2).split(END_FILE_MARKER, 1)[0]
        if len(content.strip()) <= settings.min_salvaged_content_length:
            continue
        generated = _make_file(match.group(1), content, iteration)
        if generated:
            files.append(generated)
    return files


def _parse_fenced_blocks(text: str, iteration: Optional[int]) -> List[GeneratedFile]:
    files = []
    for match in FENCED_FILE_RE.finditer(text):
        generated = _make_file(match.group(2), match.group(3), iteration)
        if generated is None:
            continue
        if generated.language == "text" and match.group(1):
            generated.language = match.group(1).lower()
        files.append(generated)
    return files


def _parse_json_files(text: str, iteration: Optional[int]) -> List[GeneratedFile]:
    decoder = json.JSONDecoder()
    for match in JSON_FILES_START_RE.finditer(text):
        try:
            payload, _ = decoder.raw_decode(text, match.start())
        except json.JSONDecodeError:
            continue
        entries = payload.get("files") if isinstance(payload, dict) else None
        if not isinstance(entries, list):
            continue
        files = []
        for entry in entries:
            if not isinstance(entry, dict):
                continue
            path, content = entry.get("path"), entry.get("content")
            if isinstance(path, str) and isinstance(content, str):
                generated = _make_file(path, content, iteration)
                if generated:
                    files.append(generated)
        if files:
            return files
    return []


ParseStrategy = Callable[[str, Optional[int]], List[GeneratedFile]]

PARSE_STRATEGIES: List[ParseStrategy] = [
    _parse_paired_markers,
    _parse_open_markers,
    _parse_fenced_blocks,
    _parse_json_files,
]


def parse_generated_code(raw: str, iteration: Optional[int] = None) -> List[GeneratedFile]:
    """Extract files from raw model output.

    Args:
        raw: Full text of one generation call
        iteration: Optional iteration number stamped on each file

    Returns:
        Files from the first strategy that found any, possibly empty
    """
    if not raw:
        return []
    text = raw.replace("\r\n", "\n").replace("\r", "\n")
    for strategy in PARSE_STRATEGIES:
        files = strategy(text, iteration)
        if files:
            logger.debug("%s extracted %d files", strategy.__name__, len(files))
            return files
    return []


def _salvage_progress(block: str) -> Optional[ProgressUpdate]:
    iteration_match = re.search(r"\"iteration\"\s*:\s*(\d+)", block)
    if not iteration_match:
        return None
    files_match = re.search(r"\"filesCreated\"\s*:\s*\[(.*?)\]", block, re.DOTALL)
    summary_match = re.search(r"\"summary\"\s*:\s*\"([^\"]*)\"", block)
    files_created = []
    if files_match:
        files_created = [
            item.strip().strip("\"'").strip()
            for item in files_match.group(1).split(",")
        ]
        files_created = [item for item in files_created if item]
    return ProgressUpdate(
        iteration=int(iteration_match.group(1)),
        files_created=files_created,
        summary=summary_match.group(1) if summary_match else "Iteration completed",
    )


def parse_progress_update(raw: str) -> Optional[ProgressUpdate]:
    """Read the trailing progress block; malformed blocks degrade to salvaged fields."""
    match = PROGRESS_BLOCK_RE.search(raw or "")
    if not match:
        return None
    block = clean_content(match.group(1))
    try:
        data = json.loads(block)
        if not isinstance(data, dict):
            return _salvage_progress(block)
        return ProgressUpdate.model_validate(data)
    except (json.JSONDecodeError, ValidationError) as e:
        logger.debug("Progress block malformed, salvaging: %s", e)
        return _salvage_progress(block)


class CurrentFileScanner:
    """Incremental, lossy scanner reporting which file the stream is writing.

    Display only: the authoritative parse runs once on the full buffered text.
    """

    _PATTERN = re.compile(FILE_START)
    _TAIL_CHARS = 512

    def __init__(self):
        self._tail = ""
        self.current_file: Optional[str] = None

    def feed(self, chunk: str) -> Optional[str]:
        """Consume a chunk and return the latest completed file marker path, if any."""
        window = self._tail + chunk
        matches = self._PATTERN.findall(window)
        if matches:
            self.current_file = sanitize_path(matches[-1])
        self._tail = window[-self._TAIL_CHARS:]
        return self.current_file


def get_file_stats(files: List[GeneratedFile]) -> Dict:
    """Summary statistics for display and run summaries."""
    by_type: Dict[str, int] = {}
    issues: List[str] = []
    for f in files:
        name = f.path.rsplit("/", 1)[-1]
        ext = name.rsplit(".", 1)[-1] if "." in name else "other"
        by_type[ext] = by_type.get(ext, 0) + 1
        if "// TODO" in f.content:
            issues.append(f"{f.path}: Contains TODO")
        if len(re.findall(r"\bany\b", f.content)) > 3:
            issues.append(f"{f.path}: Excessive 'any' types")

    total_chars = sum(len(f.content) for f in files)
    return {
        "file_count": len(files),
        "total_lines": sum(len(f.content.split("\n")) for f in files),
        "total_chars": total_chars,
        "by_type": by_type,
        "issues": issues,
        "estimated_bytes": total_chars,
    }
