"""Merge newly parsed files into the accumulated, path-keyed file set."""

from typing import Dict, Iterable, List, Mapping, Optional, Tuple, Union

from contracts import GeneratedFile
from config import settings, Settings


FileSet = Dict[str, GeneratedFile]

ERROR_PREFIXES = ("Error:",)
APOLOGY_PHRASES = ("I apologize", "I'm sorry, but", "I cannot help")


def looks_like_failed_generation(content: str) -> bool:
    """True for refusals and error messages the model emitted instead of code."""
    stripped = content.lstrip()
    if stripped.startswith(ERROR_PREFIXES):
        return True
    return any(phrase in content for phrase in APOLOGY_PHRASES)


def should_replace(existing: str, incoming: str, config: Optional[Settings] = None) -> bool:
    """Decide whether a re-emitted file overrides what we already have.

    Replace when the new content grew by more than the threshold, or when its
    head does not appear in the old content. A near-identical re-emission and a
    shorter output repeating the old head (a truncated stream) keep the prior
    version.
    """
    cfg = config or settings
    if len(incoming) - len(existing) > cfg.merge_length_delta_threshold:
        return True
    return incoming[:cfg.merge_prefix_match_chars] not in existing


def to_file_set(files: Union[Mapping[str, GeneratedFile], Iterable[GeneratedFile]]) -> FileSet:
    """Normalize a list or mapping of files into an ordered path-keyed dict."""
    if isinstance(files, Mapping):
        return dict(files)
    result: FileSet = {}
    for f in files:
        result[f.path] = f
    return result


def merge_generated_files(
    existing: Union[Mapping[str, GeneratedFile], Iterable[GeneratedFile]],
    new_files: Iterable[GeneratedFile],
    config: Optional[Settings] = None,
) -> FileSet:
    """Combine new files with the accumulated set without mutating either.

    Keys keep the order of first appearance; values reflect the latest
    accepted write.
    """
    cfg = config or settings
    merged = to_file_set(existing)

    for f in new_files:
        if not f.content or len(f.content) < cfg.min_file_content_length:
            continue
        if looks_like_failed_generation(f.content):
            continue

        current = merged.get(f.path)
        if current is None or should_replace(current.content, f.content, cfg):
            merged[f.path] = f

    return merged


def diff_file_sets(before: Mapping[str, GeneratedFile], after: Mapping[str, GeneratedFile]) -> Tuple[List[str], List[str]]:
    """Paths created and paths whose content changed between two sets."""
    created = [path for path in after if path not in before]
    updated = [
        path for path, f in after.items()
        if path in before and before[path].content != f.content
    ]
    return created, updated
