"""Code generation pipeline: parse model output, merge files, validate the set."""

from .file_parser import (
    parse_generated_code,
    parse_progress_update,
    sanitize_path,
    language_for_path,
    get_file_stats,
    CurrentFileScanner,
)
from .file_merger import FileSet, merge_generated_files, diff_file_sets
from .code_tester import (
    validate_syntax,
    check_imports,
    test_generated_files,
    generate_preview_html,
)

__all__ = [
    "parse_generated_code",
    "parse_progress_update",
    "sanitize_path",
    "language_for_path",
    "get_file_stats",
    "CurrentFileScanner",
    "FileSet",
    "merge_generated_files",
    "diff_file_sets",
    "validate_syntax",
    "check_imports",
    "test_generated_files",
    "generate_preview_html",
]
