"""
Pure classification of file paths and commit messages.

Both functions are total: they accept any input and always return a value.
"""

import re
from typing import Dict, Iterable, List, Optional, Tuple

from shared.models import Category, CommitType

# Ordered rule table; the first category listing the extension wins.
CATEGORY_RULES: Tuple[Tuple[Category, Tuple[str, ...]], ...] = (
    (Category.BACKEND, (".js", ".ts", ".py", ".go", ".java", ".rb", ".php", ".cs", ".rs")),
    (Category.FRONTEND, (".jsx", ".tsx", ".vue", ".css", ".scss", ".html", ".svelte")),
    (Category.DOCS, (".md", ".txt", ".rst")),
    (Category.CONFIG, (".json", ".yml", ".yaml", ".toml", ".ini", ".env")),
)

# Scan order for message prefixes.
COMMIT_TYPES: Tuple[CommitType, ...] = (
    CommitType.FEAT,
    CommitType.FIX,
    CommitType.DOCS,
    CommitType.STYLE,
    CommitType.REFACTOR,
    CommitType.PERF,
    CommitType.TEST,
    CommitType.CHORE,
    CommitType.OTHER,
)

_EXTENSION = re.compile(r"\.[^/.]+$")


def file_extension(path: str) -> str:
    """Lower-cased extension of the final path segment, or '' if it has none."""
    match = _EXTENSION.search(path or "")
    return match.group(0).lower() if match else ""


def categorize(path: str) -> Category:
    extension = file_extension(path)
    if not extension:
        return Category.OTHER
    for category, extensions in CATEGORY_RULES:
        if extension in extensions:
            return category
    return Category.OTHER


def classify_type(message: Optional[str]) -> CommitType:
    """Conventional-commit type of ``message`` from its ``<type>:`` prefix."""
    if not message:
        return CommitType.OTHER
    lowered = message.lower()
    for commit_type in COMMIT_TYPES:
        if lowered.startswith(f"{commit_type.value}:"):
            return commit_type
    return CommitType.OTHER


def categorize_tree(paths: Iterable[str]) -> Dict[Category, List[str]]:
    """Group file paths by category, every category present."""
    grouped: Dict[Category, List[str]] = {category: [] for category in Category}
    for path in paths:
        grouped[categorize(path)].append(path)
    return grouped


def category_extensions() -> Dict[Category, List[str]]:
    """The extension table per category, for display."""
    return {category: list(extensions) for category, extensions in CATEGORY_RULES}
