"""File scanner: discover schema files under a directory."""

from pathlib import Path

# Directories to always skip
SKIP_DIRS = {
    ".git", "__pycache__", "node_modules", ".venv", "venv", ".env",
    "dist", "build", ".tox", ".mypy_cache", ".pytest_cache", ".ruff_cache",
    "target", "vendor", "coverage",
}

SCHEMA_SUFFIXES = {".json"}


def scan_schema_files(root: Path) -> list[Path]:
    """Recursively find schema files under ``root``, sorted by path.

    A file passed directly is returned on its own, whatever its suffix.
    """
    root = Path(root)
    if root.is_file():
        return [root]
    return sorted(item for item in root.rglob("*") if item.is_file() and _should_include(item, root))


def _should_include(path: Path, root: Path) -> bool:
    # Only directories below the scan root count; the root may itself live
    # somewhere like build/
    for part in path.relative_to(root).parts[:-1]:
        if part in SKIP_DIRS:
            return False
    return is_schema_file(path)


def is_schema_file(path: Path) -> bool:
    return path.suffix.lower() in SCHEMA_SUFFIXES
