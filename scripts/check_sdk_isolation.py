#!/usr/bin/env python3
"""SDK isolation validation script.

Enforces the layering rule that the dispatch engine never depends on the
provider SDK or on the layers built on top of it. Modules under core/, types/
and utils/ (plus errors.py) may not import:

- the Firebase Admin SDK (``firebase_admin``)
- sender implementations (``fcm_dispatch.plugins``)
- the HTTP layer (``fcm_dispatch.app``) or the aiohttp server

Exit codes:
    0: No violations found (clean)
    1: Violations detected (layering rule broken)
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path
from typing import Final

# ANSI color codes for terminal output
RED: Final[str] = "\033[91m"
GREEN: Final[str] = "\033[92m"
YELLOW: Final[str] = "\033[93m"
RESET: Final[str] = "\033[0m"

PROTECTED_PATHS: Final[tuple[str, ...]] = ("core", "types", "utils", "errors.py")

FORBIDDEN_PREFIXES: Final[tuple[str, ...]] = (
    "firebase_admin",
    "fcm_dispatch.plugins",
    "fcm_dispatch.app",
    "aiohttp",
)


def _is_forbidden(module: str) -> bool:
    return any(module == prefix or module.startswith(f"{prefix}.") for prefix in FORBIDDEN_PREFIXES)


def check_file(file_path: Path) -> list[tuple[int, str]]:
    """Return (line_number, description) for every forbidden import in a file."""
    violations: list[tuple[int, str]] = []

    try:
        tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))
    except (OSError, SyntaxError) as e:
        print(f"{YELLOW}Warning: Could not parse {file_path}: {e}{RESET}", file=sys.stderr)
        return violations

    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            violations.extend(
                (node.lineno, f"import {alias.name}") for alias in node.names if _is_forbidden(alias.name)
            )
        elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0 and _is_forbidden(node.module):
            violations.append((node.lineno, f"from {node.module} import ..."))

    return violations


def iter_protected_files(package_path: Path) -> list[Path]:
    files: list[Path] = []
    for entry in PROTECTED_PATHS:
        target = package_path / entry
        if target.is_file():
            files.append(target)
        elif target.is_dir():
            files.extend(path for path in target.rglob("*.py") if "__pycache__" not in path.parts)
        else:
            print(f"{YELLOW}Warning: Protected path {target} does not exist{RESET}", file=sys.stderr)
    return sorted(files)


def main() -> int:
    project_root = Path(__file__).parent.parent
    package_path = project_root / "src" / "fcm_dispatch"

    if not package_path.exists():
        print(f"{RED}Error: Could not find src/fcm_dispatch directory{RESET}", file=sys.stderr)
        return 1

    print("Checking SDK isolation in core, types, utils and errors...")
    print(f"Scanning: {package_path}\n")

    all_violations = {path: found for path in iter_protected_files(package_path) if (found := check_file(path))}

    if not all_violations:
        print(f"{GREEN}✓ No SDK isolation violations found{RESET}")
        return 0

    total_violations = sum(len(v) for v in all_violations.values())
    print(f"{RED}✗ Found {total_violations} SDK isolation violations:{RESET}\n")
    for file_path, violations in all_violations.items():
        print(f"{RED}{file_path.relative_to(project_root)}{RESET}")
        for line_num, description in violations:
            print(f"  {line_num}: {description}")
        print()

    print("\nThe dispatch engine must only talk to providers through the injected Sender.")
    return 1


if __name__ == "__main__":
    sys.exit(main())
