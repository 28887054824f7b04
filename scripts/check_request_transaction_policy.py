"""Pre-commit helper enforcing request-bounded transaction conventions.

Services own their units of work with ``async with db.begin()``; routes never
open, commit or roll back a transaction. Scripts under scripts/ may commit.

Usage:
    python scripts/check_request_transaction_policy.py [paths...]

With no paths, app/routes and app/services are scanned.
"""

from __future__ import annotations

import ast
import sys
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
DEFAULT_ROOTS = (REPO_ROOT / "app" / "routes", REPO_ROOT / "app" / "services")

_FORBIDDEN_EVERYWHERE = {"commit", "rollback"}
_FORBIDDEN_IN_ROUTES = {"begin", "begin_nested"}


def _is_route_module(path: Path) -> bool:
    return "routes" in path.resolve().parts


def _find_violations(paths: list[Path]) -> list[str]:
    violations: list[str] = []
    for path in paths:
        if path.suffix != ".py":
            continue
        forbidden = set(_FORBIDDEN_EVERYWHERE)
        if _is_route_module(path):
            forbidden |= _FORBIDDEN_IN_ROUTES
        tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
        for node in ast.walk(tree):
            if not isinstance(node, ast.Call):
                continue
            func = node.func
            if not isinstance(func, ast.Attribute):
                continue
            if func.attr not in forbidden:
                continue
            violations.append(f"{path}:{node.lineno} ({func.attr})")
    return violations


def _collect(argv: list[str]) -> list[Path]:
    if argv[1:]:
        return [Path(arg) for arg in argv[1:]]
    return sorted(path for root in DEFAULT_ROOTS for path in root.rglob("*.py"))


def main(argv: list[str]) -> int:
    paths = _collect(argv)
    if not paths:
        return 0

    violations = _find_violations(paths)
    if not violations:
        return 0

    sys.stderr.write(
        "\n".join(
            [
                "Explicit commit()/rollback() calls are forbidden in routes and services,"
                " and routes must not open transactions. Put the unit of work in a"
                " service using `async with db.begin(): ...` instead.",
                "",
                "Violations:",
                *sorted(violations),
                "",
            ]
        )
    )
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv))
