"""Policy tests to keep request code aligned with transaction conventions."""

from __future__ import annotations

import ast
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[2]


def _calls(path: Path, attrs: set[str]) -> list[int]:
    tree = ast.parse(path.read_text(encoding="utf-8"), filename=str(path))
    return [
        node.lineno
        for node in ast.walk(tree)
        if isinstance(node, ast.Call)
        and isinstance(node.func, ast.Attribute)
        and node.func.attr in attrs
    ]


def test_request_bounded_code_has_no_explicit_commit_or_rollback() -> None:
    """Routes and services use ``async with db.begin()`` instead of commit()/rollback()."""
    roots = (REPO_ROOT / "app" / "routes", REPO_ROOT / "app" / "services")

    violations = [
        f"{path.relative_to(REPO_ROOT)}:{lineno}"
        for root in roots
        for path in root.rglob("*.py")
        for lineno in _calls(path, {"commit", "rollback"})
    ]

    assert not violations, (
        "Explicit commit()/rollback() calls found in request-bounded code:\n"
        + "\n".join(sorted(violations))
    )


def test_routes_do_not_open_transactions() -> None:
    """Transaction boundaries belong to the service layer."""
    violations = [
        f"{path.relative_to(REPO_ROOT)}:{lineno}"
        for path in (REPO_ROOT / "app" / "routes").rglob("*.py")
        for lineno in _calls(path, {"begin", "begin_nested"})
    ]

    assert not violations, "Routes opening transactions:\n" + "\n".join(sorted(violations))
