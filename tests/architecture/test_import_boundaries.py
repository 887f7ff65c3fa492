"""
Import-boundary enforcement.

Dependency direction is kernel <- modules <- services, with config beside
the services layer:

1. The kernel imports nothing from fund_modules, fund_services or fund_config.
2. fund_modules never imports fund_services or fund_config.
3. Pure statement functions import no SQLAlchemy and no session.

All scanning is done via AST; these tests are read-only.
"""

import ast
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[Path]:
    return sorted((ROOT / package).rglob("*.py"))


def _extract_imports(path: Path) -> list[tuple[int, str]]:
    tree = ast.parse(path.read_text(), filename=str(path))
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _violations(package: str, forbidden: tuple[str, ...]) -> list[str]:
    found = []
    for path in _python_files(package):
        for lineno, module in _extract_imports(path):
            if any(module == p or module.startswith(f"{p}.") for p in forbidden):
                found.append(f"{path.relative_to(ROOT)}:{lineno} imports {module}")
    return found


@pytest.mark.parametrize("package, forbidden", [
    ("fund_kernel", ("fund_modules", "fund_services", "fund_config")),
    ("fund_modules", ("fund_services", "fund_config")),
])
def test_dependency_direction(package, forbidden):
    assert _violations(package, forbidden) == []


def test_statements_are_pure():
    path = ROOT / "fund_modules" / "reporting" / "statements.py"
    imported = [module for _, module in _extract_imports(path)]
    assert not [m for m in imported if m.startswith("sqlalchemy")]
    assert "fund_kernel.db.engine" not in imported
