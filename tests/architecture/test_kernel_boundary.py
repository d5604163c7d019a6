"""
Kernel boundary and invariants contract.

1. homebox_kernel/** may NOT import homebox_services, homebox_config or
   homebox_server.  The kernel never depends upward.

2. Selectors never mutate: no add/delete/flush/commit calls.

3. Services never commit or roll back; the caller owns the transaction.

4. The invariants declaration is complete.

These tests read source code via AST.
"""

import ast
import glob
from pathlib import Path

from homebox_kernel.invariants import (
    ALL_HIERARCHY_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    HierarchyInvariant,
)

ROOT = Path(__file__).resolve().parents[2]


def _python_files(package: str) -> list[str]:
    return sorted(glob.glob(str(ROOT / package / "**" / "*.py"), recursive=True))


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom) and node.module:
            results.append((node.lineno, node.module))
    return results


def _method_calls(filepath: str) -> list[tuple[int, str]]:
    tree = ast.parse(Path(filepath).read_text(), filename=filepath)
    calls = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Call) and isinstance(node.func, ast.Attribute):
            calls.append((node.lineno, node.func.attr))
    return calls


class TestKernelNoUpwardDependencies:
    def test_kernel_files_found(self):
        assert len(_python_files("homebox_kernel")) > 10

    def test_kernel_does_not_import_forbidden_packages(self):
        violations = []
        for filepath in _python_files("homebox_kernel"):
            for lineno, module in _extract_imports(filepath):
                for prefix in FORBIDDEN_KERNEL_IMPORTS:
                    if module == prefix or module.startswith(f"{prefix}."):
                        violations.append(f"  {filepath}:{lineno} imports '{module}'")

        assert not violations, (
            "Kernel boundary violation -- homebox_kernel/** must not import "
            "outer packages:\n" + "\n".join(violations)
        )

    def test_domain_does_not_import_orm_at_runtime(self):
        violations = []
        for filepath in _python_files("homebox_kernel/domain"):
            for lineno, module in _extract_imports(filepath):
                if module.startswith("sqlalchemy"):
                    violations.append(f"  {filepath}:{lineno} imports '{module}'")
        assert not violations, "\n".join(violations)


class TestTransactionOwnership:
    def test_selectors_never_mutate(self):
        forbidden = {"add", "add_all", "delete", "flush", "commit", "rollback"}
        violations = [
            f"  {path}:{lineno} calls .{name}()"
            for path in _python_files("homebox_kernel/selectors")
            for lineno, name in _method_calls(path)
            if name in forbidden
        ]
        assert not violations, "\n".join(violations)

    def test_services_never_commit(self):
        violations = [
            f"  {path}:{lineno} calls .{name}()"
            for path in _python_files("homebox_kernel/services")
            for lineno, name in _method_calls(path)
            if name in {"commit", "rollback"}
        ]
        assert not violations, "\n".join(violations)


class TestInvariantsDeclaration:
    def test_all_invariants_listed(self):
        assert ALL_HIERARCHY_INVARIANTS == frozenset(HierarchyInvariant)
        assert len(ALL_HIERARCHY_INVARIANTS) == 6

    def test_forbidden_imports_cover_every_outer_package(self):
        assert set(FORBIDDEN_KERNEL_IMPORTS) == {
            "homebox_services",
            "homebox_config",
            "homebox_server",
        }
