"""
Kernel boundary and invariants contract.

Tests that enforce the kernel's architectural boundaries:

1. commerce_kernel/** may NOT import commerce_services or commerce_config.
   The kernel never depends upward.

2. commerce_kernel/domain/** is pure: no SQLAlchemy, no YAML, no I/O
   libraries.

3. commerce_config/** may NOT import commerce_services.

4. Kernel services and selectors never commit or roll back the session;
   transaction boundaries belong to CommerceService.

5. The kernel invariants declaration is complete and non-empty.

These tests read source code via AST -- they cannot break anything.
"""

import ast
import glob
from pathlib import Path

from commerce_kernel.invariants import (
    ALL_KERNEL_INVARIANTS,
    FORBIDDEN_KERNEL_IMPORTS,
    KernelInvariant,
)

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _python_files(root: str) -> list[str]:
    """Return all .py files under root, relative to cwd."""
    return sorted(glob.glob(f"{root}/**/*.py", recursive=True))


def _parse(filepath: str) -> ast.AST | None:
    try:
        return ast.parse(Path(filepath).read_text(), filename=filepath)
    except (SyntaxError, UnicodeDecodeError):
        return None


def _extract_imports(filepath: str) -> list[tuple[int, str]]:
    """Extract (line_number, module_string) for all imports in a file."""
    tree = _parse(filepath)
    if tree is None:
        return []

    results: list[tuple[int, str]] = []
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                results.append((node.lineno, alias.name))
        elif isinstance(node, ast.ImportFrom):
            if node.module:
                results.append((node.lineno, node.module))
    return results


def _violations(root: str, prefixes: tuple[str, ...]) -> list[str]:
    found: list[str] = []
    for filepath in _python_files(root):
        for lineno, module in _extract_imports(filepath):
            for prefix in prefixes:
                if module == prefix or module.startswith(f"{prefix}."):
                    found.append(f"  {filepath}:{lineno} imports '{module}'")
    return found


# ---------------------------------------------------------------------------
# Import direction
# ---------------------------------------------------------------------------


class TestKernelNoUpwardDependencies:
    def test_kernel_does_not_import_forbidden_packages(self):
        violations = _violations("commerce_kernel", FORBIDDEN_KERNEL_IMPORTS)
        assert not violations, (
            "Kernel boundary violation -- commerce_kernel/** must not import "
            "upward packages:\n" + "\n".join(violations)
        )

    def test_config_does_not_import_services(self):
        violations = _violations("commerce_config", ("commerce_services",))
        assert not violations, (
            "commerce_config/** must not import commerce_services:\n" + "\n".join(violations)
        )

    def test_files_were_found(self):
        assert _python_files("commerce_kernel"), "run pytest from the repository root"


class TestDomainPurity:
    IMPURE_PREFIXES = ("sqlalchemy", "yaml", "psycopg2", "requests", "commerce_kernel.db",
                       "commerce_kernel.models", "commerce_kernel.services")

    def test_domain_has_no_infrastructure_imports(self):
        violations = _violations("commerce_kernel/domain", self.IMPURE_PREFIXES)
        assert not violations, (
            "commerce_kernel/domain/** must stay pure:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Transaction ownership
# ---------------------------------------------------------------------------


def _is_session_expr(node: ast.AST) -> bool:
    if isinstance(node, ast.Name):
        return node.id == "session"
    if isinstance(node, ast.Attribute):
        return node.attr == "session" and isinstance(node.value, ast.Name) and node.value.id == "self"
    return False


class TestServicesDoNotOwnTransactions:
    ROOTS = ("commerce_kernel/services", "commerce_kernel/selectors")

    def test_no_session_commit_or_rollback(self):
        violations: list[str] = []
        for root in self.ROOTS:
            for filepath in _python_files(root):
                tree = _parse(filepath)
                if tree is None:
                    continue
                for node in ast.walk(tree):
                    if (
                        isinstance(node, ast.Call)
                        and isinstance(node.func, ast.Attribute)
                        and node.func.attr in ("commit", "rollback")
                        and _is_session_expr(node.func.value)
                    ):
                        violations.append(f"  {filepath}:{node.lineno} calls session.{node.func.attr}()")

        assert not violations, (
            "Kernel services flush; CommerceService commits:\n" + "\n".join(violations)
        )


# ---------------------------------------------------------------------------
# Invariants declaration
# ---------------------------------------------------------------------------


class TestKernelInvariantsDeclaration:
    def test_invariants_declared(self):
        assert len(ALL_KERNEL_INVARIANTS) == len(KernelInvariant)
        assert KernelInvariant.NO_OVERSELL in ALL_KERNEL_INVARIANTS
        assert KernelInvariant.CHECKOUT_ATOMICITY in ALL_KERNEL_INVARIANTS
