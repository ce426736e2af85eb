from __future__ import annotations

import ast
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
SOURCE_DIRS = ("core", "infra", "migration", "tests")


def _line_count(path: Path) -> int:
    return len(path.read_text(encoding="utf-8", errors="ignore").splitlines())


def _python_files(root: Path):
    yield from root.rglob("*.py")


def _imported_modules(path: Path):
    tree = ast.parse(path.read_text(encoding="utf-8", errors="ignore"))
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield alias.name
        elif isinstance(node, ast.ImportFrom):
            yield node.module or ""


def test_no_python_module_exceeds_hard_line_limit():
    offenders = []
    for folder in SOURCE_DIRS:
        for path in _python_files(ROOT / folder):
            lines = _line_count(path)
            if lines > 1200:
                offenders.append((str(path.relative_to(ROOT)), lines))
    assert not offenders, f"Modules exceed hard 1200-line limit: {offenders}"


def test_core_layer_does_not_import_infra_layer():
    violations: list[tuple[str, str]] = []
    for path in _python_files(ROOT / "core"):
        for name in _imported_modules(path):
            if name == "infra" or name.startswith("infra."):
                violations.append((str(path.relative_to(ROOT)), name))

    assert not violations, f"Core layer imports infra layer: {violations}"


def test_domain_models_are_persistence_free():
    violations: list[tuple[str, str]] = []
    for path in _python_files(ROOT / "core" / "domain"):
        for name in _imported_modules(path):
            if name.startswith("sqlalchemy"):
                violations.append((str(path.relative_to(ROOT)), name))

    assert not violations, f"Domain models import SQLAlchemy: {violations}"


def test_infra_repositories_module_is_facade_only():
    text = (ROOT / "infra" / "db" / "repositories.py").read_text(encoding="utf-8", errors="ignore")

    assert "from infra.db.allocation import" in text
    assert "from infra.db.conflict import" in text
    assert "class SqlAlchemyAllocationRepository" not in text
    assert "class SqlAlchemyConflictRepository" not in text


def test_conflict_rows_are_written_only_by_the_coordinator_path():
    # services outside the recompute package must not reconcile or resolve directly
    allowed = {
        ROOT / "core" / "services" / "conflicts" / "lifecycle.py",
        ROOT / "core" / "services" / "recompute" / "coordinator.py",
    }
    offenders = []
    for path in _python_files(ROOT / "core" / "services"):
        if path in allowed:
            continue
        text = path.read_text(encoding="utf-8", errors="ignore")
        if ".reconcile(" in text or "lifecycle.resolve(" in text:
            offenders.append(str(path.relative_to(ROOT)))
    assert not offenders, f"Conflict writes outside the coordinator: {offenders}"


def test_runtime_checks_do_not_rely_on_assert():
    # python -O strips assert statements
    offenders = []
    for folder in ("core", "infra"):
        for path in _python_files(ROOT / folder):
            tree = ast.parse(path.read_text(encoding="utf-8", errors="ignore"))
            for node in ast.walk(tree):
                if isinstance(node, ast.Assert):
                    offenders.append(f"{path.relative_to(ROOT)}:{node.lineno}")
    assert not offenders, f"assert used for runtime checks: {offenders}"
