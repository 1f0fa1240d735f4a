from __future__ import annotations

import argparse
import ast
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

FORBIDDEN_MODULES = {
    "fastapi",
    "pydantic",
    "sqlalchemy",
    "redis",
    "httpx",
    "requests",
    "opentelemetry",
    "prometheus_client",
    "ods.api",
    "ods.application",
    "ods.infrastructure",
}

SRC_ROOT = Path(__file__).resolve().parents[1] / "src"
DEFAULT_DOMAIN_PATH = SRC_ROOT / "ods" / "domain"


@dataclass(frozen=True)
class Violation:
    file_path: Path
    line: int
    module: str


def _python_files(root: Path) -> Iterable[Path]:
    if root.is_file() and root.suffix == ".py":
        yield root
        return
    if root.is_dir():
        yield from sorted(root.rglob("*.py"))


def _matches_forbidden(module: str) -> bool:
    return any(
        module == forbidden or module.startswith(f"{forbidden}.") for forbidden in FORBIDDEN_MODULES
    )


def _package_parts(file_path: Path) -> list[str] | None:
    try:
        relative = file_path.resolve().relative_to(SRC_ROOT)
    except ValueError:
        return None
    return list(relative.parent.parts)


def _resolve_relative(file_path: Path, node: ast.ImportFrom) -> str | None:
    """Turn ``from ..x import y`` into an absolute module name when the file lives under src/."""
    package = _package_parts(file_path)
    if package is None or node.level > len(package):
        return None
    base = package[: len(package) - node.level + 1]
    if node.module:
        base.append(node.module)
    return ".".join(base) or None


def _imported_modules(file_path: Path, tree: ast.AST) -> Iterable[tuple[int, str]]:
    for node in ast.walk(tree):
        if isinstance(node, ast.Import):
            for alias in node.names:
                yield node.lineno, alias.name
        elif isinstance(node, ast.ImportFrom):
            module = node.module if node.level == 0 else _resolve_relative(file_path, node)
            if module:
                yield node.lineno, module


def _scan_file(file_path: Path) -> list[Violation]:
    tree = ast.parse(file_path.read_text(encoding="utf-8"), filename=str(file_path))
    return [
        Violation(file_path=file_path, line=line, module=module)
        for line, module in _imported_modules(file_path, tree)
        if _matches_forbidden(module)
    ]


def find_violations(paths: Sequence[Path]) -> list[Violation]:
    violations: list[Violation] = []
    for path in paths:
        for file_path in _python_files(path):
            violations.extend(_scan_file(file_path))
    return violations


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Fail when the ods domain layer imports frameworks or adapter packages."
    )
    parser.add_argument(
        "--path",
        action="append",
        default=[],
        help="Path to scan (repeatable). Defaults to src/ods/domain.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    scan_paths = [Path(item) for item in args.path] if args.path else [DEFAULT_DOMAIN_PATH]

    violations = find_violations(scan_paths)
    if not violations:
        print("depcheck passed")
        return 0

    print("depcheck failed: forbidden imports detected")
    for violation in violations:
        print(f"{violation.file_path}:{violation.line} -> {violation.module}")
    return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))
