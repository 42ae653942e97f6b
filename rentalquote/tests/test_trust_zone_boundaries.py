"""Trust-zone dependency rules, read from docs/trust_zone.md."""

from __future__ import annotations

import ast
import re
from pathlib import Path

_PACKAGE = "rentalquote"
_ROOT = Path(__file__).resolve().parents[1]
_DOC = _ROOT / "docs" / "trust_zone.md"
_ALLOWED_TARGET_ZONES = {
    "Pure": {"Pure"},
    "Privileged": {"Privileged", "Pure"},
    "Orchestrator": {"Privileged", "Orchestrator", "Pure"},
}
# Directories that hold no importable zone code.
_UNZONED = {"tests", "docs", "rules", "__pycache__"}
_MAPPING_END = {"Dependency Rules", "Contributor Checklist"}
_BULLET = re.compile(r"^(?P<indent>\s*)-\s+`(?P<token>[^`]+)`")


def _zone_map() -> dict[str, str]:
    """Top-level directory name -> zone, from the "Current Directory Mapping" section."""
    mapping: dict[str, str] = {}
    zone: str | None = None
    in_section = False
    for line in _DOC.read_text(encoding="utf-8").splitlines():
        stripped = line.strip()
        if stripped == "Current Directory Mapping":
            in_section = True
            continue
        if not in_section:
            continue
        if stripped in _MAPPING_END:
            break
        match = _BULLET.match(line)
        if match is None:
            continue
        token = match.group("token").strip()
        if not match.group("indent"):
            zone = token
        elif zone is not None:
            mapping[token.strip("/")] = zone
    return mapping


def _module_parts(path: Path) -> list[str]:
    parts = list(path.relative_to(_ROOT).with_suffix("").parts)
    if parts[-1] == "__init__":
        parts.pop()
    return parts


def _imported_packages(path: Path) -> set[str]:
    """First component below the package of every in-package import in ``path``."""
    package_parts = _module_parts(path)
    if path.name != "__init__.py":
        package_parts = package_parts[:-1]

    found: set[str] = set()
    for node in ast.walk(ast.parse(path.read_text(encoding="utf-8"), filename=str(path))):
        names: list[str] = []
        if isinstance(node, ast.Import):
            names = [alias.name for alias in node.names]
        elif isinstance(node, ast.ImportFrom):
            if node.level:
                base = package_parts[: len(package_parts) - node.level + 1]
                names = [".".join([_PACKAGE, *base, *(node.module or "").split(".")]).rstrip(".")]
            elif node.module:
                names = [node.module]
        for name in names:
            parts = name.split(".")
            if parts[0] == _PACKAGE and len(parts) > 1:
                found.add(parts[1])
    return found


def test_every_zone_has_existing_directories() -> None:
    mapping = _zone_map()

    assert set(mapping.values()) == set(_ALLOWED_TARGET_ZONES)
    missing = [name for name in mapping if not (_ROOT / name).is_dir()]
    assert not missing, f"Trust-zone directories in {_DOC.name} do not exist: {missing}"


def test_every_source_package_is_zoned() -> None:
    mapping = _zone_map()
    unzoned = [
        path.name
        for path in sorted(_ROOT.iterdir())
        if path.is_dir() and path.name not in _UNZONED and path.name not in mapping
    ]
    assert not unzoned, f"Packages missing from {_DOC.name}: {unzoned}"


def test_trust_zone_import_boundaries() -> None:
    mapping = _zone_map()
    violations: list[str] = []

    for directory, source_zone in sorted(mapping.items()):
        for path in sorted((_ROOT / directory).rglob("*.py")):
            for target in sorted(_imported_packages(path)):
                target_zone = mapping.get(target)
                if target_zone is not None and target_zone not in _ALLOWED_TARGET_ZONES[source_zone]:
                    rel = path.relative_to(_ROOT)
                    violations.append(f"{rel}: {source_zone} imports {_PACKAGE}.{target} ({target_zone})")

    assert not violations, "Trust-zone import violations:\n" + "\n".join(violations)
