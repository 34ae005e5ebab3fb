"""Lesson catalog: YAML loader, validation, flat unit listing."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Iterator, Sequence

import yaml

from .models import DOMAINS, UNIT_KINDS, CatalogModule, CatalogUnit, coerce_domain

PACKAGE_ROOT = Path(__file__).resolve().parent
PROJECT_ROOT = PACKAGE_ROOT.parent.parent
DATA_DIR = PROJECT_ROOT / "data"
DEFAULT_CATALOG_FILE = DATA_DIR / "catalog.yaml"
CATALOG_FILE = Path(os.environ.get("FINANCE_COACH_CATALOG_PATH", DEFAULT_CATALOG_FILE))

_catalog_cache: list[CatalogModule] | None = None


def parse_catalog(raw: Any) -> list[CatalogModule]:
    """Turn parsed YAML into modules. Raises ValueError on malformed content."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ValueError("Catalog must be a list of modules")

    modules: list[CatalogModule] = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ValueError(f"Catalog module must be a mapping, got {entry!r}")
        if "id" not in entry:
            raise ValueError(f"Catalog module is missing an id: {entry!r}")
        module_id = str(entry["id"])
        title = str(entry.get("title", module_id))
        try:
            domain = coerce_domain(str(entry.get("domain", "")))
        except ValueError as exc:
            raise ValueError(f"Module '{module_id}': {exc}") from exc

        module = CatalogModule(id=module_id, title=title, domain=domain)
        for unit in entry.get("units") or []:
            if not isinstance(unit, dict) or "id" not in unit:
                raise ValueError(f"Module '{module_id}': unit must be a mapping with an id, got {unit!r}")
            kind = unit.get("kind", "lesson")
            if kind not in UNIT_KINDS:
                raise ValueError(f"Unit '{unit.get('id')}' has unknown kind '{kind}'")
            module.units.append(
                CatalogUnit(
                    id=str(unit["id"]),
                    title=str(unit.get("title", unit["id"])),
                    kind=kind,
                    estimated_minutes=int(unit.get("estimated_minutes", 0)),
                    domain=domain,
                    module_id=module_id,
                    module_title=title,
                )
            )
        modules.append(module)

    validate_catalog(modules)
    return modules


def validate_catalog(modules: Sequence[CatalogModule]) -> None:
    """Reject duplicate unit ids and modules outside the known domains."""
    seen: set[str] = set()
    for module in modules:
        if module.domain not in DOMAINS:
            raise ValueError(f"Module '{module.id}' has unknown domain '{module.domain}'")
        for unit in module.units:
            if unit.id in seen:
                raise ValueError(f"Duplicate unit id '{unit.id}'")
            seen.add(unit.id)


def load_catalog(path: Path | None = None) -> list[CatalogModule]:
    """Parse the catalog YAML. The default file is cached in memory."""
    global _catalog_cache
    if _catalog_cache is not None and path is None:
        return _catalog_cache

    file_path = path or CATALOG_FILE
    with open(file_path, encoding="utf-8") as f:
        modules = parse_catalog(yaml.safe_load(f))

    if path is None:
        _catalog_cache = modules
    return modules


def clear_cache() -> None:
    """Clear the in-memory catalog cache."""
    global _catalog_cache
    _catalog_cache = None


def iter_units(modules: Sequence[CatalogModule]) -> Iterator[CatalogUnit]:
    """All units in catalog order."""
    for module in modules:
        yield from module.units


def find_unit(modules: Sequence[CatalogModule], unit_id: str) -> CatalogUnit | None:
    for unit in iter_units(modules):
        if unit.id == unit_id:
            return unit
    return None


__all__ = [
    "clear_cache",
    "find_unit",
    "iter_units",
    "load_catalog",
    "parse_catalog",
    "validate_catalog",
]
