"""
Catalog Service - flow / agency / system / module / element lookups
====================================================================

The catalog is a static JSON document shaped as::

    {
      "Inbound": {
        "<agency>": {
          "<system>": {
            "modules": {
              "<module>": {"elements": ["Nama", {"group": "Pegawai", "fields": ["Nama"]}]}
            }
          }
        }
      },
      "Outbound": {...}
    }

Element entries are resolved once at load time into FlatElement or
GroupedElement. The parsed catalog is cached in-process; call reload() after
editing the file.
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional

from dataconfirm.core.config import settings
from dataconfirm.core.exceptions import CatalogFormatError, CatalogNotFoundError
from dataconfirm.core.logging_config import logger
from dataconfirm.services.element_keys import (
    CatalogEntry,
    ElementKey,
    FlatElement,
    GroupedElement,
    flatten_catalog,
)


def parse_entry(raw: Any) -> CatalogEntry:
    """Resolve one raw element entry into its tagged form"""
    if isinstance(raw, str):
        name = raw.strip()
        if not name:
            raise CatalogFormatError("Catalog element name cannot be blank")
        return FlatElement(name)

    if isinstance(raw, dict) and "group" in raw:
        group = str(raw.get("group") or "").strip()
        fields = raw.get("fields") or []
        if not group or not isinstance(fields, list):
            raise CatalogFormatError(f"Malformed grouped element: {raw!r}")
        names = tuple(str(f).strip() for f in fields if str(f).strip())
        return GroupedElement(group, names)

    raise CatalogFormatError(f"Unsupported catalog element: {raw!r}")


class CatalogService:
    """Read-only access to the systems catalog"""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else settings.CATALOG_FILE
        self._raw: Optional[Dict[str, Any]] = None
        self._entries: Dict[tuple, List[CatalogEntry]] = {}

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _load(self) -> Dict[str, Any]:
        if self._raw is not None:
            return self._raw

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise CatalogFormatError(f"Catalog file not found: {self.path}")
        except json.JSONDecodeError as e:
            raise CatalogFormatError(f"Catalog file is not valid JSON: {e}")

        if not isinstance(data, dict):
            raise CatalogFormatError("Catalog root must be an object keyed by flow type")

        entries: Dict[tuple, List[CatalogEntry]] = {}
        for flow, agencies in data.items():
            for agency, systems in (agencies or {}).items():
                for system, system_data in (systems or {}).items():
                    modules = (system_data or {}).get("modules") or {}
                    for module, module_data in modules.items():
                        raw_elements = (module_data or {}).get("elements") or []
                        entries[(flow, agency, system, module)] = [
                            parse_entry(item) for item in raw_elements
                        ]

        self._raw = data
        self._entries = entries
        logger.info(f"[Catalog] Loaded {len(entries)} modules from {self.path}")
        return data

    def reload(self) -> None:
        """Drop the cache and re-read the catalog file"""
        self._raw = None
        self._entries = {}
        self._load()

    def raw(self) -> Dict[str, Any]:
        """Catalog JSON as stored on disk"""
        return self._load()

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def list_flows(self) -> List[str]:
        return list(self._load().keys())

    def _agencies(self, flow: str) -> Dict[str, Any]:
        data = self._load()
        if flow not in data:
            raise CatalogNotFoundError("flow", flow)
        return data[flow] or {}

    def resolve_agency(self, flow: str, agency: str) -> str:
        """
        Map a user's agency onto a catalog agency key.

        Tries an exact match, then a case-insensitive match, then a
        substring match in either direction.
        """
        agencies = list(self._agencies(flow).keys())
        wanted = (agency or "").strip()
        if not wanted:
            raise CatalogNotFoundError("agency", agency or "")

        if wanted in agencies:
            return wanted

        lowered = wanted.lower()
        for key in agencies:
            if key.lower() == lowered:
                return key

        for key in agencies:
            key_lower = key.lower()
            if lowered in key_lower or key_lower in lowered:
                return key

        raise CatalogNotFoundError("agency", agency)

    def _systems(self, flow: str, agency: str) -> Dict[str, Any]:
        key = self.resolve_agency(flow, agency)
        return self._agencies(flow)[key] or {}

    def list_systems(self, flow: str, agency: str) -> List[str]:
        return list(self._systems(flow, agency).keys())

    def _modules(self, flow: str, agency: str, system: str) -> Dict[str, Any]:
        systems = self._systems(flow, agency)
        if system not in systems:
            raise CatalogNotFoundError("system", system)
        return (systems[system] or {}).get("modules") or {}

    def list_modules(self, flow: str, agency: str, system: str) -> List[str]:
        return list(self._modules(flow, agency, system).keys())

    def get_module_elements(
        self, flow: str, agency: str, system: str, module: str
    ) -> List[CatalogEntry]:
        """Tagged element entries for one module, in catalog order"""
        if module not in self._modules(flow, agency, system):
            raise CatalogNotFoundError("module", module)
        agency_key = self.resolve_agency(flow, agency)
        return list(self._entries.get((flow, agency_key, system, module), []))

    def module_keys(self, flow: str, agency: str, system: str, module: str) -> List[ElementKey]:
        """Flattened (name, group) keys for one module"""
        return flatten_catalog(self.get_module_elements(flow, agency, system, module))


def entry_to_dict(entry: CatalogEntry) -> Dict[str, Any]:
    """JSON shape of a tagged entry"""
    if isinstance(entry, GroupedElement):
        return {"kind": "group", "group": entry.group, "fields": list(entry.fields)}
    return {"kind": "flat", "name": entry.name}


_catalog_service: Optional[CatalogService] = None


def get_catalog_service() -> CatalogService:
    """Process-wide catalog instance (FastAPI dependency)"""
    global _catalog_service
    if _catalog_service is None:
        _catalog_service = CatalogService()
    return _catalog_service
