"""
Data element identity and de-duplication.

A selectable data element is identified by its ``(name, group)`` pair. Two
elements are the same selectable unit only when both match exactly. Elements
without a group carry ``group=None``; no string, not even "ungrouped",
compares equal to it.

Catalog modules list their elements as a mix of two entry kinds, resolved
once when the catalog is loaded:

    FlatElement("Nama")                        -> ElementKey("Nama", None)
    GroupedElement("Pegawai", ("Nama", "Id"))  -> ElementKey("Nama", "Pegawai"), ...
"""

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Set, Tuple, Union, Any, Dict


@dataclass(frozen=True)
class ElementKey:
    """(name, group) identity of a data element"""
    name: str
    group: Optional[str] = None

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {"name": self.name, "group": self.group}


@dataclass(frozen=True)
class FlatElement:
    """Catalog entry that is a bare field name"""
    name: str

    def keys(self) -> List[ElementKey]:
        return [ElementKey(self.name, None)]


@dataclass(frozen=True)
class GroupedElement:
    """Catalog entry naming a group and the fields inside it"""
    group: str
    fields: Tuple[str, ...] = field(default_factory=tuple)

    def keys(self) -> List[ElementKey]:
        return [ElementKey(name, self.group) for name in self.fields]


CatalogEntry = Union[FlatElement, GroupedElement]


def normalize_group(group: Any) -> Optional[str]:
    """Blank or missing group -> None; anything else kept verbatim (stripped)"""
    if group is None:
        return None
    text = str(group).strip()
    return text or None


def make_key(name: str, group: Any = None) -> ElementKey:
    return ElementKey(str(name).strip(), normalize_group(group))


def row_key(row: Any) -> ElementKey:
    """
    Key of a grid row, confirmation row or plain mapping.

    Accepts objects exposing ``data_element``/``name`` and
    ``group_name``/``group`` attributes, or dicts with those keys.
    """
    if isinstance(row, ElementKey):
        return row
    if isinstance(row, dict):
        name = row.get("data_element", row.get("name", ""))
        group = row.get("group_name", row.get("group"))
    else:
        name = getattr(row, "data_element", None) or getattr(row, "name", "")
        group = getattr(row, "group_name", None)
        if group is None:
            group = getattr(row, "group", None)
    return make_key(name, group)


def flatten_catalog(entries: Iterable[CatalogEntry]) -> List[ElementKey]:
    """Ordered, de-duplicated keys for a module's catalog entries"""
    seen: Set[ElementKey] = set()
    keys: List[ElementKey] = []
    for entry in entries:
        for key in entry.keys():
            if key not in seen:
                seen.add(key)
                keys.append(key)
    return keys


def used_keys(rows: Iterable[Any]) -> Set[ElementKey]:
    """Set of (name, group) keys already present in a grid"""
    return {row_key(row) for row in rows}


def available_elements(entries: Iterable[CatalogEntry], rows: Iterable[Any]) -> List[ElementKey]:
    """Catalog keys not yet used by the grid, in catalog order"""
    used = used_keys(rows)
    return [key for key in flatten_catalog(entries) if key not in used]


def find_duplicate_keys(rows: Iterable[Any]) -> List[ElementKey]:
    """Keys that occur more than once (same name AND same group)"""
    seen: Set[ElementKey] = set()
    duplicates: List[ElementKey] = []
    for row in rows:
        key = row_key(row)
        if key in seen and key not in duplicates:
            duplicates.append(key)
        seen.add(key)
    return duplicates


def find_duplicate_names(rows: Iterable[Any]) -> List[str]:
    """
    Names used under more than one distinct group.

    These are allowed (two distinct fields sharing a label) but are shown to
    the preparer as a warning.
    """
    groups_by_name: Dict[str, Set[Optional[str]]] = {}
    for row in rows:
        key = row_key(row)
        groups_by_name.setdefault(key.name, set()).add(key.group)
    return sorted(name for name, groups in groups_by_name.items() if len(groups) > 1)
