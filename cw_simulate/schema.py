"""
Read-only lookup of a contract's declared message types.

Contracts ship JSON schema files (``schema/init_msg.json``,
``schema/handle_msg.json``, ``schema/query_msg.json``, ...). Each file has a
``title`` (the message type name) and either a single object shape or an
enum of single-key objects (``oneOf`` / ``anyOf``). This module flattens
them into::

    title -> variant -> [Member(name, type)]

Type names are simplified for display: ``$ref`` targets become their
definition name, arrays become ``[item]`` and optional fields end in ``?``.
Files that do not parse or have no title are skipped.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Member:
    name: str
    type_name: str

    @property
    def optional(self) -> bool:
        return self.type_name.endswith("?")


@dataclass
class MessageType:
    title: str
    is_enum: bool
    variants: Dict[str, List[Member]] = field(default_factory=dict)


def _ref_name(ref: str) -> str:
    return ref.rsplit("/", 1)[-1]


def _type_of(prop: Dict[str, Any]) -> Tuple[str, bool]:
    """Return (type name, optional) for a property schema."""
    optional = False
    item: Dict[str, Any] = prop
    if "type" not in prop:
        if prop.get("allOf"):
            item = prop["allOf"][0]
        elif prop.get("anyOf"):
            item = prop["anyOf"][0]
            optional = True
        if "$ref" in item:
            return _ref_name(item["$ref"]), optional
    t = item.get("type", "any")
    if isinstance(t, list):
        optional = optional or "null" in t
        t = next((x for x in t if x != "null"), "any")
    if t == "array":
        items = item.get("items") or {}
        inner = _ref_name(items["$ref"]) if "$ref" in items else items.get("type", "any")
        return f"[{inner}]", optional
    return str(t), optional


def _members(obj: Dict[str, Any], definitions: Dict[str, Any]) -> List[Member]:
    if "$ref" in obj:
        obj = definitions.get(_ref_name(obj["$ref"]), {})
    required = set(obj.get("required") or ())
    out = []
    for name, prop in (obj.get("properties") or {}).items():
        type_name, optional = _type_of(prop)
        if optional or ("required" in obj and name not in required):
            type_name += "?"
        out.append(Member(name, type_name))
    return sorted(out, key=lambda m: m.name)


def parse_schema(doc: Dict[str, Any]) -> Optional[MessageType]:
    title = doc.get("title")
    if not isinstance(title, str) or not title:
        return None
    definitions = doc.get("definitions") or {}
    variants = doc.get("oneOf") or doc.get("anyOf")
    if variants:
        mt = MessageType(title=title, is_enum=True)
        for v in variants:
            if v.get("type") == "string" and v.get("enum"):
                # unit variants serialize as bare strings
                for name in v["enum"]:
                    mt.variants[str(name)] = []
                continue
            for name, body in (v.get("properties") or {}).items():
                mt.variants[name] = _members(body, definitions)
        return mt
    return MessageType(title=title, is_enum=False, variants={title: _members(doc, definitions)})


class SchemaLookup:
    """Message types declared by one contract."""

    def __init__(self, types: Optional[Dict[str, MessageType]] = None) -> None:
        self._types: Dict[str, MessageType] = dict(types or {})

    @classmethod
    def from_folder(cls, folder: Path) -> "SchemaLookup":
        types: Dict[str, MessageType] = {}
        folder = Path(folder)
        if not folder.is_dir():
            return cls()
        for path in sorted(folder.glob("*.json")):
            try:
                doc = json.loads(path.read_text(encoding="utf-8"))
            except (OSError, ValueError) as e:
                log.warning("skipping schema %s: %s", path, e)
                continue
            mt = parse_schema(doc) if isinstance(doc, dict) else None
            if mt is not None:
                types[mt.title] = mt
        return cls(types)

    @classmethod
    def for_artifact(cls, artifact: Path, schema_folder: str = "schema") -> "SchemaLookup":
        return cls.from_folder(Path(artifact).parent / schema_folder)

    def message_types(self) -> List[str]:
        return sorted(self._types)

    def get(self, title: str) -> Optional[MessageType]:
        return self._types.get(title)

    def fields(self, title: str, variant: Optional[str] = None) -> List[Member]:
        mt = self._types.get(title)
        if mt is None:
            return []
        return list(mt.variants.get(variant or title, []))

    def __len__(self) -> int:
        return len(self._types)


__all__ = ["Member", "MessageType", "SchemaLookup", "parse_schema"]
