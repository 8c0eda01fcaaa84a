"""
Elastisync Registry — Indexed Type Descriptors
==============================================

Maps a stable type identifier to everything the sync core needs to know
about it. The registry is resolved once from `SyncConfig` and then only
read.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Union

from .config import SyncConfig, TypeConfig


def document_prefix(type_name: str) -> str:
    """Type name with namespace separators replaced, used as document id prefix."""
    return re.sub(r"[.\\/:]", "_", type_name)


@dataclass(frozen=True)
class Relation:
    name: str
    target: str
    many: bool = False


@dataclass
class TypeDescriptor:
    """Indexing facts for one record type."""

    name: str
    db: Dict[str, str] = field(default_factory=dict)
    relations: Dict[str, Relation] = field(default_factory=dict)
    indexed_fields: Union[List[Any], Dict[str, Any]] = field(default_factory=list)
    dependent_types: List[str] = field(default_factory=list)
    supporting: bool = False
    versioned: bool = False

    @classmethod
    def from_config(cls, name: str, config: TypeConfig) -> "TypeDescriptor":
        relations = {
            rel: Relation(rel, target) for rel, target in config.has_one.items()
        }
        relations.update(
            {rel: Relation(rel, target, many=True) for rel, target in config.has_many.items()}
        )
        return cls(
            name=name,
            db=dict(config.db),
            relations=relations,
            indexed_fields=config.indexed_fields,
            dependent_types=list(config.dependent_classes),
            supporting=config.supporting_type,
            versioned=config.versioned,
        )


class TypeRegistry:
    """
    Registry of every type carrying the searchable capability.

    Example:
        registry = TypeRegistry()
        registry.register(TypeDescriptor("Article", db={"title": "Varchar"},
                                         indexed_fields=["title"]))
        registry.indexed_types()  # ["Article"]
    """

    def __init__(self, descriptors: Optional[List[TypeDescriptor]] = None):
        self._types: Dict[str, TypeDescriptor] = {}
        for descriptor in descriptors or []:
            self.register(descriptor)

    @classmethod
    def from_config(cls, config: SyncConfig) -> "TypeRegistry":
        return cls([TypeDescriptor.from_config(name, t) for name, t in config.types.items()])

    def register(self, descriptor: TypeDescriptor) -> TypeDescriptor:
        prefix = document_prefix(descriptor.name)
        for other in self._types.values():
            if other.name != descriptor.name and document_prefix(other.name) == prefix:
                raise ValueError(
                    f"Types {other.name!r} and {descriptor.name!r} share document id prefix {prefix!r}"
                )
        self._types[descriptor.name] = descriptor
        return descriptor

    def get(self, type_name: str) -> Optional[TypeDescriptor]:
        return self._types.get(type_name)

    def __getitem__(self, type_name: str) -> TypeDescriptor:
        return self._types[type_name]

    def __contains__(self, type_name: str) -> bool:
        return type_name in self._types

    def __iter__(self) -> Iterator[TypeDescriptor]:
        return iter(self._types.values())

    def indexed_types(self) -> List[str]:
        """Types indexed directly, i.e. everything except supporting types."""
        return [t.name for t in self._types.values() if not t.supporting]

    def is_supporting(self, type_name: str) -> bool:
        descriptor = self.get(type_name)
        return bool(descriptor and descriptor.supporting)
