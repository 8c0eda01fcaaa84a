"""
Elastisync Mapper — Records to Search Documents
===============================================

Converts a record into an Elasticsearch document and derives the index
mapping from the same field enumeration, so the two never drift apart.

Field declarations (per type, in config):

    indexed_fields:
      - title                              # plain attribute, type inferred
      - published_at: {type: date}         # explicit schema type
      - summary: {field: teaser}           # indexed name differs from source
      - author: {nested: true}             # to-one relation as sub-document
      - tags                               # to-many relation, flattened
      - brochure: {type: attachment}       # file content, base64 encoded

Relation expansion:
    nested      author -> {"author": {...}} / tags -> {"tags": [{...}, ...]}
    flattened   author -> {"author_name": "x"} / tags -> {"tags_title": ["a", "b"]}

Every document also carries the type discriminator (`type`) and the
published status (`is_published`).
"""

import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple, Union

from .records import Record
from .registry import TypeDescriptor, TypeRegistry, document_prefix
from .values import ListValue, Nested, Scalar, Value, format_value, unwrap, wrap

logger = logging.getLogger(__name__)

TYPE_FIELD = "type"
PUBLISHED_FIELD = "is_published"

# Attribute type (parameters stripped, lowercased) -> schema type
FIELD_MAPPINGS = {
    "primarykey": "integer",
    "foreignkey": "integer",
    "dbclassname": "keyword",
    "dbdatetime": "date",
    "boolean": "boolean",
    "decimal": "double",
    "double": "double",
    "enum": "keyword",
    "float": "float",
    "htmltext": "text",
    "htmlvarchar": "text",
    "int": "integer",
    "integer": "integer",
    "datetime": "date",
    "text": "text",
    "varchar": "text",
    "year": "integer",
    "file": "attachment",
    "date": "date",
    "keyword": "keyword",
}

# Implicit leading fields of every type
BASE_FIELDS = [
    {TYPE_FIELD: {"type": "keyword", "store": True, "field": "elastica_type"}},
    {PUBLISHED_FIELD: {"type": "boolean", "field": "elastica_published_status"}},
]

# Declaration keys consumed here and never sent to Elasticsearch
INTERNAL_PARAMS = ("field", "relation_class", "nested")

Fields = List[Tuple[str, Dict[str, Any]]]


@dataclass
class Document:
    """The unit of interchange with Elasticsearch."""

    id: str
    type_name: str
    data: Dict[str, Any] = field(default_factory=dict)


def strip_data_type_parameters(data_type: str) -> str:
    """`Varchar(255)` -> `Varchar`"""
    return data_type.split("(", 1)[0].strip()


def normalise_fields(declared: Union[List[Any], Dict[str, Any], None]) -> Dict[str, Dict[str, Any]]:
    """
    Normalise a raw field declaration into `{name: params}`.

    Accepts a mapping of name -> params, or a list whose entries are either
    a bare name or a single-key mapping of name -> params.
    """
    normalised: Dict[str, Dict[str, Any]] = {}
    if not declared:
        return normalised

    items = declared.items() if isinstance(declared, dict) else []
    if isinstance(declared, list):
        entries = []
        for entry in declared:
            if isinstance(entry, dict):
                entries.extend(entry.items())
            else:
                entries.append((entry, None))
        items = entries

    for name, params in items:
        params = dict(params or {})
        if params.get("type") == "nested":
            params.pop("type")
            params["nested"] = True
        normalised[str(name)] = params
    return normalised


class DocumentMapper:
    """
    Builds documents, field values and index mappings for registered types.

    Example:
        mapper = DocumentMapper(registry)
        doc = mapper.document_for(article)
        mapper.schema_for("Article")   # {"properties": {...}} or None
    """

    def __init__(self, registry: TypeRegistry, field_mappings: Optional[Dict[str, str]] = None):
        self.registry = registry
        self.field_mappings = dict(FIELD_MAPPINGS)
        if field_mappings:
            self.field_mappings.update({k.lower(): v for k, v in field_mappings.items()})

    # ------------------------------------------------------------------
    # Field enumeration
    # ------------------------------------------------------------------

    def indexed_fields(self, type_name: str) -> Dict[str, Dict[str, Any]]:
        """Declared fields of a type, led by the base fields; empty if none are declared."""
        declared = normalise_fields(self.registry[type_name].indexed_fields)
        if not declared:
            return {}
        fields = normalise_fields(BASE_FIELDS)
        fields.update(declared)
        return fields

    def fields_for(self, subject: Union[Record, str]) -> Fields:
        """Ordered `(name, schema params)` pairs for a record or type name."""
        type_name = subject.type_name if isinstance(subject, Record) else subject
        return self._fields(type_name, (type_name,))

    def _fields(self, type_name: str, expanding: Tuple[str, ...]) -> Fields:
        descriptor = self.registry[type_name]
        result: Fields = []

        for name, params in self.indexed_fields(type_name).items():
            source = params.get("field", name)
            relation_class = self._relation_class(descriptor, source, params)

            if params.get("type") == "attachment":
                result.append((name, self._schema_params(params)))
                continue

            if relation_class:
                result.extend(self._relation_fields(name, params, relation_class, expanding))
                continue

            result.append((name, self._schema_params(self._extra_params(descriptor, source, params))))

        return result

    def _relation_fields(
        self,
        name: str,
        params: Dict[str, Any],
        relation_class: str,
        expanding: Tuple[str, ...],
    ) -> Fields:
        # Skip if the related type has no search content, or on a cycle
        if relation_class not in self.registry or relation_class in expanding:
            return []

        nested_fields = self._fields(relation_class, expanding + (relation_class,))

        if params.get("nested"):
            spec = self._schema_params(params)
            spec["type"] = "nested"
            spec["properties"] = dict(nested_fields)
            return [(name, spec)]

        return [(f"{name}_{related_name}", spec) for related_name, spec in nested_fields]

    def _relation_class(self, descriptor: TypeDescriptor, source: str, params: Dict[str, Any]) -> Optional[str]:
        if params.get("relation_class"):
            return params["relation_class"]
        relation = descriptor.relations.get(source)
        return relation.target if relation else None

    def _extra_params(self, descriptor: TypeDescriptor, source: str, params: Dict[str, Any]) -> Dict[str, Any]:
        """Guess a schema type from the attribute type unless one is declared."""
        if "type" in params:
            return params

        attribute_type = self._attribute_type(descriptor, source)
        if attribute_type:
            mapped = self.field_mappings.get(strip_data_type_parameters(attribute_type).lower())
            if mapped:
                params = dict(params, type=mapped)
        return params

    def _attribute_type(self, descriptor: TypeDescriptor, source: str) -> Optional[str]:
        head, _, rest = source.partition(".")
        if not rest:
            return descriptor.db.get(head)
        relation = descriptor.relations.get(head)
        if relation is None or relation.target not in self.registry:
            return None
        return self._attribute_type(self.registry[relation.target], rest)

    @staticmethod
    def _schema_params(params: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in params.items() if k not in INTERNAL_PARAMS}

    # ------------------------------------------------------------------
    # Schema
    # ------------------------------------------------------------------

    def schema_for(self, type_name: str) -> Optional[Dict[str, Any]]:
        """Return `{"properties": ...}`, or None when the type indexes nothing."""
        fields = self.fields_for(type_name)
        if not fields:
            return None
        return {"properties": dict(fields)}

    # ------------------------------------------------------------------
    # Values
    # ------------------------------------------------------------------

    def document_id(self, record: Record) -> str:
        return f"{document_prefix(record.type_name)}_{record.id}"

    def document_for(self, record: Record) -> Document:
        return Document(self.document_id(record), record.type_name, self.values_for(record))

    def values_for(self, record: Record) -> Dict[str, Any]:
        """Formatted field values for a record, keyed by indexed field name."""
        return {name: unwrap(value) for name, value in self._values(record, (record.type_name,)).items()}

    def _values(self, record: Record, expanding: Tuple[str, ...]) -> Dict[str, Value]:
        descriptor = self.registry[record.type_name]
        values: Dict[str, Value] = {}

        for name, params in self.indexed_fields(record.type_name).items():
            source = params.get("field", name)
            relation_class = self._relation_class(descriptor, source, params)

            if params.get("type") == "attachment":
                attachment = self._attachment(record.rel_field(source))
                if attachment is not None:
                    values[name] = attachment
                continue

            if relation_class:
                values.update(self._relation_values(record, name, source, params, relation_class, expanding))
                continue

            computed = self._computed(record, source)
            if computed is not None:
                values[name] = computed
            elif record.has_field(source):
                params = self._extra_params(descriptor, source, params)
                values[name] = wrap(format_value(params.get("type"), wrap(record.rel_field(source))))

        return values

    def _relation_values(
        self,
        record: Record,
        name: str,
        source: str,
        params: Dict[str, Any],
        relation_class: str,
        expanding: Tuple[str, ...],
    ) -> Dict[str, Value]:
        if relation_class not in self.registry or relation_class in expanding:
            return {}

        inner = expanding + (relation_class,)
        related = record.rel_field(source)
        many = isinstance(related, list)
        relation = self.registry[record.type_name].relations.get(source)
        if relation is not None:
            many = relation.many

        if params.get("nested"):
            if many:
                return {name: ListValue([Nested(self._values(item, inner)) for item in related or []])}
            if related is None or not related.exists():
                return {name: Nested({})}
            return {name: Nested(self._values(related, inner))}

        related_names = [related_name for related_name, _ in self._fields(relation_class, inner)]

        if many:
            # Seed every key so the document keeps its shape with no related items
            lists: Dict[str, List[Value]] = {f"{name}_{n}": [] for n in related_names}
            for item in related or []:
                for related_name, value in self._values(item, inner).items():
                    lists.setdefault(f"{name}_{related_name}", []).append(value)
            return {key: ListValue(items) for key, items in lists.items()}

        if related is None or not related.exists():
            return {f"{name}_{n}": Scalar(None) for n in related_names}
        return {f"{name}_{n}": value for n, value in self._values(related, inner).items()}

    def _computed(self, record: Record, source: str) -> Optional[Value]:
        if source == "elastica_type":
            return Scalar(record.type_name)
        if source == "elastica_published_status":
            return Scalar(self.published_status(record))
        return None

    def published_status(self, record: Record) -> bool:
        """True unless the type is versioned and the record is not live."""
        descriptor = self.registry[record.type_name]
        if descriptor.versioned and record.published is not None:
            return bool(record.published)
        return True

    @staticmethod
    def _attachment(attachment: Any) -> Optional[Nested]:
        if attachment is None or not hasattr(attachment, "read") or not attachment.exists():
            return None
        content = base64.b64encode(attachment.read()).decode("ascii")
        return Nested({
            "content_type": Scalar(attachment.mime_type),
            "name": Scalar(attachment.name),
            "content": Scalar(content),
        })
