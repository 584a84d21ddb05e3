"""Document type registry and fulltext indexability.

A document type is a name plus the schemas it carries and the facets it
has. Schemas decide which attributes exist on a document (a Comment has
no title); the NotFulltextIndexable facet and the FULLTEXT_EXCLUDED_TYPES
setting decide whether its content is sent to text extraction.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from ..config import settings
from .reindex_ports import FulltextOracleError

NOT_FULLTEXT_INDEXABLE = "NotFulltextIndexable"
FOLDERISH = "Folderish"

# Attributes every stored document has, whatever its schemas
SYSTEM_ATTRIBUTES = frozenset({"fulltext_job_id", "lifecycle_state"})

SCHEMA_FIELDS: dict[str, frozenset[str]] = {
    "common": frozenset(),
    "dublincore": frozenset({"title"}),
    "file": frozenset({"content_plain"}),
    "note": frozenset({"content_plain"}),
    "relation": frozenset(),
}


@dataclass(frozen=True)
class DocumentType:
    """Schemas and facets of one document type."""

    name: str
    schemas: tuple[str, ...] = ()
    facets: tuple[str, ...] = field(default=())

    @property
    def fields(self) -> frozenset[str]:
        result: set[str] = set(SYSTEM_ATTRIBUTES)
        for schema in self.schemas:
            result |= SCHEMA_FIELDS.get(schema, frozenset())
        return frozenset(result)


DEFAULT_DOCUMENT_TYPES: tuple[DocumentType, ...] = (
    DocumentType("Root", ("common",), (FOLDERISH, NOT_FULLTEXT_INDEXABLE)),
    DocumentType("Domain", ("common", "dublincore"), (FOLDERISH,)),
    DocumentType("Workspace", ("common", "dublincore"), (FOLDERISH,)),
    DocumentType("Folder", ("common", "dublincore"), (FOLDERISH,)),
    DocumentType("File", ("common", "dublincore", "file")),
    DocumentType("Note", ("common", "dublincore", "note")),
    DocumentType("Picture", ("common", "dublincore", "file")),
    DocumentType("Comment", ("common", "note")),
    DocumentType("Relation", ("relation",), (NOT_FULLTEXT_INDEXABLE,)),
)


class DocumentTypeRegistry:
    """
    Lookup of document types by name.

    Doubles as the fulltext information handed to the reindex engine and
    shipped, serialized, with every extraction job.
    """

    def __init__(
        self,
        types: Iterable[DocumentType] = DEFAULT_DOCUMENT_TYPES,
        excluded_types: Iterable[str] = (),
    ) -> None:
        self._types = {t.name: t for t in types}
        self.excluded_types = frozenset(excluded_types)

    def get(self, type_name: str) -> Optional[DocumentType]:
        return self._types.get(type_name)

    def has_attribute(self, type_name: str, name: str) -> bool:
        """Unknown types only carry the system attributes."""
        doc_type = self._types.get(type_name)
        if doc_type is None:
            return name in SYSTEM_ATTRIBUTES
        return name in doc_type.fields

    def is_fulltext_indexable(self, doc_type: str) -> bool:
        """Unknown types are indexable unless explicitly excluded."""
        if doc_type in self.excluded_types:
            return False
        known = self._types.get(doc_type)
        if known is None:
            return True
        return NOT_FULLTEXT_INDEXABLE not in known.facets

    def to_dict(self) -> dict[str, Any]:
        """Serializable form for job payloads."""
        return {
            "excluded_types": sorted(self.excluded_types),
            "types": {
                name: {"schemas": list(t.schemas), "facets": list(t.facets)}
                for name, t in self._types.items()
            },
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "DocumentTypeRegistry":
        try:
            types = [
                DocumentType(name, tuple(spec["schemas"]), tuple(spec["facets"]))
                for name, spec in data["types"].items()
            ]
            return cls(types, data.get("excluded_types", ()))
        except (KeyError, TypeError, AttributeError) as exc:
            raise FulltextOracleError(f"Malformed fulltext info: {exc}") from exc


def get_document_types() -> DocumentTypeRegistry:
    """Registry with the configured fulltext exclusions."""
    return DocumentTypeRegistry(excluded_types=settings.excluded_fulltext_types)
