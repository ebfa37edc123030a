"""Internal node/edge model shared by the extractor, loader and query layer.

Upstream records are heterogeneous: names may be multi-language maps or
plain strings, relations arrive as ``fromId``/``toId`` rows with their own
field names, and data blocks hang off objects as ``documents``. Everything
is normalized here into the shapes below before anything is persisted.
"""

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from archgraph.utils.names import extract_object_name, resolve_display_name


@dataclass
class Repository:
    id: str
    name: str
    description: str | None = None
    version: str | None = None

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Repository":
        repo_id = str(item["id"])
        return cls(
            id=repo_id,
            name=item.get("masterCollaborationName") or item.get("name") or f"Repository {repo_id}",
            description=item.get("description"),
            version=item.get("version"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class DataBlock:
    object_id: str
    namespace: str
    name: str
    values: dict[str, Any] = field(default_factory=dict)
    updated_at: str | None = None

    @property
    def id(self) -> str:
        """Composite identity ``objectId:namespace:name``."""
        return f"{self.object_id}:{self.namespace}:{self.name}"

    @classmethod
    def from_document(cls, object_id: str, document: dict[str, Any]) -> "DataBlock":
        return cls(
            object_id=str(document.get("objectId") or object_id),
            namespace=document.get("schemaNamespace") or document.get("namespace") or "",
            name=document.get("schemaName") or document.get("name") or "",
            values=document.get("values") or {},
            updated_at=document.get("updatedAt"),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "objectId": self.object_id,
            "namespace": self.namespace,
            "name": self.name,
            "values": self.values,
            "updatedAt": self.updated_at,
        }


@dataclass
class ArchObject:
    """One modeled architecture element."""

    id: str
    type: str
    object_name: dict[str, str] | str | None = None
    name: str | None = None
    external_id: str | None = None
    description: str | None = None
    properties: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    data_blocks: list[DataBlock] = field(default_factory=list)

    @property
    def display_name(self) -> str:
        return resolve_display_name(self.object_name, self.name, self.external_id, self.id)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "ArchObject":
        object_id = str(item["id"])
        metadata = dict(item.get("metadata") or {})
        for key in ("metrics", "profiles", "createdAt", "updatedAt", "updatedAtAggregated"):
            if item.get(key) is not None:
                metadata.setdefault(key, item[key])
        if item.get("externalId"):
            metadata.setdefault("externalId", item["externalId"])

        return cls(
            id=object_id,
            type=item.get("type") or "",
            object_name=item.get("objectName"),
            name=item.get("name"),
            external_id=item.get("externalId"),
            description=item.get("description"),
            properties=dict(item.get("properties") or {}),
            metadata=metadata,
            tags=[str(tag) for tag in item.get("tags") or []],
            data_blocks=[
                DataBlock.from_document(object_id, doc) for doc in item.get("documents") or []
            ],
        )


@dataclass
class Relation:
    """A typed directed edge between two objects."""

    id: str
    type: str
    source_id: str
    target_id: str
    properties: dict[str, Any] = field(default_factory=dict)
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_api(cls, item: dict[str, Any]) -> "Relation":
        """Map the upstream ``relationId``/``fromId``/``toId`` row onto an edge."""
        properties = {
            "externalId": item.get("externalId"),
            "relationName": extract_object_name(item.get("relationName")) or None,
            "fromExternalId": item.get("fromExternalId"),
            "fromType": item.get("fromType"),
            "fromName": extract_object_name(item.get("fromName")) or None,
            "toExternalId": item.get("toExternalId"),
            "toType": item.get("toType"),
            "toName": extract_object_name(item.get("toName")) or None,
        }
        return cls(
            id=str(item.get("relationId") or item.get("id")),
            type=item.get("relationType") or item.get("type") or "",
            source_id=str(item.get("fromId") or item.get("sourceId")),
            target_id=str(item.get("toId") or item.get("targetId")),
            properties={k: v for k, v in properties.items() if v is not None},
            metadata={"updatedAt": item["updatedAt"]} if item.get("updatedAt") else {},
        )


@dataclass
class Snapshot:
    """In-memory result of one extraction run, prior to loading."""

    repository: Repository
    objects: list[ArchObject]
    relations: list[Relation]
    extracted_at: datetime = field(default_factory=lambda: datetime.now(UTC))


@dataclass
class SyncResult:
    repository_id: str
    objects_count: int
    relations_count: int
    start_time: datetime
    end_time: datetime
    errors: list[str] = field(default_factory=list)

    @property
    def duration_ms(self) -> int:
        return int((self.end_time - self.start_time).total_seconds() * 1000)

    def to_dict(self) -> dict[str, Any]:
        return {
            "repositoryId": self.repository_id,
            "objectsCount": self.objects_count,
            "relationshipsCount": self.relations_count,
            "startTime": self.start_time.isoformat(),
            "endTime": self.end_time.isoformat(),
            "duration": self.duration_ms,
            "errors": self.errors,
        }
