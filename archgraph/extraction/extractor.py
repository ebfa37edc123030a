"""Repository extraction: assemble one in-memory snapshot from the upstream API."""

import logging
import re
import time
from datetime import UTC, datetime
from typing import Any

from archgraph.core.exceptions import RepositoryNotFoundError
from archgraph.core.progress import ProgressBus
from archgraph.models import ArchObject, Relation, Snapshot, SyncResult
from archgraph.upstream.client import UpstreamClient
from archgraph.utils.validation import parse_repository_id

logger = logging.getLogger(__name__)

# Object records typed like this duplicate what the relations endpoint returns
RELATION_TYPE_PATTERN = re.compile("relation", re.IGNORECASE)

PHASE_OBJECTS = "objects"
PHASE_RELATIONS = "relations"


def is_relation_type(type_name: str | None) -> bool:
    return bool(type_name) and RELATION_TYPE_PATTERN.search(type_name) is not None


class RepositoryExtractor:
    """Pulls repository metadata, objects and relations and reports progress."""

    def __init__(self, client: UpstreamClient, bus: ProgressBus):
        self.client = client
        self.bus = bus

    async def extract_repository(self, repository_id: Any) -> Snapshot:
        """Fetch a full snapshot of ``repository_id``.

        Raises:
            InputValidationError: the id is not numeric (raised before any call)
            RepositoryNotFoundError: the repository is not in the upstream catalogue
        """
        repo_id = parse_repository_id(repository_id)
        started = time.perf_counter()
        logger.info("Extracting repository %s", repo_id)

        repository = await self.client.get_repository(repo_id)
        if repository is None:
            msg = f"Repository {repo_id} not found"
            self.bus.emit_error(msg)
            raise RepositoryNotFoundError(msg)
        logger.info("Resolved repository %s: %s", repo_id, repository.name)

        try:
            self.bus.emit_start(f"Fetching objects of repository {repo_id}...")
            raw_objects = await self.client.fetch_all_objects(
                repo_id,
                on_progress=lambda current, offset: self.bus.emit_progress(
                    PHASE_OBJECTS,
                    current,
                    offset=offset,
                ),
            )
            objects = [
                ArchObject.from_api(item)
                for item in raw_objects
                if not is_relation_type(item.get("type"))
            ]
            skipped = len(raw_objects) - len(objects)
            if skipped:
                logger.info("Skipped %s relation-typed object records", skipped)
            self.bus.emit_complete(
                f"Fetched {len(objects)} objects",
                {"phase": PHASE_OBJECTS, "count": len(objects)},
            )

            self.bus.emit_start(f"Fetching relations of repository {repo_id}...")
            raw_relations = await self.client.fetch_all_relations(
                repo_id,
                on_progress=lambda current, offset: self.bus.emit_progress(
                    PHASE_RELATIONS,
                    current,
                    offset=offset,
                ),
            )
            relations = [Relation.from_api(item) for item in raw_relations]
            self.bus.emit_complete(
                f"Fetched {len(relations)} relations",
                {"phase": PHASE_RELATIONS, "count": len(relations)},
            )
        except Exception as e:
            self.bus.emit_error(f"Extraction of repository {repo_id} failed", e)
            raise

        logger.info(
            "Extraction of repository %s finished in %.2fs: %s objects, %s relations",
            repo_id,
            time.perf_counter() - started,
            len(objects),
            len(relations),
        )
        return Snapshot(repository=repository, objects=objects, relations=relations)

    async def sync(self, repository_id: Any) -> tuple[Snapshot, SyncResult]:
        """Extract and wrap the outcome in a ``SyncResult``."""
        start_time = datetime.now(UTC)
        snapshot = await self.extract_repository(repository_id)
        result = SyncResult(
            repository_id=snapshot.repository.id,
            objects_count=len(snapshot.objects),
            relations_count=len(snapshot.relations),
            start_time=start_time,
            end_time=datetime.now(UTC),
        )
        return snapshot, result
