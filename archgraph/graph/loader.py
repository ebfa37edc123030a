"""
Replace-and-rebuild loader.

A load is a fixed sequence of phases, each in its own transaction(s):

1. prepare rows (pure, no I/O)
2. upsert the Repository node
3. delete the repository's previous objects and every resulting orphan
4. upsert objects in batches, re-attaching the containment edge
5. upsert data blocks in batches (skipped when there are none)
6. merge the distinct tag set, then attach tag edges in batches
7. create relations in batches
8. recompute derived fields

This trades all-or-nothing atomicity for bounded transaction size. A failed
batch aborts the load with a ``LoadError``; batches committed before it stay
committed and the repository is inconsistent until the next successful load.
"""

import logging
import time
from collections.abc import Awaitable, Callable, Sequence
from typing import Any

from archgraph.config import Settings, get_settings
from archgraph.core.exceptions import LoadError
from archgraph.graph import writer
from archgraph.graph.cleaner import clear_repository_data
from archgraph.graph.driver import GraphStore
from archgraph.graph.enrichment import enrich_repository
from archgraph.models import ArchObject, Relation, Repository, Snapshot
from archgraph.utils.batching import iter_batches

logger = logging.getLogger(__name__)

PHASE_PREPARE = "prepare"
PHASE_REPOSITORY = "repository"
PHASE_DELETE = "delete"
PHASE_OBJECTS = "objects"
PHASE_DATABLOCKS = "datablocks"
PHASE_TAGS = "tags"
PHASE_TAG_LINKS = "tag_links"
PHASE_RELATIONS = "relations"
PHASE_ENRICH = "enrich"

BatchWriter = Callable[[list[Any]], Awaitable[int]]


class GraphLoader:
    """Sole writer of Repository, Object, Relation, Tag and DataBlock nodes."""

    def __init__(self, store: GraphStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()
        self.batch_size = self.settings.neo4j_batch_size
        self.timeout = float(self.settings.neo4j_batch_timeout)

    async def load_snapshot(self, snapshot: Snapshot, enrich: bool = True) -> dict[str, Any]:
        return await self.save_repository(
            snapshot.repository,
            snapshot.objects,
            snapshot.relations,
            enrich=enrich,
        )

    async def save_repository(
        self,
        repository: Repository,
        objects: Sequence[ArchObject],
        relations: Sequence[Relation],
        enrich: bool = True,
    ) -> dict[str, Any]:
        """Replace the stored graph of ``repository`` with the given objects and relations.

        Returns:
            Per-phase counters plus the total duration in milliseconds

        Raises:
            LoadError: a phase failed; ``phase`` and ``batch`` say where
        """
        started = time.perf_counter()
        logger.info(
            "Saving repository %s (replace mode): %s objects, %s relations",
            repository.id,
            len(objects),
            len(relations),
        )

        prepared = writer.prepare_snapshot(
            Snapshot(repository=repository, objects=list(objects), relations=list(relations)),
        )
        logger.info(
            "Prepared %s objects, %s data blocks, %s distinct tags, %s relations",
            len(prepared.objects),
            len(prepared.data_blocks),
            len(prepared.tags),
            len(prepared.relations),
        )
        report: dict[str, Any] = {"repositoryId": repository.id}

        await self._single(
            PHASE_REPOSITORY,
            writer.upsert_repository(self.store, prepared.repository, self.timeout),
        )

        report["deleted"] = await self._single(
            PHASE_DELETE,
            clear_repository_data(self.store, repository.id, self.timeout),
        )

        report[PHASE_OBJECTS] = await self._run_batches(
            PHASE_OBJECTS,
            prepared.objects,
            lambda batch: writer.write_objects(self.store, repository.id, batch, self.timeout),
        )

        report[PHASE_DATABLOCKS] = await self._run_batches(
            PHASE_DATABLOCKS,
            prepared.data_blocks,
            lambda batch: writer.write_data_blocks(self.store, batch, self.timeout),
        )

        report[PHASE_TAGS] = 0
        report[PHASE_TAG_LINKS] = 0
        if prepared.tags:
            report[PHASE_TAGS] = await self._single(
                PHASE_TAGS,
                writer.write_tags(self.store, prepared.tags, self.timeout),
            )
            report[PHASE_TAG_LINKS] = await self._run_batches(
                PHASE_TAG_LINKS,
                prepared.tag_links,
                lambda batch: writer.write_tag_links(self.store, batch, self.timeout),
            )

        report[PHASE_RELATIONS] = await self._run_batches(
            PHASE_RELATIONS,
            prepared.relations,
            lambda batch: writer.write_relations(self.store, repository.id, batch, self.timeout),
        )
        dropped = len(prepared.relations) - report[PHASE_RELATIONS]
        if dropped > 0:
            logger.info("%s relations skipped: endpoints not in repository %s", dropped, repository.id)

        if enrich:
            report[PHASE_ENRICH] = await self._single(
                PHASE_ENRICH,
                enrich_repository(
                    self.store,
                    repository.id,
                    self.batch_size,
                    self.settings.hub_threshold,
                    self.timeout,
                ),
            )

        report["duration"] = int((time.perf_counter() - started) * 1000)
        logger.info("Repository %s saved in %.2fs", repository.id, report["duration"] / 1000)
        return report

    async def _single(self, phase: str, operation: Awaitable[Any]) -> Any:
        phase_started = time.perf_counter()
        try:
            result = await operation
        except LoadError:
            raise
        except Exception as e:
            logger.error("Load phase '%s' failed: %s", phase, e)
            msg = f"Load phase '{phase}' failed: {e}"
            raise LoadError(msg, phase) from e
        logger.info("Phase '%s' done (%dms)", phase, (time.perf_counter() - phase_started) * 1000)
        return result

    async def _run_batches(self, phase: str, rows: list[Any], write: BatchWriter) -> int:
        """Write ``rows`` batch by batch, logging counters, elapsed time and ETA."""
        if not rows:
            logger.info("Phase '%s': nothing to write", phase)
            return 0

        total = len(rows)
        batch_count = -(-total // self.batch_size)
        phase_started = time.perf_counter()
        processed = 0
        written = 0
        logger.info(
            "Phase '%s': %s rows in %s batch(es) of %s",
            phase,
            total,
            batch_count,
            self.batch_size,
        )

        for number, batch in iter_batches(rows, self.batch_size):
            batch_started = time.perf_counter()
            try:
                written += await write(batch)
            except Exception as e:
                logger.error("Phase '%s' batch %s/%s failed: %s", phase, number, batch_count, e)
                msg = f"Load phase '{phase}' failed at batch {number}/{batch_count}: {e}"
                raise LoadError(msg, phase, number) from e

            processed += len(batch)
            elapsed = time.perf_counter() - phase_started
            eta = (total - processed) * (elapsed / processed)
            logger.info(
                "  Batch %s/%s: %s rows | Total: %s/%s (%.1f%%) | %dms | ETA: ~%ds",
                number,
                batch_count,
                len(batch),
                processed,
                total,
                processed / total * 100,
                (time.perf_counter() - batch_started) * 1000,
                round(eta),
            )

        logger.info("Phase '%s' done (%dms)", phase, (time.perf_counter() - phase_started) * 1000)
        return written
