"""In-memory cache of the latest snapshot per repository."""

import threading
from typing import Any

from archgraph.models import Snapshot


class SnapshotCache:
    """Keeps the most recent extraction so a load can be triggered separately."""

    def __init__(self) -> None:
        self._snapshots: dict[str, Snapshot] = {}
        self._lock = threading.Lock()

    def put(self, snapshot: Snapshot) -> None:
        with self._lock:
            self._snapshots[snapshot.repository.id] = snapshot

    def get(self, repository_id: str) -> Snapshot | None:
        with self._lock:
            return self._snapshots.get(str(repository_id))

    def discard(self, repository_id: str) -> None:
        with self._lock:
            self._snapshots.pop(str(repository_id), None)

    def status(self, repository_id: str) -> dict[str, Any]:
        snapshot = self.get(repository_id)
        if snapshot is None:
            return {"repositoryId": str(repository_id), "available": False}
        return {
            "repositoryId": snapshot.repository.id,
            "available": True,
            "repositoryName": snapshot.repository.name,
            "objectsCount": len(snapshot.objects),
            "relationshipsCount": len(snapshot.relations),
            "extractedAt": snapshot.extracted_at.isoformat(),
        }
