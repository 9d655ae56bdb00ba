"""Client-side views of imports: snapshots from the API and queue items."""

from dataclasses import dataclass
from typing import Any

TERMINAL_STATUSES = frozenset({"ready", "failed"})


def is_terminal_status(status: str | None) -> bool:
    return status in TERMINAL_STATUSES


@dataclass
class ImportSnapshot:
    """The public import tuple as last seen by the client."""

    id: str
    status: str
    stage: str
    progress: int = 0
    error: str | None = None
    recipe_id: str | None = None
    input_url: str | None = None
    created_at: str | None = None

    @property
    def is_terminal(self) -> bool:
        return is_terminal_status(self.status)

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ImportSnapshot":
        """Build a snapshot from an API response or SSE event body."""
        status = payload.get("status") or "queued"
        progress = payload.get("progress")
        return cls(
            id=str(payload["id"]),
            status=status,
            stage=payload.get("stage") or status,
            progress=progress if isinstance(progress, int) else 0,
            error=payload.get("error"),
            recipe_id=payload.get("recipe_id") or payload.get("recipeId"),
            input_url=payload.get("input_url"),
            created_at=payload.get("created_at"),
        )


@dataclass
class QueueItem:
    """One in-flight import surfaced to the user."""

    id: str
    url: str
    status: str
    stage: str
    progress: int = 0
    created_at: str | None = None
    error: str | None = None
    recipe_id: str | None = None
    title: str | None = None
    cover_image_url: str | None = None
    is_polling: bool = True

    @classmethod
    def from_snapshot(
        cls,
        snapshot: ImportSnapshot,
        title: str | None = None,
        cover_image_url: str | None = None,
    ) -> "QueueItem":
        return cls(
            id=snapshot.id,
            url=snapshot.input_url or "",
            status=snapshot.status,
            stage=snapshot.stage,
            progress=snapshot.progress,
            created_at=snapshot.created_at,
            error=snapshot.error,
            recipe_id=snapshot.recipe_id,
            title=title,
            cover_image_url=cover_image_url,
            is_polling=not snapshot.is_terminal,
        )

    def apply(self, snapshot: ImportSnapshot) -> None:
        """Copy the public tuple from ``snapshot``; terminal imports stop polling."""
        self.status = snapshot.status
        self.stage = snapshot.stage
        self.progress = snapshot.progress
        self.error = snapshot.error
        if snapshot.recipe_id is not None:
            self.recipe_id = snapshot.recipe_id
        if snapshot.is_terminal:
            self.is_polling = False
