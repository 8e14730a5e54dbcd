"""In-memory output, used by tests and embedding callers."""

from gtfs_copier.gtfs.models import Entity


class MemoryWriter:
    """Keep written entities per filename, assigning sequential ids per file."""

    def __init__(self) -> None:
        self.entities: dict[str, list[Entity]] = {}
        self.ids: dict[str, list[str]] = {}
        self.closed = False

    def add_entities(self, ents: list[Entity]) -> list[str]:
        eids = []
        for ent in ents:
            written = self.entities.setdefault(ent.filename, [])
            written.append(ent)
            eid = str(len(written))
            self.ids.setdefault(ent.filename, []).append(eid)
            eids.append(eid)
        return eids

    def get(self, filename: str) -> list[Entity]:
        return self.entities.get(filename, [])

    def close(self) -> None:
        self.closed = True
