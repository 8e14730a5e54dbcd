"""Mapping from source identifiers to written identifiers."""


class EntityMap:
    """
    Track the identifier assigned to each written entity.

    Keys are (filename, source id). Entries are never removed; a run writes
    each file once, after which lookups for that file are read-only.
    """

    def __init__(self) -> None:
        self._ids: dict[tuple[str, str], str] = {}

    def set(self, filename: str, old_id: str, new_id: str) -> None:
        self._ids[(filename, old_id)] = new_id

    def get(self, filename: str, old_id: str) -> tuple[str, bool]:
        """Return (new_id, True), or ("", False) when the entity was not written."""
        new_id = self._ids.get((filename, old_id))
        if new_id is None:
            return "", False
        return new_id, True

    def __contains__(self, key: tuple[str, str]) -> bool:
        return key in self._ids

    def __len__(self) -> int:
        return len(self._ids)
