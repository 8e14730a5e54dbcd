"""CSV directory output."""

import csv
import logging
from pathlib import Path
from typing import IO

from gtfs_copier.gtfs.models import Entity

logger = logging.getLogger(__name__)


class CSVWriter:
    """
    Write entities as one CSV file per entity filename.

    Entities keep their source identifiers; entities without one are numbered
    by row within their file.
    """

    def __init__(self, output_path: str | Path) -> None:
        self.output_path = Path(output_path)
        self.output_path.mkdir(parents=True, exist_ok=True)
        self._files: dict[str, IO[str]] = {}
        self._writers: dict[str, csv.DictWriter] = {}
        self._row_counts: dict[str, int] = {}
        self._paths: dict[str, Path] = {}

    def _writer(self, filename: str, fieldnames: list[str]) -> csv.DictWriter:
        writer = self._writers.get(filename)
        if writer is None:
            path = self.output_path / filename
            f = open(path, "w", encoding="utf-8", newline="")
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            self._files[filename] = f
            self._writers[filename] = writer
            self._row_counts[filename] = 0
            self._paths[filename] = path
            logger.debug(f"Opened {path}")
        return writer

    def add_entities(self, ents: list[Entity]) -> list[str]:
        eids = []
        for ent in ents:
            rows = ent.to_rows()
            count = self._row_counts.get(ent.filename, 0)
            if rows:
                writer = self._writer(ent.filename, list(rows[0]))
                writer.writerows(rows)
            self._row_counts[ent.filename] = count + 1
            eids.append(ent.entity_id() or str(count + 1))
        return eids

    def files_written(self) -> dict[str, str]:
        """Paths of every file opened so far, including closed ones."""
        return {fn: str(path) for fn, path in self._paths.items()}

    def close(self) -> None:
        for filename, f in self._files.items():
            f.close()
            logger.debug(f"Closed {filename}")
        self._files.clear()
        self._writers.clear()
