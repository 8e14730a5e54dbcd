"""Copy run statistics and grouped entity errors."""

import logging
import sys
from collections import Counter
from dataclasses import dataclass, field
from typing import Any

from gtfs_copier.errors import EntityError

logger = logging.getLogger(__name__)


@dataclass
class ErrorGroup:
    """Errors sharing a filename, field and type; keeps at most `limit` samples."""

    filename: str
    field: str
    error_type: str
    limit: int = 0
    count: int = 0
    errors: list[EntityError] = field(default_factory=list, repr=False)

    @classmethod
    def for_error(cls, err: EntityError, limit: int) -> "ErrorGroup":
        return cls(filename=err.filename, field=err.field, error_type=err.error_type, limit=limit)

    @staticmethod
    def key(err: EntityError) -> str:
        return f"{err.filename}:{err.field}:{err.error_type}"

    def add(self, err: EntityError) -> None:
        if self.limit == 0 or self.count < self.limit:
            self.errors.append(err)
        self.count += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "field": self.field,
            "error_type": self.error_type,
            "count": self.count,
            "samples": [
                {"entity_id": e.entity_id, "value": e.value, "message": str(e)} for e in self.errors
            ],
        }


@dataclass
class CopyResult:
    """Counts, grouped errors and the terminal error of one copy run."""

    error_limit: int = 1000
    entity_count: Counter = field(default_factory=Counter)
    generated_count: Counter = field(default_factory=Counter)
    skip_entity_error_count: Counter = field(default_factory=Counter)
    skip_entity_reference_count: Counter = field(default_factory=Counter)
    interpolated_stop_time_count: int = 0
    errors: dict[str, ErrorGroup] = field(default_factory=dict)
    warnings: dict[str, ErrorGroup] = field(default_factory=dict)
    write_error: Exception | None = None

    def __post_init__(self) -> None:
        if self.error_limit < 0:
            self.error_limit = sys.maxsize

    @property
    def ok(self) -> bool:
        return self.write_error is None

    def handle_entity_errors(
        self, filename: str, errs: list[EntityError], warns: list[EntityError]
    ) -> None:
        """Add an entity's errors and warnings to their groups."""
        for target, items in ((self.errors, errs), (self.warnings, warns)):
            for err in items:
                if not err.filename:
                    err.filename = filename
                key = ErrorGroup.key(err)
                group = target.get(key)
                if group is None:
                    group = ErrorGroup.for_error(err, self.error_limit)
                    target[key] = group
                group.add(err)

    def check_error_threshold(self, thresholds: dict[str, float]) -> dict[str, dict[str, Any]]:
        """
        Compare each file's skipped-entity percentage against a threshold.

        Thresholds are percentages keyed by filename, with "*" as the default.
        Returns per-file details; a file exceeds when its error percentage is
        strictly greater than its threshold.
        """
        details: dict[str, dict[str, Any]] = {}
        if not thresholds:
            return details
        default = thresholds.get("*", 0.0)
        filenames = (
            set(self.entity_count)
            | set(self.skip_entity_error_count)
            | set(self.skip_entity_reference_count)
        )
        for fn in sorted(filenames):
            threshold = thresholds.get(fn, default)
            if threshold <= 0:
                continue
            error_count = self.skip_entity_error_count[fn] + self.skip_entity_reference_count[fn]
            total = self.entity_count[fn] + error_count
            percent = error_count / total * 100 if total else 0.0
            details[fn] = {
                "total_count": total,
                "error_count": error_count,
                "error_percent": percent,
                "threshold": threshold,
                "exceeded": percent > threshold,
            }
        return details

    def display_summary(self) -> None:
        """Log per-file counts and error groups."""
        logger.info("Copied count:")
        for fn, count in sorted(self.entity_count.items()):
            logger.info(f"  {fn}: {count}")
        if self.generated_count:
            logger.info("Generated count:")
            for fn, count in sorted(self.generated_count.items()):
                logger.info(f"  {fn}: {count}")
        if self.interpolated_stop_time_count:
            logger.info(f"Interpolated stop_time count: {self.interpolated_stop_time_count}")
        for label, counts in (
            ("Skipped with errors", self.skip_entity_error_count),
            ("Skipped with reference errors", self.skip_entity_reference_count),
        ):
            if counts:
                logger.info(f"{label}:")
                for fn, count in sorted(counts.items()):
                    logger.info(f"  {fn}: {count}")
        for label, groups in (("Errors", self.errors), ("Warnings", self.warnings)):
            if groups:
                logger.info(f"{label}:")
                for group in sorted(groups.values(), key=lambda g: (g.filename, g.error_type)):
                    logger.info(
                        f"  {group.filename}: {group.error_type} ({group.field}): {group.count}"
                    )
        if self.write_error is not None:
            logger.error(f"Copy aborted: {self.write_error}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "entity_count": dict(self.entity_count),
            "generated_count": dict(self.generated_count),
            "skip_entity_error_count": dict(self.skip_entity_error_count),
            "skip_entity_reference_count": dict(self.skip_entity_reference_count),
            "interpolated_stop_time_count": self.interpolated_stop_time_count,
            "errors": [g.to_dict() for g in self.errors.values()],
            "warnings": [g.to_dict() for g in self.warnings.values()],
            "write_error": str(self.write_error) if self.write_error else None,
        }
