"""Public API for gtfs-copier."""

import csv
import hashlib
import json
import logging
import platform
from datetime import UTC, datetime
from pathlib import Path

from gtfs_copier.builders.registry import create_builders
from gtfs_copier.copier.copier import Copier
from gtfs_copier.copier.result import CopyResult
from gtfs_copier.gtfs.models import CopyConfig, Manifest, ValidationReport
from gtfs_copier.gtfs.reader import GTFSReader
from gtfs_copier.output.csv import CSVWriter
from gtfs_copier.version import SCHEMA_VERSION, VERSION

logger = logging.getLogger(__name__)


def _sha256(path: str | Path) -> str:
    with open(path, "rb") as f:
        return hashlib.sha256(f.read()).hexdigest()


def copy_feed(
    input_path: str,
    output_path: str,
    config: CopyConfig | None = None,
) -> CopyResult:
    """
    Copy a GTFS directory to a CSV directory, running the configured builders.

    Args:
        input_path: Path to GTFS directory
        output_path: Path to output directory
        config: Optional copy configuration

    Returns:
        CopyResult with counts, grouped errors and the terminal error, if any
    """
    if config is None:
        config = CopyConfig(input_path=input_path, output_path=output_path)

    logger.info(f"Starting copy: {input_path} -> {output_path}")
    start_time = datetime.now(UTC)

    reader = GTFSReader(input_path)
    builders = create_builders(config.builders, config)
    writer = CSVWriter(output_path)

    copier = Copier(reader, writer, config)
    for builder in builders:
        copier.add_extension(builder)
    try:
        result = copier.copy()
    finally:
        writer.close()
    result.display_summary()

    checksums = {fn: _sha256(path) for fn, path in sorted(writer.files_written().items())}
    manifest = Manifest(
        schema_version=SCHEMA_VERSION,
        tool_version=VERSION,
        created_at_iso=start_time.isoformat(),
        inputs={
            "gtfs_path": input_path,
            "feed_version_id": config.feed_version_id,
            "builders": config.builders,
        },
        outputs=checksums,
        stats=result.to_dict(),
        build={
            "python": platform.python_version(),
            "platform": platform.platform(),
        },
    )

    manifest_path = Path(output_path) / "manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(
            {
                "schema_version": manifest.schema_version,
                "tool_version": manifest.tool_version,
                "created_at": manifest.created_at_iso,
                "inputs": manifest.inputs,
                "outputs": manifest.outputs,
                "stats": manifest.stats,
                "build": manifest.build,
            },
            f,
            indent=2,
            sort_keys=True,
        )
    logger.info(f"Wrote manifest to {manifest_path}")

    elapsed = (datetime.now(UTC) - start_time).total_seconds()
    logger.info(f"Copy completed in {elapsed:.2f}s")
    return result


def validate(output_path: str) -> ValidationReport:
    """
    Validate a copy output directory against its manifest.

    Args:
        output_path: Path to output directory containing manifest.json

    Returns:
        ValidationReport with per-file row counts
    """
    logger.info(f"Validating output: {output_path}")

    output_dir = Path(output_path)
    errors: list[str] = []
    warnings: list[str] = []
    stats: dict[str, int] = {}

    manifest_path = output_dir / "manifest.json"
    if not manifest_path.exists():
        return ValidationReport(valid=False, errors=["Required file missing: manifest.json"])

    try:
        with open(manifest_path, encoding="utf-8") as f:
            manifest_data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        return ValidationReport(valid=False, errors=[f"Manifest could not be read: {e}"])

    for field in ("schema_version", "tool_version", "created_at", "outputs", "stats"):
        if field not in manifest_data:
            warnings.append(f"Manifest missing field: {field}")

    for filename, expected_hash in manifest_data.get("outputs", {}).items():
        filepath = output_dir / filename
        if not filepath.exists():
            errors.append(f"Output file missing: {filename}")
            continue
        actual_hash = _sha256(filepath)
        if actual_hash != expected_hash:
            errors.append(
                f"Checksum mismatch for {filename}: expected {expected_hash}, got {actual_hash}"
            )
            continue
        with open(filepath, encoding="utf-8", newline="") as f:
            stats[filename] = sum(1 for _ in csv.DictReader(f))

    write_error = manifest_data.get("stats", {}).get("write_error")
    if write_error:
        errors.append(f"Copy did not complete: {write_error}")

    valid = len(errors) == 0
    if valid:
        logger.info("Validation passed")
    else:
        logger.error(f"Validation failed with {len(errors)} errors")

    return ValidationReport(valid=valid, errors=errors, warnings=warnings, stats=stats)
