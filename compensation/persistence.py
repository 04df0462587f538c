import json
import logging
import os
import tempfile
from typing import List, Optional

from compensation.export import package_from_dict, package_to_dict
from compensation.models import CompensationPackage

logger = logging.getLogger(__name__)

DATA_FILE = "data/packages.json"


class PackageStoreError(RuntimeError):
    """The package store exists but cannot be read, so it must not be overwritten."""


def _read_records(filepath: str) -> List[dict]:
    """Records in the store; raises PackageStoreError when the file is unreadable."""
    if not os.path.exists(filepath):
        return []
    try:
        with open(filepath, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, ValueError) as e:
        raise PackageStoreError(f"Cannot read package store {filepath}: {e}") from e
    records = data.get("packages") if isinstance(data, dict) else None
    if not isinstance(records, list):
        raise PackageStoreError(f"Package store {filepath} has no package list")
    return records


def _write_records(records: List[dict], filepath: str) -> None:
    directory = os.path.dirname(filepath) or "."
    os.makedirs(directory, exist_ok=True)
    # Temp file in the same directory, then an atomic swap
    fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump({"packages": records}, f, indent=2, ensure_ascii=False)
        os.replace(tmp_path, filepath)
    except BaseException:
        os.remove(tmp_path)
        raise


def load_packages(filepath: Optional[str] = None) -> List[CompensationPackage]:
    """Loads saved packages; a missing or unreadable store reads as empty."""
    filepath = filepath or DATA_FILE
    try:
        records = _read_records(filepath)
    except PackageStoreError as e:
        logger.error("Error loading packages: %s", e)
        return []

    packages = []
    for record in records:
        try:
            packages.append(package_from_dict(record))
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            record_id = record.get("id") if isinstance(record, dict) else None
            logger.error("Skipping malformed package %s: %s", record_id, e)
    return packages


def save_package(package: CompensationPackage, filepath: Optional[str] = None) -> None:
    """Inserts the package, or replaces the saved one with the same id."""
    filepath = filepath or DATA_FILE
    records = _read_records(filepath)
    record = package_to_dict(package)
    for i, existing in enumerate(records):
        if isinstance(existing, dict) and existing.get("id") == package.id:
            records[i] = record
            break
    else:
        records.append(record)
    _write_records(records, filepath)


def delete_package(package_id: str, filepath: Optional[str] = None) -> bool:
    """Returns False when no package had that id."""
    filepath = filepath or DATA_FILE
    records = _read_records(filepath)
    remaining = [r for r in records if not (isinstance(r, dict) and r.get("id") == package_id)]
    if len(remaining) == len(records):
        return False
    _write_records(remaining, filepath)
    return True
