"""
Saved comparison storage.

Comparisons are kept newest-first in a single JSON array on disk.
Storage failures are logged and never raised to the caller.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from llmbench.core.models import Comparison, utc_now_iso
from llmbench.services.file_io import FileIOService


class ComparisonStore:
    """
    JSON-file backed list of saved comparisons.

    Usage:
        store = ComparisonStore()
        store.save(session.build_comparison())
        for comparison in store.list():
            print(comparison.name)
    """

    def __init__(self, path: Optional[Path] = None, file_io: Optional[FileIOService] = None):
        self.path = Path(path) if path else self._get_default_path()
        self.file_io = file_io or FileIOService()

    @staticmethod
    def _get_default_path() -> Path:
        """Get the default storage file path."""
        if os.name == 'nt':
            app_data = os.environ.get('APPDATA', os.path.expanduser('~'))
            return Path(app_data) / 'LLMbench' / 'comparisons.json'
        data_home = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
        return Path(data_home) / 'llmbench' / 'comparisons.json'

    def list(self) -> list[Comparison]:
        """All saved comparisons, newest first."""
        return [Comparison.from_dict(item) for item in self._read()]

    def get(self, comparison_id: str) -> Optional[Comparison]:
        for item in self._read():
            if isinstance(item, dict) and item.get('id') == comparison_id:
                return Comparison.from_dict(item)
        return None

    def save(self, comparison: Comparison) -> bool:
        """
        Save a comparison.

        An existing record with the same id is replaced in place and its
        updatedAt is stamped; a new record is prepended.

        Returns:
            True if the file was written
        """
        records = self._read()
        record = comparison.to_dict()

        for index, item in enumerate(records):
            if isinstance(item, dict) and item.get('id') == comparison.id:
                record['updatedAt'] = utc_now_iso()
                records[index] = record
                break
        else:
            records.insert(0, record)

        return self._write(records)

    def delete(self, comparison_id: str) -> bool:
        """Remove a comparison by id. Returns True if one was removed."""
        records = self._read()
        remaining = [r for r in records if not (isinstance(r, dict) and r.get('id') == comparison_id)]
        if len(remaining) == len(records):
            return False
        return self._write(remaining)

    def _read(self) -> list:
        if not self.path.exists():
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logging.warning(f"ComparisonStore - Could not read {self.path}: {e}")
            return []
        if not isinstance(data, list):
            logging.warning(f"ComparisonStore - Ignoring {self.path}: root is not a list")
            return []
        return data

    def _write(self, records: list) -> bool:
        result = self.file_io.write_text(self.path, json.dumps(records, indent=2, ensure_ascii=False))
        if not result.success:
            logging.warning(f"ComparisonStore - Could not write {self.path}: {result.error}")
        return result.success
