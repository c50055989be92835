"""JSON-file-backed database used by the CLI.

Keeps the in-memory unit of work semantics and writes the whole
committed state to one JSON file after every commit, so consecutive
CLI invocations see each other's changes.
"""

from __future__ import annotations

import json
from pathlib import Path

from rescue.infrastructure.persistence.memory_database import TABLES, InMemoryDatabase
from rescue.infrastructure.persistence.serialization import SERIALIZERS


class JsonDatabase(InMemoryDatabase):

    def __init__(self, file_path: Path, lock_timeout: float = 2.0) -> None:
        super().__init__(lock_timeout=lock_timeout)
        self._file_path = file_path
        self._ensure_file()
        self._load()

    def persist(self) -> None:
        records = {
            table: [SERIALIZERS[table][0](row) for row in self.tables[table].values()]
            for table in TABLES
        }
        tmp_path = self._file_path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(records, indent=2) + "\n", encoding="utf-8")
        tmp_path.replace(self._file_path)

    # --- File helpers ---------------------------------------------------------

    def _load(self) -> None:
        raw = json.loads(self._file_path.read_text(encoding="utf-8"))
        for table in TABLES:
            from_raw = SERIALIZERS[table][1]
            for record in raw.get(table, []):
                row = from_raw(record)
                self.tables[table][row.id] = row

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("{}", encoding="utf-8")
