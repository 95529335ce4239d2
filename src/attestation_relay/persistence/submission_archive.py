"""Append-only archive of terminal submission records.

Records leave the driver's active table once they are CONFIRMED or
FAILED. The archive keeps them as the audit trail of what was sent to the
chain. It can be persisted to a JSONL file (one JSON object per line) and
loaded back on restart.

The file is the complete history. In memory only the most recent
`max_records` records are held, so a long-running request loop does not
grow the process without bound.
"""

from __future__ import annotations

import json
from collections import deque
from pathlib import Path
from typing import Optional

from attestation_relay.models.submission import SubmissionRecord, SubmissionStatus

DEFAULT_MAX_RECORDS = 10_000


class SubmissionArchive:
    """Append-only record archive with optional file persistence.

    Records can only be appended, never modified or deleted.
    """

    def __init__(
        self,
        storage_path: Optional[Path] = None,
        max_records: int = DEFAULT_MAX_RECORDS,
    ) -> None:
        if max_records < 1:
            raise ValueError(f"max_records must be at least 1, got {max_records}")
        self._records: deque[SubmissionRecord] = deque(maxlen=max_records)
        self._record_ids: set[str] = set()
        self._count = 0
        self._storage_path = storage_path

        if storage_path and storage_path.exists():
            self._load_from_file(storage_path)

    def append(self, record: SubmissionRecord) -> None:
        """Append a terminal record.

        Raises ValueError for in-flight records and for record IDs already
        held in memory.
        """
        if record.in_flight:
            raise ValueError(
                f"Only terminal records are archived; {record.record_id} is {record.status.value}"
            )
        if record.record_id in self._record_ids:
            raise ValueError(f"Duplicate record ID: {record.record_id}")

        self._remember(record)
        self._count += 1

        if self._storage_path:
            self._append_to_file(record)

    def records(
        self,
        key: Optional[str] = None,
        status: Optional[SubmissionStatus] = None,
    ) -> list[SubmissionRecord]:
        """Return the retained records, optionally filtered by key and status."""
        result = list(self._records)
        if key is not None:
            result = [r for r in result if r.key == key]
        if status is not None:
            result = [r for r in result if r.status == status]
        return result

    @property
    def count(self) -> int:
        """Total records archived, including those no longer held in memory."""
        return self._count

    def _remember(self, record: SubmissionRecord) -> None:
        if len(self._records) == self._records.maxlen:
            self._record_ids.discard(self._records[0].record_id)
        self._records.append(record)
        self._record_ids.add(record.record_id)

    def _append_to_file(self, record: SubmissionRecord) -> None:
        self._storage_path.parent.mkdir(parents=True, exist_ok=True)
        with self._storage_path.open("a", encoding="utf-8") as f:
            f.write(json.dumps(record.to_dict(), sort_keys=True) + "\n")

    def _load_from_file(self, path: Path) -> None:
        """Load records from a JSONL file, keeping the most recent tail.

        Fail-closed: duplicate record IDs anywhere in the file are rejected
        (replay protection on recovery).
        """
        seen: set[str] = set()
        with path.open("r", encoding="utf-8") as f:
            for line_num, line in enumerate(f, 1):
                line = line.strip()
                if not line:
                    continue
                record = SubmissionRecord.from_dict(json.loads(line))
                if record.record_id in seen:
                    raise ValueError(
                        f"Duplicate record ID on recovery (line {line_num}): {record.record_id}"
                    )
                seen.add(record.record_id)
                self._remember(record)
                self._count += 1
