"""
Local persistent storage

A small string key-value store backed by a JSON file in the config
directory, plus the prompt history the survey prober keeps in it.
"""

import json
import logging
import os
import tempfile
import time
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)

LAST_CHECK_KEY = "survey_last_check"
PROMPTED_IDS_KEY = "survey_prompted_ids"


class KeyValueStore:
    """Interface for string key-value storage"""

    def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    def remove(self, key: str) -> None:
        raise NotImplementedError


class MemoryStore(KeyValueStore):
    """In-process store, nothing survives the process"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = str(value)

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class JSONFileStore(KeyValueStore):
    """
    Store persisted as one JSON object on disk.

    Every call re-reads the file so several client processes see each
    other's writes; writes replace the file atomically.
    """

    def __init__(self, path: str):
        self.path = Path(path)

    def _read(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            with open(self.path, 'r') as f:
                data = json.load(f)
        except (json.JSONDecodeError, OSError) as e:
            logger.warning("Ignoring unreadable storage file %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _write(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, 'w') as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def get(self, key: str) -> Optional[str]:
        return self._read().get(key)

    def set(self, key: str, value: str) -> None:
        data = self._read()
        data[key] = str(value)
        self._write(data)

    def remove(self, key: str) -> None:
        data = self._read()
        if key in data:
            del data[key]
            self._write(data)


class PromptHistory:
    """
    Throttle and dedupe state for survey prompting.

    Timestamps are epoch milliseconds; the prompted ids are kept as a
    JSON list so the order they were offered in is preserved.
    """

    def __init__(self, store: KeyValueStore):
        self.store = store

    def get_last_checked(self) -> float:
        raw = self.store.get(LAST_CHECK_KEY)
        if not raw:
            return 0.0
        try:
            return float(raw)
        except ValueError:
            return 0.0

    def set_last_checked(self, timestamp_ms: Optional[float] = None) -> None:
        if timestamp_ms is None:
            timestamp_ms = time.time() * 1000
        self.store.set(LAST_CHECK_KEY, str(int(timestamp_ms)))

    def prompted_ids(self) -> List[str]:
        raw = self.store.get(PROMPTED_IDS_KEY)
        if not raw:
            return []
        try:
            ids = json.loads(raw)
        except json.JSONDecodeError:
            return []
        if not isinstance(ids, list):
            return []
        return [str(i) for i in ids]

    def has_prompted(self, survey_id: str) -> bool:
        return str(survey_id) in self.prompted_ids()

    def mark_prompted(self, survey_id: str) -> None:
        ids = self.prompted_ids()
        if str(survey_id) not in ids:
            ids.append(str(survey_id))
            self.store.set(PROMPTED_IDS_KEY, json.dumps(ids))

    def reset(self) -> None:
        self.store.remove(LAST_CHECK_KEY)
        self.store.remove(PROMPTED_IDS_KEY)
