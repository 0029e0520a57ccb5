# Session persistence. The engine only talks to SessionStore; the JSON file
# store is what the server and CLI use, the in-memory one backs the tests.
import json
import os
import re
import threading
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from .errors import PersistenceFailure, SessionNotFound
from ..utils.file import sha256_hex, write_json_atomic

DEFAULT_TITLE = "New ResumeGPT Chat"

_SESSION_ID = re.compile(r"^[A-Za-z0-9_-]{1,128}$")


def validate_session_id(session_id: str) -> str:
    if not isinstance(session_id, str) or not _SESSION_ID.match(session_id):
        raise ValueError(f"Invalid session id: {session_id!r}")
    return session_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class SessionRecord(BaseModel):
    id: str
    owner_id: str
    title: str = DEFAULT_TITLE
    document: Dict[str, Any] = Field(default_factory=dict)
    messages: List[Any] = Field(default_factory=list)
    template: str = "classic"
    created_at: str = Field(default_factory=_now)
    updated_at: str = Field(default_factory=_now)


class SessionStore(ABC):
    """Create-or-update storage of sessions keyed by (session id, owner id)."""

    def __init__(self):
        # Held across every read-modify-write so concurrent updates never drop each other
        self._update_lock = threading.RLock()

    @abstractmethod
    def _read(self, session_id: str, owner_id: str) -> Optional[SessionRecord]:
        ...

    @abstractmethod
    def _write(self, record: SessionRecord) -> None:
        ...

    @abstractmethod
    def _remove(self, session_id: str, owner_id: str) -> bool:
        ...

    @abstractmethod
    def _records(self, owner_id: str) -> List[SessionRecord]:
        ...

    def load_session(self, session_id: str, owner_id: str) -> Optional[SessionRecord]:
        return self._read(validate_session_id(session_id), owner_id)

    def require_session(self, session_id: str, owner_id: str) -> SessionRecord:
        record = self.load_session(session_id, owner_id)
        if record is None:
            raise SessionNotFound(f"Session {session_id} not found")
        return record

    def save_session(
        self,
        session_id: str,
        owner_id: str,
        document: Dict[str, Any],
        turns: List[Dict[str, Any]],
        title: Optional[str] = None,
    ) -> SessionRecord:
        with self._update_lock:
            existing = self._read(validate_session_id(session_id), owner_id)
            if existing is not None:
                record = existing.model_copy(update={
                    "document": document,
                    "messages": turns,
                    "updated_at": _now(),
                })
            else:
                record = SessionRecord(
                    id=session_id,
                    owner_id=owner_id,
                    title=title or DEFAULT_TITLE,
                    document=document,
                    messages=turns,
                )
            self._write(record)
            return record

    def list_sessions(self, owner_id: str) -> List[SessionRecord]:
        return sorted(self._records(owner_id), key=lambda r: r.created_at, reverse=True)

    def rename_session(self, session_id: str, owner_id: str, title: str) -> bool:
        return self._update(session_id, owner_id, title=title)

    def set_template(self, session_id: str, owner_id: str, template: str) -> bool:
        return self._update(session_id, owner_id, template=template)

    def delete_session(self, session_id: str, owner_id: str) -> bool:
        return self._remove(validate_session_id(session_id), owner_id)

    def _update(self, session_id: str, owner_id: str, **changes) -> bool:
        with self._update_lock:
            record = self._read(validate_session_id(session_id), owner_id)
            if record is None:
                return False
            self._write(record.model_copy(update={**changes, "updated_at": _now()}))
            return True


class InMemorySessionStore(SessionStore):
    def __init__(self):
        super().__init__()
        self._lock = threading.Lock()
        self._data: Dict[tuple, SessionRecord] = {}

    def _read(self, session_id, owner_id):
        with self._lock:
            record = self._data.get((owner_id, session_id))
        return record.model_copy(deep=True) if record else None

    def _write(self, record):
        with self._lock:
            self._data[(record.owner_id, record.id)] = record.model_copy(deep=True)

    def _remove(self, session_id, owner_id):
        with self._lock:
            return self._data.pop((owner_id, session_id), None) is not None

    def _records(self, owner_id):
        with self._lock:
            return [r.model_copy(deep=True) for (owner, _), r in self._data.items() if owner == owner_id]


class JSONFileSessionStore(SessionStore):
    """One JSON file per session under a directory named after the hashed owner id."""

    def __init__(self, data_path: str = "data/sessions"):
        super().__init__()
        self.data_path = data_path
        self._lock = threading.Lock()

    def _owner_dir(self, owner_id: str) -> str:
        return os.path.join(self.data_path, sha256_hex(owner_id)[:32])

    def _path(self, session_id: str, owner_id: str) -> str:
        return os.path.join(self._owner_dir(owner_id), f"{session_id}.json")

    def _read(self, session_id, owner_id):
        path = self._path(session_id, owner_id)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                record = SessionRecord.model_validate(json.load(f))
        except (OSError, json.JSONDecodeError, ValidationError) as e:
            raise PersistenceFailure(f"Failed to load session {session_id}: {e}") from e
        if record.owner_id != owner_id:
            return None
        return record

    def _write(self, record):
        try:
            with self._lock:
                write_json_atomic(self._path(record.id, record.owner_id), record.model_dump())
        except (OSError, TypeError, ValueError) as e:
            raise PersistenceFailure(f"Failed to save session {record.id}: {e}") from e

    def _remove(self, session_id, owner_id):
        path = self._path(session_id, owner_id)
        try:
            with self._lock:
                if not os.path.exists(path):
                    return False
                os.remove(path)
        except OSError as e:
            raise PersistenceFailure(f"Failed to delete session {session_id}: {e}") from e
        return True

    def _records(self, owner_id):
        owner_dir = self._owner_dir(owner_id)
        if not os.path.isdir(owner_dir):
            return []
        records = []
        for filename in os.listdir(owner_dir):
            if not filename.endswith(".json"):
                continue
            record = self._read(filename[:-len(".json")], owner_id)
            if record is not None:
                records.append(record)
        return records
