import threading
from collections import OrderedDict
from contextlib import contextmanager
from enum import Enum
from typing import Any, Iterator, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..core.errors import GenerationInProgress, InvalidPatchField, PersistenceFailure
from ..core.merge import merge
from ..core.store import SessionRecord, SessionStore, validate_session_id
from ..core.validator import PatchValidator
from ..spec.document_models import Resume, is_well_formed
from ..spec.output_models import Turn
from ..utils.logger import JSONLLogger


class TurnStatus(str, Enum):
    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"


def default_title(document: Resume, turns: List[Turn]) -> str:
    for turn in turns:
        if turn.role == "user" and turn.text.strip():
            return turn.text.strip()[:30]
    if document.name:
        return f"{document.name}'s Resume"
    if document.title:
        return f"Resume for {document.title}"
    return "New Resume"


def sanitize_turns(raw: Any) -> List[Turn]:
    """Keep only well-formed turns from stored history (nested lists are flattened)."""
    if not isinstance(raw, list):
        return []
    flat = []
    for item in raw:
        flat.extend(item if isinstance(item, list) else [item])

    turns = []
    for item in flat:
        try:
            turns.append(Turn.model_validate(item))
        except ValidationError:
            continue
    return turns


class DocumentSession:
    """
    Owns the canonical document and turn history of one live session.

    Every change goes through `merge` and the result is swapped in under the
    lock, so chat patches and manual edits share one algorithm and the last
    applied write wins per field.
    """

    def __init__(
        self,
        session_id: str,
        owner_id: str,
        document: Optional[Resume] = None,
        history: Optional[List[Turn]] = None,
        store: Optional[SessionStore] = None,
        logger: Optional[JSONLLogger] = None,
        max_history_turns: int = 100,
    ):
        self.session_id = validate_session_id(session_id)
        self.owner_id = owner_id
        self.store = store
        self.logger = logger
        self.max_history_turns = max_history_turns

        self._document = document if document is not None else Resume()
        self._history: List[Turn] = list(history or [])[-max_history_turns:]
        self._lock = threading.Lock()
        self._generation = threading.Lock()
        self.status = TurnStatus.IDLE
        # Bumped on every change; persist records the version it wrote
        self._version = 0
        self._saved_version = 0

    @property
    def document(self) -> Resume:
        with self._lock:
            return self._document

    @property
    def history(self) -> List[Turn]:
        with self._lock:
            return list(self._history)

    def apply_patch(self, patch: Mapping[str, Any], origin: str = "chat") -> Resume:
        """Merge an already validated patch into the current document."""
        with self._lock:
            self._document = merge(self._document, patch)
            self._version += 1
            document = self._document

        if self.logger is not None:
            self.logger.log_event(
                event_name="document_merged",
                event_metadata={
                    "session_id": self.session_id,
                    "owner_id": self.owner_id,
                    "origin": origin,
                    "fields": sorted(patch.keys()),
                },
            )
        return document

    def apply_manual_edit(
        self, raw: Any, validator: PatchValidator
    ) -> Tuple[Resume, List[InvalidPatchField]]:
        """A form edit is just another patch: validated, then merged."""
        result = validator.validate(raw)
        return self.apply_patch(result.patch, origin="manual"), result.warnings

    def append_turns(self, *turns: Turn) -> None:
        with self._lock:
            self._history.extend(turns)
            self._version += 1
            # Oldest turns go first once the cap is reached
            del self._history[:-self.max_history_turns]

    @contextmanager
    def generation(self) -> Iterator["DocumentSession"]:
        """Hold the single model-call slot for this session."""
        if not self._generation.acquire(blocking=False):
            raise GenerationInProgress(
                f"A response is already being generated for session {self.session_id}"
            )
        self.status = TurnStatus.AWAITING_MODEL
        try:
            yield self
        finally:
            self.status = TurnStatus.IDLE
            self._generation.release()

    def persist(self) -> bool:
        """Save the current state. A failure is reported, never rolled back."""
        if self.store is None:
            return False
        with self._lock:
            document = self._document
            history = list(self._history)
            version = self._version
        try:
            self.store.save_session(
                self.session_id,
                self.owner_id,
                document.model_dump(),
                [turn.model_dump() for turn in history],
                title=default_title(document, history),
            )
        except PersistenceFailure as e:
            print(f"[Error: session {self.session_id} not saved: {e}]")
            if self.logger is not None:
                self.logger.log_event(
                    event_name="persistence_failure",
                    event_metadata={
                        "session_id": self.session_id,
                        "owner_id": self.owner_id,
                        "error_message": str(e),
                    },
                )
            return False
        with self._lock:
            self._saved_version = max(self._saved_version, version)
        return True

    @property
    def evictable(self) -> bool:
        """Idle and fully saved, so dropping it from memory loses nothing."""
        with self._lock:
            saved = self._saved_version == self._version
        return saved and not self._generation.locked()


class SessionRegistry:
    """
    In-memory owner of live sessions, loaded from the store on first use.

    At most `max_sessions` are kept; the least recently used idle, saved
    sessions are dropped first and reloaded from the store when needed again.
    """

    def __init__(
        self,
        store: SessionStore,
        validator: Optional[PatchValidator] = None,
        logger: Optional[JSONLLogger] = None,
        max_history_turns: int = 100,
        max_sessions: int = 500,
    ):
        self.store = store
        self.validator = validator or PatchValidator(Resume, logger=logger)
        self.logger = logger
        self.max_history_turns = max_history_turns
        self.max_sessions = max_sessions
        self._sessions: "OrderedDict[Tuple[str, str], DocumentSession]" = OrderedDict()
        self._lock = threading.Lock()

    def get(self, session_id: str, owner_id: str) -> DocumentSession:
        key = (owner_id, validate_session_id(session_id))
        with self._lock:
            session = self._sessions.get(key)
            if session is None:
                session = self._load(session_id, owner_id)
                self._sessions[key] = session
            self._sessions.move_to_end(key)
            self._evict()
            return session

    def _evict(self) -> None:
        # Oldest first, never the session just handed out
        for key in list(self._sessions)[:-1]:
            if len(self._sessions) <= self.max_sessions:
                break
            if self._sessions[key].evictable:
                del self._sessions[key]

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def is_live(self, session_id: str, owner_id: str) -> bool:
        with self._lock:
            return (owner_id, session_id) in self._sessions

    def _load(self, session_id: str, owner_id: str) -> DocumentSession:
        record = self.store.load_session(session_id, owner_id)
        if record is None:
            return self._new_session(session_id, owner_id)
        return self.from_record(record)

    def from_record(self, record: SessionRecord) -> DocumentSession:
        document, warnings = self.validator.coerce(record.document)
        if not is_well_formed(record.document) and self.logger is not None:
            self.logger.log_event(
                event_name="stored_document_repaired",
                event_metadata={
                    "session_id": record.id,
                    "owner_id": record.owner_id,
                    "warnings": [w.to_dict() for w in warnings],
                },
            )
        return DocumentSession(
            session_id=record.id,
            owner_id=record.owner_id,
            document=document,
            history=sanitize_turns(record.messages),
            store=self.store,
            logger=self.logger,
            max_history_turns=self.max_history_turns,
        )

    def _new_session(self, session_id: str, owner_id: str) -> DocumentSession:
        return DocumentSession(
            session_id=session_id,
            owner_id=owner_id,
            store=self.store,
            logger=self.logger,
            max_history_turns=self.max_history_turns,
        )

    def forget(self, session_id: str, owner_id: str) -> None:
        with self._lock:
            self._sessions.pop((owner_id, session_id), None)
