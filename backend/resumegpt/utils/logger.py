import json
import os
import threading
from datetime import datetime, timezone

from typing import Any, Dict, List, Optional

class JSONLLogger:
    """Simple JSONL logger for chat turn diagnostics."""

    def __init__(self, log_path: str = "logs/resumegpt.jsonl"):
        self.log_path = log_path
        self._lock = threading.Lock()

        log_dir = os.path.dirname(log_path)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

    def log(self, payload: Dict[str, Any]) -> None:
        """Write a payload as a JSON line with timestamp metadata."""
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **payload,
        }
        # JSONL for easier parsing
        serialized = json.dumps(entry, default=self._fallback_serializer)
        with self._lock:
            with open(self.log_path, "a", encoding="utf-8") as log_file:
                log_file.write(serialized + "\n")

    @staticmethod
    def _fallback_serializer(obj: Any) -> Any:
        """Ensure non-serializable objects degrade gracefully."""
        try:
            return str(obj)
        except Exception:
            return repr(obj)

    def log_turn(
        self,
        session_id: str,
        owner_id: str,
        input_message: str,
        output_message: str,
        attempts: int,
        warnings: List[Dict[str, Any]],
        latency_metrics: Optional[Dict[str, Any]] = None) -> None:

        self.log(payload={
            "session_id": session_id,
            "owner_id": owner_id,
            "event": "chat_turn",
            "input_message": input_message,
            "output_message": output_message,
            "attempts": attempts,
            "warnings": warnings,
            "latency_metrics": latency_metrics or {},
        })

    def log_turn_error(self, session_id, owner_id, error_kind, error_message, traceback=None):
        payload = {
            "session_id": session_id,
            "owner_id": owner_id,
            "event": "chat_turn_error",
            "error_kind": error_kind,
            "error_message": error_message,
        }
        if traceback:
            payload["traceback"] = traceback
        self.log(payload=payload)

    def log_patch_warnings(self, document: str, warnings: List[Dict[str, Any]]) -> None:
        self.log(payload={
            "event": "patch_warnings",
            "document": document,
            "warnings": warnings,
        })

    def log_event(self, event_name: str, event_metadata: Dict[str, Any]) -> None:
        self.log(payload={
            "event": event_name,
            **event_metadata,
        })

    def read_for_owner(self, owner_id: str) -> str:
        """Only the lines written on behalf of one owner."""
        lines = []
        for line in self.read().splitlines():
            try:
                entry = json.loads(line)
            except json.JSONDecodeError:
                continue
            if isinstance(entry, dict) and entry.get("owner_id") == owner_id:
                lines.append(line)
        return "\n".join(lines)

    def read(self) -> str:
        if not os.path.exists(self.log_path):
            return ""
        with self._lock:
            with open(self.log_path, "r", encoding="utf-8") as log_file:
                return log_file.read()
