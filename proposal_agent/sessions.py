from __future__ import annotations

import re
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional

from proposal_agent.utils.io import read_json, write_json
from proposal_agent.utils.time import epoch_millis


SESSION_ID = re.compile(r"^[A-Za-z0-9_-]+$")


class SessionNotFoundError(KeyError):
    pass


class InvalidSessionIdError(ValueError):
    pass


class SessionStore:
    """Keyed JSON records under ``<root>/<id>.json``.

    A record is ``{id, name, timestamp, lastModified, data}`` where ``data``
    is the pipeline state dict.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)

    def _path(self, session_id: str) -> Path:
        if not SESSION_ID.match(session_id):
            raise InvalidSessionIdError(f"Invalid session id: {session_id!r}")
        return self.root / f"{session_id}.json"

    def save(
        self, data: Dict[str, Any], session_id: Optional[str] = None, name: Optional[str] = None
    ) -> Dict[str, Any]:
        now = epoch_millis()
        session_id = session_id or uuid.uuid4().hex
        existing = self.load(session_id) if self._path(session_id).exists() else None
        request = data.get("request") or {}
        record = {
            "id": session_id,
            "name": name or (existing or {}).get("name") or request.get("company_name") or "Draft",
            "timestamp": (existing or {}).get("timestamp", now),
            "lastModified": now,
            "data": data,
        }
        write_json(self._path(session_id), record)
        print(f"[sessions] saved {session_id}")
        return record

    def load(self, session_id: str) -> Dict[str, Any]:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFoundError(session_id)
        return read_json(path)

    def list(self) -> List[Dict[str, Any]]:
        if not self.root.exists():
            return []
        summaries = []
        for path in self.root.glob("*.json"):
            try:
                record = read_json(path)
                session_id = record["id"]
            except (ValueError, KeyError, TypeError) as exc:
                print(f"[sessions] skipping unreadable {path.name}: {exc}")
                continue
            request = (record.get("data") or {}).get("request") or {}
            summaries.append(
                {
                    "id": session_id,
                    "name": record.get("name", ""),
                    "timestamp": record.get("timestamp", 0),
                    "lastModified": record.get("lastModified", 0),
                    "previewText": f"{request.get('company_name') or 'Draft'} - {request.get('hyperscaler', '')}",
                }
            )
        return sorted(summaries, key=lambda item: item["lastModified"], reverse=True)

    def delete(self, session_id: str) -> None:
        path = self._path(session_id)
        if not path.exists():
            raise SessionNotFoundError(session_id)
        path.unlink()
        print(f"[sessions] deleted {session_id}")
