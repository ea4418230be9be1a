# drafts.py
# Purpose: Persist a user's in-progress bond generator workflow (uploaded files, tag map,
# current step) so it can be resumed. Each draft is a JSON state file plus blob files under
# <root>/<user>/<draft>/, read and written under file locks.

from __future__ import annotations

import logging
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from core.io_lock import (
    read_bytes_locked,
    read_json_locked,
    remove_tree_locked,
    write_bytes_locked,
    write_json_locked,
)

from .errors import DraftNotFoundError, DraftValidationError, TagMapFinalizedError

logger = logging.getLogger(__name__)

WORKFLOW_STEPS: Tuple[str, ...] = (
    "upload-template",
    "tagging",
    "upload-data",
    "preview-data",
    "assembly-check",
    "generating",
    "complete",
)

BLOB_KINDS: Tuple[str, ...] = ("template", "maturity", "cusip")

STATE_FILE = "state.json"
_SAFE_ID = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class WorkflowState:
    draft_id: str
    user_id: str
    current_step: str = WORKFLOW_STEPS[0]
    files: Dict[str, Dict[str, Any]] = field(default_factory=dict)
    tag_map: Optional[Dict[str, Any]] = None
    legal_accepted: bool = False
    is_finalized: bool = False
    created_at: str = field(default_factory=_now)
    updated_at: str = field(default_factory=_now)
    last_accessed_at: str = field(default_factory=_now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "draft_id": self.draft_id,
            "user_id": self.user_id,
            "current_step": self.current_step,
            "files": {k: dict(v) for k, v in self.files.items()},
            "tag_map": self.tag_map,
            "legal_accepted": self.legal_accepted,
            "is_finalized": self.is_finalized,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
            "last_accessed_at": self.last_accessed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WorkflowState":
        return cls(
            draft_id=data["draft_id"],
            user_id=data["user_id"],
            current_step=data.get("current_step", WORKFLOW_STEPS[0]),
            files=dict(data.get("files") or {}),
            tag_map=data.get("tag_map"),
            legal_accepted=bool(data.get("legal_accepted", False)),
            is_finalized=bool(data.get("is_finalized", False)),
            created_at=data.get("created_at") or _now(),
            updated_at=data.get("updated_at") or _now(),
            last_accessed_at=data.get("last_accessed_at") or _now(),
        )


class DraftStore:
    """File-backed draft persistence. The assembly pipeline itself never touches it."""

    def __init__(self, root):
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    # --- paths -------------------------------------------------------------

    def _user_dir(self, user_id: str) -> Path:
        if not user_id or not _SAFE_ID.match(user_id):
            raise DraftValidationError(f"Invalid user id '{user_id}'")
        return self.root / user_id

    def _draft_dir(self, user_id: str, draft_id: str) -> Path:
        if not draft_id or not _SAFE_ID.match(draft_id):
            raise DraftNotFoundError(f"Draft '{draft_id}' not found")
        return self._user_dir(user_id) / draft_id

    # --- operations --------------------------------------------------------

    def save(
        self,
        user_id: str,
        current_step: str,
        draft_id: Optional[str] = None,
        files: Optional[Dict[str, Tuple[str, bytes]]] = None,
        tag_map: Optional[Dict[str, Any]] = None,
        legal_accepted: Optional[bool] = None,
        is_finalized: Optional[bool] = None,
    ) -> WorkflowState:
        """
        Creates a draft (draft_id None) or updates an existing one.

        Args:
            user_id (str): Owner of the draft.
            current_step (str): One of WORKFLOW_STEPS.
            draft_id (str, optional): Existing draft to update.
            files (dict, optional): kind -> (filename, bytes) for kinds in BLOB_KINDS.
            tag_map (dict, optional): TagMap.to_dict() payload.
            legal_accepted (bool, optional): Legal terms accepted flag.
            is_finalized (bool, optional): Locks the tag map once set.

        Returns:
            WorkflowState: The stored state.
        """
        if current_step not in WORKFLOW_STEPS:
            raise DraftValidationError(
                f"Unknown workflow step '{current_step}'",
                details={"valid_steps": list(WORKFLOW_STEPS)},
            )
        unknown_kinds = sorted(set(files or {}) - set(BLOB_KINDS))
        if unknown_kinds:
            raise DraftValidationError(
                f"Unknown draft file kinds {unknown_kinds}", details={"valid_kinds": list(BLOB_KINDS)}
            )

        if draft_id is None:
            state = WorkflowState(draft_id=uuid.uuid4().hex, user_id=user_id)
            self._user_dir(user_id)
            logger.info(f"Creating draft {state.draft_id} for user {user_id}")
        else:
            state = self.load(user_id, draft_id, touch=False)

        if tag_map is not None and state.is_finalized and tag_map != state.tag_map:
            raise TagMapFinalizedError(f"Draft {state.draft_id} has a finalized tag map")

        draft_dir = self._draft_dir(user_id, state.draft_id)
        for kind, (filename, content) in (files or {}).items():
            write_bytes_locked(draft_dir / f"{kind}.bin", content)
            state.files[kind] = {"filename": filename, "size": len(content)}

        state.current_step = current_step
        if tag_map is not None:
            state.tag_map = tag_map
        if legal_accepted is not None:
            state.legal_accepted = bool(legal_accepted)
        if is_finalized is not None:
            state.is_finalized = bool(is_finalized)
        state.updated_at = _now()
        state.last_accessed_at = state.updated_at
        write_json_locked(draft_dir / STATE_FILE, state.to_dict())
        logger.info(f"Saved draft {state.draft_id} for user {user_id} at step {current_step}")
        return state

    def load(self, user_id: str, draft_id: str, touch: bool = True) -> WorkflowState:
        state_path = self._draft_dir(user_id, draft_id) / STATE_FILE
        data = read_json_locked(state_path)
        if data is None:
            raise DraftNotFoundError(f"Draft '{draft_id}' not found")
        state = WorkflowState.from_dict(data)
        if touch:
            state.last_accessed_at = _now()
            write_json_locked(state_path, state.to_dict())
        return state

    def load_file(self, user_id: str, draft_id: str, kind: str) -> Tuple[str, bytes]:
        """Returns (original filename, bytes) of a stored upload."""
        state = self.load(user_id, draft_id, touch=False)
        meta = state.files.get(kind)
        if meta is None:
            raise DraftNotFoundError(f"Draft '{draft_id}' has no {kind} file")
        content = read_bytes_locked(self._draft_dir(user_id, draft_id) / f"{kind}.bin")
        return meta["filename"], content

    def list_drafts(self, user_id: str) -> List[WorkflowState]:
        """All of a user's drafts, most recently updated first."""
        user_dir = self._user_dir(user_id)
        if not user_dir.is_dir():
            return []
        states: List[WorkflowState] = []
        for child in user_dir.iterdir():
            if not child.is_dir():
                continue
            data = read_json_locked(child / STATE_FILE)
            if data is None:
                logger.warning(f"Draft folder {child} has no state file, skipping")
                continue
            states.append(WorkflowState.from_dict(data))
        states.sort(key=lambda s: s.updated_at, reverse=True)
        return states

    def latest(self, user_id: str) -> Optional[WorkflowState]:
        drafts = self.list_drafts(user_id)
        return drafts[0] if drafts else None

    def delete(self, user_id: str, draft_id: str) -> None:
        if not remove_tree_locked(self._draft_dir(user_id, draft_id)):
            raise DraftNotFoundError(f"Draft '{draft_id}' not found")
        logger.info(f"Deleted draft {draft_id} for user {user_id}")
