"""
JSON persistence for vesting engine snapshots.

A snapshot holds the plan table, the release time, every ledger row and
the per-plan totals. Files are written to a temporary sibling and moved
into place so a crash never leaves a half-written snapshot behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from .vesting_exceptions import StateStoreError, VestingError

logger = logging.getLogger(__name__)

STATE_VERSION = 1


class VestingStateStore:
    def __init__(self, storage_path: str):
        if not storage_path:
            raise ValueError("Storage path cannot be empty.")
        self.storage_path = storage_path

    def exists(self) -> bool:
        return os.path.exists(self.storage_path)

    def save(self, state: Dict[str, Any]) -> None:
        document = {"version": STATE_VERSION, **state}
        directory = os.path.dirname(os.path.abspath(self.storage_path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".vesting_state.", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(document, handle, indent=2, sort_keys=True)
            os.replace(tmp_path, self.storage_path)
        except OSError as exc:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise StateStoreError(f"Failed to persist vesting state: {exc}") from exc
        logger.info(
            "Vesting state saved",
            extra={
                "event": "state.saved",
                "path": self.storage_path,
                "rows": len(state.get("ledger", [])),
            },
        )

    def load(self) -> Optional[Dict[str, Any]]:
        """Read and check a snapshot; None if no file exists yet."""
        if not self.exists():
            return None
        try:
            with open(self.storage_path, "r", encoding="utf-8") as handle:
                document = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StateStoreError(f"Failed to load vesting state: {exc}") from exc

        if not isinstance(document, dict):
            raise StateStoreError("Vesting state must be a JSON object.")
        version = document.pop("version", None)
        if version != STATE_VERSION:
            raise StateStoreError(
                f"Unsupported vesting state version {version!r}.",
                details={"expected": STATE_VERSION},
            )
        validate_state(document)
        return document


def validate_state(state: Dict[str, Any]) -> None:
    """Reject snapshots whose ledger breaks the accounting invariants."""
    from tokenlock.vesting.ledger import BeneficiaryLedger

    release_time = state.get("release_time")
    if release_time is not None and (not isinstance(release_time, int) or isinstance(release_time, bool)):
        raise StateStoreError("release_time must be an integer or null.")
    if not isinstance(state.get("plans", {}), dict):
        raise StateStoreError("plans must be an object keyed by plan id.")
    try:
        BeneficiaryLedger.from_dict(state)
    except (KeyError, TypeError, ValueError) as exc:
        raise StateStoreError(f"Malformed ledger in vesting state: {exc}") from exc
    except VestingError as exc:
        raise StateStoreError(f"Inconsistent ledger in vesting state: {exc.message}") from exc
