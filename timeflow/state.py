from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager

from .db import Database
from .models import AppState
from .snapshot import state_from_dict, state_to_dict


class StateHolder:
    """Owns the in-memory state and flushes it to the database on commit.

    Every mutation runs inside ``transaction()``. If the body raises, or the
    flush itself fails, the in-memory state is put back to what it was before
    the transaction started.
    """

    def __init__(self, db: Database, logger: logging.Logger | None = None) -> None:
        self.db = db
        self.logger = logger or logging.getLogger(__name__)
        self.state = AppState()

    def load(self) -> AppState:
        raw = self.db.load_state()
        if raw is None:
            self.logger.info("No stored state found, starting empty")
            self.state = AppState()
        else:
            self.state = state_from_dict(raw)
            self.logger.info(
                "Loaded %d projects, %d entries, %d recipients",
                len(self.state.projects),
                len(self.state.entries),
                len(self.state.recipients),
            )
        return self.state

    def flush(self) -> None:
        self.db.save_state(state_to_dict(self.state))

    @contextmanager
    def transaction(self) -> Iterator[AppState]:
        before = self.state.copy()
        try:
            yield self.state
            self.flush()
        except Exception:
            self.state.restore(before)
            raise
