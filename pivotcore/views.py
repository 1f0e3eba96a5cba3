"""Latest PivotResult per view id.

Each view's displayed result is the only shared resource: a newer compute
always overwrites it, results are never merged, and a failed compute leaves
the previous result in place. When two computes for the same view overlap,
the one started last wins.

Usage::

    store = ViewResultStore()
    token = store.begin("sales-by-region")
    result = compute_pivot(rows, config, options)
    store.publish("sales-by-region", token, result)   # False if superseded
"""

from __future__ import annotations

import itertools
import logging
import threading
from dataclasses import dataclass
from typing import Dict, Optional, Union

from pivotcore.assembly import PivotResult
from pivotcore.config import PivotConfig, PivotOptions
from pivotcore.data import RowsLike
from pivotcore.engine import compute_pivot

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ViewState:
    result: Optional[PivotResult] = None
    error: Optional[str] = None
    token: int = 0


class ViewResultStore:
    """Thread-safe map of view id -> latest result."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._tokens = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._states: Dict[str, ViewState] = {}

    def begin(self, view_id: str) -> int:
        """Register a new compute for ``view_id`` and return its token."""
        with self._lock:
            token = next(self._tokens)
            self._latest[view_id] = token
            return token

    def is_current(self, view_id: str, token: int) -> bool:
        with self._lock:
            return self._latest.get(view_id) == token

    def publish(self, view_id: str, token: int, result: PivotResult) -> bool:
        with self._lock:
            if self._latest.get(view_id) != token:
                logger.debug("dropping superseded result for view %s (token %d)", view_id, token)
                return False
            self._states[view_id] = ViewState(result=result, error=None, token=token)
            return True

    def fail(self, view_id: str, token: int, exc: BaseException) -> bool:
        """Record a failed compute; the previous result stays displayed."""
        with self._lock:
            if self._latest.get(view_id) != token:
                return False
            previous = self._states.get(view_id, ViewState())
            self._states[view_id] = ViewState(result=previous.result, error=f"{type(exc).__name__}: {exc}", token=token)
            return True

    def get(self, view_id: str) -> Optional[PivotResult]:
        with self._lock:
            state = self._states.get(view_id)
            return state.result if state else None

    def state(self, view_id: str) -> ViewState:
        with self._lock:
            return self._states.get(view_id, ViewState())

    def remove(self, view_id: str) -> None:
        with self._lock:
            self._latest.pop(view_id, None)
            self._states.pop(view_id, None)

    def recompute(
        self,
        view_id: str,
        rows: RowsLike,
        config: Union[PivotConfig, dict, None],
        options: Union[PivotOptions, dict, None] = None,
    ) -> Optional[PivotResult]:
        """Compute and publish; returns the result now displayed for the view."""
        token = self.begin(view_id)
        try:
            result = compute_pivot(rows, config, options)
        except Exception as exc:
            logger.exception("pivot recompute failed for view %s", view_id)
            self.fail(view_id, token, exc)
            return self.get(view_id)
        self.publish(view_id, token, result)
        return self.get(view_id)
