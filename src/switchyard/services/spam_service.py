from __future__ import annotations

import time
from collections import deque


class SpamService:
    """
    Sliding-window action counter per user.

    A user is restricted while `max_actions` actions fall inside the last
    `window_sec` seconds. Each user keeps at most `max_actions` timestamps,
    and users whose timestamps have all aged out are forgotten.
    """

    def __init__(self, max_actions: int = 10, window_sec: float = 10.0) -> None:
        if max_actions < 1:
            raise ValueError("max_actions must be at least 1")
        if window_sec <= 0:
            raise ValueError("window_sec must be positive")
        self.max_actions = max_actions
        self.window_sec = window_sec
        self._actions: dict[str, deque[float]] = {}

    def on_action(self, user_id: str, now: float | None = None) -> None:
        now_ts = time.monotonic() if now is None else float(now)
        history = self._actions.get(user_id)
        if history is None:
            history = deque(maxlen=self.max_actions)
            self._actions[user_id] = history
        history.append(now_ts)
        self._prune(user_id, now_ts)

    def is_restricted(self, user_id: str, now: float | None = None) -> bool:
        now_ts = time.monotonic() if now is None else float(now)
        history = self._prune(user_id, now_ts)
        return history is not None and len(history) >= self.max_actions

    def reset(self, user_id: str) -> None:
        self._actions.pop(user_id, None)

    def tracked_users(self) -> int:
        return len(self._actions)

    def _prune(self, user_id: str, now_ts: float) -> deque[float] | None:
        history = self._actions.get(user_id)
        if history is None:
            return None
        cutoff = now_ts - self.window_sec
        while history and history[0] <= cutoff:
            history.popleft()
        if not history:
            del self._actions[user_id]
            return None
        return history
