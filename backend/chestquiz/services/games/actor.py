"""Single-writer actor around one live session.

All writes to a session go through ``SessionActor.submit``: intents are put
on a FIFO inbox and applied one by one by whichever thread is currently
draining it. HTTP requests, Socket.IO events and timer workers may submit
concurrently; they never run the engine at the same time for the same
session, which is what makes claim races and score-once guards safe.
"""

import logging
import threading
from collections import OrderedDict, deque
from concurrent.futures import Future
from typing import Callable, Deque, Dict, Optional, Tuple

from .engine import Transition, TurnEngine
from .errors import DuplicateApplication
from .intents import Intent
from .state import SessionState
from .timer import now_ms

logger = logging.getLogger(__name__)

TransitionHook = Callable[['SessionActor', Transition, SessionState], None]


class SessionActor:

    def __init__(self, state: SessionState, engine: TurnEngine,
                 on_transition: Optional[TransitionHook] = None,
                 clock: Callable[[], int] = now_ms, dedup_window: int = 512):
        self._state = state
        self.engine = engine
        self.on_transition = on_transition
        self._clock = clock
        self._dedup_window = dedup_window
        self._seen: 'OrderedDict[str, None]' = OrderedDict()
        self._inbox: Deque[Tuple[Intent, Future]] = deque()
        self._inbox_lock = threading.Lock()
        self._drain_lock = threading.Lock()

    @property
    def code(self) -> str:
        return self._state.code

    @property
    def state(self) -> SessionState:
        """Current state object. Treat as read-only; use ``snapshot`` to share."""
        return self._state

    def snapshot(self, public: bool = False) -> Dict:
        return self._state.snapshot(public=public)

    def submit(self, intent: Intent) -> 'Future[Transition]':
        future: 'Future[Transition]' = Future()
        with self._inbox_lock:
            self._inbox.append((intent, future))
        self._drain()
        return future

    def apply(self, intent: Intent, timeout: Optional[float] = None) -> Transition:
        """Submit and wait for the outcome."""
        return self.submit(intent).result(timeout=timeout)

    def _drain(self) -> None:
        while True:
            if not self._drain_lock.acquire(blocking=False):
                # Another thread is draining and will pick our item up.
                return
            try:
                while True:
                    with self._inbox_lock:
                        if not self._inbox:
                            break
                        intent, future = self._inbox.popleft()
                    try:
                        future.set_result(self._apply(intent))
                    except Exception as exc:
                        logger.exception(f"[actor-error] session={self.code} intent={intent.type}")
                        future.set_exception(exc)
            finally:
                self._drain_lock.release()
            with self._inbox_lock:
                if not self._inbox:
                    return

    def _apply(self, intent: Intent) -> Transition:
        previous = self._state
        if intent.intent_id and intent.intent_id in self._seen:
            return Transition(state=previous, rejection=DuplicateApplication(f'intent {intent.intent_id} already applied'))

        transition = self.engine.reduce(previous, intent, self._clock())
        if not transition.accepted:
            logger.info(
                f"[intent-rejected] session={self.code} type={intent.type} source={intent.source} "
                f"team={intent.team_index} phase={previous.phase} reason={transition.rejection.code}: {transition.rejection}"
            )
            return transition

        if intent.intent_id:
            self._seen[intent.intent_id] = None
            while len(self._seen) > self._dedup_window:
                self._seen.popitem(last=False)
        self._state = transition.state
        logger.debug(
            f"[intent-applied] session={self.code} type={intent.type} phase={previous.phase}->{transition.state.phase}"
        )
        if self.on_transition is not None:
            try:
                self.on_transition(self, transition, previous)
            except Exception:
                # Persistence/broadcast trouble never rolls the host state back.
                logger.exception(f"[transition-hook-failed] session={self.code} type={intent.type}")
        return transition
