import time
from typing import Set, Tuple

from chestquiz import socketio


_scheduled_timer_keys: Set[Tuple[str, int]] = set()


def schedule_question_timer(app, code: str, timer_end: int) -> None:
    """Schedule the host-side expiry of a question timer.

    - No-ops in TESTING mode unless ENABLE_SCHEDULER_IN_TESTS is set
    - Ensures a single worker per (session, timer_end)
    - On wake-up submits ``timerExpired`` for the exact end time it was armed
      for; the engine drops it if the question moved on meanwhile
    """
    if app.config.get('TESTING') and not app.config.get('ENABLE_SCHEDULER_IN_TESTS'):
        return

    key = (code, int(timer_end))
    if key in _scheduled_timer_keys:
        app.logger.info(f"[timer-skip] session={code} timer_end={timer_end} already scheduled")
        return
    _scheduled_timer_keys.add(key)
    app.logger.info(
        f"[timer-set] session={code} timer_end={timer_end} in={max(0.0, timer_end / 1000.0 - time.time()):.1f}s"
    )

    def _worker(session_code: str, deadline_ms: int):
        hb = int(app.config.get('TIMER_HEARTBEAT_SEC', 0))
        while True:
            remaining = deadline_ms / 1000.0 - time.time()
            if remaining <= 0:
                break
            step = min(hb, remaining) if hb > 0 else remaining
            socketio.sleep(step)
            if hb > 0:
                app.logger.info(
                    f"[timer-heartbeat] session={session_code} remaining={max(0.0, deadline_ms / 1000.0 - time.time()):.1f}s"
                )

        from .intents import Intent, SOURCE_HOST, TIMER_EXPIRED
        from .sessions import get_live

        with app.app_context():
            _scheduled_timer_keys.discard((session_code, deadline_ms))
            live = get_live(app, session_code)
            if live is None:
                app.logger.info(f"[timer-abort] session={session_code} no longer live")
                return
            app.logger.info(
                f"[timer-fire] session={session_code} timer_end={deadline_ms} phase={live.actor.state.phase}"
            )
            transition = live.submit(Intent(type=TIMER_EXPIRED, source=SOURCE_HOST, timer_end=deadline_ms))
            if transition is None:
                app.logger.info(f"[timer-pending] session={session_code} timer_end={deadline_ms}")
            elif not transition.accepted:
                app.logger.info(f"[timer-abort] session={session_code} {transition.rejection}")

    socketio.start_background_task(_worker, code, int(timer_end))
