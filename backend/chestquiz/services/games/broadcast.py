"""Host -> participants snapshot stream over Socket.IO rooms.

Every message is a full public snapshot, so a participant that misses any
number of them is consistent again with the next one. Delivery is
fire-and-forget: a failed emit is logged and the host carries on.
"""

import logging
from typing import Any, Dict, Optional

from . import constants as C
from .content import QuizContent
from .errors import TransportFailure
from .state import SessionState

logger = logging.getLogger(__name__)

NAMESPACE = '/ws'


def room_for(code: str) -> str:
    return f"game:{code.upper()}"


def question_view(state: SessionState, content: QuizContent, default_duration: int) -> Optional[Dict[str, Any]]:
    """What observers may see of the current question in this phase."""
    phase = state.phase
    if phase == C.PHASE_QUESTION:
        question = content.question_at(state.question_cursor)
        if question is None:
            return None
        return {
            'prompt': question.prompt,
            'duration': content.duration_for(state.question_cursor, default_duration),
            'timer_end': state.timer_end,
        }
    if phase in (C.PHASE_CORRECT_ANSWER, C.PHASE_LEARNING_TIME):
        question = content.question_at(state.question_cursor)
        if question is None:
            return None
        return {'prompt': question.prompt, 'answer': question.answer, 'link': question.link}
    final = content.final_question
    if final is None:
        return None
    if phase == C.PHASE_FINAL_QUESTION:
        return {'prompt': final.prompt}
    if phase in (C.PHASE_FINAL_ANSWER_REVEALED, C.PHASE_FINAL_SCORING, C.PHASE_FINISHED):
        return {'prompt': final.prompt, 'answer': final.answer, 'link': final.link}
    return None


def build_payload(state: SessionState, content: QuizContent, default_duration: int = 30) -> Dict[str, Any]:
    payload = state.snapshot(public=True)
    payload['question'] = question_view(state, content, default_duration)
    return payload


class BroadcastChannel:

    def __init__(self, socketio, namespace: str = NAMESPACE):
        self.socketio = socketio
        self.namespace = namespace

    def _emit(self, event: str, payload: Dict[str, Any], room: str) -> bool:
        try:
            self.socketio.emit(event, payload, to=room, namespace=self.namespace)
        except Exception as exc:
            failure = TransportFailure(f'{event} to {room} failed: {exc}')
            logger.warning(f"[broadcast-failed] room={room} event={event} error={failure}")
            return False
        return True

    def publish(self, code: str, payload: Dict[str, Any]) -> bool:
        return self._emit('state_update', payload, room_for(code))

    def notify(self, code: str, event: str, payload: Dict[str, Any]) -> bool:
        return self._emit(event, payload, room_for(code))
