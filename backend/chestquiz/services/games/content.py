"""Question content as the session core sees it.

The editor that produces game data lives elsewhere; the core only needs the
number of questions and each one's timer. Both the editor's short keys
(``q``/``a``/``timer``/``url``) and the long names are accepted.
"""

import random
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ContentExhausted


@dataclass(frozen=True)
class Question:
    prompt: str
    answer: str = ''
    duration: Optional[int] = None
    link: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Question':
        duration = data.get('duration', data.get('timer'))
        return cls(
            prompt=str(data.get('prompt', data.get('q', '')) or ''),
            answer=str(data.get('answer', data.get('a', '')) or ''),
            duration=int(duration) if duration not in (None, '') else None,
            link=data.get('link', data.get('url')) or None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'prompt': self.prompt,
            'answer': self.answer,
            'duration': self.duration,
            'link': self.link,
        }


@dataclass(frozen=True)
class QuizContent:
    game_name: str = ''
    questions: List[Question] = field(default_factory=list)
    final_question: Optional[Question] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'QuizContent':
        data = data or {}
        final = data.get('final_question')
        return cls(
            game_name=str(data.get('game_name') or ''),
            questions=[Question.from_dict(q) for q in (data.get('questions') or [])],
            final_question=Question.from_dict(final) if final else None,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'game_name': self.game_name,
            'questions': [q.to_dict() for q in self.questions],
            'final_question': self.final_question.to_dict() if self.final_question else None,
        }

    def question_at(self, cursor: int) -> Optional[Question]:
        """Question for a 1-based cursor, or None past the end."""
        if 1 <= cursor <= len(self.questions):
            return self.questions[cursor - 1]
        return None

    def duration_for(self, cursor: int, default: int) -> int:
        question = self.question_at(cursor)
        if question is None or not question.duration or question.duration <= 0:
            return default
        return question.duration


def compute_total_questions(content_length: int, team_count: int) -> int:
    """Largest multiple of ``team_count`` not exceeding ``content_length``."""
    if team_count <= 0 or content_length <= 0:
        return 0
    return (content_length // team_count) * team_count


def prepare_content(content: QuizContent, team_count: int, shuffle: bool = False,
                    rng: Optional[random.Random] = None) -> QuizContent:
    """Shuffle (optionally) and cut the question list to whole rounds.

    Raises ContentExhausted when not even one full round fits, so a session
    is never created for it.
    """
    total = compute_total_questions(len(content.questions), team_count)
    if total == 0:
        raise ContentExhausted(
            f'{len(content.questions)} question(s) cannot cover a round of {team_count} team(s)'
        )
    questions = list(content.questions)
    if shuffle:
        (rng or random).shuffle(questions)
    return QuizContent(
        game_name=content.game_name,
        questions=questions[:total],
        final_question=content.final_question,
    )
