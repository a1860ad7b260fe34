from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping

from .constants import BOX_FAILURE, BOX_HALF_VICTORY, BOX_VICTORY


DEFAULT_BOX_TABLES: Dict[str, List[int]] = {
    BOX_VICTORY: [10, 20, 30, 40, 50],
    BOX_HALF_VICTORY: [5, 10, 15, 20, 25],
    BOX_FAILURE: [0, -5, -10, -15, -20, -25],
}


@dataclass(frozen=True)
class GameRules:
    """Tunable numbers the engine plays by.

    The box tables decide what a "full" versus "half" reward is worth; they
    are configuration, not derived from each other.
    """

    question_duration_sec: int = 30
    bet_increment: int = 5
    score_step: int = 5
    chest_count: int = 3
    box_tables: Dict[str, List[int]] = field(default_factory=lambda: {k: list(v) for k, v in DEFAULT_BOX_TABLES.items()})

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> 'GameRules':
        tables = config.get('BOX_TABLES') or DEFAULT_BOX_TABLES
        return cls(
            question_duration_sec=int(config.get('QUESTION_DURATION_SEC', 30)),
            bet_increment=int(config.get('BET_INCREMENT', 5)),
            score_step=int(config.get('SCORE_STEP', 5)),
            chest_count=int(config.get('CHEST_COUNT', 3)),
            box_tables={k: [int(v) for v in values] for k, values in tables.items()},
        )

    def table_for(self, mode: str) -> List[int]:
        try:
            return list(self.box_tables[mode])
        except KeyError:
            raise ValueError(f'no box table configured for mode {mode!r}')
