# Phase names are part of the wire format read by the browser clients.
PHASE_WAITING = 'waiting'
PHASE_QUESTION = 'question'
PHASE_GRADING = 'grading'
PHASE_CORRECT_ANSWER = 'correctAnswer'
PHASE_INCORRECT_ANSWER = 'incorrectAnswer'
PHASE_LEARNING_TIME = 'learningTime'
PHASE_BOXES = 'boxes'
PHASE_BOXES_REVEALED = 'boxes-revealed'
PHASE_BETTING = 'betting'
PHASE_FINAL_QUESTION = 'finalQuestion'
PHASE_FINAL_ANSWER_REVEALED = 'finalAnswerRevealed'
PHASE_FINAL_SCORING = 'finalScoring'
PHASE_FINISHED = 'finished'

# Phases during which exactly one team holds the turn.
TURN_PHASES = frozenset({
    PHASE_QUESTION,
    PHASE_GRADING,
    PHASE_CORRECT_ANSWER,
    PHASE_INCORRECT_ANSWER,
    PHASE_LEARNING_TIME,
})
BOX_PHASES = frozenset({PHASE_BOXES, PHASE_BOXES_REVEALED})
FINAL_PHASES = frozenset({
    PHASE_BETTING,
    PHASE_FINAL_QUESTION,
    PHASE_FINAL_ANSWER_REVEALED,
    PHASE_FINAL_SCORING,
    PHASE_FINISHED,
})
MAIN_LOOP_PHASES = frozenset({PHASE_WAITING}) | TURN_PHASES | BOX_PHASES
ALL_PHASES = MAIN_LOOP_PHASES | FINAL_PHASES

# Box tiers
BOX_VICTORY = 'victory'
BOX_HALF_VICTORY = 'half-victory'
BOX_FAILURE = 'failure'

REWARD_FULL = 'full'
REWARD_HALF = 'half'

# Team roster master data, wrapped when more teams are requested.
TEAMS_MASTER_DATA = [
    {'name': 'Owls', 'icon': 'TEAM_OWL'},
    {'name': 'Foxes', 'icon': 'TEAM_FOX'},
    {'name': 'Elephants', 'icon': 'TEAM_ELEPHANT'},
    {'name': 'Frogs', 'icon': 'TEAM_FROG'},
    {'name': 'Lions', 'icon': 'TEAM_LION'},
]
