"""Quiz session services: state, turn engine, actor, broadcast and timers.

Everything below ``sessions`` is transport-free and can be driven directly
from tests; HTTP routes and socket handlers only talk to ``sessions``.
"""
