"""
Vehicle command grammar.

Builders for the small set of commands the navigation policy emits, each
clamped to the range the vehicle accepts, plus a validator for the wider
command catalog used when commands come from the orchestrator.
"""

import logging
from typing import Dict, Tuple

logger = logging.getLogger(__name__)

TAKEOFF = 'takeoff'
LAND = 'land'
ENTER_SDK_MODE = 'command'
BATTERY_QUERY = 'battery?'
STREAM_ON = 'streamon'

MIN_DEGREES, MAX_DEGREES = 1, 360
MIN_DISTANCE_CM, MAX_DISTANCE_CM = 20, 500

# verb -> tuple of (min, max) ranges, one per numeric argument
_NUMERIC_COMMANDS: Dict[str, Tuple[Tuple[int, int], ...]] = {
    'up': ((20, 500),),
    'down': ((20, 500),),
    'left': ((20, 500),),
    'right': ((20, 500),),
    'forward': ((20, 500),),
    'back': ((20, 500),),
    'cw': ((1, 360),),
    'ccw': ((1, 360),),
    'speed': ((10, 100),),
    'rc': ((-100, 100),) * 4,
    'go': ((-500, 500),) * 3 + ((10, 100),),
    'curve': ((-500, 500),) * 6 + ((10, 60),),
}

_BARE_COMMANDS = {
    'command', 'takeoff', 'land', 'streamon', 'streamoff', 'emergency',
    'stop', 'mon', 'moff',
}

_FLIP_DIRECTIONS = {'l', 'r', 'f', 'b'}


def _clamp_int(value: float, low: int, high: int) -> int:
    return int(max(low, min(high, round(value))))


def rotate(degrees: float) -> str:
    """``cw`` for positive angles, ``ccw`` for negative ones."""
    verb = 'cw' if degrees >= 0 else 'ccw'
    return f"{verb} {_clamp_int(abs(degrees), MIN_DEGREES, MAX_DEGREES)}"


def vertical(distance_cm: float) -> str:
    """``up`` for positive distances, ``down`` for negative ones."""
    verb = 'up' if distance_cm >= 0 else 'down'
    return f"{verb} {_clamp_int(abs(distance_cm), MIN_DISTANCE_CM, MAX_DISTANCE_CM)}"


def forward(distance_cm: float) -> str:
    return f"forward {_clamp_int(distance_cm, MIN_DISTANCE_CM, MAX_DISTANCE_CM)}"


def is_valid_command(text: str) -> bool:
    """
    Check a raw command string against the vehicle command catalog.

    Read commands (``battery?``, ``speed?`` ...) are accepted as long as they
    are a single token ending in ``?``.
    """
    tokens = text.strip().split()
    if not tokens:
        return False

    verb, args = tokens[0].lower(), tokens[1:]

    if verb.endswith('?'):
        return not args
    if verb in _BARE_COMMANDS:
        return not args
    if verb == 'flip':
        return len(args) == 1 and args[0].lower() in _FLIP_DIRECTIONS

    ranges = _NUMERIC_COMMANDS.get(verb)
    if ranges is None:
        return False
    # go/curve accept a trailing mission pad id (m1..m8)
    if verb in ('go', 'curve') and len(args) == len(ranges) + 1:
        if not args[-1].lower().startswith('m'):
            return False
        args = args[:-1]
    if len(args) != len(ranges):
        return False
    try:
        numbers = [int(arg) for arg in args]
    except ValueError:
        return False
    return all(low <= n <= high for n, (low, high) in zip(numbers, ranges))
