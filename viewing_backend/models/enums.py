from enum import Enum


class Condition(str, Enum):
    SWITCHING = "switching"
    NON_SWITCHING = "non_switching"


class EventType(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    SWITCH = "switch"
    COMPLETE = "complete"
