from enum import Enum


class Notification(str, Enum):
    """Outbound notification names understood by the controlling process."""
    START = "Start"
    RATE = "Rate"
    PAUSED = "Paused"
    FINISHED = "Finished"
    ERROR = "Error"


class Command(str, Enum):
    """Inbound command categories."""
    ADD_ITEM = "addItem"
    ADD_PATCH = "addPatch"
    PAUSE_ITEM = "pauseItem"
    PAUSE_ALL = "pauseAll"
    RESUME_ITEM = "resumeItem"
