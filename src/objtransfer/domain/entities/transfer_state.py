from enum import Enum


class TransferState(str, Enum):
    UNSTARTED = "unstarted"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"
    ERROR = "error"


class Direction(str, Enum):
    UPLOAD = "upload"
    DOWNLOAD = "download"
