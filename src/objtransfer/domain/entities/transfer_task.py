from dataclasses import dataclass
from uuid import uuid4
from .transfer_state import TransferState, Direction


@dataclass
class TransferTask:
    task_id: str
    bucket_name: str
    object_key: str
    local_path: str
    direction: Direction
    state: TransferState = TransferState.UNSTARTED
    total_size: int | None = None  # Authoritative once the remote side or local file reported it
    bytes_transferred: int = 0

    @property
    def key(self) -> tuple[str, str]:
        """Cache identity; batch items share a task_id but not an object key."""
        return self.task_id, self.object_key

    @staticmethod
    def create(bucket_name: str, object_key: str, local_path: str,
               direction: Direction = Direction.DOWNLOAD, task_id: str | None = None,
               total_size: int | None = None) -> "TransferTask":
        return TransferTask(
            task_id=task_id or str(uuid4()),
            bucket_name=bucket_name,
            object_key=object_key,
            local_path=local_path,
            direction=direction,
            state=TransferState.UNSTARTED,
            total_size=total_size,
        )

    @staticmethod
    def from_command(config: dict) -> "TransferTask":
        """Build a task from an inbound ``addItem`` payload (camelCase keys)."""
        direction = Direction(config.get("direction", Direction.DOWNLOAD.value))
        return TransferTask.create(
            bucket_name=config["bucketName"],
            object_key=config["objectKey"],
            local_path=config["localPath"],
            direction=direction,
            task_id=config["taskId"],
            total_size=config.get("totalSize"),
        )
