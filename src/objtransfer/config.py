"""Transfer engine configuration from environment variables."""

import os
from dataclasses import dataclass

MiB = 1024 * 1024


@dataclass
class TransferConfig:
    """Credentials plus engine tuning.

    Load from environment using TransferConfig.from_env().
    Timing values are in seconds.
    """

    # Credentials
    access_key: str = ""
    secret_key: str = ""
    endpoint: str = ""
    region: str = ""

    # Multipart planning
    part_size: int = 20 * MiB
    max_parts: int = 1000

    # Dispatcher
    max_concurrent_tasks: int = 5

    # Streams
    stall_timeout: float = 10.0
    rate_interval: float = 0.5
    chunk_size: int = 64 * 1024
    request_timeout: float = 60.0

    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "TransferConfig":
        """Load configuration from environment variables.

        Required environment variables:
            TRANSFER_ACCESS_KEY: Storage access key
            TRANSFER_SECRET_KEY: Storage secret key
            TRANSFER_ENDPOINT: Storage service endpoint URL

        Optional environment variables (with defaults):
            TRANSFER_REGION: "" (default)
            TRANSFER_PART_SIZE: 20971520 (default, bytes)
            TRANSFER_MAX_PARTS: 1000 (default)
            TRANSFER_MAX_TASKS: 5 (default)
            TRANSFER_STALL_TIMEOUT: 10 (default, seconds)
            TRANSFER_RATE_INTERVAL: 0.5 (default, seconds)
            TRANSFER_CHUNK_SIZE: 65536 (default, bytes)
            TRANSFER_REQUEST_TIMEOUT: 60 (default, seconds)
            TRANSFER_LOG_LEVEL: INFO (default)

        Raises:
            ValueError: If required environment variables are missing or a
                numeric override does not parse
        """
        missing = [name for name in ("TRANSFER_ACCESS_KEY", "TRANSFER_SECRET_KEY", "TRANSFER_ENDPOINT")
                   if not os.getenv(name)]
        if missing:
            raise ValueError(f"Missing required environment variables: {', '.join(missing)}")

        config = cls(
            access_key=os.environ["TRANSFER_ACCESS_KEY"],
            secret_key=os.environ["TRANSFER_SECRET_KEY"],
            endpoint=os.environ["TRANSFER_ENDPOINT"],
            region=os.getenv("TRANSFER_REGION", ""),
            part_size=int(os.getenv("TRANSFER_PART_SIZE", str(cls.part_size))),
            max_parts=int(os.getenv("TRANSFER_MAX_PARTS", str(cls.max_parts))),
            max_concurrent_tasks=int(os.getenv("TRANSFER_MAX_TASKS", str(cls.max_concurrent_tasks))),
            stall_timeout=float(os.getenv("TRANSFER_STALL_TIMEOUT", str(cls.stall_timeout))),
            rate_interval=float(os.getenv("TRANSFER_RATE_INTERVAL", str(cls.rate_interval))),
            chunk_size=int(os.getenv("TRANSFER_CHUNK_SIZE", str(cls.chunk_size))),
            request_timeout=float(os.getenv("TRANSFER_REQUEST_TIMEOUT", str(cls.request_timeout))),
            log_level=os.getenv("TRANSFER_LOG_LEVEL", cls.log_level).upper(),
        )
        config.validate()
        return config

    def validate(self):
        if self.part_size <= 0:
            raise ValueError("part_size must be positive")
        if self.max_parts <= 0:
            raise ValueError("max_parts must be positive")
        if self.max_concurrent_tasks <= 0:
            raise ValueError("max_concurrent_tasks must be positive")
        if self.stall_timeout <= 0:
            raise ValueError("stall_timeout must be positive")
