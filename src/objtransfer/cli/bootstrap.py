from typing import Callable

from objtransfer.application.engine.dispatcher import Dispatcher
from objtransfer.config import TransferConfig
from objtransfer.infrastructure.network.connection_manager import ConnectionManager
from objtransfer.infrastructure.storage.s3_storage_client import S3StorageClient


class Bootstrap:
    def __init__(self, config: TransferConfig, send: Callable[[dict], None]):
        self.config = config
        self.connections = ConnectionManager(max_connections_per_host=config.max_concurrent_tasks)
        self.client = S3StorageClient(config, connection_manager=self.connections)
        self.dispatcher = Dispatcher(self.client, send, config)
