"""
Command bridge for a controlling process.

Reads one JSON command per line from stdin, e.g.
``{"category": "addItem", "config": {"taskId": ..., ...}}``, and writes one
JSON notification per line to stdout. Logs go to stderr.
"""
import json
import logging
import sys
import threading

from objtransfer.cli.bootstrap import Bootstrap
from objtransfer.config import TransferConfig

logger = logging.getLogger(__name__)

NOISY_LOGGERS = ["urllib3", "botocore", "boto3", "s3transfer"]


def setup_logging(level: str = "INFO"):
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(threadName)s] %(name)s: %(message)s",
        stream=sys.stderr,
    )
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


class LineWriter:
    """Serializes notifications from worker threads onto one output stream."""

    def __init__(self, stream):
        self._stream = stream
        self._lock = threading.Lock()

    def __call__(self, message: dict):
        line = json.dumps(message, separators=(",", ":"))
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()


def run(dispatcher, lines):
    """Dispatch every command line until the input ends."""
    for line in lines:
        line = line.strip()
        if not line:
            continue
        try:
            message = json.loads(line)
        except json.JSONDecodeError as e:
            logger.warning("Skipping malformed command line: %s", e)
            continue
        if not isinstance(message, dict):
            logger.warning("Skipping command that is not an object: %r", message)
            continue

        try:
            dispatcher.dispatch(message)
        except (KeyError, ValueError) as e:
            logger.error("Invalid %s command: %s", message.get("category"), e)


def main():
    try:
        config = TransferConfig.from_env()
    except ValueError as e:
        setup_logging()
        logger.error("%s", e)
        sys.exit(1)

    setup_logging(config.log_level)
    bs = Bootstrap(config, LineWriter(sys.stdout))
    logger.info("Transfer engine ready (endpoint=%s, max tasks=%d)", config.endpoint,
                config.max_concurrent_tasks)

    try:
        run(bs.dispatcher, sys.stdin)
    except KeyboardInterrupt:
        pass
    finally:
        bs.dispatcher.shutdown()


if __name__ == "__main__":
    main()
