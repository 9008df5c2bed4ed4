import logging
import sys

from squirrel_away.config import Settings, load_settings


class _SafeExtraFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        record.state_id = getattr(record, "state_id", "-")
        record.action_id = getattr(record, "action_id", "-")
        record.hash = getattr(record, "hash", "-")
        return super().format(record)


def configure_logging(settings: Settings | None = None) -> None:
    root = logging.getLogger()
    if root.handlers:
        return

    settings = settings or load_settings()

    handler = logging.StreamHandler(sys.stdout)
    formatter = _SafeExtraFormatter(
        fmt="%(asctime)s %(levelname)s %(name)s %(message)s state_id=%(state_id)s action_id=%(action_id)s hash=%(hash)s",
    )
    handler.setFormatter(formatter)

    root.setLevel(settings.log_level)
    root.addHandler(handler)
