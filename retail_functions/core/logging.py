import logging
import sys
from pythonjsonlogger import jsonlogger

from retail_functions.core.config import settings


def setup_logging() -> None:
    logger = logging.getLogger()
    logger.setLevel(settings.log_level)

    if any(getattr(h, "_retail_json", False) for h in logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    formatter = jsonlogger.JsonFormatter(
        "%(asctime)s %(name)s %(levelname)s %(message)s",
        rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"},
        static_fields={"service": settings.service_name}
    )
    handler.setFormatter(formatter)
    handler._retail_json = True
    logger.addHandler(handler)

    # aio-pika and aiormq log every frame at INFO
    logging.getLogger("aiormq").setLevel(logging.WARNING)
    logging.getLogger("aio_pika").setLevel(logging.WARNING)
