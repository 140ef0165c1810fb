import logging
import sys


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def setup_logging(verbosity: int = 0, quiet: bool = False) -> None:
    """
    CLI 엔트리포인트에서 한 번만 호출한다.

    -v 이상이면 DEBUG (캡처된 gcloud/docker 출력까지 보임), --quiet 이면 WARNING.
    """
    level = logging.INFO
    if quiet:
        level = logging.WARNING
    elif verbosity >= 1:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        stream=sys.stdout,
    )


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
