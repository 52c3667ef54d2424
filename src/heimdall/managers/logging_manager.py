"""
# Logging Manager

Central factory for application loggers. Every module obtains its logger through
`get_logger()` so that handlers, format and level are configured exactly once from
`settings.DEFAULT_LOG_LEVEL` and `settings.LOG_FORMAT`.

## Prefixes

Modules tag their records with a bracketed prefix that identifies the component:

```python
logger = get_logger(prefix="[PostRepository]")
logger.info("Created post %s", post_id)
# 2026-01-01 10:00:00 | INFO | heimdall | [PostRepository] Created post 65a...
```
"""

import logging
import sys
from typing import Any, MutableMapping, Tuple, Union

from heimdall.config import settings

DEFAULT_LOGGER_NAME = "heimdall"

_configured = False


class PrefixAdapter(logging.LoggerAdapter):
    """Prepends a fixed component prefix to every message."""

    def __init__(self, logger: logging.Logger, prefix: str):
        super().__init__(logger, {"prefix": prefix})
        self.prefix = prefix

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        return f"{self.prefix} {msg}", kwargs


def _configure_root(logger: logging.Logger) -> None:
    global _configured
    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(settings.LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(settings.DEFAULT_LOG_LEVEL)
    logger.propagate = False
    _configured = True


def get_logger(name: str = DEFAULT_LOGGER_NAME, prefix: str = "") -> Union[logging.Logger, PrefixAdapter]:
    """
    Return a configured logger, optionally wrapped to prefix every message.

    Args:
        name: Logger name. Child names (`heimdall.repositories`) inherit the handler
            installed on the `heimdall` logger.
        prefix: Component tag such as `"[DATABASE]"`. Empty for a plain logger.

    Returns:
        A `logging.Logger`, or a `PrefixAdapter` when a prefix is given.
    """
    _configure_root(logging.getLogger(DEFAULT_LOGGER_NAME))
    logger = logging.getLogger(name)
    if prefix:
        return PrefixAdapter(logger, prefix)
    return logger
