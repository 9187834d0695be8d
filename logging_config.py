"""
Console logging for scanner runs.

Usage:
    import logging_config
    logging_config.setup()
"""

import logging
import sys

CONSOLE_FORMAT = "%(asctime)s | %(levelname)-7s | %(message)s"

# Transport libraries that log every RPC round trip at INFO/DEBUG
NOISY_LOGGERS = ("web3", "urllib3", "aiohttp")

APP_PACKAGES = ("dex", "crossdex_arbitrage")


def setup(level=logging.INFO):
    """
    Route every log line through one stdout handler.

    - RPC transport chatter is capped at WARNING
    - Module loggers lose the handlers ``get_logger`` attached at import
      time and inherit ``level`` from their package logger
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(logging.Formatter(fmt=CONSOLE_FORMAT, datefmt="%H:%M:%S"))
    root.addHandler(console)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    for name in APP_PACKAGES:
        logging.getLogger(name).setLevel(level)

    prefixes = tuple(f"{name}." for name in APP_PACKAGES)
    for name, logger in logging.Logger.manager.loggerDict.items():
        if isinstance(logger, logging.Logger) and name.startswith(prefixes):
            logger.handlers.clear()
            logger.setLevel(logging.NOTSET)


def setup_debug():
    """
    Verbose logging: every quote, fallback and RPC request.
    """
    setup(level=logging.DEBUG)
    logging.getLogger("web3").setLevel(logging.DEBUG)
