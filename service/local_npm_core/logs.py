# 2026-10-14  local_npm_core/logs.py

import logging

# Level names accepted by `--log-level`. The cache's own event kinds
# (`sync`, `hit`, `miss`) are logged at INFO with a prefix, so choosing any of
# them shows the whole INFO stream.
_LEVELS = {
    'error':   logging.ERROR,
    'warn':    logging.WARNING,
    'warning': logging.WARNING,
    'info':    logging.INFO,
    'sync':    logging.INFO,
    'hit':     logging.INFO,
    'miss':    logging.INFO,
    'cached':  logging.INFO,
    'request': logging.DEBUG,
    'debug':   logging.DEBUG,
}

_configured = False


def level_from_name(name: str) -> int:
    """Unknown names fall back to ERROR."""
    return _LEVELS.get((name or 'error').strip().lower(), logging.ERROR)


def configure_logging(level_name: str) -> None:
    """Install a stream handler on the root logger, once per process."""
    global _configured
    level = level_from_name(level_name)
    if _configured:
        logging.getLogger().setLevel(level)
        return
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # Per-request access lines only when asked for.
    logging.getLogger('werkzeug').setLevel(
        logging.INFO if level <= logging.DEBUG else logging.WARNING
    )
    _configured = True
