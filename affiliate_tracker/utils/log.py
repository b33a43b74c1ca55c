"""
Structured logging utility for money-moving flows
"""
import logging
import json
from datetime import datetime
from typing import Any


def get_logger(name: str) -> logging.Logger:
    """Get a module logger"""
    return logging.getLogger(name)


def log_ledger_event(logger: logging.Logger, step: str, ok: bool, **extra: Any):
    """
    Log a ledger event as one compact JSON line:
    {"at":"ledger","step":"...","ok":true,"ts":"...","extra":{...}}
    """
    log_data = {
        "at": "ledger",
        "step": step,
        "ok": ok,
        "ts": datetime.utcnow().isoformat(),
    }
    if extra:
        log_data["extra"] = extra

    log_msg = json.dumps(log_data, separators=(',', ':'), default=str)

    if ok:
        logger.info(log_msg)
    else:
        logger.warning(log_msg)
