"""Logging setup for the command-line entrypoints.

Library modules only ever do ``logger = logging.getLogger(__name__)``;
handlers are attached here, once, by whichever script is running.

Records carry contextual fields (``app``, ``level``, ...) set with
``push_context``.  They are rendered after the level name on the console
and as extra keys in JSON lines::

    2026-03-02T09:14:05.120Z | INFO     | app=pyramid level=7 | Wrote ...
    {"t": "2026-03-02T09:14:05.120000+00:00", "lvl": "INFO", "level": 7, ...}

Calling ``setup_logging`` again replaces the handlers it installed
earlier instead of stacking new ones.
"""

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

_context: contextvars.ContextVar[Dict[str, Any]] = contextvars.ContextVar(
    "sierpinski_log_context", default={}
)

# handlers installed by the last setup_logging() call
_installed: List[logging.Handler] = []

_LEVEL_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[35m",
}
_RESET = "\033[0m"


class ContextFormatter(logging.Formatter):
    """Render records as ``human`` text or ``json`` lines with context fields.

    Parameters
    ----------
    fmt_mode : str
        "human" or "json"
    use_color : bool
        Colour the level name; only honoured when stderr is a terminal
    """

    def __init__(self, fmt_mode: str = "human", use_color: bool = True):
        super().__init__()
        if fmt_mode not in ("human", "json"):
            raise ValueError(f"fmt_mode must be 'human' or 'json', got {fmt_mode!r}")
        self.fmt_mode = fmt_mode
        self.use_color = use_color and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        when = datetime.fromtimestamp(record.created, tz=timezone.utc)
        fields = current_context()
        if self.fmt_mode == "json":
            payload = {
                "t": when.isoformat(),
                "lvl": record.levelname,
                "name": record.name,
                "msg": record.getMessage(),
                **fields,
            }
            if record.exc_info:
                payload["exc"] = self.formatException(record.exc_info)
            return json.dumps(payload, default=str)

        level = f"{record.levelname:8s}"
        if self.use_color:
            level = _LEVEL_COLORS.get(record.levelname, "") + level + _RESET
        stamp = when.strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
        head = f"{stamp} | {level} |"
        if fields:
            head += " " + " ".join(f"{k}={v}" for k, v in fields.items()) + " |"
        text = f"{head} {record.getMessage()}"
        if record.exc_info:
            text += "\n" + self.formatException(record.exc_info)
        return text


def setup_logging(
    log_level: str = "INFO",
    log_file: Optional[str] = None,
    *,
    json_format: bool = False,
    color: bool = True,
    to_stderr: bool = True,
    capture_warnings: bool = True,
    context: Optional[Dict[str, Any]] = None,
) -> List[logging.Handler]:
    """Attach console and/or file handlers to the root logger.

    Parameters
    ----------
    log_level : str
        Root level name, e.g. "INFO"
    log_file : str, optional
        Also log to this file (parents created)
    json_format : bool
        JSON lines in the file handler instead of human text
    color : bool
        Coloured level names on a terminal
    to_stderr : bool
        Install the console handler
    capture_warnings : bool
        Route ``warnings.warn`` through logging
    context : dict, optional
        Fields pushed with ``push_context`` before returning

    Returns
    -------
    list[logging.Handler]
        The handlers now installed
    """
    root = logging.getLogger()
    while _installed:
        handler = _installed.pop()
        root.removeHandler(handler)
        handler.close()

    root.setLevel(log_level.upper())

    if to_stderr:
        console = logging.StreamHandler(sys.stderr)
        console.setFormatter(ContextFormatter("human", use_color=color))
        _installed.append(console)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        to_file = logging.FileHandler(log_file, encoding="utf-8")
        to_file.setFormatter(
            ContextFormatter("json" if json_format else "human", use_color=False)
        )
        _installed.append(to_file)

    for handler in _installed:
        root.addHandler(handler)

    logging.captureWarnings(capture_warnings)
    if context:
        push_context(**context)
    return list(_installed)


def push_context(**fields: Any) -> None:
    """Add *fields* to every record logged from now on.

    Examples
    --------
    >>> push_context(app="pyramid", level=7)
    """
    _context.set({**_context.get(), **fields})


def pop_context(keys: Optional[List[str]] = None) -> None:
    """Drop the named context fields, or all of them when *keys* is None."""
    if keys is None:
        _context.set({})
        return
    _context.set({k: v for k, v in _context.get().items() if k not in keys})


def current_context() -> Dict[str, Any]:
    return dict(_context.get())
