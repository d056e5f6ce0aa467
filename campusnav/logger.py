"""Logging module for campusnav."""

import json
from datetime import datetime
from typing import Optional, Callable

LEVELS = {"debug": 10, "info": 20, "warning": 30, "error": 40}


class Logger:
    """Logs navigation events to stdout and an optional file.

    Lines read `[timestamp] LEVEL message | {json}`. Fields set with
    set_context() (the navigation session number, for one) are merged into
    the data of every line until cleared, so a log holding several sessions
    can be split apart again.
    """

    def __init__(self, log_path: Optional[str] = None, callback: Optional[Callable] = None,
                 echo: bool = True, level: str = "info"):
        self.log_path = log_path
        self.callback = callback
        self.echo = echo
        self.min_level = LEVELS[level]
        self.context: dict = {}
        self.file = None
        if log_path:
            self.file = open(log_path, "a")
            self._write_header()

    def _write_header(self):
        if self.file:
            self.file.write(f"\n{'='*60}\n")
            self.file.write(f"Campus Navigation Log - {datetime.now().isoformat()}\n")
            self.file.write(f"{'='*60}\n\n")
            self.file.flush()

    def set_context(self, **fields):
        """Attach fields to every following line; a None value removes the field"""
        for name, value in fields.items():
            if value is None:
                self.context.pop(name, None)
            else:
                self.context[name] = value

    def log(self, message: str, data: Optional[dict] = None, level: str = "info"):
        """Log a message with optional structured data"""
        if LEVELS[level] < self.min_level:
            return

        if self.context:
            data = {**self.context, **(data or {})}
        line = f"[{datetime.now().isoformat()}] {level.upper()} {message}"
        if data:
            line += f" | {json.dumps(data, default=str)}"
        if self.echo:
            print(line)
        if self.file:
            self.file.write(line + "\n")
            self.file.flush()
        if self.callback:
            self.callback(message, data)

    def warning(self, message: str, data: Optional[dict] = None):
        self.log(message, data, level="warning")

    def error(self, message: str, data: Optional[dict] = None):
        self.log(message, data, level="error")

    def close(self):
        if self.file:
            self.file.close()
            self.file = None
