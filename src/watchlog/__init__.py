"""
watchlog - In-process event timing recorder.

Mark the start and stop of named events, loop iterations and single
instants; collect them with timestamps, durations and tags in one
document, then serialize it to JSON at the end of a process or request.

  - Recorder             : the record-keeping engine
  - @watch(recorder)     : function/method decorator
  - watch_block()        : context manager for code blocks
  - watch_call()         : time a single call without decorating
  - watch_loop()         : record each iteration of an iterable
  - WsgiMiddleware  : WSGI-compatible (Flask, Django, etc.)
  - AsgiMiddleware  : ASGI-compatible (FastAPI, Starlette, etc.)
  - flask_extension : Flask shorthand for WsgiMiddleware
  - print_summary()      : print a report to stdout
  - save_to_file()       : persist a recorder's document to a JSON file

There is no global recorder: construct one and pass it where needed.
"""

from .core.clock import MemorySource
from .core.recorder import Recorder
from .core.records import Document, Event, InitMetadata

from .interfaces.decorators import watch, watch_block, watch_call, watch_loop
from .interfaces.middleware import (
    RECORDER_KEY,
    AsgiMiddleware,
    WsgiMiddleware,
    flask_extension,
)

from .output.formatter import log_records, print_summary, save_to_file

__all__ = [
    "Recorder",
    "MemorySource",
    "Document",
    "Event",
    "InitMetadata",
    "watch",
    "watch_block",
    "watch_call",
    "watch_loop",
    "WsgiMiddleware",
    "AsgiMiddleware",
    "flask_extension",
    "RECORDER_KEY",
    "print_summary",
    "save_to_file",
    "log_records",
]
