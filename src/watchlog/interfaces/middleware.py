"""
Web framework middleware giving every HTTP request its own Recorder.

Provides:
  - WsgiMiddleware  : WSGI-compatible (Flask, Django, etc.)
  - AsgiMiddleware  : ASGI-compatible (FastAPI, Starlette, etc.)
  - flask_extension : attach WsgiMiddleware to a Flask app

The application reaches the request's recorder under RECORDER_KEY in
the WSGI environ or the ASGI scope. When the request ends the recorder
is finalized and handed to the sink (by default, logged as JSON).
"""

from typing import Callable, Optional

from ..core.recorder import Recorder
from ..output.formatter import log_records

RECORDER_KEY = "watchlog.recorder"
REQUEST_GROUP = "request"

Sink = Callable[[Recorder], None]


def _begin(recorder: Recorder, method: str, path: str) -> None:
    """Initialize a per-request recorder and open the request event."""
    recorder.init()
    recorder.tag("method", method)
    recorder.tag("path", path)
    recorder.start(REQUEST_GROUP)


def _finish(recorder: Recorder, status: Optional[int], sink: Sink) -> None:
    """Close the request event, finalize and hand the recorder to the sink."""
    recorder.stop(REQUEST_GROUP)
    if status is not None:
        recorder.tag("status", status)
    recorder.finalize()
    sink(recorder)


class _RecordedBody:
    """
    Response iterable that finishes the request recorder on close().

    WSGI servers call close() once the body has been sent, so time spent
    producing a streamed body is part of the request event.
    """

    def __init__(self, body, on_close: Callable[[], None]):
        self._body = body
        self._on_close = on_close
        self._closed = False

    def __iter__(self):
        return iter(self._body)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            close = getattr(self._body, "close", None)
            if close is not None:
                close()
        finally:
            self._on_close()


class WsgiMiddleware:
    """
    WSGI middleware that records each request in a fresh Recorder.

    Compatible with Flask, Django, Bottle, and any WSGI-compliant framework.

    Example (Flask):
        app.wsgi_app = WsgiMiddleware(app.wsgi_app)

        @app.route("/")
        def index():
            recorder = request.environ[RECORDER_KEY]
            with watch_block(recorder, "db"):
                ...
    """

    def __init__(self, app, sink: Optional[Sink] = None,
                 recorder_factory: Callable[[], Recorder] = Recorder):
        """
        Wrap a WSGI application.

        Args:
            app: The inner WSGI application callable
            sink: Receives each finished recorder; defaults to logging it
            recorder_factory: Builds the per-request recorder
        """
        self._app = app
        self._sink = sink or log_records
        self._factory = recorder_factory

    def __call__(self, environ, start_response):
        """Intercept each WSGI request, record it, then pass through."""
        method = environ.get("REQUEST_METHOD", "UNKNOWN")
        path = environ.get("PATH_INFO", "/")

        recorder = self._factory()
        environ[RECORDER_KEY] = recorder
        status = None

        def recording_start_response(status_line, headers, exc_info=None):
            nonlocal status
            status = int(status_line.split(" ", 1)[0])
            return start_response(status_line, headers, exc_info)

        _begin(recorder, method, path)
        try:
            body = self._app(environ, recording_start_response)
        except BaseException:
            _finish(recorder, status, self._sink)
            raise

        return _RecordedBody(body, lambda: _finish(recorder, status, self._sink))


class AsgiMiddleware:
    """
    ASGI middleware that records each HTTP request in a fresh Recorder.

    Compatible with FastAPI, Starlette, Django Channels, and any ASGI app.

    Example (FastAPI):
        app.add_middleware(AsgiMiddleware)
        # or with a custom sink:
        app = AsgiMiddleware(app, sink=my_sink)
    """

    def __init__(self, app, sink: Optional[Sink] = None,
                 recorder_factory: Callable[[], Recorder] = Recorder):
        """
        Wrap an ASGI application.

        Args:
            app: The inner ASGI application callable
            sink: Receives each finished recorder; defaults to logging it
            recorder_factory: Builds the per-request recorder
        """
        self._app = app
        self._sink = sink or log_records
        self._factory = recorder_factory

    async def __call__(self, scope, receive, send):
        """Intercept each ASGI lifecycle call; record HTTP requests only."""
        if scope.get("type") != "http":
            await self._app(scope, receive, send)
            return

        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "/")

        recorder = self._factory()
        scope[RECORDER_KEY] = recorder
        status = None

        async def recording_send(message):
            nonlocal status
            if message.get("type") == "http.response.start":
                status = message.get("status")
            await send(message)

        _begin(recorder, method, path)
        try:
            await self._app(scope, receive, recording_send)
        finally:
            _finish(recorder, status, self._sink)


def flask_extension(app, sink: Optional[Sink] = None):
    """
    Convenience function to attach WSGI recording middleware to a Flask app.

    Args:
        app: Flask application instance
        sink: Optional receiver for each finished request recorder

    Returns:
        The same app instance (mutated in place)
    """
    app.wsgi_app = WsgiMiddleware(app.wsgi_app, sink=sink)
    return app
