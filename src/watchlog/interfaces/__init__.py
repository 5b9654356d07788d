"""All user-facing recording interfaces."""
from .decorators import watch, watch_block, watch_call, watch_loop
from .middleware import WsgiMiddleware, AsgiMiddleware, flask_extension, RECORDER_KEY
