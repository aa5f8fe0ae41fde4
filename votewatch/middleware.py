import time
from functools import wraps

from sanic.request import Request
from sanic import response
from sanic.log import logger as logr

from .errors import VoteWatchError


def elapsed_ms(since):
    return (time.perf_counter() - since) * 1000.0


async def start_timer(request: Request):
    request.ctx.received_at = time.perf_counter()


async def add_server_timing_header(request: Request, res: response.HTTPResponse):
    received_at = getattr(request.ctx, 'received_at', None)
    if received_at is None:
        return

    # Appends to whatever `measure` set, e.g. 'votes;dur=812.004,total;dur=813.250'
    timing = res.headers.get("Server-Timing", "")
    res.headers["Server-Timing"] = timing + f'total;dur={elapsed_ms(received_at):.3f}'


def measure(handler):
    """Reports the handler's own time as a Server-Timing metric named after it."""

    metric = handler.__name__

    @wraps(handler)
    async def wrapper(request, *args, **kwargs):
        began = time.perf_counter()
        res = await handler(request, *args, **kwargs)
        res.headers["Server-Timing"] = f'{metric};dur={elapsed_ms(began):.3f},'
        return res

    return wrapper


async def handle_votewatch_error(request: Request, exception: VoteWatchError):
    log = logr.error if exception.status_code >= 500 else logr.info
    log(f"{type(exception).__name__} on {request.path}: {exception}")

    return response.json({'error': type(exception).__name__, 'message': str(exception)},
                         status=exception.status_code)
