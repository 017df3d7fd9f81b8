"""Explicit observation hooks.

The host application owns an ``EventHub`` and emits events into it; the
shipper subscribes while it is running. Nothing here patches globals:
``HubLogHandler`` is attached to a logger by the host, and either
``httpx_event_hooks`` or ``ObservedTransport`` goes on the host's own HTTP client.
"""

import logging
import time
import traceback
from typing import Callable

import httpx

logger = logging.getLogger(__name__)

# Request extension holding the monotonic send time
_START_KEY = "mobile_logger.started"

EVENT_KINDS = ("error", "interaction", "navigation", "network", "notification")


class EventHub:
    def __init__(self):
        self._subscribers: dict[str, list[Callable]] = {kind: [] for kind in EVENT_KINDS}

    def subscribe(self, kind: str, callback: Callable[[dict], None]) -> Callable[[], None]:
        """Register ``callback`` for ``kind`` and return a function that unregisters it."""
        if kind not in self._subscribers:
            raise ValueError(f"unknown event kind: {kind!r}")
        self._subscribers[kind].append(callback)

        def unsubscribe():
            try:
                self._subscribers[kind].remove(callback)
            except ValueError:
                pass

        return unsubscribe

    def subscriber_count(self, kind: str) -> int:
        return len(self._subscribers.get(kind, []))

    def emit(self, kind: str, **payload) -> None:
        for callback in list(self._subscribers.get(kind, [])):
            try:
                callback(payload)
            except Exception:
                logger.exception("Observer for %r failed", kind)

    # Convenience emitters

    def error(self, exc: BaseException | None = None, message: str | None = None,
              context: str = "", fatal: bool = False) -> None:
        stack = ""
        if exc is not None:
            stack = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
            message = message or str(exc) or type(exc).__name__
        self.emit(
            "error",
            message=message or "Unknown error",
            stack=stack,
            context=context,
            fatal=fatal,
            exc_type=type(exc).__name__ if exc is not None else None,
        )

    def interaction(self, action: str, target: str, screen: str = "", **details) -> None:
        self.emit("interaction", action=action, target=target, screen=screen, details=details)

    def navigation(self, from_screen: str, to_screen: str, **details) -> None:
        self.emit("navigation", from_screen=from_screen, to_screen=to_screen, details=details)

    def network(self, url: str, method: str, status: int | None, duration_ms: int,
                error: str | None = None) -> None:
        self.emit("network", url=url, method=method, status=status,
                  duration_ms=duration_ms, error=error)

    def notification(self, title: str, body: str = "", **details) -> None:
        self.emit("notification", title=title, body=body, details=details)


class HubLogHandler(logging.Handler):
    """Forwards ERROR-and-above records from the host's loggers as ``error`` events."""

    def __init__(self, hub: EventHub, level=logging.ERROR):
        super().__init__(level=level)
        self._hub = hub

    def emit(self, record: logging.LogRecord) -> None:
        # Our own diagnostics must not feed back into the shipper
        if record.name.startswith("mobile_logger"):
            return
        try:
            stack = ""
            if record.exc_info and record.exc_info[1] is not None:
                stack = "".join(traceback.format_exception(*record.exc_info))
            self._hub.emit(
                "error",
                message=record.getMessage(),
                stack=stack,
                context=f"{record.pathname}:{record.lineno}",
                fatal=record.levelno >= logging.CRITICAL,
                exc_type=record.exc_info[0].__name__ if record.exc_info and record.exc_info[0] else None,
            )
        except Exception:
            self.handleError(record)


def _elapsed_ms(request) -> int:
    start = request.extensions.get(_START_KEY)
    return round((time.monotonic() - start) * 1000) if start is not None else 0


def httpx_event_hooks(hub: EventHub, asynchronous: bool = True) -> dict:
    """Build ``event_hooks`` for an httpx client that report each response to ``hub``.

    Hooks only see requests that got a response; wrap the client's transport
    in ``ObservedTransport`` to report connection failures as well. Do not
    install either on the shipper's own delivery client.
    """

    def on_request(request):
        request.extensions[_START_KEY] = time.monotonic()

    def on_response(response):
        request = response.request
        hub.network(str(request.url), request.method, response.status_code, _elapsed_ms(request))

    if not asynchronous:
        return {"request": [on_request], "response": [on_response]}

    async def on_request_async(request):
        on_request(request)

    async def on_response_async(response):
        on_response(response)

    return {"request": [on_request_async], "response": [on_response_async]}


class ObservedTransport(httpx.AsyncBaseTransport):
    """Wraps an async httpx transport and reports every request to ``hub``.

    Requests that fail before a response arrives are reported with
    ``status=None`` and the error text, then the error is re-raised.
    Use it instead of ``httpx_event_hooks``, not alongside them.
    """

    def __init__(self, hub: EventHub, transport: httpx.AsyncBaseTransport | None = None):
        self._hub = hub
        self._transport = transport or httpx.AsyncHTTPTransport()

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        request.extensions[_START_KEY] = time.monotonic()
        try:
            response = await self._transport.handle_async_request(request)
        except httpx.TransportError as exc:
            self._hub.network(str(request.url), request.method, None, _elapsed_ms(request),
                              error=str(exc) or type(exc).__name__)
            raise
        self._hub.network(str(request.url), request.method, response.status_code,
                          _elapsed_ms(request))
        return response

    async def aclose(self) -> None:
        await self._transport.aclose()
