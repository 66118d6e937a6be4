"""ASGI middleware rejecting clients that exceed their request quota."""
from __future__ import annotations

import logging
import math
from datetime import timedelta
from typing import Any, Callable, Optional, Union

from starlette.responses import PlainTextResponse
from starlette.types import ASGIApp, Receive, Scope, Send

from reqlimit.config import LimiterConfig, LimiterConfigError
from reqlimit.identity import client_key_from_scope
from reqlimit.utils.address import AddressParseError
from reqlimit.window import Decision, WindowTracker

LOGGER = logging.getLogger(__name__)

RejectHook = Callable[[str, Decision, Scope], None]


def log_rejection(client_key: str, decision: Decision, scope: Scope) -> None:
    """Default rejection hook: emit a structured warning."""

    LOGGER.warning(
        "request limit exceeded",
        extra={
            "client_ip": client_key,
            "hits": decision.hits,
            "retry_after": round(decision.retry_after, 3),
        },
    )


class RequestLimiter:
    """Wraps an ASGI app and limits each client to ``config.limit`` requests
    per ``config.window`` seconds.

    Denied requests get ``config.rejection_status`` (429 by default) and never
    reach the wrapped app. A request whose client cannot be identified gets a
    500, since that points at the deployment rather than the client.
    """

    def __init__(
        self,
        app: ASGIApp,
        config: LimiterConfig,
        *,
        tracker: Optional[WindowTracker] = None,
        on_reject: Optional[RejectHook] = log_rejection,
    ) -> None:
        if tracker is not None and tracker.config != config:
            raise LimiterConfigError("tracker was built with a different configuration")
        self.app = app
        self.config = config
        self.tracker = tracker if tracker is not None else WindowTracker(config)
        self.on_reject = on_reject

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        try:
            client_key = client_key_from_scope(
                scope, trust_proxy_headers=self.config.trust_proxy_headers
            )
        except AddressParseError as exc:
            LOGGER.error("cannot identify client", extra={"client_ip": exc.address or None})
            response = PlainTextResponse(str(exc), status_code=500)
            await response(scope, receive, send)
            return

        decision = self.tracker.check(client_key)
        if not decision.allowed:
            if self.on_reject is not None:
                self.on_reject(client_key, decision, scope)
            response = PlainTextResponse(
                self.config.rejection_message,
                status_code=self.config.rejection_status,
                headers={"Retry-After": str(max(1, math.ceil(decision.retry_after)))},
            )
            await response(scope, receive, send)
            return

        try:
            await self.app(scope, receive, send)
        except Exception as exc:  # noqa: BLE001
            LOGGER.exception("Unhandled exception", extra={"client_ip": client_key})
            raise exc


def new(
    app: ASGIApp,
    limit: int,
    window: Union[float, timedelta],
    **options: Any,
) -> RequestLimiter:
    """Build a :class:`RequestLimiter` allowing ``limit`` requests per ``window``.

    Extra keyword arguments are :class:`LimiterConfig` fields, except
    ``on_reject`` and ``tracker`` which are handed to the limiter.
    """

    on_reject = options.pop("on_reject", log_rejection)
    tracker = options.pop("tracker", None)
    config = LimiterConfig(limit=limit, window=window, **options)
    return RequestLimiter(app, config, tracker=tracker, on_reject=on_reject)
