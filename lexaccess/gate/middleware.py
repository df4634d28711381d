"""
Route gate middleware.

Every request is classified against the route policy and evaluated on its
own; the gate keeps no state between requests. It only checks the session
token. The verification flag needs a profile lookup, which the page
dependency `require_verified_page` does.

Any failure while checking a token ends in a redirect to sign-in. The gate
never lets a request through because something went wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response

from lexaccess.auth.sessions import CookieDirective
from lexaccess.auth.tokens import TokenCodec
from lexaccess.core.errors import TokenExpiredError, TokenInvalidError
from lexaccess.gate.policy import RouteClass, RoutePolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GateDecision:
    allowed: bool
    route_class: RouteClass
    redirect_to: str | None = None
    clear_cookie: bool = False
    reason: str = ""

    @classmethod
    def allow(cls, route_class: RouteClass, reason: str) -> GateDecision:
        return cls(allowed=True, route_class=route_class, reason=reason)


class RouteGate:
    """Decides, per request, whether a page route may be reached."""

    def __init__(self, policy: RoutePolicy, codec: TokenCodec, sign_in_path: str = "/auth"):
        self.policy = policy
        self.codec = codec
        self.sign_in_path = sign_in_path

    def evaluate(self, path: str, token: str | None) -> GateDecision:
        route_class = self.policy.classify(path)

        if not route_class.requires_token:
            return GateDecision.allow(route_class, route_class.value)

        if not token:
            return self._deny(route_class, "no token", clear_cookie=False)

        try:
            claims = self.codec.verify(token)
        except TokenExpiredError:
            logger.info(f"Expired session token on {path}")
            return self._deny(route_class, "token expired")
        except TokenInvalidError as e:
            logger.info(f"Invalid session token on {path}: {e.detail}")
            return self._deny(route_class, "token invalid")
        except Exception:
            logger.exception(f"Token verification failed unexpectedly on {path}")
            return self._deny(route_class, "verification error")

        return GateDecision.allow(route_class, f"token for {claims.user_id}")

    def _deny(self, route_class: RouteClass, reason: str, clear_cookie: bool = True) -> GateDecision:
        return GateDecision(
            allowed=False,
            route_class=route_class,
            redirect_to=self.sign_in_path,
            clear_cookie=clear_cookie,
            reason=reason,
        )


class RouteGateMiddleware(BaseHTTPMiddleware):
    """
    Applies `RouteGate` decisions to requests.

    The gate is built at startup (it needs the token codec) and read from
    `app.state.route_gate`.
    """

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        gate: RouteGate | None = getattr(request.app.state, "route_gate", None)
        if gate is None:
            logger.error("Route gate is not configured; refusing request")
            return JSONResponse({"error": "Server configuration error"}, status_code=500)

        settings = request.app.state.settings
        path = request.url.path
        decision = gate.evaluate(path, request.cookies.get(settings.auth_cookie_name))
        logger.debug(f"Gate {path}: {decision.route_class.value}, allowed={decision.allowed} ({decision.reason})")

        if decision.allowed:
            return await call_next(request)

        response = RedirectResponse(decision.redirect_to, status_code=303)
        if decision.clear_cookie:
            CookieDirective.clear(settings).apply(response)
        return response
