"""Redirect responses for tlsgate.

Two ways to send a client to the target URL:

  bypass_warning=True:
      Immediate redirect with a Location header.
      GET/HEAD → 302. Any other method → 307, so the client re-sends the same
      method and body instead of silently dropping submitted form data.

  bypass_warning=False:
      HTTP 200 HTML page telling the user they are about to switch between a
      secure and an insecure connection, with a link to continue. The page is
      never cached.

Whatever the redirector returns is sent as-is; the downstream application and
the enrichers never run for that request.
"""

from __future__ import annotations

import html
from typing import Protocol

from starlette.responses import HTMLResponse, Response

from tlsgate.constants import (
    HTTPS_SCHEME,
    METHOD_PRESERVING_REDIRECT_STATUS,
    REDIRECT_STATUS,
    SAFE_REDIRECT_METHODS,
)
from tlsgate.models.request import EvaluationContext
from tlsgate.utils.logger import get_logger

logger = get_logger(__name__)

_WARNING_PAGE = """<!DOCTYPE html>
<html>
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<title>{title}</title>
</head>
<body>
<h1>{title}</h1>
<p>{message}</p>
<p><a id="continue" href="{href}">Continue to {href}</a></p>
</body>
</html>
"""


class LocationRedirector(Protocol):
    def redirect(
        self,
        context: EvaluationContext,
        target_url: str,
        bypass_warning: bool,
    ) -> Response:
        ...


class StandardRedirector:
    """Default redirector."""

    def redirect(
        self,
        context: EvaluationContext,
        target_url: str,
        bypass_warning: bool,
    ) -> Response:
        if bypass_warning:
            return build_redirect_response(context, target_url)
        return build_warning_response(target_url)


def build_redirect_response(context: EvaluationContext, target_url: str) -> Response:
    """Build the immediate 302/307 redirect.

    The Location header is set directly rather than through RedirectResponse,
    which percent-quotes the URL. ``target_url`` holds the request's raw
    bytes decoded as latin-1, and header values are encoded back as latin-1,
    so the client receives the path and query exactly as it sent them.
    """
    status_code = (
        REDIRECT_STATUS
        if context.method in SAFE_REDIRECT_METHODS
        else METHOD_PRESERVING_REDIRECT_STATUS
    )
    logger.info(
        "Redirecting request",
        status_code=status_code,
        method=context.method,
        target_url=target_url,
    )
    return Response(status_code=status_code, headers={"location": target_url})


def build_warning_response(target_url: str) -> HTMLResponse:
    """Build the intermediate page warning about the channel switch."""
    to_secure = target_url.lower().startswith(f"{HTTPS_SCHEME}://")
    if to_secure:
        title = "Switching to a secure connection"
        message = "This page must be viewed over a secure (HTTPS) connection."
    else:
        title = "Leaving the secure connection"
        message = (
            "This page is served over an insecure (HTTP) connection. "
            "Information you send from it will not be encrypted."
        )

    logger.info("Rendering security switch warning page", target_url=target_url)
    body = _WARNING_PAGE.format(
        title=html.escape(title),
        message=html.escape(message),
        href=html.escape(target_url, quote=True),
    )
    return HTMLResponse(
        content=body,
        status_code=200,
        headers={"Cache-Control": "no-store"},
    )
