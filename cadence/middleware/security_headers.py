"""
Security headers middleware.

Adds X-Content-Type-Options, X-Frame-Options, Strict-Transport-Security,
Referrer-Policy, Permissions-Policy and a JSON-API Content-Security-Policy to
every response, without overriding headers a view already set.
"""


def init_security_headers(app):
    """Register after_request handler that injects security headers."""

    @app.after_request
    def _add_security_headers(response):
        # API only: nothing should be rendered or framed
        response.headers.setdefault("Content-Security-Policy", "default-src 'none'; frame-ancestors 'none'")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Strict-Transport-Security", "max-age=31536000; includeSubDomains")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        response.headers.setdefault("Permissions-Policy", "camera=(), microphone=(), geolocation=(), payment=()")
        response.headers.pop("Server", None)
        return response
