"""Security configuration and middleware."""

from flask import abort, request


def configure_security_headers(app):
    """Configure security headers."""

    @app.after_request
    def add_security_headers(response):
        """Add security headers to all responses."""
        response.headers['X-Content-Type-Options'] = 'nosniff'
        response.headers['X-Frame-Options'] = 'DENY'
        response.headers['Referrer-Policy'] = 'no-referrer-when-downgrade'

        csp_directives = [
            "default-src 'self'",
            "img-src 'self' data: https:",
            "connect-src 'self'",
            "frame-ancestors 'none'",
            "base-uri 'self'",
            "form-action 'self'"
        ]
        response.headers['Content-Security-Policy'] = "; ".join(csp_directives)

        # HSTS for HTTPS (only add if using HTTPS)
        if request.is_secure:
            response.headers['Strict-Transport-Security'] = 'max-age=31536000; includeSubDomains'

        return response

    return app


def configure_secure_session(app):
    """Configure secure session settings."""
    app.config.update(
        SESSION_COOKIE_SECURE=app.config.get('ENV') == 'production',  # HTTPS only in production
        SESSION_COOKIE_HTTPONLY=True,
        SESSION_COOKIE_SAMESITE='Lax',
        PERMANENT_SESSION_LIFETIME=7200,  # 2 hours
    )
    app.config.setdefault('WTF_CSRF_SSL_STRICT', app.config.get('ENV') == 'production')

    return app


def validate_input_length(app):
    """Middleware to validate request payload size."""
    @app.before_request
    def limit_request_size():
        # Limit JSON payload size to 1MB
        if request.content_length and request.content_length > 1024 * 1024:
            abort(413)

    return app


def is_password_strong(password):
    """Validate password against policy."""
    if len(password) < 8:
        return False, "Password must be at least 8 characters long"
    if not any(c.isupper() for c in password):
        return False, "Password must contain at least one uppercase letter"
    if not any(c.islower() for c in password):
        return False, "Password must contain at least one lowercase letter"
    if not any(c.isdigit() for c in password):
        return False, "Password must contain at least one digit"
    return True, "Password meets requirements"


def auth_rate_limit():
    """Rate limit for authentication endpoints."""
    return "5 per minute"


def admin_rate_limit():
    """Rate limit for admin endpoints."""
    return "200 per hour"


__all__ = [
    'configure_security_headers',
    'configure_secure_session',
    'validate_input_length',
    'is_password_strong',
    'auth_rate_limit',
    'admin_rate_limit',
]
