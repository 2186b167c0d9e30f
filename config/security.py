# config/security.py
"""
Security Configuration for the Date Planner submission service
"""


class SecurityConfig:
    """Security configuration settings"""

    # Rate limiting: (max_requests, window_seconds)
    RATELIMIT_SUBMIT = (10, 15 * 60)   # 10 submissions per 15 minutes per client
    RATELIMIT_GLOBAL = (100, 60)       # 100 requests per minute across all clients
    RATELIMIT_GLOBAL_KEY = 'global'
    RATELIMIT_SWEEP_INTERVAL = 5 * 60  # seconds between expired-entry sweeps
    RATELIMIT_HEADERS_ENABLED = True

    # Client identity headers, first one present wins
    CLIENT_IP_HEADERS = ('X-Forwarded-For', 'X-Real-IP', 'X-Client-IP')

    # Payload limits
    MAX_PAYLOAD_BYTES = 10000
    MAX_CONTENT_LENGTH = 64 * 1024

    # CORS (public form, no credentials)
    CORS_ORIGINS = '*'
    CORS_METHODS = ['POST', 'OPTIONS']
    CORS_ALLOW_HEADERS = ['Content-Type', 'Authorization']

    # Security headers
    SECURITY_HEADERS = {
        'X-Content-Type-Options': 'nosniff',
        'X-Frame-Options': 'DENY',
        'X-XSS-Protection': '1; mode=block',
        'Strict-Transport-Security': 'max-age=31536000; includeSubDomains',
        'Referrer-Policy': 'strict-origin-when-cross-origin',
        'Cache-Control': 'no-store, no-cache, must-revalidate, proxy-revalidate',
        'Pragma': 'no-cache',
        'Expires': '0'
    }

    # Notification retry policy
    NOTIFY_MAX_ATTEMPTS = 3
    NOTIFY_BACKOFF_BASE = 2.0  # seconds; sleeps 2s, 4s, ...
