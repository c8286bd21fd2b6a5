"""Admin token check and per-client request throttling for the API"""
import os
import hmac
import threading
import time
from functools import wraps
from flask import request, jsonify, current_app
import logging

logger = logging.getLogger(__name__)

# "<client ip>:<endpoint>" -> timestamps of requests still inside their window
rate_limit_storage = {}
_rate_limit_lock = threading.Lock()
_last_sweep = [0.0]

SWEEP_INTERVAL_SECONDS = 300
TOKEN_PREFIXES = ('Bearer ', 'API-Key ')


def _provided_token(auth_header):
    for prefix in TOKEN_PREFIXES:
        if auth_header.startswith(prefix):
            return auth_header[len(prefix):]
    return auth_header


def check_admin_auth():
    """True when the request carries ADMIN_API_TOKEN, or no token is configured"""
    admin_token = os.environ.get('ADMIN_API_TOKEN')
    if not admin_token:
        logger.warning("ADMIN_API_TOKEN not configured - cafe creation and discovery are open to anyone")
        return True

    auth_header = request.headers.get('Authorization')
    if not auth_header:
        return False
    return hmac.compare_digest(_provided_token(auth_header), admin_token)


def admin_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not check_admin_auth():
            logger.warning(f"Rejected admin call to {request.endpoint} from {request.remote_addr}")
            return jsonify({
                "success": False,
                "error": "Unauthorized. Admin authentication required."
            }), 401
        return f(*args, **kwargs)
    return decorated_function


def sweep_rate_limits(now=None, max_age=3600):
    """Drop timestamps older than max_age and forget clients with none left.

    Callers must hold _rate_limit_lock.
    """
    now = time.time() if now is None else now
    for key in list(rate_limit_storage):
        recent = [t for t in rate_limit_storage[key] if now - t < max_age]
        if recent:
            rate_limit_storage[key] = recent
        else:
            del rate_limit_storage[key]
    _last_sweep[0] = now


def _allow(key, max_requests, window_seconds, now):
    with _rate_limit_lock:
        if now - _last_sweep[0] >= SWEEP_INTERVAL_SECONDS:
            sweep_rate_limits(now)

        recent = [t for t in rate_limit_storage.get(key, []) if now - t < window_seconds]
        allowed = len(recent) < max_requests
        if allowed:
            recent.append(now)
        rate_limit_storage[key] = recent
        return allowed


def rate_limit(max_requests=10, window_seconds=60):
    """Sliding-window limit per client address and endpoint.

    Disabled when the app sets RATE_LIMIT_ENABLED to False.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not current_app.config.get('RATE_LIMIT_ENABLED', True):
                return f(*args, **kwargs)

            key = f"{request.remote_addr}:{request.endpoint}"
            if not _allow(key, max_requests, window_seconds, time.time()):
                logger.warning(f"Rate limit exceeded for {key}")
                return jsonify({
                    "success": False,
                    "error": f"Rate limit exceeded. Maximum {max_requests} requests per {window_seconds} seconds."
                }), 429

            return f(*args, **kwargs)
        return decorated_function
    return decorator
