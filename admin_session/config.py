"""
Admin session configuration. Backend paths match the portfolio REST API.
No secrets in this file; credentials only ever come from the login form.
"""
import os

# REST backend base URL; relative request URLs are resolved against it
API_BASE_URL = os.environ.get("ADMIN_API_BASE_URL", "http://127.0.0.1:8001").rstrip("/")

# Login: {email, password} -> {access, refresh}
LOGIN_PATH = os.environ.get("ADMIN_LOGIN_PATH", "/api/users/login/")

# Renewal: {refresh} -> {access} (+ rotated refresh when the backend rotates)
REFRESH_PATH = os.environ.get("ADMIN_REFRESH_PATH", "/api/users/token/refresh/")

# Storage keys for the credential pair
ACCESS_KEY = "access_token"
REFRESH_KEY = "refresh_token"

# Safety window before expiry for ensure-fresh (seconds)
FRESHNESS_MARGIN_SECONDS = int(os.environ.get("ADMIN_FRESHNESS_MARGIN_SECONDS", "20"))

# Background renewal fires this long before expiry (seconds)
RENEWAL_LEAD_SECONDS = int(os.environ.get("ADMIN_RENEWAL_LEAD_SECONDS", "30"))

# Floor for the background renewal delay so an expired token can't tight-loop
MIN_RENEWAL_DELAY_SECONDS = float(os.environ.get("ADMIN_MIN_RENEWAL_DELAY_SECONDS", "1.0"))

# Transport timeout for backend calls (seconds)
REQUEST_TIMEOUT_SECONDS = float(os.environ.get("ADMIN_REQUEST_TIMEOUT_SECONDS", "10.0"))

# Extra renewal attempts on transport failure only (0 = fail closed immediately)
RENEWAL_RETRIES = int(os.environ.get("ADMIN_RENEWAL_RETRIES", "0"))
RENEWAL_BACKOFF_SECONDS = float(os.environ.get("ADMIN_RENEWAL_BACKOFF_SECONDS", "0.5"))

# JSON file standing in for browser local storage; empty = in-memory only
TOKEN_STORAGE_PATH = os.environ.get("ADMIN_TOKEN_STORAGE_PATH", "").strip() or None
