"""
Development backend configuration. Stands in for the portfolio REST API's auth endpoints.
No credentials in this file; the seed user comes from env.
"""
import os

# HS256 signing secret. If unset, a random one is generated per process (tokens die on restart).
SIGNING_SECRET = os.environ.get("DEV_BACKEND_SIGNING_SECRET", "").strip() or None

# Access token lifetime (seconds). Short so renewal is exercised during development.
ACCESS_TOKEN_EXPIRES = int(os.environ.get("DEV_BACKEND_ACCESS_TOKEN_EXPIRES", "300"))

# Refresh token lifetime (seconds)
REFRESH_TOKEN_EXPIRES = int(os.environ.get("DEV_BACKEND_REFRESH_TOKEN_EXPIRES", "86400"))

# Rotate refresh tokens on use (old one becomes invalid). Single-use is the conservative default.
ROTATE_REFRESH_TOKENS = os.environ.get("DEV_BACKEND_ROTATE_REFRESH", "1").lower() not in ("0", "false", "no")

# Optional seed admin (no default credentials)
SEED_EMAIL = os.environ.get("DEV_BACKEND_SEED_EMAIL")
SEED_PASSWORD = os.environ.get("DEV_BACKEND_SEED_PASSWORD")
