"""
Admin web configuration. Route names follow the portfolio admin dashboard.
"""
import os

# Login surface; guarded routes redirect here with ?next=<attempted path>
LOGIN_ROUTE = os.environ.get("ADMIN_LOGIN_ROUTE", "/admin")

# Landing page after login when no ?next is given
HOME_ROUTE = os.environ.get("ADMIN_HOME_ROUTE", "/admin/dashboard")

# Backend resource shown on the dashboard
PROFILE_PATH = os.environ.get("ADMIN_PROFILE_PATH", "/api/users/me/")
