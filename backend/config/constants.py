# backend/config/constants.py
from config.env import ROLE_CACHE_TTL_SECONDS

# -----------------------------
# ROLE CACHE
# -----------------------------

ROLE_CACHE_KEY = "userRole"
ROLE_CACHE_TIMESTAMP_KEY = "userRoleTimestamp"
ROLE_CACHE_TTL = ROLE_CACHE_TTL_SECONDS   # one hour unless overridden

# -----------------------------
# NAVIGATION
# -----------------------------

LOGIN_PATH = "/login"
DASHBOARD_ROOT = "/dashboard"

ROLE_HOME_PATHS = {
    "admin": "/dashboard/all-products",
    "manager": "/dashboard/manage-products",
    "buyer": "/dashboard/my-orders",
}

# -----------------------------
# ORDERS
# -----------------------------

BOOKING_LOCATION = "Online Store"
PRODUCTION_LOCATION = "Factory"

PAYMENT_OPTIONS = {"Cash on Delivery", "PayFast"}

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100
