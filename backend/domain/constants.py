"""
Domain constants used across services/routers.
"""

# Order numbers: ORDER-<epoch ms>-<suffix>
ORDER_NUMBER_PREFIX = "ORDER-"
ORDER_NUMBER_SUFFIX_LENGTH = 9

# Default cancellation reasons, keyed by who cancelled
CUSTOMER_CANCEL_REASON = "Cancelled by customer"
ADMIN_CANCEL_REASON = "Cancelled by administrator"

DEFAULT_TAG_COLOR = "#3B82F6"

# Shipping groups for products without a category
DEFAULT_SHIPPING_GROUP = "default"

# Email template placeholders
PLACEHOLDER_CUSTOMER_NAME = "{{customer_name}}"
PLACEHOLDER_CUSTOMER_EMAIL = "{{customer_email}}"

# System settings defaults (created on first read)
DEFAULT_SYSTEM_NAME = "CRM管理システム"
DEFAULT_PRIMARY_COLOR = "#3B82F6"
DEFAULT_SECONDARY_COLOR = "#1F2937"
DEFAULT_BACKGROUND_COLOR = "#F8FAFC"

# CSV export column sets
CUSTOMER_EXPORT_HEADERS = [
    "name", "nameKana", "email", "phone", "address",
    "birthDate", "gender", "joinedAt", "courses", "tags",
]
COURSE_EXPORT_HEADERS = [
    "name", "description", "price", "duration", "isActive", "enrolledCount", "createdAt",
]
TAG_EXPORT_HEADERS = ["name", "color", "customerCount", "createdAt"]
