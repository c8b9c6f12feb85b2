"""
Domain constants used across services/routers.
"""

# Delivery hour (UTC) per meal type
DELIVERY_HOURS = {
    "lunch": 13,
    "dinner": 19,
}

# No delivery may be scheduled within this many hours of activation
ACTIVATION_DELAY_HOURS = 24

# Cancellations strictly more than this many hours ahead are refunded
REFUND_WINDOW_HOURS = 48

# Public subscription order ids: "RI-" + 8 characters
ORDER_ID_PREFIX = "RI-"
ORDER_ID_ALPHABET = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"
ORDER_ID_LENGTH = 8

# Subscriptions that count as paid in revenue reports
PAID_SUBSCRIPTION_STATUSES = ("active", "completed", "cancelled")
