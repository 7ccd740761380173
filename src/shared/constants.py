"""Shared constants across the application."""

# Shopify webhook headers
SHOPIFY_HMAC_HEADER = "X-Shopify-Hmac-Sha256"
SHOPIFY_SHOP_HEADER = "X-Shopify-Shop-Domain"
SHOPIFY_TOPIC_HEADER = "X-Shopify-Topic"
SHOPIFY_WEBHOOK_ID_HEADER = "X-Shopify-Webhook-Id"

# Webhook topics this service subscribes to
WEBHOOK_TOPICS = [
    "products/update",
    "orders/create",
    "inventory_levels/update",
]

# Celery
EMAIL_QUEUE = "email"
NOTIFY_BACK_IN_STOCK_TASK = "email_worker.tasks.back_in_stock.notify_back_in_stock"

# Admin listing limits
DEFAULT_LIST_LIMIT = 50
MAX_LIST_LIMIT = 200
