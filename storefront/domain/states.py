# storefront/domain/states.py
ORDER_STATUSES = ("pending", "confirmed", "processing", "shipped", "delivered", "cancelled")
CANCELLABLE_STATUSES = ("pending", "confirmed")

PAYMENT_STATUSES = ("pending", "paid", "failed", "refunded")

CARD_METHODS = ("credit_card", "debit_card")

ATTEMPT_PENDING = "pending"
ATTEMPT_APPROVED = "approved"
ATTEMPT_FAILED = "failed"

USER_ROLES = ("user", "admin", "moderator")
