from app.models.payment_history import PaymentHistory
from app.models.user import User
from app.models.user_points import UserPoints
from app.models.user_subscription import UserSubscription

__all__ = [
    "PaymentHistory",
    "User",
    "UserPoints",
    "UserSubscription",
]
