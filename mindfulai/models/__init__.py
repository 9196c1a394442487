# Import all models so metadata.create_all can see them
from mindfulai.models.user import User
from mindfulai.models.subscription import Subscription
from mindfulai.models.payment_transaction import PaymentTransaction

__all__ = ["User", "Subscription", "PaymentTransaction"]
