from typing import Callable
import logging

from fastapi import Depends

from mindfulai.core.config import Settings, get_settings
from mindfulai.core.errors import ConfigurationError
from mindfulai.services.razorpay_service import RazorpayClient

logger = logging.getLogger(__name__)

GatewayFactory = Callable[[], RazorpayClient]


def get_gateway_client_factory(config: Settings = Depends(get_settings)) -> GatewayFactory:
    """
    Returns a builder for the payment gateway client.

    Building the client checks the key id and secret, so a route decides
    when the configuration check runs relative to its own input validation.
    Either way it happens before any network call.
    """
    def build() -> RazorpayClient:
        try:
            return RazorpayClient.from_settings(config)
        except ConfigurationError:
            logger.error("Razorpay key id/secret missing: gateway calls are disabled")
            raise

    return build


def get_signature_secret(config: Settings = Depends(get_settings)) -> str:
    if not config.RAZORPAY_KEY_SECRET:
        logger.error("RAZORPAY_KEY_SECRET missing: payment verification is disabled")
        raise ConfigurationError("Razorpay key secret not configured")
    return config.RAZORPAY_KEY_SECRET
