"""
ASGI entry point: ``uvicorn subscription_webhooks.main:app``.
"""

from .core.logging import setup_logging
from .webhooks.api import create_webhook_app
from .webhooks.config import get_config

config = get_config()
setup_logging(config.service_name, config.log_level, enable_json=config.json_logs)

app = create_webhook_app(config)
