"""
Webhook API router and application factories.
Uses dependency injection and configuration-driven design.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from loguru import logger
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette.responses import Response

from ..core.exceptions import BaseSubscriptionException, HTTPExceptionHandler
from ..core.observability import observability
from .config import WebhookConfig, get_config
from .endpoint import NotificationEndpoint
from .models import HealthStatus
from .services import (
    Deliverer,
    StoreFactory,
    SubscriptionStoreProvider,
    deliver_notification,
    load_store_factory,
)

UNSUPPORTED_METHODS = ["GET", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS"]


def create_notification_endpoint(
    store_factory: StoreFactory | None = None,
    deliver: Deliverer | None = None,
    config: WebhookConfig | None = None,
) -> NotificationEndpoint:
    """
    Build a notification endpoint with its store provider.

    Args:
        store_factory: Zero-argument store factory (defaults to config.store_factory)
        deliver: Delivery policy (defaults to deliver_notification)
        config: Configuration used when store_factory is not provided
    """
    if store_factory is None:
        config = config or get_config()
        store_factory = load_store_factory(config.store_factory)

    return NotificationEndpoint(
        store_provider=SubscriptionStoreProvider(store_factory),
        deliver=deliver or deliver_notification,
    )


def create_webhook_router(
    endpoint: NotificationEndpoint,
    notification_path: str = "/notifications",
) -> APIRouter:
    """
    Create the webhook router around ``endpoint``.

    Args:
        endpoint: Notification endpoint handling requests
        notification_path: Path notifications are POSTed to

    Returns:
        Configured FastAPI router
    """
    router = APIRouter(tags=["webhooks"])

    router.add_api_route(
        notification_path,
        endpoint.handle_notification,
        methods=["POST"],
        summary="Receive a subscription notification",
    )
    router.add_api_route(
        notification_path,
        endpoint.handle_unsupported_method,
        methods=UNSUPPORTED_METHODS,
        include_in_schema=False,
    )

    @router.get("/health")
    async def webhook_health_check() -> HealthStatus:
        """Health of the notification endpoint and its store."""
        return HealthStatus(
            status="healthy",
            services={
                "endpoint": "active",
                "store": "initialized"
                if endpoint.store_provider.is_initialized
                else "not_initialized",
            },
            metrics=endpoint.get_metrics(),
        )

    logger.info(f"✅ Webhook router configured at {notification_path}")
    return router


async def subscription_exception_handler(
    request: Request, exc: BaseSubscriptionException
) -> JSONResponse:
    """Render service exceptions with their mapped status code."""
    status_code = HTTPExceptionHandler.status_code_for(exc)
    logger.error(f"❌ {type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(
        status_code=status_code,
        content={
            "status": "error",
            "error_code": exc.error_code or type(exc).__name__,
            "message": exc.message,
        },
    )


def create_webhook_app(
    config: WebhookConfig | None = None,
    store_factory: StoreFactory | None = None,
    deliver: Deliverer | None = None,
) -> FastAPI:
    """
    Create standalone FastAPI app for the webhook service.
    Uses configuration from settings if parameters not provided.

    Args:
        config: Service configuration (defaults to environment)
        store_factory: Store factory (defaults to config.store_factory)
        deliver: Delivery policy (defaults to deliver_notification)

    Returns:
        Configured FastAPI application
    """
    config = config or get_config()
    endpoint = create_notification_endpoint(store_factory, deliver, config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"🚀 Starting {config.service_name}")
        config.log_configuration()
        yield
        endpoint.store_provider.reset()
        logger.info(f"🛑 Shutting down {config.service_name}")

    app = FastAPI(
        title="Subscription WebHooks",
        description="Receives push notifications for subscriptions",
        version="1.0.0",
        docs_url="/docs" if config.debug else None,
        lifespan=lifespan,
    )
    app.state.notification_endpoint = endpoint

    app.add_exception_handler(BaseSubscriptionException, subscription_exception_handler)
    app.include_router(create_webhook_router(endpoint, config.notification_path))

    if config.enable_metrics:

        @app.get("/metrics", include_in_schema=False)
        async def prometheus_metrics() -> Response:
            return Response(
                generate_latest(observability.custom_metrics.registry),
                media_type=CONTENT_TYPE_LATEST,
            )

    @app.get("/")
    async def root():
        """Root endpoint with service information."""
        return {
            "service": config.service_name,
            "notification_path": config.notification_path,
            "store_factory": config.store_factory,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

    return app
