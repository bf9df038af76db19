"""
Tuition Settlement Service — FastAPI Application.

This is the entry point for the application. Logging, the
payment gateway and the notification emitter are set up once
here; all routers are registered here.
"""

from fastapi import FastAPI

from tuition_settlement.config import get_settings
from tuition_settlement.logging_config import configure_logging
from tuition_settlement.gateway.stripe_gateway import StripeGateway
from tuition_settlement.services.notifications import LoggingNotificationEmitter
from tuition_settlement.api.health import router as health_router
from tuition_settlement.api.tuitions import router as tuitions_router
from tuition_settlement.api.applications import router as applications_router
from tuition_settlement.api.payments import router as payments_router

settings = get_settings()
configure_logging(settings.LOG_LEVEL)

app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Tuition matching with payment-gated tutor hiring",
)

app.state.gateway = StripeGateway(
    settings.STRIPE_SECRET_KEY,
    settings.STRIPE_WEBHOOK_SECRET,
)
app.state.notifier = LoggingNotificationEmitter()

# Register routers
app.include_router(health_router)
app.include_router(tuitions_router)
app.include_router(applications_router)
app.include_router(payments_router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "tuition_settlement.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
    )
