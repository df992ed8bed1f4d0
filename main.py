# src/main.py
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from auth.routes import router as auth_router
from tipster.routes import router as tipster_router
from offer.routes import router as offer_router
from subscription.routes import router as subscription_router
from payment.routes import router as payment_router
from access.routes import router as access_router
from content.routes import router as content_router
from follow.routes import router as follow_router
from stats.routes import router as stats_router
from scheduler.tasks import start_scheduler, expire_lapsed_subscriptions
from exceptions import ServiceError
from database import init_models
from config import settings

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Tipster Subscriptions Backend",
    description="API for tipster offers, Stripe subscriptions and premium tip access",
    version="0.1.0",
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(auth_router)
app.include_router(tipster_router)
app.include_router(offer_router)
app.include_router(subscription_router)
app.include_router(payment_router)
app.include_router(access_router)
app.include_router(content_router)
app.include_router(follow_router)
app.include_router(stats_router)

@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.code} {exc.message}")
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

@app.on_event("startup")
async def startup_event():
    """Create tables, run the expiry sweep once and start the scheduler."""
    init_models()
    expire_lapsed_subscriptions()
    app.state.scheduler = start_scheduler()

@app.on_event("shutdown")
async def shutdown_event():
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler:
        scheduler.shutdown(wait=False)

@app.get("/")
async def root():
    """Root endpoint."""
    return {"message": "Welcome to Tipster Subscriptions Backend!"}
