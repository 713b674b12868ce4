import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pullapi.config import settings
from pullapi.codec import IdCodec
from pullapi.errors import register_exception_handlers
from pullapi.auth.utils import TokenService
from pullapi.auth import router as auth_router
from pullapi.events import router as events_router
from pullapi.venues import router as venues_router
from pullapi.orders import router as orders_router
from pullapi.tickets import router as tickets_router
from pullapi.bookings import router as bookings_router

logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Create FastAPI app
app = FastAPI(
    title=settings.PROJECT_NAME,
    version="1.0.0",
    description="Event ticketing and venue reservation API",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Process-wide codec and token issuer, built from settings once
app.state.codec = IdCodec.from_settings(settings)
app.state.tokens = TokenService.from_settings(settings)

register_exception_handlers(app)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(
    auth_router.router,
    prefix=f"{settings.API_V1_STR}/auth",
    tags=["Authentication"]
)

app.include_router(
    events_router.router,
    prefix=f"{settings.API_V1_STR}/event",
    tags=["Events"]
)

app.include_router(
    venues_router.router,
    prefix=f"{settings.API_V1_STR}/venues",
    tags=["Venues"]
)

app.include_router(
    orders_router.router,
    prefix=f"{settings.API_V1_STR}/orders",
    tags=["Orders"]
)

app.include_router(
    tickets_router.router,
    prefix=f"{settings.API_V1_STR}/ticketsValidation",
    tags=["Ticket Validation"]
)

app.include_router(
    bookings_router.router,
    prefix=f"{settings.API_V1_STR}/bookings",
    tags=["Bookings"]
)

logger.info("%s started (%s)", settings.PROJECT_NAME, settings.ENVIRONMENT)

@app.get("/")
def root():
    """Root endpoint"""
    return {
        "message": "Pull Events Management API",
        "version": "1.0.0",
        "docs": "/docs"
    }

@app.get("/health")
def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
