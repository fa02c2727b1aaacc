from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException
from config import settings
from utils.exceptions import AppError
from utils.responses import error_response
import uvicorn
import logging
import os

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Import routes
from routes import (
    auth_router,
    orders_router,
    payouts_router,
    chat_router,
    notifications_router,
    riders_router,
    settings_router,
    admin_router,
)

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="9thWaka - Delivery marketplace API: orders, delivery verification and rider payouts",
    docs_url="/docs",
    redoc_url="/redoc"
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=False,  # Must be False when allow_origins=["*"]
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,  # Cache preflight requests for 1 hour
)


# Domain errors carry their own HTTP status
@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    if exc.status_code >= 500:
        logger.error(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return error_response(exc.message, status_code=exc.status_code)


# Covers FastAPI HTTPException (auth failures) and router 404/405
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    response = error_response(str(exc.detail), status_code=exc.status_code)
    if exc.headers:
        response.headers.update(exc.headers)
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg")}
        for err in exc.errors()
    ]
    first = errors[0] if errors else None
    message = f"{first['field']}: {first['message']}" if first and first["field"] else "Invalid request"
    return error_response(message, errors=errors, status_code=400)


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Global exception: {str(exc)}", exc_info=True)
    return error_response(
        str(exc) if settings.DEBUG else "Internal server error",
        status_code=500,
    )


# Health check endpoint
@app.get("/")
def root():
    return {
        "success": True,
        "message": "9thWaka API is running",
        "version": settings.APP_VERSION
    }


@app.get("/health")
def health_check():
    return {
        "success": True,
        "message": "Service is healthy",
        "status": "ok"
    }


@app.get("/health/db")
def health_check_db():
    """Check database connectivity"""
    from database import check_db_connection
    if check_db_connection():
        return {
            "success": True,
            "message": "Database connection successful",
            "status": "ok"
        }
    return error_response("Database connection failed", status_code=503)


app.include_router(auth_router)
app.include_router(orders_router)
app.include_router(payouts_router)
app.include_router(chat_router)
app.include_router(notifications_router)
app.include_router(riders_router)
app.include_router(settings_router)
app.include_router(admin_router)


# Startup event
@app.on_event("startup")
def startup_event():
    logger.info(f"🚀 {settings.APP_NAME} v{settings.APP_VERSION} is starting...")
    logger.info(f"📚 Documentation available at: /docs")

    # Initialize Redis cache
    try:
        from utils.cache import cache
        if cache.enabled:
            if cache.ping():
                logger.info("✅ Redis cache is connected and ready!")
            else:
                logger.warning("⚠️ Redis is configured but not reachable - caching disabled")
        else:
            logger.info("ℹ️ Redis caching is disabled (no REDIS_URL configured)")
    except Exception as e:
        logger.warning(f"⚠️ Redis initialization check failed: {e}")

    # Initialize database tables
    try:
        from database import init_db
        logger.info("📊 Initializing database tables...")
        init_db()
        logger.info("✅ Database tables initialized successfully")
    except Exception as e:
        logger.error(f"❌ Database initialization failed: {str(e)}", exc_info=True)

    logger.info("✅ API ready to receive requests")


# Shutdown event
@app.on_event("shutdown")
def shutdown_event():
    logger.info("👋 Shutting down 9thWaka API...")


# Run the application
if __name__ == "__main__":
    port = int(os.getenv("PORT", "8000"))
    uvicorn.run(
        "app:app",
        host="0.0.0.0",
        port=port,
        reload=settings.DEBUG,
        log_level="info"
    )
