from contextlib import asynccontextmanager

from fastapi import FastAPI

from caltrigger.logger import UnifiedLogger
from caltrigger.runtime.config import RuntimeConfig
from caltrigger.runtime.bootstrap import bootstrap_runtime
from caltrigger.runtime.paths import get_system_root
from caltrigger.settings import get_app_settings
from api.endpoints import router as api_router, register_exception_handlers

# Create main logger
logger = UnifiedLogger(tag="main")


# Run in development
# uvicorn main:app --host 0.0.0.0 --port 8000 --reload


#######################################################################
## FastAPI lifespan with runtime bootstrap
#######################################################################

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    app_settings = get_app_settings()

    config = RuntimeConfig.for_production(
        system_root=str(app_settings.system_root or get_system_root()),
        log_level=app_settings.log_level,
    )

    # Bootstrap runtime services
    runtime = await bootstrap_runtime(config)

    # Store runtime context in app state for API access
    app.state.runtime = runtime

    logger.info("Application startup complete")

    yield  # App runs here

    # Shutdown
    if hasattr(app.state, 'runtime') and app.state.runtime:
        await app.state.runtime.shutdown()
        app.state.runtime = None  # Clear app state to match global context
        logger.info("Application shutdown complete")


#######################################################################
## FastAPI application setup
#######################################################################

app = FastAPI(lifespan=lifespan)

# Register API routes
app.include_router(api_router)

# Register API exception handlers
register_exception_handlers(app)

# Set up unified logging with instrumentation
logger.setup_instrumentation(app)
