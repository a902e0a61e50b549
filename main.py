import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI
from app.logging_config import setup_logging
from app.dependencies import recommendation_service, settings
from app.routers import canvas

setup_logging()

logger = logging.getLogger("app.main")


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings.log_summary()
    yield
    recommendation_service.shutdown()


app = FastAPI(title="Canvas Reply Relay", lifespan=lifespan)

# Include Routers
app.include_router(canvas.router)


@app.get("/")
def read_root():
    return {"message": "Canvas reply relay is ready"}


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    import uvicorn

    logger.info("Server is running on port %s", settings.port)
    uvicorn.run("main:app", host="0.0.0.0", port=settings.port)
