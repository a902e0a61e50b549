from app.config import Settings
from app.services.result_cache import ResultCache
from app.services.intercom_service import IntercomService
from app.services.customer_directory import CustomerDirectory
from app.services.recommendation_service import RecommendationService
from app.services.canvas_service import CanvasService

# Initialize Singletons
settings = Settings.from_env()
result_cache = ResultCache(ttl_seconds=settings.result_ttl_seconds)
intercom_service = IntercomService(settings)
customer_directory = CustomerDirectory(settings)
recommendation_service = RecommendationService(
    webhook_url=settings.automation_webhook_url,
    cache=result_cache,
    timeout=settings.recommendation_timeout_seconds,
    max_workers=settings.recommendation_max_workers,
)

# Dispatcher (Canvas pipeline)
canvas_service = CanvasService(
    settings=settings,
    cache=result_cache,
    intercom=intercom_service,
    recommendations=recommendation_service,
    directory=customer_directory,
)


def get_canvas_service() -> CanvasService:
    """FastAPI dependency; tests override it with an isolated service."""
    return canvas_service
