"""Health check and provider endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError

from chatrelay.api.dependencies import get_app_settings, get_provider_service
from chatrelay.config import Settings
from chatrelay.database import Database, get_db
from chatrelay.errors import StorageError
from chatrelay.services.providers import ProviderService

router = APIRouter()


@router.get("/health")
@router.head("/health")
async def health_check(
    db: Database = Depends(get_db),
    provider_service: ProviderService = Depends(get_provider_service),
    settings: Settings = Depends(get_app_settings)
):
    """
    Health check including provider key status and database journal mode.
    """
    try:
        journal_mode = db.journal_mode()
        database_status = "healthy"
    except (SQLAlchemyError, StorageError) as e:
        journal_mode = None
        database_status = f"unhealthy: {str(e)}"

    validations = provider_service.validate_all_providers()
    available = provider_service.get_available_providers()

    overall_status = "healthy" if database_status == "healthy" and available else "degraded"

    return {
        "status": overall_status,
        "service": settings.app_name,
        "version": settings.version,
        "environment": settings.environment,
        "providers": {name: v.model_dump() for name, v in validations.items()},
        "available_providers": available,
        "database": {"status": database_status, "journal_mode": journal_mode}
    }


@router.get("/providers")
async def list_providers(provider_service: ProviderService = Depends(get_provider_service)):
    """Providers with a configured API key and their models."""
    return {
        "providers": [info.model_dump() for info in provider_service.get_provider_info()],
        "default_provider": provider_service.get_default_provider()
    }
