"""
Endpoint de santé pour vérifier la disponibilité de l'API et de ses collaborateurs.

Expose `/health` avec le backend de stockage et le fournisseur de calcul configurés.
"""

from fastapi import APIRouter, Depends

from chartcache.api.deps import get_container
from chartcache.api.schemas import HealthResponse
from chartcache.core.container import Container

router = APIRouter(tags=["health"])
container_dep = Depends(get_container)


@router.get("/health", response_model=HealthResponse)
def health(container: Container = container_dep):
    """Vérifie la disponibilité de l'API et indique le store et le fournisseur actifs."""
    return HealthResponse(
        status="ok",
        storage=container.storage_backend,
        provider=container.provider.name,
    )
