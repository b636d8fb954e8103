from fastapi import Header, HTTPException, Request, status

from tokei_badges.config import settings
from tokei_badges.services.coordinator import ComputeCoordinator


def get_coordinator(request: Request) -> ComputeCoordinator:
    """The application's compute coordinator, created in the lifespan."""
    coordinator: ComputeCoordinator | None = getattr(request.app.state, "coordinator", None)
    if coordinator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Service is starting up",
        )
    return coordinator


def verify_admin_secret(x_admin_secret: str = Header(...)) -> None:
    """Validate the X-Admin-Secret header against the configured secret."""
    if not settings.admin_secret:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Admin secret not configured",
        )
    if x_admin_secret != settings.admin_secret:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid admin secret",
        )
