"""
Capability checks for the HTTP boundary.

- Admin routes: X-Admin-Key must equal the configured admin key.
- Conversion reports: X-API-Key must be the secret key of an active product.
"""
import secrets
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from ..config import Settings, get_settings
from ..core.errors import ForbiddenError, MisconfiguredError, UnauthorizedError
from ..db import get_db
from ..models import Product
from ..services.attribution import get_product_by_api_key
from ..utils.log import get_logger

logger = get_logger(__name__)


def require_admin(
    x_admin_key: Optional[str] = Header(None, alias="X-Admin-Key"),
    settings: Settings = Depends(get_settings),
) -> None:
    if not settings.ADMIN_API_KEY:
        logger.error("ADMIN_API_KEY is not configured; refusing admin request")
        raise MisconfiguredError("Server misconfigured")
    if not x_admin_key:
        raise UnauthorizedError("Missing X-Admin-Key header")
    if not secrets.compare_digest(x_admin_key, settings.ADMIN_API_KEY):
        logger.warning("Rejected admin request with invalid X-Admin-Key")
        raise ForbiddenError("Invalid admin key")


def require_product_key(
    x_api_key: Optional[str] = Header(None, alias="X-API-Key"),
    db: Session = Depends(get_db),
) -> Product:
    """Resolve the reporting product from its secret key."""
    if not x_api_key:
        raise UnauthorizedError("Missing X-API-Key header")

    product = get_product_by_api_key(db, x_api_key)
    if not product or not product.is_active:
        logger.warning(f"Rejected conversion report with invalid API key ({x_api_key[:10]}...)")
        raise ForbiddenError("Invalid or inactive API key")
    return product
