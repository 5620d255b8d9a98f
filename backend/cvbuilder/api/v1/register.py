# cvbuilder/api/v1/register.py
from fastapi import APIRouter, Depends
import logging

from cvbuilder.api.v1.sanitization_middleware import get_sanitized_registration
from cvbuilder.middleware.rate_limit import rate_limit
from cvbuilder.models.user import UserRegistration

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/register/validate", dependencies=[Depends(rate_limit("register"))])
async def validate_registration(registration: UserRegistration = Depends(get_sanitized_registration)):
    """
    Check a registration payload before an account is created.

    The password is validated but never echoed back.
    """
    logger.info("Registration payload accepted")
    return {"name": registration.name, "email": registration.email}
