# cvbuilder/models/user.py
from pydantic import BaseModel, ConfigDict, Field


class UserRegistration(BaseModel):
    """
    Sanitized registration data.

    The password is passed through untouched: it is hashed by the
    authentication layer, never rendered.
    """
    model_config = ConfigDict(frozen=True)

    name: str
    email: str
    password: str = Field(repr=False)
