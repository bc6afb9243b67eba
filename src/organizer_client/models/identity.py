"""
Identity of the signed-in user.
"""

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class Identity(BaseModel):
    """Opaque current-user reference used to scope every remote query."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(min_length=1, description="Owner id stored in every row")
    email: str | None = None
    access_token: SecretStr | None = None
