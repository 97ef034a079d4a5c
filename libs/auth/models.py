from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class AuthUser(BaseModel):
    """
    Represents an authenticated seller from a Supabase access token.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "authenticated"
    session_id: Optional[str] = None
    user_metadata: dict = Field(default_factory=dict)

    @property
    def first_name(self) -> Optional[str]:
        return self.user_metadata.get("first_name")

    @property
    def last_name(self) -> Optional[str]:
        return self.user_metadata.get("last_name")
