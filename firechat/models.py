from typing import Optional, Any
from pydantic import BaseModel, Field, ConfigDict, ValidationError, field_validator, model_validator

from firechat.config import ANONYMOUS


class Message(BaseModel):
    """A chat message: either text or a photo, never both.

    ``key`` is assigned by the store when the message is pushed and is not
    part of the stored value.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    key: Optional[str] = Field(default=None, exclude=True)
    name: str = ANONYMOUS
    text: Optional[str] = None
    photo_url: Optional[str] = Field(default=None, alias="photoUrl")

    @field_validator('name', mode='before')
    @classmethod
    def validate_name(cls, v):
        if v is None or not str(v).strip():
            return ANONYMOUS
        return v

    @model_validator(mode='after')
    def validate_content(self):
        has_text = self.text is not None
        has_photo = bool(self.photo_url)
        if has_text == has_photo:
            raise ValueError('Message needs exactly one of text or photoUrl')
        return self

    @property
    def is_photo(self) -> bool:
        return self.photo_url is not None

    def to_store(self) -> dict:
        """Serialize to the value written under the message key"""
        return self.model_dump(by_alias=True, exclude_none=True)

    @classmethod
    def from_store(cls, key: str, value: Any) -> Optional["Message"]:
        """Build a message from a store child, or None if the child is not a message"""
        if not isinstance(value, dict):
            return None
        try:
            return cls.model_validate({**value, "key": key})
        except ValidationError:
            return None


class AuthUser(BaseModel):
    """Signed-in user as reported by the identity provider"""
    model_config = ConfigDict(populate_by_name=True)

    uid: str = Field(alias="localId")
    display_name: Optional[str] = Field(default=None, alias="displayName")
    email: Optional[str] = None
    id_token: str = Field(default="", alias="idToken")
    refresh_token: str = Field(default="", alias="refreshToken")
