from pydantic import AliasChoices, BaseModel, Field, field_validator
from typing import Optional

from safeballot.config import DEFAULT_VOTER_NAME


class IdentityRecord(BaseModel):
    """Identity fields extracted from a scanned document.

    Capture vendors disagree on field names, so the common spellings are all
    accepted. Anything that is not a plain string is dropped.
    """

    first_name: str = Field(default="", validation_alias=AliasChoices("first_name", "firstName", "givenName"))
    last_name: str = Field(default="", validation_alias=AliasChoices("last_name", "lastName", "surname"))
    date_of_birth: str = Field(default="", validation_alias=AliasChoices("date_of_birth", "dateOfBirth", "birthDate"))
    document_number: str = Field(default="", validation_alias=AliasChoices("document_number", "documentNumber"))
    nationality: str = ""

    @field_validator("*", mode="before")
    @classmethod
    def _strings_only(cls, value):
        return value.strip() if isinstance(value, str) else ""

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip() or DEFAULT_VOTER_NAME


class VoterSession(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None
    voter_id: Optional[str] = None  # previously registered voter for this ballot
