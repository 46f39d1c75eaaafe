from pydantic import BaseModel, EmailStr, Field
from typing import Any, Dict, List, Optional

from safeballot.models.vote_model import Response


class StartVerificationRequest(BaseModel):
    came_from_login: bool = False
    # document fields already scanned on the voter login screen
    id_data: Optional[Dict[str, Any]] = None
    request_path: Optional[str] = None
    slug: Optional[str] = None


class StepCompleteRequest(BaseModel):
    email: Optional[EmailStr] = None
    name: Optional[str] = Field(default=None, min_length=1)
    id_data: Optional[Dict[str, Any]] = None


class VoteSubmitRequest(BaseModel):
    responses: Dict[int, Response]
    digital_key: Optional[str] = None
    slug: Optional[str] = None


class VoterStatusOut(BaseModel):
    ballot_id: str
    verified: bool
    has_voted: bool
    has_digital_key: bool
    pending_vote: bool
    voter_id: Optional[str] = None


class ClearStatusOut(BaseModel):
    ballot_id: str
    removed: List[str]
