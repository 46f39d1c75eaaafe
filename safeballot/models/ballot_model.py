from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional


class Option(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str
    text: str
    party: Optional[str] = None
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    image_data: Optional[str] = Field(default=None, alias="imageData")  # base64 or data URL


class Question(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    description: str = ""
    options: List[Option]


class BallotRecord(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    id: str = ""
    title: str = ""
    status: str = ""
    quick_ballot: bool = Field(default=False, alias="quickBallot")
    questions: List[Question] = Field(default_factory=list)

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)
