from pydantic import BaseModel, Field
from typing import List, Literal, Optional, Union

WRITE_IN = "write-in"


class Response(BaseModel):
    index: Union[int, Literal["write-in"]]
    text: str = ""
    party: str = ""


class VoterInfo(BaseModel):
    name: str
    email: Optional[str] = None


class VoteSelection(BaseModel):
    question_index: int
    question_id: str
    choice_id: Optional[str] = None
    text: str = ""
    party: str = ""
    write_in: Optional[str] = None


class VotePayload(BaseModel):
    ballot_id: str
    selections: List[VoteSelection]
    voter: Optional[VoterInfo] = None
    voter_id: Optional[str] = None
    digital_key: Optional[str] = None
    quick_ballot: bool = False

    def to_wire(self) -> dict:
        """Body for the public vote endpoint."""
        rankings = {}
        votes = []
        for s in self.selections:
            rankings[str(s.question_index)] = {
                "index": WRITE_IN if s.write_in is not None else s.choice_id,
                "text": s.text,
                "party": s.party,
            }
            vote = {"questionId": s.question_id, "choiceId": s.choice_id, "rank": 1}
            if s.write_in is not None:
                vote["write_in"] = s.write_in
            votes.append(vote)

        body = {"rankings": rankings, "votes": votes}
        if self.quick_ballot:
            # anonymous: no voter details at all
            body["quickBallot"] = True
            return body
        body["voter"] = self.voter.model_dump() if self.voter else None
        body["voterId"] = self.voter_id
        body["digitalKey"] = self.digital_key
        return body


class SubmissionResult(BaseModel):
    ok: bool
    kind: Optional[Literal["ineligible", "network", "validation"]] = None
    message: str = ""
    saved_locally: bool = False
    next_view: Optional[Literal["results", "confirmation"]] = None
    transport: Optional[str] = None
    voter_id: Optional[str] = None
    attempts: List[str] = Field(default_factory=list)

    @classmethod
    def failure(cls, kind: str, message: str, **extra) -> "SubmissionResult":
        return cls(ok=False, kind=kind, message=message, **extra)
