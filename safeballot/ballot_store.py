# safeballot/ballot_store.py
import logging
from typing import Optional

from safeballot.models.ballot_model import BallotRecord
from safeballot.normalizer import normalize
from safeballot.services.api import ApiError, BallotService
from safeballot.voter_state import VoterState

logger = logging.getLogger(__name__)


class BallotNotFound(Exception):
    pass


def id_from_slug(slug: Optional[str]) -> Optional[str]:
    """Ballot links end with the ballot id: /vote/<id>/<title-words>-<id>."""
    if not slug:
        return None
    tail = slug.split("-")[-1].strip()
    return tail or None


class BallotStore:
    """Fetch ballots from the ballot service, falling back to the local cache."""

    def __init__(self, ballot_service: BallotService, state: VoterState):
        self.ballot_service = ballot_service
        self.state = state

    def get_ballot(self, ballot_id: str, slug: Optional[str] = None) -> BallotRecord:
        try:
            body = self.ballot_service.get_ballot_by_id(ballot_id)
            raw = body.get("data")
            if isinstance(raw, dict):
                record = normalize(raw)
                if not record.id:
                    record = record.model_copy(update={"id": str(ballot_id)})
                self.remember(record)
                return record
            logger.warning(f"Ballot service returned no data for {ballot_id}")
        except ApiError as e:
            logger.warning(f"Error fetching ballot {ballot_id}: {e} (status {e.status_code})")

        cached = self._find_cached(ballot_id, id_from_slug(slug))
        if cached is None:
            raise BallotNotFound(f"Ballot {ballot_id} not found remotely or in the local cache")
        logger.warning(f"Serving ballot {ballot_id} from the local cache")
        return cached

    def remember(self, record: BallotRecord) -> None:
        """Insert or replace a ballot in the cached collection."""
        ballots = [b for b in self.state.get_cached_ballots()
                   if not (isinstance(b, dict) and str(b.get("id")) == record.id)]
        ballots.append(record.to_wire())
        self.state.set_cached_ballots(ballots)

    def _find_cached(self, ballot_id: str, slug_id: Optional[str]) -> Optional[BallotRecord]:
        ballots = [b for b in self.state.get_cached_ballots() if isinstance(b, dict)]
        for b in ballots:
            if str(b.get("id")) == str(ballot_id):
                return normalize(b)
        if slug_id:
            for b in ballots:
                cached_id = str(b.get("id"))
                if cached_id == slug_id or cached_id.startswith(slug_id):
                    return normalize(b)
        return None
