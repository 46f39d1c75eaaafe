# safeballot/quick_ballot.py
import logging
from typing import Iterable, Optional

from safeballot.config import QUICK_BALLOT_KEY, QUICK_ROUTE_PREFIXES
from safeballot.models.ballot_model import BallotRecord

logger = logging.getLogger(__name__)


class QuickBallotGate:
    """Decides whether a ballot is voted on anonymously, without verification."""

    sentinel_key = QUICK_BALLOT_KEY

    def __init__(self, route_prefixes: Iterable[str] = QUICK_ROUTE_PREFIXES):
        self.route_prefixes = tuple(route_prefixes)

    def is_quick_route(self, request_path: Optional[str]) -> bool:
        return bool(request_path) and any(request_path.startswith(p) for p in self.route_prefixes)

    def should_bypass_verification(self, ballot: Optional[BallotRecord], request_path: Optional[str] = None) -> bool:
        quick_flag = bool(ballot is not None and ballot.quick_ballot)
        url_flag = self.is_quick_route(request_path)
        if quick_flag or url_flag:
            logger.info(f"Quick ballot detected, bypassing verification (flag={quick_flag}, route={url_flag})")
            return True
        return False


_default_gate = QuickBallotGate()


def should_bypass_verification(ballot: Optional[BallotRecord], request_path: Optional[str] = None) -> bool:
    return _default_gate.should_bypass_verification(ballot, request_path)
