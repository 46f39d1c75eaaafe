# safeballot/normalizer.py
"""Repair inconsistently shaped ballot records.

Ballots reach the client from several generations of the ballot service and
from the local cache, so ``options`` may be missing, may live under the legacy
``choices`` key, or may be bare strings. :func:`normalize` turns any of them
into a :class:`BallotRecord` whose questions always carry at least one option
with a string ``id`` and non-empty ``text``.
"""
import logging
from typing import Any, List, Optional, Set

from safeballot.models.ballot_model import BallotRecord, Option, Question

logger = logging.getLogger(__name__)

_TEXT_FIELDS = ("text", "option", "name")


def _present(value: Any) -> Optional[str]:
    """Return value as a string, or None when missing or blank."""
    if value is None or isinstance(value, (dict, list, tuple)):
        return None
    text = str(value).strip()
    return text or None


def _first_present(*values: Any) -> Optional[str]:
    for v in values:
        text = _present(v)
        if text is not None:
            return text
    return None


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


def _options_from_choices(choices: Any) -> List[Any]:
    if not isinstance(choices, (list, tuple)):
        return []
    derived = []
    for choice in choices:
        if isinstance(choice, dict):
            entry = {"text": _first_present(*(choice.get(f) for f in _TEXT_FIELDS)) or "Option"}
            if _present(choice.get("id")) is not None:
                entry["id"] = choice["id"]
            derived.append(entry)
        else:
            derived.append({"text": _present(choice) or "Option"})
    return derived


def _unused_id(index: int, used: Set[str]) -> str:
    candidate = index
    while str(candidate) in used:
        candidate += 1
    used.add(str(candidate))
    return str(candidate)


def _coerce_option(raw: Any, index: int, used: Set[str]) -> Option:
    """Option ids fall back to the index, skipping ids other options already hold."""
    if isinstance(raw, dict):
        return Option(
            id=_present(raw.get("id")) or _unused_id(index, used),
            text=_first_present(*(raw.get(f) for f in _TEXT_FIELDS)) or f"Option {index + 1}",
            party=_present(raw.get("party")),
            image_url=_first_present(raw.get("imageUrl"), raw.get("image_url")),
            image_data=_first_present(raw.get("imageData"), raw.get("image_data")),
        )
    return Option(id=_unused_id(index, used), text=_present(raw) or f"Option {index + 1}")


def _normalize_question(raw: Any, index: int) -> Question:
    if not isinstance(raw, dict):
        raw = {"title": _present(raw) or ""}

    options = raw.get("options")
    if not isinstance(options, (list, tuple)) or not options:
        options = _options_from_choices(raw.get("choices"))
    if not options:
        logger.warning(f"Question {index} has no usable options; adding placeholders")
        options = [{"text": "Option 1"}, {"text": "Option 2"}]

    used = {_present(o.get("id")) for o in options if isinstance(o, dict)} - {None}

    return Question(
        id=_present(raw.get("id")) or str(index),
        title=_first_present(raw.get("title"), raw.get("text"), raw.get("question")) or f"Question {index + 1}",
        description=_present(raw.get("description")) or "",
        options=[_coerce_option(opt, i, used) for i, opt in enumerate(options)],
    )


def normalize(raw: Any) -> BallotRecord:
    """Build a canonical BallotRecord from whatever the source returned."""
    # read only; every field below is coerced into new objects
    data = raw if isinstance(raw, dict) else {}

    questions = data.get("questions")
    if not isinstance(questions, (list, tuple)):
        questions = []

    return BallotRecord(
        id=_present(data.get("id")) or _present(data.get("_id")) or "",
        title=_present(data.get("title")) or "",
        status=_present(data.get("status")) or "",
        quick_ballot=_truthy(data.get("quickBallot", data.get("quick_ballot", False))),
        questions=[_normalize_question(q, i) for i, q in enumerate(questions)],
    )
