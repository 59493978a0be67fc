"""Participant preference model and payload normalisation.

Preference payloads arrive in whatever shape the upstream import produced.
They are normalised here, once, into an explicit ``Preference`` value; a
malformed payload becomes the empty preference instead of an error.
"""

import logging
from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import Field

from cohort.models.common import CohortBase, ParticipantId

logger = logging.getLogger(__name__)

# Accepted payload keys, in lookup order.
_PARTICIPANT_KEYS = ("participant_id", "studentId", "student_id")
_GROUP_KEYS = ("group_ids", "likeGroupIds", "like_group_ids")
_FRIEND_KEYS = ("friend_ids", "likeStudentIds", "like_student_ids")
_AVOID_GROUP_KEYS = ("avoid_group_ids", "avoidGroupIds")
_AVOID_FRIEND_KEYS = ("avoid_friend_ids", "avoidStudentIds", "avoid_student_ids")


class Preference(CohortBase, frozen=True):
    """Ranked wishes of a single participant.

    ``group_ids`` is the ranked group wishlist (rank 1 first). ``friend_ids``
    lists co-members the participant would like to be grouped with, also
    ranked.
    """

    participant_id: ParticipantId
    group_ids: tuple[str, ...] = Field(default_factory=tuple)
    friend_ids: tuple[str, ...] = Field(default_factory=tuple)
    avoid_group_ids: tuple[str, ...] = Field(default_factory=tuple)
    avoid_friend_ids: tuple[str, ...] = Field(default_factory=tuple)

    @property
    def is_empty(self) -> bool:
        return not self.group_ids and not self.friend_ids

    @classmethod
    def empty(cls, participant_id: str) -> "Preference":
        return cls(participant_id=participant_id)

    @classmethod
    def from_payload(cls, participant_id: str, payload: Any) -> "Preference":
        """Normalise a duck-typed payload.

        Accepts a mapping with camelCase or snake_case keys, or a bare list
        taken as the group wishlist. Anything else yields an empty preference.
        """
        if isinstance(payload, Preference):
            return payload
        if isinstance(payload, list | tuple):
            return cls(participant_id=participant_id, group_ids=_clean_ids(payload))
        if not isinstance(payload, Mapping):
            if payload is not None:
                logger.debug(
                    "Unrecognised preference payload for %s: %s",
                    participant_id, type(payload).__name__,
                )
            return cls.empty(participant_id)

        return cls(
            participant_id=participant_id,
            group_ids=_clean_ids(_first_present(payload, _GROUP_KEYS)),
            friend_ids=_clean_ids(
                _first_present(payload, _FRIEND_KEYS), exclude=participant_id,
            ),
            avoid_group_ids=_clean_ids(_first_present(payload, _AVOID_GROUP_KEYS)),
            avoid_friend_ids=_clean_ids(
                _first_present(payload, _AVOID_FRIEND_KEYS), exclude=participant_id,
            ),
        )

    def rank_of(self, group_id: str) -> int | None:
        """1-based rank of ``group_id`` in the wishlist, or None if absent."""
        try:
            return self.group_ids.index(group_id) + 1
        except ValueError:
            return None


def _first_present(payload: Mapping, keys: tuple[str, ...]) -> Any:
    for key in keys:
        if key in payload:
            return payload[key]
    return None


def _clean_ids(raw: Any, *, exclude: str | None = None) -> tuple[str, ...]:
    """Keep non-empty string ids in order, dropping repeats."""
    if not isinstance(raw, list | tuple):
        return ()
    cleaned = (
        item.strip() for item in raw
        if isinstance(item, str) and item.strip() and item.strip() != exclude
    )
    return tuple(dict.fromkeys(cleaned))


def build_preference_map(
    preferences: Iterable[Preference | Mapping[str, Any]] | Mapping[str, Any] | None,
) -> dict[str, Preference]:
    """Key normalised preferences by participant id.

    Accepts either a mapping of participant id to raw payload, or an
    iterable of ``Preference`` values and raw records carrying a
    ``participant_id`` (or ``studentId``) key. Items with no usable
    participant id are skipped. Later records for the same participant
    replace earlier ones.
    """
    if preferences is None:
        return {}
    if isinstance(preferences, Mapping):
        return {
            pid: Preference.from_payload(pid, payload)
            for pid, payload in preferences.items()
        }

    by_participant: dict[str, Preference] = {}
    for item in preferences:
        if isinstance(item, Preference):
            by_participant[item.participant_id] = item
            continue
        pid = _first_present(item, _PARTICIPANT_KEYS) if isinstance(item, Mapping) else None
        if not isinstance(pid, str) or not pid.strip():
            logger.debug("Skipping preference record without participant id: %r", item)
            continue
        pid = pid.strip()
        by_participant[pid] = Preference.from_payload(pid, item)
    return by_participant
