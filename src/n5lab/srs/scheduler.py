"""Flashcard review scheduling on top of SM-2."""

from collections.abc import Sequence

import structlog
from pydantic import TypeAdapter, ValidationError

from n5lab.clock import Clock
from n5lab.models.review import CardReviewRecord, ReviewOutcome
from n5lab.srs.sm2 import quality_for, sm2_update
from n5lab.storage.kv import KeyValueStore, StorageError, read_value, write_value

logger = structlog.get_logger()

# A card counts as mastered after this many consecutive successful recalls
MASTERY_REPETITIONS = 3

_records_adapter = TypeAdapter(dict[str, CardReviewRecord])


class Scheduler:
    """Decides which cards are due and updates them after each answer.

    The in-memory record map is authoritative. It is written back in full
    after every answer; a failed write is logged and the session continues.

    Args:
        store: Key-value store for the review namespace.
        clock: Source of "now".
        key: Storage key for the record map.
        session_size: Default number of cards per session.
    """

    def __init__(
        self,
        store: KeyValueStore,
        clock: Clock,
        key: str = "n5lab_srs_v1",
        session_size: int = 20,
    ) -> None:
        self._store = store
        self._clock = clock
        self._key = key
        self.session_size = session_size
        self._records: dict[str, CardReviewRecord] = self._load()

    def _load(self) -> dict[str, CardReviewRecord]:
        data, error = read_value(self._store, self._key)
        if error is not None or data is None:
            return {}
        try:
            records = _records_adapter.validate_python(data)
        except ValidationError as e:
            logger.warning("srs_load_failed", error=str(e))
            return {}
        logger.info("srs_loaded", cards=len(records))
        return records

    def _save(self) -> StorageError | None:
        data = _records_adapter.dump_python(self._records, mode="json", by_alias=True)
        error = write_value(self._store, self._key, data)
        if error is not None:
            logger.warning("srs_save_failed", error=error.message)
        return error

    @property
    def records(self) -> dict[str, CardReviewRecord]:
        return dict(self._records)

    def get_due_cards(self, card_ids: Sequence[str], session_size: int | None = None) -> list[str]:
        """Cards to present this session: due reviews first, then new cards.

        Input order is kept within each group. Cards reviewed but not yet due
        are left out.
        """
        if session_size is None:
            session_size = self.session_size
        now = self._clock.now()
        due: list[str] = []
        new: list[str] = []
        for card_id in card_ids:
            record = self._records.get(card_id)
            if record is None:
                new.append(card_id)
            elif record.is_due(now):
                due.append(card_id)
        return (due + new)[:max(session_size, 0)]

    def record_response(self, card_id: str, outcome: ReviewOutcome) -> None:
        """Apply one answer to a card and persist all records."""
        quality = quality_for(outcome)
        updated = sm2_update(self._records.get(card_id), quality, self._clock.now())
        self._records[card_id] = updated
        logger.debug(
            "card_reviewed",
            card_id=card_id,
            outcome=str(outcome),
            interval=updated.interval,
            ease_factor=round(updated.ease_factor, 2),
        )
        self._save()

    def get_card_stats(self, card_id: str) -> CardReviewRecord | None:
        return self._records.get(card_id)

    def due_count(self, card_ids: Sequence[str]) -> int:
        """Cards that are new or whose review time has passed."""
        now = self._clock.now()
        count = 0
        for card_id in card_ids:
            record = self._records.get(card_id)
            if record is None or record.is_due(now):
                count += 1
        return count

    def mastery_rate(self, card_ids: Sequence[str]) -> float:
        """Fraction of ``card_ids`` recalled correctly MASTERY_REPETITIONS times in a row."""
        if not card_ids:
            return 0.0
        mastered = 0
        for card_id in card_ids:
            record = self._records.get(card_id)
            if record is not None and record.repetitions >= MASTERY_REPETITIONS:
                mastered += 1
        return mastered / len(card_ids)
