import logging
from datetime import datetime
from typing import Any, Mapping

from pydantic import ValidationError as PydanticValidationError

from slotboard.broadcaster import Broadcaster
from slotboard.exceptions import LeaderboardError, ValidationError
from slotboard.key_lock_manager import KeyLockManager
from slotboard.models.dc_models import ScoreSubmissionModel
from slotboard.models.schema_models import EmailCheckSchema, ScoreOutcomeSchema
from slotboard.services.session_store import SessionStore
from slotboard.slot_gate import SlotGate


def validate_submission(score_data: Any) -> ScoreSubmissionModel:
    """Validate a raw submission

    Raises:
        ValidationError: Names the first missing or invalid field
    """
    if isinstance(score_data, ScoreSubmissionModel):
        return score_data
    if not isinstance(score_data, Mapping):
        raise ValidationError("body", "Submission must be a JSON object")
    try:
        return ScoreSubmissionModel.model_validate(score_data)
    except PydanticValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error["loc"]) or "body"
        raise ValidationError(field, f"Invalid or missing field: {field} ({error['msg']})") from e


class ScoreIngestion:
    def __init__(self, store: SessionStore, broadcaster: Broadcaster, gate: SlotGate):
        self.store = store
        self.broadcaster = broadcaster
        self.gate = gate
        # Only one slot can be active, so one lock per email serializes (email, slot).
        self.entry_locks = KeyLockManager("submissions")

    async def submit(self, score_data: Any) -> ScoreOutcomeSchema:
        """Record one player's result in the active slot, best score wins

        Args:
            score_data (Any): name, email, score, timetaken, displaytime, location

        Raises:
            ValidationError: A field is missing or invalid
            NoActiveSessionError: No slot is active
            StorageError: The store failed; nothing was written

        Returns:
            ScoreOutcomeSchema: Whether the stored entry changed, and the stored entry
        """
        submission = validate_submission(score_data)
        async with self.gate.submission(), self.entry_locks.hold(submission.email):
            outcome = await self.store.record_score(submission, datetime.now())

        if not outcome.updated:
            logging.info(
                f"Submission discarded for {submission.email}: "
                f"{submission.score}/{submission.timetaken} does not beat "
                f"{outcome.entry.score}/{outcome.entry.timetaken}"
            )
            return outcome

        logging.info(f"{outcome.message}: {submission.email} scored {submission.score} in {submission.timetaken}")
        await self._notify(outcome.entry.location, outcome.entry.email)
        return outcome

    async def _notify(self, location: str, email: str):
        # The entry is committed; viewers catch up on their next push if this fails.
        try:
            await self.broadcaster.publish_player_update(location, email)
            await self.broadcaster.publish_rankings(location)
        except LeaderboardError as e:
            logging.error(f"Failed to broadcast rankings for location {location}: {e.message}")

    async def check_email(self, email: str) -> EmailCheckSchema:
        """Report whether an email already played in the active slot"""
        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("email", "Email is required")

        active = await self.store.get_active_slot()
        if active is None:
            return EmailCheckSchema(has_played=False, message="No active slot found")

        entry = await self.store.find_entry(email, active.slot_id)
        if entry is None:
            message = f'Email {email} has not played in slot "{active.name}" yet'
        else:
            message = f'Email {email} has already played in slot "{active.name}"'
        return EmailCheckSchema(
            has_played=entry is not None,
            message=message,
            active_slot=active,
            player_data=entry,
        )
