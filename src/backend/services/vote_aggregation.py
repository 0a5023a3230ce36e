"""
Vote aggregation service.

Keeps an in-memory, eventually consistent view of candidates and votes:
- Full re-fetch of the vote set (paged) on every change
- Per-candidate tallies recomputed from scratch on each fetch
- Casting and cancelling votes with application-level one-vote-per-voter checks

Per voter the states are ``NoVote -> cast_vote -> Voted -> cancel_vote -> NoVote``.
Operations report failures through ``VoteOutcome`` instead of raising.
"""

import asyncio
import secrets
import string
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Awaitable, Callable, Iterable, Optional

import structlog

from core.config import RuntimeConfig
from db.platform import PlatformClient, PlatformError
from models.documents import CandidateRow, VoteRow
from repositories.candidate_repository import CandidateRepository
from repositories.profile_repository import ProfileRepository
from repositories.vote_repository import VoteRepository
from schemas.auth import AuthUser
from services.ip_lookup import IPLookupService

logger = structlog.get_logger(__name__)


class VoteFailureReason(str, Enum):
    """Why a vote operation was refused or failed."""

    NOT_AUTHENTICATED = "not_authenticated"
    VOTING_CLOSED = "voting_closed"
    ALREADY_VOTED = "already_voted"
    INVALID_CANDIDATE = "invalid_candidate"
    INSERT_FAILED = "insert_failed"
    NO_VOTE = "no_vote"
    DELETE_FAILED = "delete_failed"


FAILURE_MESSAGES = {
    VoteFailureReason.NOT_AUTHENTICATED: "You must be logged in to vote",
    VoteFailureReason.VOTING_CLOSED: "Voting has ended",
    VoteFailureReason.ALREADY_VOTED: "You have already voted",
    VoteFailureReason.INVALID_CANDIDATE: "Invalid candidate selected",
    VoteFailureReason.INSERT_FAILED: "Failed to cast vote",
    VoteFailureReason.NO_VOTE: "You have not voted yet",
    VoteFailureReason.DELETE_FAILED: "Failed to cancel vote",
}


@dataclass
class SecondaryWriteOutcome:
    """Result of the profile flag write that follows a vote write."""

    succeeded: bool
    attempts: int
    error: Optional[str] = None


@dataclass
class VoteOutcome:
    """Result of ``cast_vote`` / ``cancel_vote``."""

    success: bool
    reason: Optional[VoteFailureReason] = None
    error: Optional[str] = None
    vote: Optional[VoteRow] = None
    profile_sync: Optional[SecondaryWriteOutcome] = None

    @classmethod
    def failure(cls, reason: VoteFailureReason, error: Optional[str] = None) -> "VoteOutcome":
        return cls(success=False, reason=reason, error=error or FAILURE_MESSAGES[reason])


@dataclass
class RankedCandidate:
    """Candidate with its standing in the current tally."""

    rank: int
    candidate: CandidateRow
    votes: int
    percentage: float


@dataclass
class VoteSnapshot:
    """Votes and tallies from one complete fetch."""

    votes: list[VoteRow] = field(default_factory=list)
    counts: dict[int, int] = field(default_factory=dict)
    total: int = 0


def compute_tallies(votes: Iterable[VoteRow]) -> dict[int, int]:
    """Count votes per candidate id."""
    counts: dict[int, int] = {}
    for vote in votes:
        counts[vote.candidate_id] = counts.get(vote.candidate_id, 0) + 1
    return counts


def _to_base36(number: int) -> str:
    digits = string.digits + string.ascii_lowercase
    if number == 0:
        return "0"
    encoded = ""
    while number:
        number, remainder = divmod(number, 36)
        encoded = digits[remainder] + encoded
    return encoded


def generate_transaction_id() -> str:
    """Base-36 millisecond timestamp followed by five random upper-case characters."""
    suffix = "".join(secrets.choice(string.ascii_uppercase + string.digits) for _ in range(5))
    return _to_base36(int(time.time() * 1000)) + suffix


def rank_candidates(candidates: Iterable[CandidateRow], counts: dict[int, int]) -> list[RankedCandidate]:
    """Candidates ordered by vote count (then name), with share of the total."""
    total = sum(counts.values())
    ordered = sorted(candidates, key=lambda c: (-counts.get(c.id, 0), c.name.lower()))
    return [
        RankedCandidate(
            rank=index + 1,
            candidate=candidate,
            votes=counts.get(candidate.id, 0),
            percentage=round(counts.get(candidate.id, 0) / total * 100, 1) if total else 0.0,
        )
        for index, candidate in enumerate(ordered)
    ]


class VotingService:
    """
    In-memory aggregation of candidates and votes.

    State is only replaced by completed fetches; all mutation happens on the
    event loop, so readers always see a whole snapshot.
    """

    def __init__(
        self,
        platform: PlatformClient,
        config: RuntimeConfig,
        ip_lookup: IPLookupService | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.platform = platform
        self.config = config
        self.ip_lookup = ip_lookup
        self._sleep = sleep

        self.candidates: list[CandidateRow] = []
        self.snapshot = VoteSnapshot()
        self.error: Optional[str] = None
        # Candidate id of each voter's most recently cancelled vote
        self._last_cancelled: dict[str, int] = {}

        # Overlapping fetches: only the most recently started one may apply
        self._fetch_seq = 0
        self._applied_seq = 0

    # =========================================================================
    # Read side
    # =========================================================================

    @property
    def votes(self) -> list[VoteRow]:
        return self.snapshot.votes

    @property
    def vote_counts(self) -> dict[int, int]:
        return self.snapshot.counts

    @property
    def total_votes(self) -> int:
        return self.snapshot.total

    def user_vote(self, user_id: str) -> Optional[VoteRow]:
        """The voter's vote in the current snapshot."""
        return next((vote for vote in self.snapshot.votes if vote.user_id == user_id), None)

    def last_vote_cancelled(self, user_id: str) -> Optional[int]:
        return self._last_cancelled.get(user_id)

    def get_candidate(self, candidate_id: int) -> Optional[CandidateRow]:
        return next((c for c in self.candidates if c.id == candidate_id), None)

    def rankings(self) -> list[RankedCandidate]:
        return rank_candidates(self.candidates, self.snapshot.counts)

    # =========================================================================
    # Fetching
    # =========================================================================

    async def fetch_candidates(self) -> bool:
        """Reload all candidates; returns False (keeping the old list) on error."""
        try:
            candidates = await CandidateRepository(self.platform).list_all()
        except PlatformError as e:
            self.error = e.message or "Failed to fetch candidates"
            logger.error("candidates_fetch_failed", error=e.message, status_code=e.status_code)
            return False

        self.candidates = candidates
        self.error = None
        logger.info("candidates_fetched", count=len(candidates))
        return True

    async def fetch_all_votes(self) -> list[VoteRow]:
        """Every vote, read page by page. Raises ``PlatformError`` if any page fails."""
        return await VoteRepository(self.platform, page_size=self.config.page_size).fetch_all()

    async def fetch_votes(self) -> bool:
        """
        Reload all votes and recompute tallies.

        On error the previous snapshot is kept and the message recorded.
        """
        self._fetch_seq += 1
        seq = self._fetch_seq
        try:
            votes = await self.fetch_all_votes()
        except PlatformError as e:
            self.error = e.message or "Failed to fetch votes"
            logger.error("votes_fetch_failed", error=e.message, status_code=e.status_code)
            return False

        if seq < self._applied_seq:
            logger.debug("votes_fetch_superseded", seq=seq, applied=self._applied_seq)
            return True

        counts = compute_tallies(votes)
        self.snapshot = VoteSnapshot(votes=votes, counts=counts, total=len(votes))
        self._applied_seq = seq
        self.error = None
        logger.info("votes_fetched", count=len(votes), candidates=len(counts))
        return True

    async def refresh(self) -> None:
        """Reload candidates and votes."""
        await self.fetch_candidates()
        await self.fetch_votes()

    # =========================================================================
    # Casting and cancelling
    # =========================================================================

    async def cast_vote(
        self,
        user: Optional[AuthUser],
        candidate_id: int,
        ip_address: Optional[str] = None,
    ) -> VoteOutcome:
        """
        Cast the user's vote for a candidate.

        ``ip_address`` is the voter's own address. Without one the lookup
        service, if any, supplies a best-effort value.
        """
        if user is None:
            logger.warning("vote_rejected", reason=VoteFailureReason.NOT_AUTHENTICATED.value)
            return VoteOutcome.failure(VoteFailureReason.NOT_AUTHENTICATED)

        if self.config.voting_ended:
            logger.warning("vote_rejected", reason=VoteFailureReason.VOTING_CLOSED.value, user_id=user.id)
            return VoteOutcome.failure(VoteFailureReason.VOTING_CLOSED)

        existing = self.user_vote(user.id)
        if existing is not None:
            logger.warning(
                "vote_rejected",
                reason=VoteFailureReason.ALREADY_VOTED.value,
                user_id=user.id,
                existing_vote_id=existing.id,
            )
            return VoteOutcome.failure(VoteFailureReason.ALREADY_VOTED)

        candidate = self.get_candidate(candidate_id)
        if candidate is None:
            logger.warning("vote_rejected", reason=VoteFailureReason.INVALID_CANDIDATE.value, candidate_id=candidate_id)
            return VoteOutcome.failure(VoteFailureReason.INVALID_CANDIDATE)

        if ip_address is None and self.ip_lookup is not None:
            ip_address = await self.ip_lookup.resolve()
        transaction_id = generate_transaction_id()
        logger.debug("vote_inserting", user_id=user.id, candidate_id=candidate_id, transaction_id=transaction_id)

        repo = VoteRepository(self.platform, token=user.access_token, page_size=self.config.page_size)
        try:
            vote = await repo.create(
                user_id=user.id,
                candidate_id=candidate_id,
                transaction_id=transaction_id,
                ip_address=ip_address,
            )
        except PlatformError as e:
            self.error = e.message
            logger.error("vote_insert_failed", user_id=user.id, candidate_id=candidate_id, error=e.message)
            return VoteOutcome.failure(VoteFailureReason.INSERT_FAILED, e.message or None)

        profile_sync = await self._sync_profile(user, has_voted=True)
        await self.fetch_votes()

        logger.info(
            "vote_cast",
            user_id=user.id,
            candidate_id=candidate_id,
            candidate_name=candidate.name,
            profile_synced=profile_sync.succeeded,
        )
        return VoteOutcome(success=True, vote=vote, profile_sync=profile_sync)

    async def cancel_vote(self, user: Optional[AuthUser]) -> VoteOutcome:
        """Withdraw the user's vote. No cooldown applies."""
        if user is None:
            logger.warning("vote_cancel_rejected", reason=VoteFailureReason.NOT_AUTHENTICATED.value)
            return VoteOutcome.failure(
                VoteFailureReason.NOT_AUTHENTICATED, "You must be logged in to cancel a vote"
            )

        vote = self.user_vote(user.id)
        if vote is None:
            logger.warning("vote_cancel_rejected", reason=VoteFailureReason.NO_VOTE.value, user_id=user.id)
            return VoteOutcome.failure(VoteFailureReason.NO_VOTE)

        repo = VoteRepository(self.platform, token=user.access_token, page_size=self.config.page_size)
        try:
            removed = await repo.delete(vote.id)
        except PlatformError as e:
            self.error = e.message
            logger.error("vote_delete_failed", user_id=user.id, vote_id=vote.id, error=e.message)
            return VoteOutcome.failure(VoteFailureReason.DELETE_FAILED, e.message or None)

        if not removed:
            logger.warning("vote_already_removed", user_id=user.id, vote_id=vote.id)

        profile_sync = await self._sync_profile(user, has_voted=False)
        self._last_cancelled[user.id] = vote.candidate_id
        await self.fetch_votes()

        logger.info("vote_cancelled", user_id=user.id, vote_id=vote.id, candidate_id=vote.candidate_id)
        return VoteOutcome(success=True, vote=vote, profile_sync=profile_sync)

    async def _sync_profile(self, user: AuthUser, has_voted: bool) -> SecondaryWriteOutcome:
        """
        Mirror the vote state onto the profile flag.

        Retried with exponential backoff; a final failure is reported to the
        caller and does not undo the vote write.
        """
        repo = ProfileRepository(self.platform, token=user.access_token)
        attempts = max(self.config.profile_sync_attempts, 1)
        last_error: Optional[str] = None

        for attempt in range(attempts):
            if attempt:
                await self._sleep(self.config.profile_sync_backoff_seconds * 2 ** (attempt - 1))
            try:
                await repo.set_has_voted(user.id, has_voted)
                return SecondaryWriteOutcome(succeeded=True, attempts=attempt + 1)
            except PlatformError as e:
                last_error = e.message
                logger.warning(
                    "profile_sync_failed",
                    user_id=user.id,
                    has_voted=has_voted,
                    attempt=attempt + 1,
                    error=e.message,
                )

        logger.error("profile_sync_abandoned", user_id=user.id, has_voted=has_voted, attempts=attempts)
        return SecondaryWriteOutcome(succeeded=False, attempts=attempts, error=last_error)
