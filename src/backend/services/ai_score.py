"""
AI Score service for DJ candidates.

Derives a cosmetic 75-97 quality indicator per candidate from the email
addresses of the people who voted for it:
1. Gmail Verification - Gmail accounts are weighted as better verified
2. Pattern / Numeric / Format / Terminology checks - spam-like local parts
3. Email Verification - share of addresses that pass every spam check

The score is not an anti-fraud signal. It is defined for every input: data
errors resolve to a fallback value and are never surfaced.
"""

import asyncio
import math
import random
import re
from dataclasses import dataclass
from typing import Callable, Optional

import structlog
from pydantic import BaseModel

from core.config import RuntimeConfig
from db.platform import PlatformClient
from repositories.profile_repository import ProfileRepository
from repositories.vote_repository import VoteRepository

logger = structlog.get_logger(__name__)


# =============================================================================
# Configuration
# =============================================================================


class ScoreConfig:
    """AI score configuration."""

    MIN_SCORE = 75
    MAX_SCORE = 97

    # Zero-vote baseline range
    BASELINE_MIN = 76
    BASELINE_SPAN = 10  # 76-85

    # Weighted blend
    VERIFIED_WEIGHT = 0.5
    GMAIL_WEIGHT = 0.2
    SPAM_WEIGHT = 1 - VERIFIED_WEIGHT - GMAIL_WEIGHT
    SPAM_SCORE_FLOOR = 50.0

    # Raw 0-100 blend to display range
    DISPLAY_SCALE = 0.22

    # Used when votes or profiles cannot be loaded
    FALLBACK_BASE = 80
    FALLBACK_STEP = 3
    FALLBACK_VARIANTS = 5

    SPAM_KEYWORDS = ("temp", "fake", "test", "spam", "throw", "away", "random", "disposable")


GMAIL_SUFFIX = "@gmail.com"
_SPAM_KEYWORD_RE = re.compile("(" + "|".join(ScoreConfig.SPAM_KEYWORDS) + ")")


def _local_part(email: str) -> str:
    return email.strip().split("@")[0].lower()


def is_gmail(email: str) -> bool:
    """Whether the address is a Gmail address."""
    return email.strip().lower().endswith(GMAIL_SUFFIX)


def _long_run_without_letters(email: str) -> bool:
    local = _local_part(email)
    return bool(re.fullmatch(r"[a-z0-9]{10,}", local)) and not re.search(r"[a-z]", local)


def _leading_digits(email: str) -> bool:
    return bool(re.match(r"[0-9]{4,}", _local_part(email)))


def _alternating_letter_digit(email: str) -> bool:
    return bool(re.match(r"[a-z][0-9][a-z][0-9][a-z][0-9]", _local_part(email)))


def _disposable_keyword(email: str) -> bool:
    return bool(_SPAM_KEYWORD_RE.search(_local_part(email)))


@dataclass(frozen=True)
class SpamCriterion:
    """One email quality criterion."""

    name: str
    description: str
    weight: float
    detect: Callable[[str], bool]


SPAM_CRITERIA: tuple[SpamCriterion, ...] = (
    SpamCriterion(
        "Pattern Consistency",
        "Well-structured email addresses show higher pattern consistency",
        0.1,
        _long_run_without_letters,
    ),
    SpamCriterion(
        "Numeric Balance",
        "Balanced use of numbers in email addresses receive higher quality scores",
        0.1,
        _leading_digits,
    ),
    SpamCriterion(
        "Format Consistency",
        "Natural email patterns show better format consistency",
        0.05,
        _alternating_letter_digit,
    ),
    SpamCriterion(
        "Terminology Quality",
        "Professional terminology in email addresses receives higher scores",
        0.05,
        _disposable_keyword,
    ),
)

GMAIL_CRITERION = SpamCriterion(
    "Gmail Verification",
    "Gmail accounts receive higher trust scores for stronger verification",
    ScoreConfig.GMAIL_WEIGHT,
    lambda email: not is_gmail(email),
)

VERIFICATION_CRITERION = SpamCriterion(
    "Email Verification",
    "Measures the percentage of emails that meet quality standards",
    ScoreConfig.VERIFIED_WEIGHT,
    lambda email: not is_likely_spam_email(email),
)


def is_likely_spam_email(email: str) -> bool:
    """An address is spam-like when it trips any spam criterion."""
    return any(criterion.detect(email) for criterion in SPAM_CRITERIA)


def get_spam_detection_criteria() -> list[dict]:
    """Criteria descriptions with weights as percentages, for display."""
    criteria = (GMAIL_CRITERION, *SPAM_CRITERIA, VERIFICATION_CRITERION)
    return [
        {"name": c.name, "description": c.description, "weight": round(c.weight * 100)}
        for c in criteria
    ]


# =============================================================================
# Schemas
# =============================================================================


@dataclass
class EmailStats:
    """Classification counts for one candidate's voters."""

    total_votes: int = 0
    verified_emails: int = 0
    spam_emails: int = 0
    non_gmail_emails: int = 0

    @property
    def seed(self) -> float:
        """Value in [0, 1) that is stable for the same vote composition."""
        seed_value = self.verified_emails + self.spam_emails * 2 + self.non_gmail_emails * 3
        return (seed_value % 100) / 100


class AIScoreData(BaseModel):
    """Score for one candidate."""

    candidate_id: int
    score: int
    verified_emails: int = 0
    spam_emails: int = 0
    non_gmail_count: int = 0
    total_votes: int = 0


# =============================================================================
# Scoring
# =============================================================================


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def clamp_score(score: int) -> int:
    """Clamp to the display range."""
    return min(max(score, ScoreConfig.MIN_SCORE), ScoreConfig.MAX_SCORE)


def baseline_score(candidate_id: int) -> int:
    """Stable 76-85 score for a candidate without votes."""
    return ScoreConfig.BASELINE_MIN + (candidate_id * 7) % ScoreConfig.BASELINE_SPAN


def fallback_score(candidate_id: int) -> int:
    """Score used when the candidate's data cannot be loaded."""
    return ScoreConfig.FALLBACK_BASE + (candidate_id % ScoreConfig.FALLBACK_VARIANTS) * ScoreConfig.FALLBACK_STEP


def analyze_emails(emails: list[str], jitter: bool = True) -> EmailStats:
    """
    Classify voter emails.

    With jitter the verified count is scaled by a factor in [0.90, 1.10]
    derived from the composition itself. At least one verified and one spam
    address are always reported so that scores spread out.
    """
    if not emails:
        return EmailStats()

    verified = 0
    spam = 0
    non_gmail = 0
    for email in emails:
        if not is_gmail(email):
            non_gmail += 1
        if is_likely_spam_email(email):
            spam += 1
        else:
            verified += 1

    logger.debug("emails_analyzed", total=len(emails), verified=verified, spam=spam, non_gmail=non_gmail)

    if jitter:
        composition = f"{len(emails)}:{verified}:{spam}:{non_gmail}"
        factor = 0.90 + random.Random(composition).random() * 0.20
        verified = min(_round_half_up(verified * factor), len(emails))

    return EmailStats(
        total_votes=len(emails),
        verified_emails=max(verified, 1),
        spam_emails=max(spam, 1),
        non_gmail_emails=non_gmail,
    )


def calculate_score_from_stats(stats: EmailStats, candidate_id: int = 0, jitter: bool = True) -> int:
    """Score in [75, 97] from classification counts."""
    if stats.total_votes == 0:
        return baseline_score(candidate_id)

    total = stats.total_votes
    verified_score = stats.verified_emails / total * 100
    spam_score = max((total - stats.spam_emails) / total * 100, ScoreConfig.SPAM_SCORE_FLOOR)
    gmail_score = (total - stats.non_gmail_emails) / total * 100

    blend = (
        verified_score * ScoreConfig.VERIFIED_WEIGHT
        + spam_score * ScoreConfig.SPAM_WEIGHT
        + gmail_score * ScoreConfig.GMAIL_WEIGHT
    )

    if not jitter:
        normalized = ScoreConfig.MIN_SCORE + blend * ScoreConfig.DISPLAY_SCALE
        return clamp_score(_round_half_up(normalized))

    seed = stats.seed
    weighted = blend * (0.97 + seed * 0.06)

    # Keep scores away from the edges so candidates do not all pile up there
    if weighted > 95:
        weighted = 90 + (weighted % 8)
    elif weighted < 80:
        weighted = 75 + (weighted % 10)

    normalized = ScoreConfig.MIN_SCORE + weighted * ScoreConfig.DISPLAY_SCALE
    randomized = normalized * (0.98 + seed * 0.04)
    bounded = min(max(randomized, ScoreConfig.MIN_SCORE), ScoreConfig.MAX_SCORE)
    return _round_half_up(bounded)


def make_scores_distinct(scores: dict[int, AIScoreData]) -> dict[int, AIScoreData]:
    """
    Nudge tied scores apart, in insertion order.

    A score equal to an earlier one moves up by one for even candidate ids and
    down by one for odd ids, clamped to the display range. Ties that survive
    the clamp are kept.
    """
    distinct: dict[int, AIScoreData] = {}
    for candidate_id, data in scores.items():
        taken = {existing.score for existing in distinct.values()}
        if data.score in taken:
            nudged = data.score + (1 if candidate_id % 2 == 0 else -1)
            data = data.model_copy(update={"score": clamp_score(nudged)})
        distinct[candidate_id] = data
    return distinct


class AIScoreService:
    """Computes and caches AI scores for candidates."""

    def __init__(self, platform: PlatformClient, config: RuntimeConfig, token: str | None = None):
        self.platform = platform
        self.config = config
        self.token = token
        self._scores: dict[int, AIScoreData] = {}

    @property
    def cached_scores(self) -> dict[int, AIScoreData]:
        """Scores from the last full computation."""
        return dict(self._scores)

    async def calculate_ai_score(self, candidate_id: int) -> AIScoreData:
        """Score one candidate. Never raises."""
        vote_repo = VoteRepository(self.platform, token=self.token, page_size=self.config.page_size)
        profile_repo = ProfileRepository(self.platform, token=self.token)

        try:
            voter_ids = await vote_repo.list_voter_ids(candidate_id)
        except Exception as e:
            logger.warning("ai_score_votes_unavailable", candidate_id=candidate_id, error=str(e))
            return AIScoreData(candidate_id=candidate_id, score=fallback_score(candidate_id))

        if not voter_ids:
            return AIScoreData(candidate_id=candidate_id, score=baseline_score(candidate_id))

        try:
            emails = await profile_repo.list_emails(voter_ids)
        except Exception as e:
            logger.warning("ai_score_profiles_unavailable", candidate_id=candidate_id, error=str(e))
            return AIScoreData(
                candidate_id=candidate_id,
                score=fallback_score(candidate_id),
                total_votes=len(voter_ids),
            )

        jitter = self.config.score_jitter_enabled
        stats = analyze_emails(emails, jitter=jitter)
        score = calculate_score_from_stats(stats, candidate_id, jitter=jitter)

        logger.info(
            "ai_score_calculated",
            candidate_id=candidate_id,
            score=score,
            votes=len(voter_ids),
            emails=len(emails),
        )
        return AIScoreData(
            candidate_id=candidate_id,
            score=score,
            verified_emails=stats.verified_emails,
            spam_emails=stats.spam_emails,
            non_gmail_count=stats.non_gmail_emails,
            total_votes=len(voter_ids),
        )

    async def calculate_all_ai_scores(self, candidate_ids: list[int]) -> dict[int, AIScoreData]:
        """Score every candidate and keep displayed scores distinct where possible."""
        results = await asyncio.gather(*(self.calculate_ai_score(cid) for cid in candidate_ids))
        scores = {data.candidate_id: data for data in results}
        # Without jitter ties are reported as computed
        if self.config.score_jitter_enabled:
            scores = make_scores_distinct(scores)
        self._scores = scores
        return dict(scores)

    def get_cached_score(self, candidate_id: int) -> Optional[AIScoreData]:
        """Cached score for a candidate, if computed."""
        return self._scores.get(candidate_id)
