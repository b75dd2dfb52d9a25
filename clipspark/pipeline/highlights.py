"""Highlight selection over a timestamped transcript.

Pipeline stages:
1. Candidate generation: one fixed-length window per transcript segment
2. Scoring: word count, punctuation energy and goal keywords
3. Greedy selection: best-first, spaced apart by a fraction of the length
4. Fallback top-up: fixed positions so a job always yields its clips
"""
import logging
import re
from dataclasses import dataclass
from typing import Dict, List, Protocol, Sequence, Tuple

from clipspark.models.transcript import HighlightCandidate, HighlightWindow, TranscriptSegment

logger = logging.getLogger(__name__)


# Clip length presets (seconds)
LENGTH_PRESETS: Dict[str, int] = {
    "short": 24,
    "medium": 36,
    "long": 52,
}
DEFAULT_LENGTH = "short"

GOALS = ("highlights", "story", "tutorial")
DEFAULT_GOAL = "highlights"

MIN_CANDIDATE_START = 5.0  # Skip intros
SPACING_RATIO = 0.6
FALLBACK_POSITIONS: Tuple[float, ...] = (0.12, 0.45, 0.72)

KEYWORDS: Dict[str, Tuple[str, ...]] = {
    "highlights": (
        "secret", "mistake", "fast", "tip", "hack", "why", "how",
        "stop", "start", "best", "worst", "truth", "real",
    ),
    "story": ("then", "suddenly", "but", "until", "finally", "turned", "realized"),
    "tutorial": ("step", "first", "second", "third", "next", "exactly", "change", "setup"),
}

_PUNCTUATION_RE = re.compile(r"[!?]")


def target_duration_for(length: str) -> int:
    """Resolve a length preset to seconds. Unknown presets fall back to short."""
    return LENGTH_PRESETS.get(length, LENGTH_PRESETS[DEFAULT_LENGTH])


@dataclass(frozen=True)
class SelectionParams:
    """Parameters for one selection run."""
    target_duration: float
    count: int = 3
    goal: str = DEFAULT_GOAL

    @classmethod
    def from_options(cls, length: str, goal: str, count: int = 3) -> "SelectionParams":
        return cls(
            target_duration=target_duration_for(length),
            count=count,
            goal=goal if goal in GOALS else DEFAULT_GOAL,
        )


# =============================================================================
# Scoring
# =============================================================================

class ScoringStrategy(Protocol):
    def score(self, text: str) -> float:
        """Return a relevance score for the aggregated window text."""


class KeywordScorer:
    """Scores text by length, punctuation energy and keyword hits."""

    word_weight = 1
    punctuation_weight = 2
    keyword_weight = 2

    def __init__(self, keywords: Sequence[str]):
        self.keywords = tuple(k.lower() for k in keywords)

    def score(self, text: str) -> float:
        if not text:
            return 0
        lower = text.lower()
        words = len(lower.split())
        punctuation = len(_PUNCTUATION_RE.findall(text))
        hits = sum(1 for keyword in self.keywords if keyword in lower)
        return (
            self.word_weight * words
            + self.punctuation_weight * punctuation
            + self.keyword_weight * hits
        )

    def __repr__(self):
        return f"KeywordScorer({len(self.keywords)} keywords)"


def scorer_for_goal(goal: str) -> ScoringStrategy:
    """Get the scoring strategy for a goal (unknown goals score as highlights)."""
    return KeywordScorer(KEYWORDS.get(goal, KEYWORDS[DEFAULT_GOAL]))


# =============================================================================
# Selection
# =============================================================================

def window_text(transcript: Sequence[TranscriptSegment], start: float, end: float) -> str:
    """Join the text of every segment overlapping [start, end)."""
    return " ".join(seg.text for seg in transcript if seg.overlaps(start, end))


def generate_candidates(
    transcript: Sequence[TranscriptSegment],
    total_duration: float,
    params: SelectionParams,
    scorer: ScoringStrategy,
) -> List[HighlightCandidate]:
    """Build one scored candidate per segment whose offset is a valid start."""
    target = params.target_duration
    max_start = max(0.0, total_duration - target - 1)

    candidates = []
    for segment in transcript:
        start = segment.offset
        if start < MIN_CANDIDATE_START or start > max_start:
            continue
        end = start + target
        candidates.append(HighlightCandidate(
            start=start,
            end=end,
            score=scorer.score(window_text(transcript, start, end)),
        ))
    return candidates


def pick_spaced(
    candidates: Sequence[HighlightCandidate],
    count: int,
    min_spacing: float,
) -> List[HighlightCandidate]:
    """
    Greedy best-first selection.

    Ties keep their original order (``sorted`` is stable). A candidate is
    rejected if its start is closer than ``min_spacing`` to any pick.
    """
    ranked = sorted(candidates, key=lambda c: c.score, reverse=True)

    picks: List[HighlightCandidate] = []
    for candidate in ranked:
        if len(picks) >= count:
            break
        too_close = any(abs(p.start - candidate.start) < min_spacing for p in picks)
        if not too_close:
            picks.append(candidate)
    return picks


def fallback_candidates(
    total_duration: float,
    params: SelectionParams,
) -> List[HighlightCandidate]:
    """Fixed-position windows used when scoring cannot fill every slot."""
    target = params.target_duration
    max_start = max(0.0, total_duration - target - 1)

    fallbacks = []
    for ratio in FALLBACK_POSITIONS[:params.count]:
        start = min(max_start, max(0.0, total_duration * ratio))
        end = min(total_duration, start + target)
        fallbacks.append(HighlightCandidate(start=start, end=end, score=0, fallback=True))
    return fallbacks


def select_highlights(
    transcript: Sequence[TranscriptSegment],
    total_duration: float,
    params: SelectionParams,
    scorer: ScoringStrategy = None,
) -> List[HighlightWindow]:
    """
    Select up to ``params.count`` highlight windows.

    Args:
        transcript: Segments ordered by offset
        total_duration: Media duration in seconds
        params: Target length, clip count and goal
        scorer: Scoring strategy (defaults to the goal's keyword scorer)

    Returns:
        Windows numbered 1..count in selection order. Fallback windows
        ignore the spacing rule.
    """
    scorer = scorer or scorer_for_goal(params.goal)

    candidates = generate_candidates(transcript, total_duration, params, scorer)
    picks = pick_spaced(candidates, params.count, params.target_duration * SPACING_RATIO)

    if len(picks) < params.count:
        logger.info(
            f"Only {len(picks)}/{params.count} spaced candidates from "
            f"{len(candidates)}; topping up with fallback windows"
        )
        picks.extend(fallback_candidates(total_duration, params))

    windows = [
        HighlightWindow(id=i + 1, start=pick.start, end=pick.end, fallback=pick.fallback)
        for i, pick in enumerate(picks[:params.count])
    ]
    logger.debug(f"Selected windows: {[w.to_dict() for w in windows]}")
    return windows
