"""
Mood scoring — turn a conversation into a reply, a summary and a 0–100 mood.

Two interchangeable backends satisfy the same `MoodScorer` protocol:

  HeuristicMoodScorer  keyword rules, no I/O (the default)
  RemoteMoodScorer     POSTs the conversation to a model endpoint

Callers never use a backend directly; they go through analyze_safely(),
which is total: any backend failure is logged and replaced by a neutral
result so the chat always gets a reply.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol, Sequence

import httpx
import structlog
from pydantic import BaseModel, ValidationError

from moodchat.core.errors import ScorerUnavailableError

logger = structlog.get_logger()

NEUTRAL_SCORE = 50
NEUTRAL_LABEL = "neutral"
NEUTRAL_REPLY = "Thank you for sharing. Can you tell me more about how you're feeling?"
NEUTRAL_SUMMARY = "Conversation just started."


# ---------------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class HistoryMessage:
    text: str
    is_bot: bool
    timestamp: Optional[datetime] = None


@dataclass(frozen=True)
class MoodAnalysis:
    response: str
    summary: str
    mood_score: int
    mood_label: str


class MoodScorer(Protocol):
    def analyze(self, history: Sequence[HistoryMessage], latest: str) -> MoodAnalysis: ...


def clamp_score(value: float) -> int:
    return max(0, min(100, int(round(value))))


def label_for(score: int) -> str:
    if score >= 75:
        return "happy"
    if score >= 60:
        return "content"
    if score >= 40:
        return "neutral"
    if score >= 25:
        return "sad"
    return "distressed"


def neutral_analysis() -> MoodAnalysis:
    return MoodAnalysis(
        response=NEUTRAL_REPLY,
        summary=NEUTRAL_SUMMARY,
        mood_score=NEUTRAL_SCORE,
        mood_label=NEUTRAL_LABEL,
    )


# ---------------------------------------------------------------------------
# Heuristic backend
# ---------------------------------------------------------------------------

# Substring matches, so "unhappy" also counts as "happy".
_POSITIVE = ("happy", "good", "great", "excellent", "wonderful", "pleased", "joy", "excitement")
_NEGATIVE = ("sad", "depressed", "unhappy", "anxious", "worried", "stressed", "angry", "upset")

_SUMMARY_KEYWORDS = {
    "positive": ("happy", "good", "great", "excellent", "wonderful", "pleased"),
    "negative": ("sad", "depressed", "unhappy", "anxious", "worried", "stressed"),
    "neutral": ("okay", "fine", "alright", "so-so"),
}

_REPLIES = [
    (("hello", "hi"), "Hello! How can I help you today?"),
    (("sad", "depressed"),
     "I'm sorry to hear you're feeling down. Would you like to talk about what's bothering you?"),
    (("happy", "good"),
     "I'm glad to hear you're doing well! What has been going well for you?"),
    (("anxious", "worried"),
     "It sounds like you're experiencing some anxiety. Would it help to talk through what's on your mind?"),
]


class HeuristicMoodScorer:
    """Keyword-rule scorer. Deterministic and I/O free."""

    def analyze(self, history: Sequence[HistoryMessage], latest: str) -> MoodAnalysis:
        score = self.score(latest)
        return MoodAnalysis(
            response=self.reply(latest),
            summary=self.summarize(history),
            mood_score=score,
            mood_label=label_for(score),
        )

    @staticmethod
    def reply(text: str) -> str:
        lowered = text.lower()
        for keywords, reply in _REPLIES:
            if any(k in lowered for k in keywords):
                return reply
        return NEUTRAL_REPLY

    @staticmethod
    def score(text: str) -> int:
        lowered = text.lower()
        score = NEUTRAL_SCORE
        score += 10 * sum(1 for w in _POSITIVE if w in lowered)
        score -= 10 * sum(1 for w in _NEGATIVE if w in lowered)
        return clamp_score(score)

    @staticmethod
    def summarize(history: Sequence[HistoryMessage]) -> str:
        if len(history) <= 2:
            return NEUTRAL_SUMMARY

        counts = {tone: 0 for tone in _SUMMARY_KEYWORDS}
        for message in history:
            if message.is_bot:
                continue
            text = message.text.lower()
            for tone, words in _SUMMARY_KEYWORDS.items():
                counts[tone] += sum(1 for w in words if w in text)

        pos, neg, neu = counts["positive"], counts["negative"], counts["neutral"]
        if pos > neg and pos > neu:
            return "User is expressing generally positive emotions in this conversation."
        if neg > pos and neg > neu:
            return "User is expressing some concerns or negative emotions in this conversation."
        if neu > pos and neu > neg:
            return "User is expressing mainly neutral sentiments in this conversation."
        return "Mixed emotional content in this conversation."


# ---------------------------------------------------------------------------
# Remote backend
# ---------------------------------------------------------------------------

class RemoteAnalysis(BaseModel):
    """Shape of the model endpoint's JSON reply."""
    response: str
    summary: str
    mood_score: float
    mood_label: Optional[str] = None


class RemoteMoodScorer:
    """Delegates to an HTTP model endpoint; raises ScorerUnavailableError on any failure."""

    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.Client] = None):
        if not url:
            raise ValueError("RemoteMoodScorer requires a URL")
        self.url = url
        self._client = client or httpx.Client(timeout=timeout)

    def analyze(self, history: Sequence[HistoryMessage], latest: str) -> MoodAnalysis:
        payload = {
            "history": [
                {
                    "text": m.text,
                    "isBot": m.is_bot,
                    "timestamp": m.timestamp.isoformat() if m.timestamp else None,
                }
                for m in history
            ],
            "latest": latest,
        }
        try:
            resp = self._client.post(self.url, json=payload)
            resp.raise_for_status()
            body = RemoteAnalysis.model_validate(resp.json())
        except httpx.HTTPError as exc:
            raise ScorerUnavailableError(f"{exc.__class__.__name__}: {exc}") from exc
        except (ValidationError, ValueError) as exc:
            raise ScorerUnavailableError(f"malformed reply: {exc.__class__.__name__}") from exc

        score = clamp_score(body.mood_score)
        return MoodAnalysis(
            response=body.response,
            summary=body.summary,
            mood_score=score,
            mood_label=body.mood_label or label_for(score),
        )

    def close(self) -> None:
        self._client.close()


# ---------------------------------------------------------------------------
# Public — entry points
# ---------------------------------------------------------------------------

def analyze_safely(scorer: MoodScorer, history: Sequence[HistoryMessage], latest: str) -> MoodAnalysis:
    """
    Run the scorer and normalize its result; on any failure return the
    neutral result instead. The returned score is always an int in [0, 100].
    """
    try:
        result = scorer.analyze(history, latest)
        score = clamp_score(result.mood_score)
        analysis = MoodAnalysis(
            response=str(result.response),
            summary=str(result.summary),
            mood_score=score,
            mood_label=result.mood_label or label_for(score),
        )
    except Exception as exc:  # noqa: BLE001
        logger.warning(
            "mood_scorer_degraded",
            scorer=type(scorer).__name__,
            error=f"{exc.__class__.__name__}: {exc}",
        )
        return neutral_analysis()
    return analysis


def build_scorer(settings) -> MoodScorer:
    """Pick the backend named by settings.MOOD_SCORER."""
    kind = settings.MOOD_SCORER.strip().lower()
    if kind == "heuristic":
        return HeuristicMoodScorer()
    if kind == "remote":
        return RemoteMoodScorer(
            url=settings.MOOD_SCORER_URL,
            timeout=settings.MOOD_SCORER_TIMEOUT_SECONDS,
        )
    raise ValueError(f"Unknown MOOD_SCORER: {settings.MOOD_SCORER!r}")
