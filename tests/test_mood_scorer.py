"""
Tests for mood scoring backends and the total analyze_safely() wrapper.
"""
from __future__ import annotations

import httpx
import pytest
from structlog.testing import capture_logs

from moodchat.core.config import Settings
from moodchat.core.errors import ScorerUnavailableError
from moodchat.services.mood_scorer import (
    HeuristicMoodScorer,
    HistoryMessage,
    MoodAnalysis,
    NEUTRAL_REPLY,
    RemoteMoodScorer,
    analyze_safely,
    build_scorer,
    label_for,
    neutral_analysis,
)


def _user(text):
    return HistoryMessage(text=text, is_bot=False)


def _bot(text):
    return HistoryMessage(text=text, is_bot=True)


# ---------------------------------------------------------------------------
# Heuristic backend
# ---------------------------------------------------------------------------

class TestHeuristicScore:
    def test_neutral_text(self):
        assert HeuristicMoodScorer.score("the weather exists") == 50

    def test_positive_words_raise_score(self):
        assert HeuristicMoodScorer.score("I feel great, really good") == 70

    def test_negative_words_lower_score(self):
        assert HeuristicMoodScorer.score("sad and worried") == 30

    def test_clamped_to_range(self):
        many_bad = "sad depressed anxious worried stressed angry upset"
        assert HeuristicMoodScorer.score(many_bad) == 0
        many_good = "happy good great excellent wonderful pleased joy excitement"
        assert HeuristicMoodScorer.score(many_good) == 100

    @pytest.mark.parametrize("score,label", [
        (80, "happy"), (75, "happy"), (74, "content"), (60, "content"),
        (59, "neutral"), (40, "neutral"), (39, "sad"), (25, "sad"), (24, "distressed"),
    ])
    def test_labels(self, score, label):
        assert label_for(score) == label


class TestHeuristicReplyAndSummary:
    def test_greeting_reply(self):
        assert HeuristicMoodScorer.reply("Hello there").startswith("Hello!")

    def test_sad_reply(self):
        assert "sorry" in HeuristicMoodScorer.reply("I am so depressed")

    def test_fallback_reply(self):
        assert HeuristicMoodScorer.reply("the bus was late") == NEUTRAL_REPLY

    def test_short_conversation_summary(self):
        assert HeuristicMoodScorer.summarize([_bot("Good morning!"), _user("meh")]) == (
            "Conversation just started."
        )

    def test_positive_summary_counts_user_messages_only(self):
        history = [
            _bot("I'm sad to hear that, so sad"),
            _user("today was great"),
            _user("really happy"),
        ]
        assert "positive" in HeuristicMoodScorer.summarize(history)

    def test_negative_summary(self):
        history = [_bot("Hi"), _user("I'm stressed"), _user("and anxious")]
        assert "negative" in HeuristicMoodScorer.summarize(history)

    def test_mixed_summary(self):
        history = [_bot("Hi"), _user("great"), _user("sad")]
        assert HeuristicMoodScorer.summarize(history) == "Mixed emotional content in this conversation."

    def test_analyze_combines_parts(self):
        result = HeuristicMoodScorer().analyze([_bot("Hi"), _user("I'm happy")], "I'm happy")
        assert result.mood_score == 60
        assert result.mood_label == "content"
        assert result.summary == "Conversation just started."


# ---------------------------------------------------------------------------
# analyze_safely
# ---------------------------------------------------------------------------

class _Broken:
    def analyze(self, history, latest):
        raise ConnectionError("upstream down")


class _OutOfRange:
    def analyze(self, history, latest):
        return MoodAnalysis(response="ok", summary="s", mood_score=150, mood_label="happy")


class _FixedScore:
    def __init__(self, score, label="content"):
        self.score = score
        self.label = label

    def analyze(self, history, latest):
        return MoodAnalysis(response="ok", summary="s", mood_score=self.score, mood_label=self.label)


class TestAnalyzeSafely:
    def test_failure_yields_neutral_result(self):
        with capture_logs() as logs:
            result = analyze_safely(_Broken(), [], "hello")
        assert result == neutral_analysis()
        assert result.mood_score == 50
        degraded = [e for e in logs if e["event"] == "mood_scorer_degraded"]
        assert degraded and degraded[0]["log_level"] == "warning"
        assert degraded[0]["scorer"] == "_Broken"

    def test_out_of_range_score_is_clamped(self):
        assert analyze_safely(_OutOfRange(), [], "x").mood_score == 100

    def test_passes_through_valid_result(self):
        result = analyze_safely(HeuristicMoodScorer(), [], "good")
        assert result.mood_score == 60

    def test_missing_score_yields_neutral_result(self):
        with capture_logs() as logs:
            result = analyze_safely(_FixedScore(None), [], "hi")
        assert result == neutral_analysis()
        assert any(e["event"] == "mood_scorer_degraded" for e in logs)

    def test_float_score_becomes_int(self):
        result = analyze_safely(_FixedScore(55.0), [], "hi")
        assert result.mood_score == 55
        assert type(result.mood_score) is int

    def test_missing_label_is_derived(self):
        result = analyze_safely(_FixedScore(80, label=None), [], "hi")
        assert result.mood_label == "happy"


# ---------------------------------------------------------------------------
# Remote backend
# ---------------------------------------------------------------------------

def _remote(handler) -> RemoteMoodScorer:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return RemoteMoodScorer(url="http://scorer.test/analyze", client=client)


class TestRemoteScorer:
    def test_successful_reply(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.read()
            return httpx.Response(200, json={
                "response": "I hear you.",
                "summary": "User is tired.",
                "mood_score": 35.4,
                "mood_label": "sad",
            })

        result = _remote(handler).analyze([_user("so tired")], "so tired")
        assert result == MoodAnalysis("I hear you.", "User is tired.", 35, "sad")
        assert b'"latest":"so tired"' in seen["body"].replace(b" ", b"")

    def test_missing_label_is_derived(self):
        handler = lambda r: httpx.Response(200, json={"response": "r", "summary": "s", "mood_score": 90})
        assert _remote(handler).analyze([], "x").mood_label == "happy"

    def test_http_error_raises_unavailable(self):
        handler = lambda r: httpx.Response(503, json={"error": "busy"})
        with pytest.raises(ScorerUnavailableError):
            _remote(handler).analyze([], "x")

    def test_malformed_reply_raises_unavailable(self):
        handler = lambda r: httpx.Response(200, json={"unexpected": True})
        with pytest.raises(ScorerUnavailableError):
            _remote(handler).analyze([], "x")

    def test_transport_error_degrades_to_neutral(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        assert analyze_safely(_remote(handler), [], "x") == neutral_analysis()

    def test_requires_url(self):
        with pytest.raises(ValueError):
            RemoteMoodScorer(url="")


class TestBuildScorer:
    def test_default_is_heuristic(self):
        assert isinstance(build_scorer(Settings(MOOD_SCORER="heuristic")), HeuristicMoodScorer)

    def test_remote(self):
        scorer = build_scorer(Settings(MOOD_SCORER="remote", MOOD_SCORER_URL="http://scorer.test"))
        assert isinstance(scorer, RemoteMoodScorer)
        scorer.close()

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_scorer(Settings(MOOD_SCORER="oracle"))
