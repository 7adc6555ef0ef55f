from app.schemas.events import SentimentScores
from app.workers.llm import sentiment_from_scores


def test_label_is_highest_scoring_class():
    sentiment = sentiment_from_scores(
        SentimentScores(positive=0.1, negative=0.6, neutral=0.2, mixed=0.1)
    )

    assert sentiment.sentiment == "NEGATIVE"
    assert sentiment.confidence == 0.6
    assert sentiment.scores.neutral == 0.2


def test_mixed_label():
    sentiment = sentiment_from_scores(
        SentimentScores(positive=0.2, negative=0.2, neutral=0.1, mixed=0.5)
    )

    assert sentiment.sentiment == "MIXED"
