import json
from unittest.mock import MagicMock

from retailhub.services.prospect_scoring_service import ProspectScoringService

PROSPECT = {
    "business_name": "Kapsalon Knip",
    "business_segment": "hair_salon",
    "city": "Utrecht",
    "phone": "+31301234567",
    "raw_data": {"rating": 4.6, "user_ratings_total": 120},
}


def _client(content):
    client = MagicMock()
    response = MagicMock()
    response.choices = [MagicMock()]
    response.choices[0].message.content = content
    client.chat.completions.create.return_value = response
    return client


def test_unconfigured_scorer_returns_none():
    scorer = ProspectScoringService(api_key=None)
    assert scorer.configured is False
    assert scorer.score(PROSPECT) is None
    assert scorer.test_connection()["success"] is False


def test_score_parses_json_and_clamps():
    client = _client(json.dumps({"score": 1.7, "reasoning": "Sterke match"}))
    scorer = ProspectScoringService(model="gpt-test", client=client)

    assert scorer.score(PROSPECT) == {"score": 1.0, "reasoning": "Sterke match"}

    kwargs = client.chat.completions.create.call_args.kwargs
    assert kwargs["model"] == "gpt-test"
    assert kwargs["response_format"] == {"type": "json_object"}
    user_message = json.loads(kwargs["messages"][1]["content"])
    assert user_message["business_name"] == "Kapsalon Knip"
    assert user_message["has_phone"] is True
    assert user_message["google_reviews"] == 120


def test_score_returns_none_on_malformed_reply():
    assert ProspectScoringService(client=_client("not json")).score(PROSPECT) is None
    assert ProspectScoringService(client=_client('{"reasoning": "no score"}')).score(PROSPECT) is None


def test_negative_score_clamped_to_zero():
    scorer = ProspectScoringService(client=_client('{"score": -0.3}'))
    assert scorer.score(PROSPECT) == {"score": 0.0, "reasoning": None}
