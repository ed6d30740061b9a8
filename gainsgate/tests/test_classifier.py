from gainsgate.config.settings import settings
from gainsgate.core.classifier import is_structured_plan_request, token_budget
from gainsgate.core.models import IncomingMessage, PartsContent, TextContent, TextPart


def _text(text: str, role: str = "user") -> IncomingMessage:
    return IncomingMessage(role=role, content=TextContent(text=text))


def test_workout_plan_as_json_is_structured():
    messages = [_text("Generate a workout plan as JSON with exercises, sets and reps.")]
    assert is_structured_plan_request(messages) is True
    assert token_budget(True) == 4000


def test_workout_plan_without_json_is_conversational():
    messages = [_text("Generate a workout plan for me")]
    assert is_structured_plan_request(messages) is False
    assert token_budget(False) == 1000


def test_json_alone_is_conversational():
    assert is_structured_plan_request([_text("Reply in JSON please")]) is False


def test_meal_and_dietary_plan_keywords_count():
    assert is_structured_plan_request([_text("Build a meal plan. Output JSON only.")]) is True
    assert is_structured_plan_request([_text("dietary plan, strictly JSON")]) is True


def test_keyword_and_marker_must_be_in_same_message():
    messages = [_text("I want a workout plan"), _text("Answer in JSON")]
    assert is_structured_plan_request(messages) is False


def test_marker_is_case_sensitive():
    assert is_structured_plan_request([_text("workout plan as json")]) is False


def test_any_text_message_qualifies_including_system():
    messages = [
        _text("Return a meal plan in JSON format.", role="system"),
        _text("I am vegetarian"),
    ]
    assert is_structured_plan_request(messages) is True


def test_mixed_content_messages_are_not_scanned():
    mixed = IncomingMessage(
        role="user",
        content=PartsContent(parts=[TextPart(text="Make a meal plan from this photo as JSON")]),
    )
    assert is_structured_plan_request([mixed]) is False
    assert is_structured_plan_request([mixed, _text("workout plan in JSON")]) is True


def test_budget_follows_settings():
    original = settings.structured_max_tokens
    settings.structured_max_tokens = 2048
    try:
        assert token_budget(True) == 2048
    finally:
        settings.structured_max_tokens = original
