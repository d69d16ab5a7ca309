import pytest

from companion.safety import (
    CRISIS_KEYWORDS,
    VENTING_KEYWORDS,
    ACADEMIC_CONTEXT,
    FAMILY_CONTEXT,
    assess_risk,
    classify,
    crisis_level_for,
    looks_like_crisis,
)
from companion.utils.language import detect_language


@pytest.mark.parametrize("keyword", CRISIS_KEYWORDS)
def test_every_crisis_keyword_is_crisis(keyword):
    result = classify(f"lately {keyword.upper()} is all I think about")
    assert result.level == "crisis"
    assert keyword in result.matched_keywords


def test_kill_myself_tonight():
    result = classify("I want to kill myself tonight")
    assert result.level == "crisis"
    assert {"kill myself", "tonight"} <= set(result.matched_keywords)


def test_crisis_takes_precedence_over_venting():
    result = classify("I'm so stressed and lonely, I want to end my life")
    assert result.level == "crisis"
    # only crisis matches are reported
    assert "stressed" not in result.matched_keywords
    assert "end my life" in result.matched_keywords


def test_stressed_about_exams_is_venting():
    result = classify("I'm stressed about my exams")
    assert result.level == "venting"
    assert result.matched_keywords == ["stressed"]


def test_venting_keywords_without_crisis():
    for kw in VENTING_KEYWORDS:
        assert classify(f"honestly {kw}").level == "venting"


def test_neutral_text_is_none():
    result = classify("I went for a walk and had lunch with a friend")
    assert result.level == "none"
    assert result.matched_keywords == []


@pytest.mark.parametrize("text", ["", "   ", None])
def test_empty_input_is_none(text):
    result = classify(text)
    assert result.level == "none"
    assert result.matched_keywords == []


def test_negation_is_not_understood():
    # known limitation: plain substring matching
    assert looks_like_crisis("I don't want to kill myself")


def test_hindi_venting():
    result = classify("मैं बहुत उदास हूँ")
    assert result.level == "venting"
    assert result.matched_keywords == ["उदास"]


def test_hinglish_crisis():
    assert classify("bas ab suicide kar lunga").level == "crisis"


def test_assess_risk_tiers():
    assert assess_risk("I'm going to do it tonight").level == "imminent"
    assert assess_risk("I have a plan to kill myself").level == "high"
    assert assess_risk("I think I'd be better off dead").level == "moderate"
    assert assess_risk("I wish I was dead").level == "low"
    assert assess_risk("Had a nice chat with my friend").level == "no-risk"


def test_self_harm_raises_no_risk_to_moderate():
    a = assess_risk("I keep wanting to hurt myself")
    assert a.level == "moderate"
    assert a.indicators == ["Self-harm indicators"]
    assert not a.requires_immediate


def test_requires_immediate_for_high_and_imminent():
    assert assess_risk("I have pills ready").requires_immediate
    assert assess_risk("I decided to end things").requires_immediate
    assert not assess_risk("no point in living").requires_immediate


def test_cultural_context():
    assert assess_risk("My JEE exam went badly").cultural_context == ACADEMIC_CONTEXT
    assert assess_risk("My parents and my exam results").cultural_context == FAMILY_CONTEXT
    assert assess_risk("I like painting").cultural_context is None


def test_crisis_level_only_when_lexicon_fires():
    text = "I feel suicidal"
    assert crisis_level_for(classify(text), assess_risk(text)) == "moderate"

    text = "I want to kill myself tonight"
    assert crisis_level_for(classify(text), assess_risk(text)) == "imminent"

    # severity patterns alone don't make a crisis message
    text = "I'm tired and it's late today"
    assert crisis_level_for(classify(text), assess_risk(text)) is None


def test_detect_language():
    assert detect_language("I feel fine") == "en-US"
    assert detect_language("मुझे चिंता है") == "hi-IN"
    assert detect_language("") == "en-US"
