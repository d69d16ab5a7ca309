# companion/safety.py
from __future__ import annotations
import re
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

# --- Crisis lexicon (English + Hindi/Hinglish) ---
CRISIS_KEYWORDS: Tuple[str, ...] = (
    # English
    "kill myself", "commit suicide", "end my life", "want to die", "suicide",
    "kill me", "end it all", "not worth living", "better off dead", "suicidal",
    "hang myself", "overdose", "jump off", "cut myself deep", "bleed out",
    "pills ready", "suicide note", "saying goodbye", "tonight", "ending it",
    # Hindi / Hinglish
    "मैं अपनी जान खत्म कर दूँगा", "सुसाइड करना है", "मुझे मर जाना चाहिए",
    "आत्महत्या", "खुद को खत्म", "जीना नहीं चाहता", "मरना चाहता हूं",
    "suicide kar lunga", "mar jaana chahta hun", "jeena nahi hai",
    "khatam kar dunga", "pills le lunga", "rope le aaunga",
)

VENTING_KEYWORDS: Tuple[str, ...] = (
    # English
    "stressed", "anxious", "overwhelmed", "depressed", "sad", "lonely",
    "tired", "exhausted", "pressure", "exam stress", "family problems",
    "heartbroken", "disappointed", "failure", "burden", "worthless",
    # Hindi / Hinglish
    "परेशान", "उदास", "अकेला", "तनाव", "चिंता", "थका हुआ",
    "stressed hun", "udaas hun", "akela feel kar raha", "tension hai",
    "pareshaan hun", "dukhi hun", "bore ho gaya", "heavy lag raha",
)

LEVEL_NONE = "none"
LEVEL_VENTING = "venting"
LEVEL_CRISIS = "crisis"


@dataclass(frozen=True)
class Classification:
    level: str
    matched_keywords: List[str] = field(default_factory=list)

    @property
    def is_crisis(self) -> bool:
        return self.level == LEVEL_CRISIS


def _matches(text: str, keywords: Tuple[str, ...]) -> List[str]:
    found: List[str] = []
    for kw in keywords:
        if kw.lower() in text and kw not in found:
            found.append(kw)
    return found


def classify(text: Optional[str]) -> Classification:
    """Classify a user message as crisis, venting or neither.

    Plain case-insensitive substring containment; crisis keywords take
    precedence over venting keywords. There is no negation handling, so
    "I don't want to kill myself" is still a crisis.
    """
    t = (text or "").lower()
    if not t.strip():
        return Classification(LEVEL_NONE, [])
    crisis = _matches(t, CRISIS_KEYWORDS)
    if crisis:
        return Classification(LEVEL_CRISIS, crisis)
    venting = _matches(t, VENTING_KEYWORDS)
    if venting:
        return Classification(LEVEL_VENTING, venting)
    return Classification(LEVEL_NONE, [])


def looks_like_crisis(text: str) -> bool:
    return classify(text).is_crisis


# --- Severity grading (C-SSRS inspired tiers) ---
_I = re.IGNORECASE

RISK_TIERS: Tuple[Tuple[str, str, Tuple[re.Pattern, ...]], ...] = (
    ("imminent", "Imminent action indicators", (
        re.compile(r"tonight|today|right now|अभी|आज रात|आज", _I),
        re.compile(r"pills? ready|rope|knife|चाकू|गोलियाँ तैयार", _I),
        re.compile(r"suicide note|अलविदा|goodbye|saying bye", _I),
        re.compile(r"going to (do it|jump|hang)|करने जा रहा|कूदने जा रहा", _I),
    )),
    ("high", "Specific plan or method mentioned", (
        re.compile(r"plan to (kill|die|suicide)|प्लान बना|योजना बना", _I),
        re.compile(r"method|way to die|तरीका|रास्ता मरने का", _I),
        re.compile(r"researching|खोज रहा|ढूंढ रहा", _I),
        re.compile(r"decided to|फैसला कर लिया|तय कर लिया", _I),
    )),
    ("moderate", "Active suicidal ideation", (
        re.compile(r"thinking about (killing|suicide|dying)|सोच रहा मरने के बारे में", _I),
        re.compile(r"want to (die|kill myself)|मरना चाहता|खुद को मारना चाहता", _I),
        re.compile(r"better off dead|मर जाना बेहतर", _I),
        re.compile(r"end (it all|my life)|सब कुछ खत्म|जीवन समाप्त", _I),
    )),
    ("low", "Passive death wishes", (
        re.compile(r"wish I was dead|काश मैं मर जाता", _I),
        re.compile(r"don'?t want to live|जीना नहीं चाहता", _I),
        re.compile(r"tired of living|जीने से थक गया", _I),
        re.compile(r"no point in living|जीने का कोई मतलब नहीं", _I),
    )),
)

SELF_HARM_PATTERNS: Tuple[re.Pattern, ...] = (
    re.compile(r"cut (myself|deep)|अपने आप को काटना", _I),
    re.compile(r"hurt myself|खुद को चोट", _I),
    re.compile(r"self.harm|आत्म.हानि", _I),
    re.compile(r"bleed out|खून बहाना", _I),
    re.compile(r"burn myself|जलाना अपने आप को", _I),
)

ACADEMIC_PATTERN = re.compile(r"exam|jee|neet|board|परीक्षा|एग्जाम", _I)
FAMILY_PATTERN = re.compile(r"family|parents|माता.पिता|परिवार", _I)

ACADEMIC_CONTEXT = "Academic pressure - common stressor for Indian youth"
FAMILY_CONTEXT = "Family dynamics - cultural expectations"


@dataclass(frozen=True)
class RiskAssessment:
    level: str = "no-risk"
    indicators: List[str] = field(default_factory=list)
    cultural_context: Optional[str] = None

    @property
    def requires_immediate(self) -> bool:
        return self.level in ("high", "imminent")


def cultural_context(text: str) -> Optional[str]:
    # family wins over academic when both are mentioned
    context = None
    if ACADEMIC_PATTERN.search(text):
        context = ACADEMIC_CONTEXT
    if FAMILY_PATTERN.search(text):
        context = FAMILY_CONTEXT
    return context


def assess_risk(text: Optional[str]) -> RiskAssessment:
    t = text or ""
    level = "no-risk"
    indicators: List[str] = []
    for tier, label, patterns in RISK_TIERS:
        if any(p.search(t) for p in patterns):
            level = tier
            indicators.append(label)
            break
    if any(p.search(t) for p in SELF_HARM_PATTERNS):
        indicators.append("Self-harm indicators")
        if level == "no-risk":
            level = "moderate"
    return RiskAssessment(level=level, indicators=indicators, cultural_context=cultural_context(t))


def crisis_level_for(classification: Classification, assessment: RiskAssessment) -> Optional[str]:
    """Severity stored on a ChatMessage: only set when the lexicon fired."""
    if not classification.is_crisis:
        return None
    if assessment.level == "no-risk":
        return "moderate"
    return assessment.level
