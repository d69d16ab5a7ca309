from typing import Any, Dict, List, Optional

from companion.safety import RiskAssessment, ACADEMIC_CONTEXT, FAMILY_CONTEXT

KIRAN_NUMBER = "1800-599-0019"

IN_RESOURCES = [
    {"name": "KIRAN National Helpline", "phone": KIRAN_NUMBER, "desc": "24/7, free, multilingual"},
    {"name": "AASRA", "phone": "91-22-2754-6669", "desc": "24/7 crisis support"},
    {"name": "Vandrevala Foundation", "phone": "1860-266-2345", "desc": "24/7 helpline"},
    {"name": "iCALL", "phone": "9152987821", "desc": "Mon-Sat, 8 AM-10 PM"},
]

EMERGENCY_RESOURCES = [
    {"name": "EMERGENCY", "phone": "102", "desc": "National Emergency Number"},
    {"name": "Local police", "phone": "100", "desc": "if in immediate danger"},
]

HOTLINE_NUMBERS = tuple(r["phone"] for r in IN_RESOURCES)

FALLBACK_MESSAGE = (
    "I'm experiencing some technical difficulties right now, but I'm here to listen. "
    "Could you tell me more about what's on your mind? "
    f"If you're in crisis, please contact KIRAN helpline at {KIRAN_NUMBER} (24/7, free)."
)

IMMEDIATE_ACTIONS: Dict[str, List[str]] = {
    "imminent": [
        f"Call KIRAN immediately: {KIRAN_NUMBER}",
        "Stay with someone you trust",
        "Remove any means of self-harm",
        "Go to nearest hospital if in immediate danger",
        "Call emergency services: 102",
    ],
    "high": [
        f"Contact KIRAN helpline: {KIRAN_NUMBER}",
        "Reach out to a trusted adult",
        "Avoid being alone",
        "Consider going to a hospital",
        "Remove access to harmful items",
    ],
    "moderate": [
        f"Consider calling KIRAN: {KIRAN_NUMBER}",
        "Talk to someone you trust",
        "Practice grounding techniques",
        "Avoid alcohol or substances",
        "Stay connected with supportive people",
    ],
    "low": [
        "Reach out to a friend or family member",
        "Consider professional counseling",
        "Practice self-care activities",
        "Monitor your mood and thoughts",
        "Keep crisis numbers handy",
    ],
    "no-risk": [
        "Continue sharing your feelings",
        "Practice stress management",
        "Maintain social connections",
        "Consider professional support if needed",
    ],
}

CRISIS_MESSAGES: Dict[str, str] = {
    "imminent": (
        "I'm very concerned about your immediate safety. You don't have to face this alone. "
        f"Please contact KIRAN helpline right now: {KIRAN_NUMBER}. They have trained counselors "
        "who understand what you're going through and can provide immediate support."
    ),
    "high": (
        "I can hear how much pain you're experiencing right now. These thoughts are very serious, "
        f"and I'm concerned about your safety. Please reach out to a crisis counselor at KIRAN: {KIRAN_NUMBER}. "
        "You deserve support and care during this difficult time."
    ),
    "moderate": (
        "I understand you're going through a really difficult time. These feelings are concerning, "
        f"and you don't have to handle them alone. Consider reaching out to KIRAN helpline: {KIRAN_NUMBER} "
        "where trained counselors can provide support."
    ),
    "low": (
        "It sounds like you're struggling with some difficult feelings right now. These thoughts are "
        "important to address, and talking to someone can really help. Support is available when you're ready."
    ),
}

_CULTURAL_URGENT = {
    ACADEMIC_CONTEXT: (
        "I understand the immense pressure you're feeling about your exams. Your life is more valuable "
        f"than any exam result. Please reach out for immediate help - KIRAN helpline: {KIRAN_NUMBER}."
    ),
    FAMILY_CONTEXT: (
        "I can hear how much pain you're in regarding your family situation. Family conflicts can feel "
        f"overwhelming. Your safety is the priority right now - please contact KIRAN: {KIRAN_NUMBER} immediately."
    ),
}


def in_hotlines(urgent: bool = False) -> Dict[str, Any]:
    resources = list(IN_RESOURCES)
    if urgent:
        resources = EMERGENCY_RESOURCES[:1] + resources + EMERGENCY_RESOURCES[1:]
    return {"title": "Support in India", "resources": resources}


def grounding_54321() -> Dict[str, Any]:
    return {"title": "5-4-3-2-1 Grounding", "steps": [
        "Name 5 things you can see",
        "Name 4 things you can touch",
        "Name 3 things you can hear",
        "Name 2 things you can smell",
        "Name 1 thing you can taste",
    ]}


def immediate_actions(level: str) -> List[str]:
    return list(IMMEDIATE_ACTIONS.get(level, IMMEDIATE_ACTIONS["no-risk"]))


def resource_lines(level: str) -> List[str]:
    urgent = level in ("high", "imminent")
    out = []
    for r in in_hotlines(urgent)["resources"]:
        out.append(f"{r['name']}: {r['phone']} ({r['desc']})")
    return out


def crisis_message(assessment: RiskAssessment, level: str) -> str:
    if level in ("high", "imminent") and assessment.cultural_context in _CULTURAL_URGENT:
        return _CULTURAL_URGENT[assessment.cultural_context]
    return CRISIS_MESSAGES.get(level, CRISIS_MESSAGES["moderate"])


def crisis_resource_block(assessment: RiskAssessment, level: str) -> str:
    """Deterministic text appended to every crisis-level reply.

    Always names at least one helpline number, whatever the severity.
    """
    out = [crisis_message(assessment, level), ""]
    out.append("You can reach trained counselors here:")
    for line in resource_lines(level):
        out.append(f"• {line}")
    out.append("")
    out.append("Right now, you could:")
    for i, action in enumerate(immediate_actions(level), 1):
        out.append(f"{i}. {action}")
    if level in ("moderate", "low"):
        grounding = grounding_54321()
        out.append("")
        out.append(f"If it helps, try {grounding['title']}: " + "; ".join(grounding["steps"]) + ".")
    return "\n".join(out).strip()


def with_crisis_resources(reply: Optional[str], assessment: RiskAssessment, level: str) -> str:
    block = crisis_resource_block(assessment, level)
    reply = (reply or "").strip()
    if not reply:
        return block
    return f"{reply}\n\n{block}"
