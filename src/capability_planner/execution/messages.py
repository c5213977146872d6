"""Localized fixed replies used when no narrative comes from the collaborator."""

from capability_planner.models.enums import Language


CONNECT_URL = "https://example.com/connect"

MESSAGES: dict[Language, dict[str, str]] = {
    Language.HEBREW: {
        "denied.both": "אני רואה שהיומן וה-Gmail שלך לא מחוברים, לחץ כאן כדי לקשר אותם -> {url}",
        "denied.calendar": "אני רואה שהיומן שלך לא מחובר, לחץ כאן כדי לקשר אותו -> {url}",
        "denied.gmail": "אני רואה שה-Gmail שלך לא מחובר, לחץ כאן כדי לקשר אותו -> {url}",
        "denied.generic": "אין לי גישה לפעולה הזו בחשבון שלך. אפשר לחבר חשבון או לשדרג את התוכנית כאן -> {url}",
        "summary.counts": "{succeeded} מתוך {total} פעולות הצליחו; {failed} נכשלו; {blocked} נחסמו",
        "step.success": "✓ {capability}: {action}",
        "step.failed": "✗ {capability}: {action} ({detail})",
        "step.blocked": "⏸ {capability}: {action} ({detail})",
        "clarify": "לא הייתי בטוח שהבנתי. אפשר לפרט? חסר לי: {fields}",
        "approval": "הבקשה כוללת פעולות רגישות ({steps}). לאשר את הביצוע?",
        "classification_failed": "מצטער, לא הצלחתי להבין את הבקשה כרגע. אפשר לנסות שוב?",
        "empty": "לא היה מה לבצע.",
    },
    Language.ENGLISH: {
        "denied.both": "Your calendar and Gmail are not connected. Click here to link them -> {url}",
        "denied.calendar": "Your calendar is not connected. Click here to link it -> {url}",
        "denied.gmail": "Your Gmail is not connected. Click here to link it -> {url}",
        "denied.generic": "Your account cannot use this feature. Connect an account or upgrade your plan here -> {url}",
        "summary.counts": "{succeeded} of {total} steps succeeded; {failed} failed; {blocked} blocked",
        "step.success": "✓ {capability}: {action}",
        "step.failed": "✗ {capability}: {action} ({detail})",
        "step.blocked": "⏸ {capability}: {action} ({detail})",
        "clarify": "I'm not sure I understood. Could you clarify? Missing: {fields}",
        "approval": "This request includes sensitive actions ({steps}). Do you want me to go ahead?",
        "classification_failed": "Sorry, I couldn't understand that request right now. Could you try again?",
        "empty": "There was nothing to do.",
    },
}


def render(key: str, language: Language, **fields) -> str:
    """Formats a fixed reply; languages without a table use English."""
    table = MESSAGES.get(language, MESSAGES[Language.ENGLISH])
    return table[key].format(**fields)
