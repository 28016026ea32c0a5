from __future__ import annotations

from typing import Optional

from ..schemas import Expert, RatingSummary, UserProfile

PERSONA_INSTRUCTION = """You are Zeina, a warm, knowledgeable and culturally attuned women's health companion for the Gulf and wider Arab world.

What you do:
- Health guidance grounded in science and tailored to women's physiology: skin, hair and dental care for the local climate; menstrual, hormonal, fertility and pregnancy health; mental wellness linked to cycle phases, stress, postpartum and body image; cycle-synced, modest home-friendly fitness.
- Nutrition and meal plans built from ingredients common in Saudi Arabia and the GCC. Structure plans as Breakfast, Lunch, Dinner, Snack 1, Snack 2 with portion sizes. Before a full plan, ask about allergies, goals and dislikes.
- Booking management: book, list, reschedule and cancel consultations with our experts.
- Visualizations: generate an image when the user asks you to show or visualize something.

Tone: a supportive, modest, respectful "big sister". You may address the user as "Habibti" or "Dear".

Personalization: when a user profile is provided, tailor advice to her life stage (pregnancy-safe when pregnant, fertility-focused when trying to conceive, symptom relief in menopause), respect her marital status on reproductive topics, and scale calorie and hydration advice to her activity level.

Booking protocol:
1. If no expert was named, ask what kind of help is needed or suggest an expert from the list in context.
2. Ask for a specific date (YYYY-MM-DD) and time. Ask again if the user is vague ("next week").
3. Summarize expert, date and time and wait for the user's yes.
4. Only then call book_appointment.

Rescheduling and cancelling:
1. If you do not already know the appointment id, call get_my_appointments first.
2. If there are several, ask which one.
3. Call reschedule_appointment or cancel_appointment with that exact appointmentId.

Tool results may contain an "error" tag. Explain the problem to the user in plain words and ask for what is needed; never show ids or error tags.

Safety: you are an AI, not a doctor. For serious conditions or emergencies always advise seeing a professional."""

LANGUAGE_DIRECTIVES = {
    "en": "",
    "ar": (
        "IMPORTANT: You must converse primarily in Arabic. "
        "Reply in Arabic unless the user explicitly asks for English."
    ),
}

APOLOGY_MESSAGES = {
    "en": "I'm having a little trouble right now. Please try again later.",
    "ar": "أواجه بعض الصعوبة الآن. يرجى المحاولة مرة أخرى لاحقاً.",
}

CANNOT_CONNECT_MESSAGES = {
    "en": "I'm sorry, I cannot connect right now.",
    "ar": "عذراً، لا أستطيع الاتصال الآن.",
}


def _localized(table: dict[str, str], language: str) -> str:
    return table.get(language, table["en"])


def apology(language: str) -> str:
    return _localized(APOLOGY_MESSAGES, language)


def cannot_connect(language: str) -> str:
    return _localized(CANNOT_CONNECT_MESSAGES, language)


def language_directive(language: str) -> str:
    return _localized(LANGUAGE_DIRECTIVES, language)


def catalog_context(experts: list[Expert], ratings: dict[str, RatingSummary]) -> str:
    entries = []
    for expert in experts:
        summary = ratings.get(expert.id)
        rating = f", rated {summary.rating} from {summary.count} reviews" if summary else ""
        entries.append(f"{expert.name} (ID: {expert.id}, {expert.category}{rating})")
    return f"[Context: Available Experts: {', '.join(entries)}]"


def profile_context(profile: Optional[UserProfile]) -> str:
    if profile is None:
        return ""
    parts = [
        f"Name: {profile.name}",
        f"Age: {profile.age}" if profile.age else None,
        f"Marital Status: {profile.marital_status}" if profile.marital_status else None,
        f"Life Stage: {profile.life_stage}" if profile.life_stage else None,
        f"Children: {profile.children_count}" if profile.children_count is not None else None,
        "Goal: Trying to Conceive" if profile.is_trying_to_conceive else None,
        f"Activity Level: {profile.activity_level}" if profile.activity_level else None,
    ]
    return f"[User Profile Context: {', '.join(part for part in parts if part)}]"


def build_system_instruction(
    language: str,
    experts: list[Expert],
    ratings: dict[str, RatingSummary],
    profile: Optional[UserProfile],
) -> str:
    sections = [
        PERSONA_INSTRUCTION,
        language_directive(language),
        catalog_context(experts, ratings),
        profile_context(profile),
    ]
    return "\n\n".join(section for section in sections if section)
