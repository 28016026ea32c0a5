from __future__ import annotations

from typing import Optional

from .schemas import CatalogService, Expert

_IMAGE = "https://images.unsplash.com/{photo}?auto=format&fit=crop&q=80&w=400"

EXPERTS_EN = [
    Expert(id="1", name="Dr. Fatima Al-Otaibi", title="Consultant Dermatologist",
           image=_IMAGE.format(photo="photo-1631217868269-df46c6373109"), category="Skin", rating=4.9, price=300),
    Expert(id="2", name="Dr. Noura Al-Qahtani", title="Clinical Nutritionist",
           image=_IMAGE.format(photo="photo-1559839734-2b71ea197ec2"), category="Nutrition", rating=4.8, price=250),
    Expert(id="3", name="Dr. Reem Al-Saud", title="Hair Transplant Specialist",
           image=_IMAGE.format(photo="photo-1622253692010-333f2da6031d"), category="Hair", rating=5.0, price=450),
    Expert(id="4", name="Dr. Sarah Al-Harbi", title="Cosmetic Dentist",
           image=_IMAGE.format(photo="photo-1614608682850-e0d6ed316d47"), category="Dental", rating=4.9, price=350),
    Expert(id="5", name="Dr. Amal Al-Jaber", title="Gynecology Consultant",
           image=_IMAGE.format(photo="photo-1527613426441-4da17471bc6e"), category="Gynecology", rating=5.0, price=400),
    Expert(id="6", name="Dr. Layla Al-Amri", title="Aesthetic Dermatologist",
           image=_IMAGE.format(photo="photo-1612349317150-e413f6a5b16d"), category="Skin", rating=4.7, price=280),
]

_ARABIC_DISPLAY = {
    "1": ("د. فاطمة العتيبي", "استشارية جلدية"),
    "2": ("د. نورة القحطاني", "أخصائية تغذية علاجية"),
    "3": ("د. ريم آل سعود", "أخصائية زراعة الشعر"),
    "4": ("د. سارة الحربي", "طبيبة أسنان تجميلية"),
    "5": ("د. أمل الجابر", "استشارية نساء وولادة"),
    "6": ("د. ليلى العمري", "أخصائية تجميل وليزر"),
}

EXPERTS_AR = [
    expert.model_copy(update={"name": _ARABIC_DISPLAY[expert.id][0], "title": _ARABIC_DISPLAY[expert.id][1]})
    for expert in EXPERTS_EN
]

SERVICES = [
    CatalogService(id="s1", title="Personalized Guidance",
                   description="Daily health insights tailored to your body profile.", rating=4.8, review_count=1240),
    CatalogService(id="s2", title="Expert Consultations",
                   description="Certified specialists in Skin, Dental, Gynecology, and more.", rating=4.9, review_count=890),
    CatalogService(id="s3", title="Educational Hub",
                   description="Science-based articles, guides, and tips for your well-being.", rating=4.7, review_count=560),
]


class ExpertCatalog:
    """Read-only id -> expert lookup, localized by language."""

    def __init__(self, english: list[Expert] | None = None, arabic: list[Expert] | None = None) -> None:
        self._by_language = {
            "en": list(english if english is not None else EXPERTS_EN),
            "ar": list(arabic if arabic is not None else EXPERTS_AR),
        }

    def experts(self, language: str = "en") -> list[Expert]:
        return list(self._by_language.get(language, self._by_language["en"]))

    def get(self, expert_id: str, language: str = "en") -> Optional[Expert]:
        for expert in self.experts(language):
            if expert.id == expert_id:
                return expert
        return None
