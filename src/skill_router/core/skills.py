"""Standard skill catalog for a dental clinic contact center."""

from typing import Dict, List

from .models import Skill, SkillCategory


STANDARD_SKILLS: Dict[str, Skill] = {
    # === PROCEDURES ===
    "IMPLANTS": Skill("implants", "Dental Implants", SkillCategory.PROCEDURE),
    "ALL_ON_X": Skill("all-on-x", "All-on-X Full Arch", SkillCategory.PROCEDURE, parent_skill_id="implants"),
    "GENERAL_DENTISTRY": Skill("general-dentistry", "General Dentistry", SkillCategory.PROCEDURE),
    "ORTHODONTICS": Skill("orthodontics", "Orthodontics", SkillCategory.PROCEDURE),
    "INVISALIGN": Skill("invisalign", "Clear Aligners", SkillCategory.PROCEDURE, parent_skill_id="orthodontics"),
    "COSMETIC": Skill("cosmetic", "Cosmetic Dentistry", SkillCategory.PROCEDURE),

    # === CLINICAL ===
    "EMERGENCY_TRIAGE": Skill("emergency-triage", "Emergency Triage", SkillCategory.CLINICAL),

    # === ADMINISTRATIVE ===
    "SCHEDULING": Skill("scheduling", "Appointment Scheduling", SkillCategory.ADMINISTRATIVE),
    "BILLING": Skill("billing", "Billing & Payments", SkillCategory.ADMINISTRATIVE),
    "INSURANCE": Skill("insurance", "Insurance Claims", SkillCategory.ADMINISTRATIVE, parent_skill_id="billing"),

    # === CUSTOMER SERVICE ===
    "VIP": Skill("vip", "VIP Patient Care", SkillCategory.CUSTOMER_SERVICE),
    "ESCALATIONS": Skill("escalations", "Complaint Escalations", SkillCategory.CUSTOMER_SERVICE),

    # === LANGUAGES ===
    "ROMANIAN": Skill("lang-ro", "Romanian", SkillCategory.LANGUAGE),
    "ENGLISH": Skill("lang-en", "English", SkillCategory.LANGUAGE),
    "GERMAN": Skill("lang-de", "German", SkillCategory.LANGUAGE),
}


def get_skill(skill_id: str) -> Skill:
    """Look up a catalog skill by id."""
    for skill in STANDARD_SKILLS.values():
        if skill.skill_id == skill_id:
            return skill
    raise KeyError(f"Unknown skill: {skill_id}")


def get_skills_by_category(category: SkillCategory) -> List[Skill]:
    """Get all catalog skills in a category."""
    return [s for s in STANDARD_SKILLS.values() if s.category == category]


def standard_hierarchy() -> Dict[str, List[str]]:
    """Map each specialized catalog skill to its parent skill ids."""
    return {
        s.skill_id: [s.parent_skill_id]
        for s in STANDARD_SKILLS.values()
        if s.parent_skill_id
    }
