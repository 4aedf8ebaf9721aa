"""Tests for skill hierarchy resolution."""

import pytest

from skill_router.core.hierarchy import SkillHierarchy
from skill_router.core.models import AgentSkill, InheritanceDirection, ProficiencyLevel, SkillCategory
from skill_router.core.skills import get_skill, get_skills_by_category, standard_hierarchy


@pytest.fixture
def hierarchy():
    """Hierarchy with a two-level procedure tree."""
    h = SkillHierarchy()
    h.register("all-on-x", ["implants"])
    h.register("implants", ["surgery"])
    return h


class TestSkillHierarchy:
    """Tests for SkillHierarchy."""

    def test_specialized_satisfies_general(self, hierarchy):
        """An all-on-x specialist covers implants and surgery."""
        resolved = hierarchy.expand([AgentSkill("all-on-x", ProficiencyLevel.EXPERT)])

        assert set(resolved) == {"all-on-x", "implants", "surgery"}
        assert resolved["implants"].proficiency == ProficiencyLevel.EXPERT
        assert resolved["implants"].inherited_from == "all-on-x"
        assert resolved["implants"].is_inherited
        assert not resolved["all-on-x"].is_inherited

    def test_general_does_not_satisfy_specialized(self, hierarchy):
        """A general implants skill does not imply all-on-x by default."""
        resolved = hierarchy.expand([AgentSkill("implants")])

        assert "all-on-x" not in resolved
        assert "surgery" in resolved

    def test_reverse_direction(self, hierarchy):
        """The direction can be flipped so general skills cover specializations."""
        resolved = hierarchy.expand(
            [AgentSkill("implants")],
            direction=InheritanceDirection.GENERAL_SATISFIES_SPECIALIZED,
        )

        assert "all-on-x" in resolved
        assert "surgery" not in resolved

    def test_disabled_inheritance(self, hierarchy):
        """With inheritance off only declared skills count."""
        resolved = hierarchy.expand([AgentSkill("all-on-x")], enabled=False)
        assert set(resolved) == {"all-on-x"}

    def test_uncertified_skill_does_not_propagate(self, hierarchy):
        """Uncertified skills count directly but are not inherited from."""
        resolved = hierarchy.expand([AgentSkill("all-on-x", certified=False)])
        assert set(resolved) == {"all-on-x"}

    def test_inactive_skill_ignored(self, hierarchy):
        """Inactive skills are neither held nor inherited from."""
        resolved = hierarchy.expand([AgentSkill("all-on-x", active=False)])
        assert resolved == {}

    def test_highest_proficiency_wins(self, hierarchy):
        """A direct novice skill is upgraded by an inherited expert one."""
        resolved = hierarchy.expand([
            AgentSkill("implants", ProficiencyLevel.NOVICE),
            AgentSkill("all-on-x", ProficiencyLevel.EXPERT),
        ])

        assert resolved["implants"].proficiency == ProficiencyLevel.EXPERT

    def test_direct_skill_kept_when_higher(self, hierarchy):
        """A stronger direct skill is not replaced by a weaker inherited one."""
        resolved = hierarchy.expand([
            AgentSkill("implants", ProficiencyLevel.EXPERT),
            AgentSkill("all-on-x", ProficiencyLevel.NOVICE),
        ])

        assert resolved["implants"].proficiency == ProficiencyLevel.EXPERT
        assert resolved["implants"].inherited_from is None

    def test_cycle_terminates(self):
        """Cyclic registrations resolve without looping."""
        h = SkillHierarchy({"a": ["b"], "b": ["a"]})
        resolved = h.expand([AgentSkill("a")])
        assert set(resolved) == {"a", "b"}

    def test_register_replaces(self, hierarchy):
        """Registering again replaces the parents rather than merging."""
        hierarchy.register("all-on-x", ["prosthodontics"])

        assert hierarchy.parents_of("all-on-x") == {"prosthodontics"}
        assert "implants" not in hierarchy.ancestors_of("all-on-x")

    def test_register_is_idempotent(self, hierarchy):
        """Registering the same mapping twice changes nothing."""
        before = hierarchy.snapshot()
        hierarchy.register("all-on-x", ["implants"])
        assert hierarchy.snapshot() == before

    def test_self_reference_dropped(self):
        """A skill never lists itself as a parent."""
        h = SkillHierarchy()
        h.register("implants", ["implants", ""])
        assert h.parents_of("implants") == set()

    def test_ancestors_and_descendants(self, hierarchy):
        """Transitive lookups in both directions."""
        assert hierarchy.ancestors_of("all-on-x") == {"implants", "surgery"}
        assert hierarchy.descendants_of("surgery") == {"implants", "all-on-x"}
        assert hierarchy.ancestors_of("unknown") == set()

    def test_clear(self, hierarchy):
        """Clearing removes every mapping."""
        assert hierarchy.size == 2
        hierarchy.clear()

        assert hierarchy.size == 0
        assert set(hierarchy.expand([AgentSkill("all-on-x")])) == {"all-on-x"}


class TestSkillCatalog:
    """Tests for the standard skill catalog."""

    def test_get_skill(self):
        """Catalog lookup by id."""
        assert get_skill("implants").name == "Dental Implants"

    def test_get_unknown_skill(self):
        """Unknown ids raise KeyError."""
        with pytest.raises(KeyError):
            get_skill("astronomy")

    def test_standard_hierarchy(self):
        """Specialized catalog skills map to their parents."""
        mapping = standard_hierarchy()

        assert mapping["all-on-x"] == ["implants"]
        assert mapping["invisalign"] == ["orthodontics"]
        assert "implants" not in mapping

    def test_skills_by_category(self):
        """Category lookup returns only that category."""
        languages = get_skills_by_category(SkillCategory.LANGUAGE)

        assert {"lang-ro", "lang-en"} <= {s.skill_id for s in languages}
        assert all(s.category == SkillCategory.LANGUAGE for s in languages)
