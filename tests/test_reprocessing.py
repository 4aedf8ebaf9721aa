"""Tests for queue reprocessing."""

import pytest

from skill_router.core.models import (
    AgentAvailability,
    AgentProfile,
    AgentSkill,
    RoutingContext,
    RoutingOutcome,
    RoutingRule,
    RoutingStrategy,
    RuleConditions,
    RuleRouting,
    SkillRequirement,
    TaskSkillRequirements,
)
from skill_router.routing.memory import InMemoryAgentSource, InMemoryRoutingQueue, InMemoryRuleSource
from skill_router.routing.router import SkillRouter


def billing_task(priority=50):
    return TaskSkillRequirements(required_skills=[SkillRequirement("billing")], priority=priority)


def billing_agent(agent_id="bob", capacity=1, **kwargs):
    return AgentProfile(
        agent_id=agent_id,
        name=agent_id.title(),
        skills=[AgentSkill("billing")],
        max_concurrent_tasks=capacity,
        **kwargs
    )


class ClaimedElsewhereQueue(InMemoryRoutingQueue):
    """Queue where another worker always claims the task first."""

    def remove_task(self, task_id: str) -> bool:
        super().remove_task(task_id)
        return False


@pytest.fixture
def agent_source():
    """Agent source with nobody able to do billing."""
    return InMemoryAgentSource()


@pytest.fixture
def queue():
    """Empty routing queue."""
    return InMemoryRoutingQueue()


@pytest.fixture
def router(agent_source, queue):
    """Router with two billing tasks already queued."""
    r = SkillRouter(agent_source, queue=queue)
    r.route(billing_task(priority=50), RoutingContext(task_id="t-low"))
    r.route(billing_task(priority=80), RoutingContext(task_id="t-high"))
    return r


class TestProcessQueueForAgent:
    """Tests for process_queue_for_agent."""

    def test_routes_highest_priority_first(self, agent_source, queue, router):
        """A freed agent takes the most urgent task it can handle."""
        agent_source.add_agent(billing_agent())

        decisions = router.process_queue_for_agent("bob")

        assert len(decisions) == 1
        assert decisions[0].task_id == "t-high"
        assert decisions[0].selected_agent_id == "bob"
        assert queue.get_position("t-high") is None
        assert queue.get_position("t-low") == 1

    def test_stops_at_capacity(self, agent_source, queue, router):
        """An agent with spare capacity for two takes both tasks."""
        agent_source.add_agent(billing_agent(capacity=2))

        decisions = router.process_queue_for_agent("bob")

        assert [d.task_id for d in decisions] == ["t-high", "t-low"]
        assert all(d.is_routed for d in decisions)
        assert queue.get_queue_length("default") == 0

    def test_on_routed_hook(self, agent_source, router):
        """The hook lets callers record the assignment."""
        agent_source.add_agent(billing_agent())
        seen = []

        def record(task, decision):
            seen.append(task.task_id)
            agent_source.update_agent_task_count(decision.selected_agent_id, 1)

        router.process_queue_for_agent("bob", on_routed=record)

        assert seen == ["t-high"]
        assert agent_source.get_agent_by_id("bob").current_load == 1

    def test_unknown_agent(self, router):
        """Unknown agents produce no decisions."""
        assert router.process_queue_for_agent("nobody") == []

    def test_unavailable_agent(self, agent_source, queue, router):
        """Agents that are not available produce no decisions."""
        agent_source.add_agent(billing_agent(availability=AgentAvailability.OFFLINE))

        assert router.process_queue_for_agent("bob") == []
        assert queue.get_queue_length("default") == 2

    def test_agent_without_matching_skills(self, agent_source, queue, router):
        """Tasks the agent cannot satisfy are left alone."""
        agent_source.add_agent(AgentProfile(agent_id="ola", name="Ola", skills=[AgentSkill("orthodontics")]))

        assert router.process_queue_for_agent("ola") == []
        assert queue.get_queue_length("default") == 2

    def test_no_queue(self, agent_source):
        """Routers without a queue have nothing to process."""
        agent_source.add_agent(billing_agent())
        assert SkillRouter(agent_source).process_queue_for_agent("bob") == []


class TestRebalanceQueues:
    """Tests for rebalance_queues."""

    def test_unplaceable_tasks_stay_queued(self, queue, router):
        """Tasks still without an agent report their position and stay put."""
        decisions = router.rebalance_queues()

        assert [d.outcome for d in decisions] == [RoutingOutcome.QUEUED, RoutingOutcome.QUEUED]
        assert [d.queue_position for d in decisions] == [1, 2]
        assert queue.get_queue_length("default") == 2

    def test_agent_filled_during_sweep(self, agent_source, queue, router):
        """An agent reaching capacity mid-sweep is not assigned again."""
        agent_source.add_agent(billing_agent())

        decisions = router.rebalance_queues()

        assert decisions[0].is_routed
        assert decisions[0].task_id == "t-high"
        assert decisions[1].outcome == RoutingOutcome.QUEUED
        assert decisions[1].queue_position == 1
        assert queue.get_queue_length("default") == 1

    def test_spreads_across_agents(self, agent_source, queue, router):
        """Two free agents take one task each."""
        agent_source.add_agent(billing_agent("bob"))
        agent_source.add_agent(billing_agent("bea"))

        decisions = router.rebalance_queues()

        assert {d.selected_agent_id for d in decisions} == {"bob", "bea"}
        assert queue.get_queue_length("default") == 0

    def test_claimed_task_discarded(self, agent_source):
        """A task claimed by another sweep yields no decision."""
        queue = ClaimedElsewhereQueue()
        router = SkillRouter(agent_source, queue=queue)
        router.route(billing_task(), RoutingContext(task_id="t-1"))
        agent_source.add_agent(billing_agent())

        assert router.rebalance_queues() == []


@pytest.fixture
def rule_source():
    """A high-priority VIP rule that adds a required skill."""
    return InMemoryRuleSource([
        RoutingRule(
            "vip",
            "VIP desk",
            priority=100,
            conditions=RuleConditions(is_vip=True),
            routing=RuleRouting(
                strategy=RoutingStrategy.LEAST_BUSY,
                skill_requirements=TaskSkillRequirements(required_skills=[SkillRequirement("vip")]),
            ),
        ),
    ])


@pytest.fixture
def ruled_router(agent_source, queue, rule_source):
    """Router with rules; one regular and one VIP billing task queued."""
    r = SkillRouter(agent_source, rule_source=rule_source, queue=queue)
    r.route(billing_task(priority=50), RoutingContext(task_id="t-regular", is_vip=False))
    r.route(billing_task(priority=50), RoutingContext(task_id="t-vip", is_vip=True))
    return r


class TestReprocessingWithRules:
    """Queued tasks keep the rule chosen when they were first routed."""

    def test_queued_with_rule_id(self, queue, ruled_router):
        """The queue records which rule applied, if any."""
        tasks = {t.task_id: t for t in queue.get_queued_tasks("default")}

        assert tasks["t-regular"].applied_rule_id is None
        assert tasks["t-vip"].applied_rule_id == "vip"
        assert {r.skill_id for r in tasks["t-vip"].requirements.required_skills} == {"billing", "vip"}

    def test_regular_task_not_caught_by_vip_rule(self, agent_source, queue, ruled_router):
        """A task queued without a rule routes on its own requirements."""
        agent_source.add_agent(billing_agent())

        decisions = ruled_router.process_queue_for_agent("bob")

        assert len(decisions) == 1
        assert decisions[0].task_id == "t-regular"
        assert decisions[0].is_routed
        assert decisions[0].selected_agent_id == "bob"
        assert decisions[0].applied_rule_id is None
        assert queue.get_position("t-regular") is None
        assert queue.get_position("t-vip") == 1

    def test_rule_reused_not_merged_again(self, agent_source, queue, ruled_router):
        """The stored rule id and strategy carry over to the retry."""
        agent_source.add_agent(AgentProfile(
            agent_id="vic",
            name="Vic",
            skills=[AgentSkill("billing"), AgentSkill("vip")],
            max_concurrent_tasks=2,
        ))

        decisions = ruled_router.rebalance_queues()

        assert all(d.is_routed for d in decisions)
        vip = next(d for d in decisions if d.task_id == "t-vip")
        assert vip.applied_rule_id == "vip"
        assert vip.strategy == RoutingStrategy.LEAST_BUSY
        assert [r.skill_id for r in vip.requirements.required_skills] == ["billing", "vip"]

        regular = next(d for d in decisions if d.task_id == "t-regular")
        assert regular.applied_rule_id is None
        assert queue.get_queue_length("default") == 0

    def test_removed_rule_falls_back_to_defaults(self, agent_source, rule_source, ruled_router):
        """If the rule is gone, the stored requirements still route."""
        rule_source.remove_rule("vip")
        agent_source.add_agent(AgentProfile(
            agent_id="vic",
            name="Vic",
            skills=[AgentSkill("billing"), AgentSkill("vip")],
            max_concurrent_tasks=2,
        ))

        decisions = ruled_router.process_queue_for_agent("vic")

        vip = next(d for d in decisions if d.task_id == "t-vip")
        assert vip.is_routed
        assert vip.applied_rule_id is None
        assert vip.strategy == RoutingStrategy.BEST_MATCH
