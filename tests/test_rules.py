"""Tests for the rule engine and rule loading."""

import uuid

import pytest

from garden.models import AnswerType, ConditionOperator
from garden.repository import StoredAnswer
from garden.rules import ConditionConfig, RuleConfig, RuleEngine, load_rules, partition_answers

Q1 = uuid.uuid4()
Q2 = uuid.uuid4()
Q3 = uuid.uuid4()


def choice(question_id, value):
    return StoredAnswer(question_id=question_id, answer_type=AnswerType.CHOICE, selected_option=value)


def address(question_id, state="SP", city="São Paulo"):
    return StoredAnswer(
        question_id=question_id,
        answer_type=AnswerType.ADDRESS,
        selected_option=f"{state} / {city}",
        selected_address={"state": state, "city": city},
    )


def rule(name, *conditions, operator=ConditionOperator.IN):
    return RuleConfig(
        id=uuid.uuid4(),
        name=name,
        conditions=[ConditionConfig(qid, operator, tuple(values)) for qid, values in conditions],
    )


@pytest.mark.unit
class TestRuleEngine:

    def test_second_condition_matches(self):
        r = rule("partners", (Q1, ["Outdoor"]), (Q2, ["Aesthetic"]))
        result = RuleEngine([r]).evaluate([choice(Q1, "Indoor"), choice(Q2, "Aesthetic")])

        assert result.matched
        assert result.matched_rules == [r]
        assert result.matches[0].question_id == Q2
        assert result.matches[0].selected_value == "Aesthetic"
        assert result.matches[0].rule_name == "partners"

    def test_no_condition_matches(self):
        r = rule("partners", (Q1, ["Outdoor"]), (Q2, ["Aesthetic"]))
        result = RuleEngine([r]).evaluate([choice(Q1, "Indoor"), choice(Q2, "Budget")])

        assert not result.matched
        assert result.matched_rules == []
        assert result.matches == []

    def test_first_match_short_circuits(self):
        r = rule("partners", (Q1, ["Indoor"]), (Q2, ["Aesthetic"]))
        result = RuleEngine([r]).evaluate([choice(Q1, "Indoor"), choice(Q2, "Aesthetic")])

        assert len(result.matches) == 1
        assert result.matches[0].question_id == Q1

    @pytest.mark.parametrize("operator", list(ConditionOperator))
    def test_every_operator_is_membership(self, operator):
        r = rule("partners", (Q1, ["Indoor", "Balcony"]), operator=operator)
        assert RuleEngine([r]).evaluate([choice(Q1, "Balcony")]).matched
        assert not RuleEngine([r]).evaluate([choice(Q1, "Garden")]).matched

    def test_membership_is_exact(self):
        r = rule("partners", (Q1, ["Indoor"]))
        assert not RuleEngine([r]).evaluate([choice(Q1, "indoor")]).matched
        assert not RuleEngine([r]).evaluate([choice(Q1, "Indoor plants")]).matched

    def test_address_answers_never_match_conditions(self):
        r = rule("partners", (Q3, ["SP / São Paulo"]))
        assert not RuleEngine([r]).evaluate([address(Q3)]).matched

    def test_rule_order_and_distinct_values(self):
        r1 = rule("a", (Q1, ["Indoor"]))
        r2 = rule("b", (Q2, ["Outdoor"]))
        r3 = rule("c", (Q1, ["Indoor"]))
        result = RuleEngine([r1, r2, r3]).evaluate([choice(Q1, "Indoor")])

        assert [r.name for r in result.matched_rules] == ["a", "c"]
        assert result.distinct_values() == ["Indoor"]

    def test_no_rules(self):
        assert not RuleEngine([]).evaluate([choice(Q1, "Indoor")]).matched


@pytest.mark.unit
def test_partition_answers():
    answers = [choice(Q1, "Indoor"), address(Q3), choice(Q2, "Aesthetic")]
    choices, addr = partition_answers(answers)

    assert set(choices) == {Q1, Q2}
    assert addr.city == "São Paulo"


@pytest.mark.integration
async def test_load_rules_skips_deleted_and_keeps_condition_order(add_rule, session):
    await add_rule([(Q1, ["Indoor"]), (Q2, ["Aesthetic"])], name="Partner rule")
    await add_rule([(Q1, ["Outdoor"])], name="Partner rule", is_deleted=True)
    await add_rule([(Q1, ["Indoor"])], name="Other rule")

    rules = await load_rules(session, "Partner rule")

    assert len(rules) == 1
    assert [c.question_id for c in rules[0].conditions] == [Q1, Q2]
    assert rules[0].conditions[1].values == ("Aesthetic",)
    assert rules[0].conditions[0].operator is ConditionOperator.IN
