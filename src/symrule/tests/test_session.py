import unittest
from dataclasses import dataclass, replace

from symrule.authoring.patterns import Var, pattern
from symrule.authoring.rules import rule
from symrule.errors import ActionError, ConfigurationError, ContractViolationError
from symrule.ir.effects import Assert, Emit, Set
from symrule.ir.facts import fact_key
from symrule.ir.types import Activation, Rule
from symrule.session import Session, SessionState


@dataclass(frozen=True)
class Order:
    id: int
    total: int


@dataclass(frozen=True)
class User:
    id: int
    status: str


@dataclass(frozen=True)
class Alert:
    id: int


@rule(
    when=[
        pattern(Order, id=Var("id"), total=Var("total"), where=lambda b: b["total"] > 1000),
        pattern(User, status="vip", id=Var("user_id")),
    ],
    salience=20,
    once=True,
)
def vip_large_order(ctx):
    return ctx.emit("vip_order", {"order": ctx["id"], "user": ctx["user_id"]})


@rule(when=[pattern(Order, id=Var("id"))])
def raise_alert(ctx):
    return ctx.assert_fact(Alert(ctx["id"])).emit("alert", {"id": ctx["id"]})


def totals_rule(name: str, threshold: int, salience: int) -> Rule:
    return Rule(
        name=name,
        patterns=[pattern(Order, total=Var("total"), where=lambda b: b["total"] >= threshold)],
        action=lambda ctx: None,
        salience=salience,
    )


class TestSessionMemory(unittest.TestCase):
    def test_new_session_is_idle(self) -> None:
        session = Session.new()
        self.assertEqual(session.state, SessionState.IDLE)
        self.assertEqual(session.facts(), [])
        self.assertEqual(session.agenda(), [])

    def test_assert_is_idempotent(self) -> None:
        s1 = Session.new(rules=raise_alert).assert_fact(Order(1, 1500))
        s2 = s1.assert_fact(Order(1, 1500))
        self.assertEqual(s2.facts(), s1.facts())
        self.assertEqual([a.token for a in s2.agenda()], [a.token for a in s1.agenda()])

    def test_assert_does_not_overwrite_identity(self) -> None:
        session = Session.new().assert_fact(Order(1, 1500)).assert_fact(Order(1, 999))
        self.assertEqual(session.facts(), [Order(1, 1500)])

    def test_upsert_replaces(self) -> None:
        session = Session.new().assert_fact(Order(1, 1500)).upsert(Order(1, 2000))
        self.assertEqual(session.facts(), [Order(1, 2000)])
        self.assertEqual(session.fact(fact_key(Order(1, 0))), Order(1, 2000))

    def test_retract_by_key_and_by_fact(self) -> None:
        session = Session.new(rules=raise_alert).assert_fact(Order(1, 10)).assert_fact(Order(2, 20))
        session = session.retract(fact_key(Order(1, 10)))
        self.assertEqual(session.facts(), [Order(2, 20)])
        session = session.retract(Order(2, 20))
        self.assertEqual(session.facts(), [])
        self.assertEqual(session.agenda(), [])

    def test_operations_do_not_mutate_the_receiver(self) -> None:
        base = Session.new(rules=raise_alert)
        asserted = base.assert_fact(Order(1, 10))
        stepped, _ = asserted.step()
        self.assertEqual(base.facts(), [])
        self.assertEqual(len(asserted.agenda()), 1)
        self.assertEqual(asserted.facts(), [Order(1, 10)])
        self.assertEqual(len(stepped.facts()), 2)

    def test_rules_from_options_mapping(self) -> None:
        session = Session.new(options={"rules": raise_alert, "pure": True})
        self.assertEqual([r.name for r in session.rules], ["raise_alert"])
        self.assertTrue(session.options.pure)
        with self.assertRaises(ConfigurationError):
            Session.new(rules=raise_alert, options={"rules": vip_large_order})

    def test_retract_by_kind_and_id(self) -> None:
        session = Session.new().assert_fact(Order(1, 10)).assert_fact(Order(2, 20))
        session = session.retract(("Order", 1))
        self.assertEqual(session.facts(), [Order(2, 20)])
        self.assertEqual(session.metrics()["retracted"], 1)

    def test_duplicate_rule_names_rejected(self) -> None:
        with self.assertRaises(ConfigurationError):
            Session.new(rules=[raise_alert, raise_alert])


class TestSessionAgenda(unittest.TestCase):
    def test_multi_pattern_binding(self) -> None:
        session = (
            Session.new(rules=vip_large_order)
            .assert_fact(Order(1, 1500))
            .assert_fact(User(7, "vip"))
        )
        agenda = session.agenda()
        self.assertEqual(len(agenda), 1)
        self.assertEqual(agenda[0].rule, "vip_large_order")
        self.assertEqual(agenda[0].binding, {"id": 1, "total": 1500, "user_id": 7})
        self.assertEqual(agenda[0].salience, 20)
        self.assertEqual(session.state, SessionState.READY)

    def test_guard_filters_activations(self) -> None:
        session = (
            Session.new(rules=vip_large_order)
            .assert_fact(Order(1, 500))
            .assert_fact(User(7, "vip"))
        )
        self.assertEqual(session.agenda(), [])

    def test_salience_then_name(self) -> None:
        rules = [
            totals_rule("low", 1, 1),
            totals_rule("b_mid", 10, 5),
            totals_rule("a_mid", 10, 5),
            totals_rule("high", 100, 10),
        ]
        session = Session.new(rules=rules).assert_fact(Order(1, 50))
        self.assertEqual([a.rule for a in session.agenda()], ["a_mid", "b_mid", "low"])

    def test_agenda_is_deterministic(self) -> None:
        def build():
            return (
                Session.new(rules=[raise_alert, vip_large_order])
                .assert_fact(Order(1, 1500))
                .assert_fact(Order(2, 2500))
                .assert_fact(User(7, "vip"))
            )

        self.assertEqual(build().agenda(), build().agenda())


class TestSessionFiring(unittest.TestCase):
    def test_step_fires_in_agenda_order(self) -> None:
        rules = [totals_rule("low", 1, 1), totals_rule("mid", 10, 5), totals_rule("high", 100, 10)]
        session = Session.new(rules=rules).assert_fact(Order(1, 50))
        session, first = session.step()
        session, second = session.step()
        session, third = session.step()
        self.assertEqual((first.rule, second.rule), ("mid", "low"))
        self.assertIsNone(third)
        self.assertEqual(session.state, SessionState.IDLE)

    def test_step_when_idle_returns_same_session(self) -> None:
        session = Session.new()
        stepped, activation = session.step()
        self.assertIs(stepped, session)
        self.assertIsNone(activation)

    def test_effects_are_applied(self) -> None:
        session = Session.new(rules=raise_alert).assert_fact(Order(1, 10))
        session, activation = session.step()
        self.assertEqual(activation.binding, {"id": 1})
        self.assertIn(Alert(1), session.facts())
        self.assertEqual(session.last_effects, (Assert(Alert(1)), Emit("alert", {"id": 1})))

    def test_fired_binding_never_refires(self) -> None:
        session = Session.new(rules=raise_alert).assert_fact(Order(1, 10))
        session, _ = session.run()
        self.assertEqual(session.agenda(), [])
        session = session.retract(Order(1, 10)).assert_fact(Order(1, 10))
        self.assertEqual(session.agenda(), [])
        session = session.assert_fact(Order(2, 20))
        self.assertEqual([a.binding for a in session.agenda()], [{"id": 2}])

    def test_once_rule_fires_a_single_time(self) -> None:
        session = (
            Session.new(rules=vip_large_order)
            .assert_fact(Order(1, 1500))
            .assert_fact(Order(2, 2500))
            .assert_fact(User(7, "vip"))
        )
        self.assertEqual(len(session.agenda()), 2)
        session, fired = session.run()
        self.assertEqual(len(fired), 1)
        self.assertEqual(fired[0].binding["id"], 1)
        session = session.assert_fact(Order(3, 3000))
        self.assertEqual(session.agenda(), [])
        self.assertEqual(session.metrics()["once_tokens"], 1)

    def test_run_respects_budget(self) -> None:
        session = Session.new(rules=raise_alert)
        for idx in range(3):
            session = session.assert_fact(Order(idx, idx))
        partial, fired = session.run(max_steps=2)
        self.assertEqual(len(fired), 2)
        self.assertEqual(partial.state, SessionState.READY)
        done, rest = partial.run()
        self.assertEqual(len(rest), 1)
        self.assertEqual(done.state, SessionState.IDLE)

    def test_run_zero_budget_fires_nothing(self) -> None:
        session = Session.new(rules=raise_alert).assert_fact(Order(1, 1))
        same, fired = session.run(max_steps=0)
        self.assertEqual(fired, [])
        self.assertIs(same, session)

    def test_run_uses_option_budget(self) -> None:
        session = Session.new(rules=raise_alert, max_steps=1)
        session = session.assert_fact(Order(1, 1)).assert_fact(Order(2, 2))
        _, fired = session.run()
        self.assertEqual(len(fired), 1)

    def test_negative_budget_rejected(self) -> None:
        with self.assertRaises(ValueError):
            Session.new().run(max_steps=-1)

    def test_action_error_leaves_session_untouched(self) -> None:
        def explode(ctx):
            raise KeyError("boom")

        failing = Rule(name="explode", patterns=[pattern(Order)], action=explode)
        session = Session.new(rules=failing).assert_fact(Order(1, 1))
        with self.assertRaises(ActionError) as caught:
            session.step()
        self.assertEqual(caught.exception.rule, "explode")
        self.assertIsInstance(caught.exception.__cause__, KeyError)
        self.assertEqual(len(session.agenda()), 1)
        self.assertEqual(session.tokens, frozenset())

    def test_unknown_rule_on_agenda(self) -> None:
        session = Session.new(rules=raise_alert)
        broken = replace(session, pending=(Activation(rule="ghost", binding={}, salience=0),))
        with self.assertRaises(ContractViolationError):
            broken.step()


class TestPureMode(unittest.TestCase):
    def test_pure_step_returns_unapplied_effects(self) -> None:
        session = Session.new(rules=raise_alert, pure=True).assert_fact(Order(1, 10))
        session, activation = session.step()
        self.assertIsNotNone(activation)
        self.assertEqual(session.facts(), [Order(1, 10)])
        self.assertEqual(session.last_effects, (Assert(Alert(1)), Emit("alert", {"id": 1})))
        self.assertEqual(session.agenda(), [])

    def test_pure_step_drops_non_effects(self) -> None:
        junk = Rule(name="junk", patterns=[pattern(Order)], action=lambda ctx: ["junk", Emit("k")])
        pure, _ = Session.new(rules=junk, pure=True).assert_fact(Order(1, 1)).step()
        applied, _ = Session.new(rules=junk).assert_fact(Order(1, 1)).step()
        self.assertEqual(pure.last_effects, (Emit("k"),))
        self.assertEqual(applied.last_effects, pure.last_effects)

    def test_host_applies_effects(self) -> None:
        session = Session.new(rules=raise_alert, pure=True).assert_fact(Order(1, 10))
        session, _ = session.step()
        session, applied = session.apply(session.last_effects)
        self.assertEqual(session.facts(), [Order(1, 10), Alert(1)])
        self.assertEqual(len(applied), 2)


class TestEffectResults(unittest.TestCase):
    def fire(self, action):
        session = Session.new(rules=Rule(name="r", patterns=[pattern(Order)], action=action))
        session, _ = session.assert_fact(Order(1, 1)).step()
        return session

    def test_list_of_effects(self) -> None:
        session = self.fire(lambda ctx: [Assert(Alert(1)), Set("seen", True)])
        self.assertIn(Alert(1), session.facts())
        self.assertEqual(session.last_effects, (Assert(Alert(1)), Set("seen", True)))

    def test_single_effect(self) -> None:
        session = self.fire(lambda ctx: Assert(Alert(9)))
        self.assertIn(Alert(9), session.facts())

    def test_context_mapping(self) -> None:
        session = self.fire(lambda ctx: {"effects": [Emit("x")]})
        self.assertEqual(session.last_effects, (Emit("x"),))

    def test_unknown_values_are_dropped(self) -> None:
        session = self.fire(lambda ctx: ["not an effect", Emit("kept")])
        self.assertEqual(session.last_effects, (Emit("kept"),))

    def test_none_means_no_effects(self) -> None:
        session = self.fire(lambda ctx: None)
        self.assertEqual(session.last_effects, ())
        self.assertEqual(session.facts(), [Order(1, 1)])


class TestMetrics(unittest.TestCase):
    def test_counters_and_sizes(self) -> None:
        session = Session.new(rules=raise_alert).assert_fact(Order(1, 10))
        session, _ = session.run()
        metrics = session.metrics()
        self.assertEqual(metrics["asserted"], 2)
        self.assertEqual(metrics["fired"], 1)
        self.assertEqual(metrics["effects"], 2)
        self.assertEqual(metrics["agenda_builds"], 3)
        self.assertEqual(metrics["facts"], 2)
        self.assertEqual(metrics["agenda"], 0)
        self.assertEqual(metrics["tokens"], 1)
        self.assertEqual(metrics["retracted"], 0)

    def test_noop_mutations_are_not_counted(self) -> None:
        session = Session.new().assert_fact(Order(1, 10)).assert_fact(Order(1, 10)).upsert(Order(1, 10))
        metrics = session.metrics()
        self.assertEqual(metrics["asserted"], 1)
        self.assertEqual(metrics["upserted"], 0)

    def test_repr(self) -> None:
        session = Session.new(rules=raise_alert).assert_fact(Order(1, 10))
        self.assertEqual(repr(session), "Session(rules=1, facts=1, agenda=1, state=ready)")


if __name__ == "__main__":
    unittest.main()
