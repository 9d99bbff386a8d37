import unittest
from datetime import date
from decimal import Decimal

from forecasting.goal_projection import (
    AT_RISK,
    OFF_TRACK,
    ON_TRACK,
    GoalProjection,
    classify_goal_projections,
    classify_goal_status,
    run_goal_scenario,
)
from forecasting.models import Account, FinancialGoal, UserRule

TODAY = date(2024, 1, 1)


class ClassifyGoalStatusTests(unittest.TestCase):
    def test_unreached_goal_is_off_track(self) -> None:
        self.assertEqual(classify_goal_status(None, date(2024, 6, 1)), OFF_TRACK)

    def test_goal_without_deadline_is_on_track(self) -> None:
        self.assertEqual(classify_goal_status(date(2030, 1, 1), None), ON_TRACK)

    def test_late_goal_is_off_track(self) -> None:
        self.assertEqual(classify_goal_status(date(2024, 7, 1), date(2024, 6, 30)), OFF_TRACK)

    def test_goal_close_to_deadline_is_at_risk(self) -> None:
        self.assertEqual(classify_goal_status(date(2024, 4, 20), date(2024, 6, 30)), AT_RISK)
        self.assertEqual(classify_goal_status(date(2024, 6, 30), date(2024, 6, 30)), AT_RISK)

    def test_goal_well_ahead_is_on_track(self) -> None:
        self.assertEqual(classify_goal_status(date(2024, 3, 1), date(2024, 6, 30)), ON_TRACK)


class GoalScenarioTests(unittest.TestCase):
    def setUp(self) -> None:
        self.accounts = [
            Account(id="chk", type="Checking", balance=Decimal("5000"), currency="EUR")
        ]

    def _project(self, goals, active=None, rules=()):
        active = [goal.id for goal in goals] if active is None else active
        return classify_goal_projections(
            self.accounts, rules, goals, 12, active, today=TODAY
        )

    def test_already_funded_goal_is_on_track_even_past_deadline(self) -> None:
        goal = FinancialGoal(
            id="done", amount=Decimal("100"), current_amount=Decimal("150"), date="2023-06-01"
        )

        projections = self._project([goal])

        self.assertEqual(projections["done"], GoalProjection(projected_date=TODAY, status=ON_TRACK))

    def test_one_time_goal_is_reached_on_its_date(self) -> None:
        goal = FinancialGoal(
            id="car", amount=Decimal("1000"), current_amount=Decimal("200"), date="2024-06-15"
        )

        projections = self._project([goal])

        self.assertEqual(projections["car"], GoalProjection(date(2024, 6, 15), AT_RISK))

    def test_goal_beyond_horizon_is_off_track(self) -> None:
        goal = FinancialGoal(
            id="house", amount=Decimal("1000"), current_amount=Decimal("0"), date="2025-06-01"
        )

        projections = self._project([goal])

        self.assertEqual(projections["house"], GoalProjection(None, OFF_TRACK))

    def test_recurring_goal_reached_by_contributions(self) -> None:
        goal = FinancialGoal(
            id="fund",
            type="recurring",
            amount=Decimal("1000"),
            current_amount=Decimal("0"),
            date="2024-12-31",
            frequency="monthly",
            start_date="2024-01-05",
            monthly_contribution=Decimal("250"),
        )
        late = FinancialGoal(
            id="late",
            type="recurring",
            amount=Decimal("1000"),
            current_amount=Decimal("0"),
            date="2024-03-01",
            frequency="monthly",
            start_date="2024-01-05",
            monthly_contribution=Decimal("250"),
        )

        projections = self._project([goal, late])

        self.assertEqual(projections["fund"], GoalProjection(date(2024, 4, 5), ON_TRACK))
        self.assertEqual(projections["late"], GoalProjection(date(2024, 4, 5), OFF_TRACK))
        self.assertEqual(goal.current_amount, Decimal("0"))

    def test_inactive_goals_are_not_projected(self) -> None:
        goals = [
            FinancialGoal(id="a", amount=Decimal("10"), current_amount=Decimal("0"), date="2024-02-01"),
            FinancialGoal(id="b", amount=Decimal("10"), current_amount=Decimal("0"), date="2024-02-01"),
        ]

        projections = self._project(goals, active=["b"])

        self.assertEqual(set(projections), {"b"})

    def test_scenario_without_accounts_is_empty(self) -> None:
        goal = FinancialGoal(id="a", amount=Decimal("10"), current_amount=Decimal("0"), date="2024-02-01")

        scenario = run_goal_scenario([], [], [goal], 12, ["a"], today=TODAY)

        self.assertEqual(scenario.points, [])
        self.assertEqual(scenario.projections, {})

    def test_scenario_balance_includes_rules_and_contributions(self) -> None:
        goal = FinancialGoal(
            id="trip", amount=Decimal("1000"), current_amount=Decimal("400"), date="2024-01-10"
        )
        salary = UserRule(
            id="salary",
            account_id="chk",
            amount=Decimal("2000"),
            currency="EUR",
            type="income",
            frequency="monthly",
            start_date="2024-01-25",
            next_due_date="2024-01-25",
        )

        scenario = run_goal_scenario(
            self.accounts, [salary], [goal], 1, ["trip"], today=TODAY
        )
        by_date = {point.date: point.balance for point in scenario.points}

        self.assertEqual(scenario.points[-1].date, date(2024, 2, 1))
        self.assertEqual(by_date[date(2024, 1, 9)], Decimal("5000.00"))
        self.assertEqual(by_date[date(2024, 1, 10)], Decimal("4400.00"))
        self.assertEqual(by_date[date(2024, 1, 25)], Decimal("6400.00"))


if __name__ == "__main__":
    unittest.main()
