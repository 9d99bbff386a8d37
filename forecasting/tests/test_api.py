import unittest

from fastapi.testclient import TestClient

from forecasting.main import app


class ForecastingApiTests(unittest.TestCase):
    def setUp(self) -> None:
        self.client = TestClient(app)
        self.checking = {"id": "chk", "name": "Checking", "type": "Checking", "balance": "5000", "currency": "EUR"}
        self.savings = {"id": "sav", "name": "Savings", "type": "Savings", "balance": "0", "currency": "EUR"}

    def test_health(self) -> None:
        response = self.client.get("/health")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), {"status": "ok"})

    def test_expand_rule(self) -> None:
        response = self.client.post(
            "/recurring/expand",
            json={
                "rule": {
                    "id": "r1",
                    "account_id": "chk",
                    "amount": "100",
                    "currency": "EUR",
                    "type": "expense",
                    "frequency": "monthly",
                    "start_date": "2024-01-31",
                    "due_date_of_month": 31,
                },
                "start_date": "2024-01-01",
                "horizon_end": "2024-03-31",
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual([event["date"] for event in body["events"]], ["2024-01-31", "2024-02-29", "2024-03-31"])
        self.assertEqual(body["next_due_date"], "2024-04-30")

    def test_expand_rule_rejects_unknown_frequency(self) -> None:
        response = self.client.post(
            "/recurring/expand",
            json={
                "rule": {
                    "id": "r1",
                    "account_id": "chk",
                    "amount": "100",
                    "currency": "EUR",
                    "type": "expense",
                    "frequency": "hourly",
                    "start_date": "2024-01-31",
                },
                "start_date": "2024-01-01",
                "horizon_end": "2024-03-31",
            },
        )

        self.assertEqual(response.status_code, 400)

    def test_forecast_balances(self) -> None:
        response = self.client.post(
            "/forecast/balances",
            json={
                "accounts": [self.checking],
                "rules": [
                    {
                        "id": "rent",
                        "account_id": "chk",
                        "amount": "1000",
                        "currency": "EUR",
                        "type": "expense",
                        "frequency": "monthly",
                        "start_date": "2024-03-10",
                    }
                ],
                "today": "2024-03-10",
                "horizon_end": "2024-06-09",
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(len(body["points"]), 92)
        self.assertEqual(float(body["final_balance"]), 2000.0)
        self.assertEqual(float(body["lowest_balance"]), 2000.0)
        self.assertEqual(len(body["period_lows"]), 4)
        self.assertEqual(float(body["net_worth"]), 5000.0)

    def test_forecast_without_liquid_accounts_is_empty(self) -> None:
        response = self.client.post(
            "/forecast/balances",
            json={
                "accounts": [{"id": "inv", "type": "Investment", "balance": "100", "currency": "EUR"}],
                "today": "2024-03-10",
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["points"], [])
        self.assertIsNone(body["final_balance"])

    def test_forecast_goals(self) -> None:
        response = self.client.post(
            "/forecast/goals",
            json={
                "accounts": [self.checking],
                "goals": [
                    {"id": "car", "amount": "1000", "current_amount": "200", "date": "2024-06-15"},
                    {"id": "done", "amount": "100", "current_amount": "100", "date": "2023-01-01"},
                ],
                "horizon_months": 12,
                "today": "2024-01-01",
            },
        )

        self.assertEqual(response.status_code, 200)
        projections = response.json()["projections"]
        self.assertEqual(projections["car"], {"projected_date": "2024-06-15", "status": "at-risk"})
        self.assertEqual(projections["done"], {"projected_date": "2024-01-01", "status": "on-track"})

    def test_loan_schedule(self) -> None:
        response = self.client.post(
            "/loans/schedule",
            json={
                "account": {
                    "id": "loan",
                    "type": "Loan",
                    "balance": "-12000",
                    "currency": "EUR",
                    "principal_amount": "12000",
                    "interest_rate": "12",
                    "duration": 12,
                    "loan_start_date": "2024-01-15",
                },
                "overrides": {"12": {"total_payment": "500"}},
                "today": "2023-12-01",
            },
        )

        self.assertEqual(response.status_code, 200)
        rows = response.json()
        self.assertEqual(len(rows), 12)
        self.assertEqual(float(rows[0]["total_payment"]), 1066.19)
        self.assertEqual(float(rows[0]["interest"]), 120.0)
        self.assertEqual(float(rows[-1]["outstanding_balance"]), 0.0)
        self.assertEqual(rows[0]["status"], "Upcoming")

    def test_loan_synthetic_rules(self) -> None:
        response = self.client.post(
            "/loans/synthetic-rules",
            json={
                "accounts": [
                    self.checking,
                    {
                        "id": "loan",
                        "name": "Mortgage",
                        "type": "Loan",
                        "balance": "-100000",
                        "currency": "EUR",
                        "monthly_payment": "500",
                        "payment_day_of_month": 10,
                        "linked_account_id": "chk",
                        "loan_start_date": "2024-01-10",
                        "duration": 24,
                    },
                ],
                "today": "2024-03-12",
            },
        )

        self.assertEqual(response.status_code, 200)
        (rule,) = response.json()
        self.assertTrue(rule["is_synthetic"])
        self.assertEqual(rule["source_account_id"], "loan")
        self.assertEqual(rule["account_id"], "chk")
        self.assertEqual(rule["to_account_id"], "loan")
        self.assertEqual(rule["next_due_date"], "2024-04-10")

    def test_statement_periods(self) -> None:
        response = self.client.get(
            "/cards/statement-periods",
            params={"statement_start_day": 15, "due_day": 5, "today": "2024-03-20"},
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(
            response.json()["current"],
            {"start": "2024-03-15", "end": "2024-04-14", "payment_due": "2024-05-05"},
        )

    def test_statement_periods_rejects_invalid_day(self) -> None:
        response = self.client.get(
            "/cards/statement-periods", params={"statement_start_day": 0, "due_day": 5}
        )

        self.assertEqual(response.status_code, 400)

    def test_card_statement(self) -> None:
        response = self.client.post(
            "/cards/statement",
            json={
                "account": {
                    "id": "cc",
                    "type": "Credit Card",
                    "balance": "-50",
                    "currency": "EUR",
                    "settlement_account_id": "chk",
                },
                "transactions": [
                    {"id": "e1", "account_id": "cc", "date": "2024-03-16", "amount": "-50", "currency": "EUR", "type": "expense"},
                    {"id": "p1", "account_id": "cc", "date": "2024-03-25", "amount": "30", "currency": "EUR", "type": "income", "transfer_id": "x1"},
                    {"id": "p1-out", "account_id": "chk", "date": "2024-03-25", "amount": "-30", "currency": "EUR", "type": "expense", "transfer_id": "x1"},
                ],
                "start": "2024-03-15",
                "end": "2024-04-14",
            },
        )

        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(float(body["statement_balance"]), -50.0)
        self.assertEqual(float(body["amount_paid"]), 30.0)

    def test_card_statement_rejects_inverted_period(self) -> None:
        response = self.client.post(
            "/cards/statement",
            json={
                "account": {"id": "cc", "type": "Credit Card", "balance": "0", "currency": "EUR"},
                "start": "2024-04-14",
                "end": "2024-03-15",
            },
        )

        self.assertEqual(response.status_code, 400)

    def _transfer_payload(self) -> dict:
        return {
            "accounts": [self.checking, self.savings],
            "transactions": [
                {"id": "e1", "account_id": "chk", "date": "2024-05-18", "amount": "-100", "currency": "EUR", "type": "expense"},
                {"id": "i1", "account_id": "sav", "date": "2024-05-19", "amount": "100", "currency": "EUR", "type": "income"},
            ],
            "today": "2024-05-20",
        }

    def test_transfer_suggestions(self) -> None:
        response = self.client.post("/transfers/suggestions", json=self._transfer_payload())

        self.assertEqual(response.status_code, 200)
        (suggestion,) = response.json()
        self.assertEqual(suggestion["id"], "e1|i1")
        self.assertEqual(suggestion["expense_tx"]["id"], "e1")
        self.assertEqual(suggestion["income_tx"]["id"], "i1")

    def test_accept_transfers(self) -> None:
        response = self.client.post("/transfers/accept", json=self._transfer_payload())

        self.assertEqual(response.status_code, 200)
        updated = response.json()
        self.assertEqual(len(updated), 2)
        self.assertEqual(updated[0]["transfer_id"], updated[1]["transfer_id"])
        self.assertEqual(updated[0]["description"], "Transfer to Savings")
        self.assertEqual(updated[1]["category"], "Transfer")

    def test_accept_only_selected_transfers(self) -> None:
        payload = self._transfer_payload()
        payload["suggestion_ids"] = ["other|pair"]

        response = self.client.post("/transfers/accept", json=payload)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.json(), [])


if __name__ == "__main__":
    unittest.main()
