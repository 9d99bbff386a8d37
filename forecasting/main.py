import logging
from datetime import date
from decimal import Decimal

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from forecasting.accounts import calculate_account_totals, liquid_accounts
from forecasting.amortization import build_amortization_schedule, generate_synthetic_loan_rules
from forecasting.balance_forecast import (
    lowest_balance_by_period,
    project_daily_balances,
    starting_balance,
    summarize_forecast,
)
from forecasting.config import FORECAST_HORIZON_MONTHS, FRONTEND_ORIGIN, LOG_LEVEL
from forecasting.dates import add_months
from forecasting.goal_projection import run_goal_scenario
from forecasting.logging_config import setup_logging
from forecasting.models import (
    Account,
    BillPayment,
    FinancialGoal,
    OccurrenceOverride,
    PaymentOverride,
    RecurringTransaction,
    SyntheticRule,
    Transaction,
    UserRule,
)
from forecasting.recurring_projection import expand_recurring_events
from forecasting.statements import compute_statement_periods, get_statement_details
from forecasting.transfer_matching import (
    accept_all_suggestions,
    find_transfer_suggestions,
)

logger = logging.getLogger(__name__)

app = FastAPI()

app.add_middleware(
    CORSMiddleware,
    allow_origins=[FRONTEND_ORIGIN],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def init_logging() -> None:
    setup_logging(LOG_LEVEL)


class AccountPayload(BaseModel):
    id: str
    name: str = ""
    type: str
    balance: Decimal
    currency: str
    principal_amount: Decimal | None = None
    interest_rate: Decimal | None = None
    duration: int | None = None
    loan_start_date: str | None = None
    monthly_payment: Decimal | None = None
    payment_day_of_month: int | None = None
    linked_account_id: str | None = None
    statement_start_day: int | None = None
    payment_due_day: int | None = None
    settlement_account_id: str | None = None
    credit_limit: Decimal | None = None

    def to_account(self) -> Account:
        return Account(**self.model_dump())


class TransactionPayload(BaseModel):
    id: str
    account_id: str
    date: str
    amount: Decimal
    currency: str
    type: str
    description: str = ""
    category: str | None = None
    transfer_id: str | None = None
    principal_amount: Decimal | None = None
    interest_amount: Decimal | None = None

    def to_transaction(self) -> Transaction:
        return Transaction(**self.model_dump())


class RecurringRulePayload(BaseModel):
    id: str
    account_id: str
    to_account_id: str | None = None
    amount: Decimal
    currency: str
    type: str
    frequency: str
    frequency_interval: int = 1
    start_date: str
    end_date: str | None = None
    next_due_date: str | None = None
    due_date_of_month: int | None = None
    weekend_adjustment: str = "on"
    description: str = ""

    def to_rule(self) -> UserRule:
        return UserRule(**self.model_dump())


class RecurringRuleResponse(RecurringRulePayload):
    is_synthetic: bool = False
    source_account_id: str | None = None


class OccurrenceOverridePayload(BaseModel):
    rule_id: str
    original_date: str
    date: str | None = None
    amount: Decimal | None = None
    is_skipped: bool = False

    def to_override(self) -> OccurrenceOverride:
        return OccurrenceOverride(**self.model_dump())


class GoalPayload(BaseModel):
    id: str
    name: str = ""
    type: str = "one-time"
    transaction_type: str = "expense"
    amount: Decimal
    current_amount: Decimal = Decimal("0")
    currency: str = "EUR"
    date: str | None = None
    frequency: str | None = None
    start_date: str | None = None
    end_date: str | None = None
    monthly_contribution: Decimal | None = None
    due_date_of_month: int | None = None

    def to_goal(self) -> FinancialGoal:
        return FinancialGoal(**self.model_dump())


class BillPayload(BaseModel):
    id: str
    description: str = ""
    amount: Decimal
    currency: str
    due_date: str
    status: str = "unpaid"

    def to_bill(self) -> BillPayment:
        return BillPayment(**self.model_dump())


class PaymentOverridePayload(BaseModel):
    total_payment: Decimal | None = None
    principal: Decimal | None = None
    interest: Decimal | None = None


class ExpandPayload(BaseModel):
    rule: RecurringRulePayload
    start_date: date
    horizon_end: date
    scope_account_ids: list[str] | None = None
    overrides: list[OccurrenceOverridePayload] = Field(default_factory=list)


class ProjectedEventResponse(BaseModel):
    date: date
    amount: Decimal
    original_date: date
    is_override: bool


class ExpansionResponse(BaseModel):
    next_due_date: date | None
    events: list[ProjectedEventResponse]


class ForecastPayload(BaseModel):
    accounts: list[AccountPayload]
    rules: list[RecurringRulePayload] = Field(default_factory=list)
    goals: list[GoalPayload] = Field(default_factory=list)
    bills: list[BillPayload] = Field(default_factory=list)
    overrides: list[OccurrenceOverridePayload] = Field(default_factory=list)
    horizon_end: date | None = None
    today: date | None = None
    include_loan_payments: bool = True


class BalancePointResponse(BaseModel):
    date: date
    balance: Decimal


class PeriodLowResponse(BaseModel):
    period: str
    lowest_balance: Decimal
    date: date


class ForecastResponse(BaseModel):
    points: list[BalancePointResponse]
    final_balance: Decimal | None = None
    lowest_balance: Decimal | None = None
    lowest_date: date | None = None
    period_lows: list[PeriodLowResponse]
    net_worth: Decimal


class GoalForecastPayload(BaseModel):
    accounts: list[AccountPayload]
    rules: list[RecurringRulePayload] = Field(default_factory=list)
    goals: list[GoalPayload]
    horizon_months: int = FORECAST_HORIZON_MONTHS
    active_goal_ids: list[str] | None = None
    today: date | None = None


class GoalProjectionResponse(BaseModel):
    projected_date: date | None
    status: str


class GoalForecastResponse(BaseModel):
    projections: dict[str, GoalProjectionResponse]
    points: list[BalancePointResponse]


class SchedulePayload(BaseModel):
    account: AccountPayload
    transactions: list[TransactionPayload] = Field(default_factory=list)
    overrides: dict[int, PaymentOverridePayload] = Field(default_factory=dict)
    today: date | None = None


class ScheduledPaymentResponse(BaseModel):
    payment_number: int
    date: date
    total_payment: Decimal
    principal: Decimal
    interest: Decimal
    outstanding_balance: Decimal
    status: str
    transaction_id: str | None = None


class SyntheticRulesPayload(BaseModel):
    accounts: list[AccountPayload]
    today: date | None = None


class StatementPeriodResponse(BaseModel):
    start: date
    end: date
    payment_due: date


class StatementPeriodsResponse(BaseModel):
    current: StatementPeriodResponse
    next: StatementPeriodResponse


class StatementPayload(BaseModel):
    account: AccountPayload
    transactions: list[TransactionPayload] = Field(default_factory=list)
    start: date
    end: date


class StatementResponse(BaseModel):
    statement_balance: Decimal
    amount_paid: Decimal


class SuggestionsPayload(BaseModel):
    transactions: list[TransactionPayload]
    accounts: list[AccountPayload]
    dismissed_ids: list[str] = Field(default_factory=list)
    today: date | None = None


class SuggestionResponse(BaseModel):
    id: str
    expense_tx: TransactionPayload
    income_tx: TransactionPayload


class AcceptPayload(SuggestionsPayload):
    suggestion_ids: list[str] | None = None


def _transaction_response(txn: Transaction) -> TransactionPayload:
    return TransactionPayload(
        id=txn.id,
        account_id=txn.account_id,
        date=str(txn.date),
        amount=txn.amount,
        currency=txn.currency,
        type=txn.type,
        description=txn.description,
        category=txn.category,
        transfer_id=txn.transfer_id,
        principal_amount=txn.principal_amount,
        interest_amount=txn.interest_amount,
    )


def _rule_response(rule: RecurringTransaction) -> RecurringRuleResponse:
    source_account_id = rule.source_account_id if isinstance(rule, SyntheticRule) else None
    return RecurringRuleResponse(
        id=rule.id,
        account_id=rule.account_id,
        to_account_id=rule.to_account_id,
        amount=rule.amount,
        currency=rule.currency,
        type=rule.type,
        frequency=rule.frequency,
        frequency_interval=rule.frequency_interval,
        start_date=str(rule.start_date),
        end_date=str(rule.end_date) if rule.end_date is not None else None,
        next_due_date=str(rule.next_due_date) if rule.next_due_date is not None else None,
        due_date_of_month=rule.due_date_of_month,
        weekend_adjustment=rule.weekend_adjustment,
        description=rule.description,
        is_synthetic=isinstance(rule, SyntheticRule),
        source_account_id=source_account_id,
    )


def _points_response(points) -> list[BalancePointResponse]:
    return [BalancePointResponse(date=point.date, balance=point.balance) for point in points]


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/recurring/expand", response_model=ExpansionResponse)
def expand_rule(payload: ExpandPayload) -> ExpansionResponse:
    try:
        expansion = expand_recurring_events(
            payload.rule.to_rule(),
            payload.start_date,
            payload.horizon_end,
            scope_account_ids=payload.scope_account_ids,
            overrides=[override.to_override() for override in payload.overrides],
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return ExpansionResponse(
        next_due_date=expansion.next_due_date,
        events=[
            ProjectedEventResponse(
                date=event.date,
                amount=event.amount,
                original_date=event.original_date,
                is_override=event.is_override,
            )
            for event in expansion.events
        ],
    )


@app.post("/forecast/balances", response_model=ForecastResponse)
def forecast_balances(payload: ForecastPayload) -> ForecastResponse:
    today = payload.today or date.today()
    horizon_end = payload.horizon_end or add_months(today, FORECAST_HORIZON_MONTHS, today.day)
    accounts = [account.to_account() for account in payload.accounts]
    rules: list[RecurringTransaction] = [rule.to_rule() for rule in payload.rules]
    if payload.include_loan_payments:
        rules.extend(generate_synthetic_loan_rules(accounts, today=today))

    points = project_daily_balances(
        accounts,
        rules,
        [goal.to_goal() for goal in payload.goals],
        [bill.to_bill() for bill in payload.bills],
        horizon_end,
        today=today,
        overrides=[override.to_override() for override in payload.overrides],
    )
    summary = summarize_forecast(points)
    initial = starting_balance(liquid_accounts(accounts))
    logger.info(
        "Balance forecast computed",
        extra={"accounts": len(accounts), "rules": len(rules), "days": len(points)},
    )
    return ForecastResponse(
        points=_points_response(points),
        final_balance=summary.final_balance if summary else None,
        lowest_balance=summary.lowest_balance if summary else None,
        lowest_date=summary.lowest_date if summary else None,
        period_lows=[
            PeriodLowResponse(period=low.period, lowest_balance=low.lowest_balance, date=low.date)
            for low in lowest_balance_by_period(points, today, initial)
        ],
        net_worth=calculate_account_totals(accounts).net_worth,
    )


@app.post("/forecast/goals", response_model=GoalForecastResponse)
def forecast_goals(payload: GoalForecastPayload) -> GoalForecastResponse:
    goals = [goal.to_goal() for goal in payload.goals]
    active_goal_ids = (
        payload.active_goal_ids
        if payload.active_goal_ids is not None
        else [goal.id for goal in goals]
    )
    scenario = run_goal_scenario(
        [account.to_account() for account in payload.accounts],
        [rule.to_rule() for rule in payload.rules],
        goals,
        payload.horizon_months,
        active_goal_ids,
        today=payload.today,
    )
    return GoalForecastResponse(
        projections={
            goal_id: GoalProjectionResponse(
                projected_date=projection.projected_date, status=projection.status
            )
            for goal_id, projection in scenario.projections.items()
        },
        points=_points_response(scenario.points),
    )


@app.post("/loans/schedule", response_model=list[ScheduledPaymentResponse])
def loan_schedule(payload: SchedulePayload) -> list[ScheduledPaymentResponse]:
    overrides = {
        number: PaymentOverride(**override.model_dump())
        for number, override in payload.overrides.items()
    }
    schedule = build_amortization_schedule(
        payload.account.to_account(),
        [txn.to_transaction() for txn in payload.transactions],
        overrides,
        today=payload.today,
    )
    return [
        ScheduledPaymentResponse(
            payment_number=row.payment_number,
            date=row.date,
            total_payment=row.total_payment,
            principal=row.principal,
            interest=row.interest,
            outstanding_balance=row.outstanding_balance,
            status=row.status,
            transaction_id=row.transaction_id,
        )
        for row in schedule
    ]


@app.post("/loans/synthetic-rules", response_model=list[RecurringRuleResponse])
def loan_synthetic_rules(payload: SyntheticRulesPayload) -> list[RecurringRuleResponse]:
    rules = generate_synthetic_loan_rules(
        [account.to_account() for account in payload.accounts], today=payload.today
    )
    return [_rule_response(rule) for rule in rules]


@app.get("/cards/statement-periods", response_model=StatementPeriodsResponse)
def statement_periods(
    statement_start_day: int = Query(...),
    due_day: int = Query(...),
    today: date | None = Query(None),
) -> StatementPeriodsResponse:
    try:
        periods = compute_statement_periods(statement_start_day, due_day, today=today)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StatementPeriodsResponse(
        current=StatementPeriodResponse(
            start=periods.current.start,
            end=periods.current.end,
            payment_due=periods.current.payment_due,
        ),
        next=StatementPeriodResponse(
            start=periods.next.start,
            end=periods.next.end,
            payment_due=periods.next.payment_due,
        ),
    )


@app.post("/cards/statement", response_model=StatementResponse)
def card_statement(payload: StatementPayload) -> StatementResponse:
    if payload.start > payload.end:
        raise HTTPException(status_code=400, detail="start must be on or before end.")
    try:
        details = get_statement_details(
            payload.account.to_account(),
            payload.start,
            payload.end,
            [txn.to_transaction() for txn in payload.transactions],
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return StatementResponse(
        statement_balance=details.statement_balance, amount_paid=details.amount_paid
    )


@app.post("/transfers/suggestions", response_model=list[SuggestionResponse])
def transfer_suggestions(payload: SuggestionsPayload) -> list[SuggestionResponse]:
    suggestions = find_transfer_suggestions(
        [txn.to_transaction() for txn in payload.transactions],
        [account.to_account() for account in payload.accounts],
        payload.dismissed_ids,
        today=payload.today,
    )
    return [
        SuggestionResponse(
            id=suggestion.id,
            expense_tx=_transaction_response(suggestion.expense_tx),
            income_tx=_transaction_response(suggestion.income_tx),
        )
        for suggestion in suggestions
    ]


@app.post("/transfers/accept", response_model=list[TransactionPayload])
def accept_transfers(payload: AcceptPayload) -> list[TransactionPayload]:
    accounts = [account.to_account() for account in payload.accounts]
    suggestions = find_transfer_suggestions(
        [txn.to_transaction() for txn in payload.transactions],
        accounts,
        payload.dismissed_ids,
        today=payload.today,
    )
    if payload.suggestion_ids is not None:
        wanted = set(payload.suggestion_ids)
        suggestions = [suggestion for suggestion in suggestions if suggestion.id in wanted]
    updated = accept_all_suggestions(suggestions, accounts)
    logger.info("Accepted transfer suggestions", extra={"transactions": len(updated)})
    return [_transaction_response(txn) for txn in updated]
