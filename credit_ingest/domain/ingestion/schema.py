"""
Canonical credit field schema and scoring engine catalogue.

The canonical schema is the fixed set of target fields the scoring engines
consume. It is global and read-only; validation derives per-session variants
through ``effective_schema`` in the validators module rather than mutating it.
"""
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import List, Mapping, Optional, Tuple

from credit_ingest.api.schemas.shared import FieldType, ScoringEngine


@dataclass(frozen=True)
class FieldSpec:
    type: FieldType
    required: bool = False
    description: str = ""
    examples: Tuple[str, ...] = field(default_factory=tuple)


CanonicalFieldSchema = Mapping[str, FieldSpec]


_FIELD_TABLE: List[Tuple[str, FieldType, str, Tuple[str, ...]]] = [
    ("phoneNumber", FieldType.STRING, "User phone number",
     ("phoneNumber", "phone_number", "mobile", "mobileNumber")),
    ("employmentStatus", FieldType.STRING, "Employment status of the user",
     ("employmentStatus", "employment_status", "jobStatus", "job_status")),
    ("paymentHistory", FieldType.NUMBER, "Payment history ratio (0-1)", ("paymentHistory", "payment_history")),
    ("creditUtilization", FieldType.NUMBER, "Credit utilization ratio (0-1)",
     ("creditUtilization", "credit_utilization")),
    ("creditAge", FieldType.NUMBER, "Credit age in years", ("creditAge", "credit_age")),
    ("creditMix", FieldType.NUMBER, "Credit mix ratio (0-1)", ("creditMix", "credit_mix")),
    ("inquiries", FieldType.NUMBER, "Number of credit inquiries", ("inquiries",)),
    ("totalDebt", FieldType.NUMBER, "Total debt amount", ("totalDebt", "total_debt")),
    ("activeLoanCount", FieldType.NUMBER, "Number of active loans", ("activeLoanCount", "active_loan_count")),
    ("consecutiveMissedPayments", FieldType.NUMBER, "Consecutive missed payments",
     ("consecutiveMissedPayments", "consecutive_missed_payments")),
    ("recentLoanApplications", FieldType.NUMBER, "Recent loan applications",
     ("recentLoanApplications", "recent_loan_applications")),
    ("oldestAccountAge", FieldType.NUMBER, "Oldest account age (months)", ("oldestAccountAge", "oldest_account_age")),
    ("transactionsLast90Days", FieldType.NUMBER, "Transactions in last 90 days",
     ("transactionsLast90Days", "transactions_last_90_days")),
    ("onTimePaymentRate", FieldType.NUMBER, "On-time payment rate", ("onTimePaymentRate", "on_time_payment_rate")),
    ("missedPaymentsLast12", FieldType.NUMBER, "Missed payments in last 12 months",
     ("missedPaymentsLast12", "missed_payments_last_12")),
    ("onTimeRateLast6Months", FieldType.NUMBER, "On-time payment rate in last 6 months",
     ("onTimeRateLast6Months", "on_time_rate_last_6_months")),
    ("monthsSinceLastDelinquency", FieldType.NUMBER, "Months since last delinquency",
     ("monthsSinceLastDelinquency", "months_since_last_delinquency")),
    ("monthlyIncome", FieldType.NUMBER, "Monthly income", ("monthlyIncome", "monthly_income")),
    ("monthlyDebtPayments", FieldType.NUMBER, "Monthly debt payments",
     ("monthlyDebtPayments", "monthly_debt_payments")),
    ("monthlyExpenses", FieldType.NUMBER, "Monthly non-debt expenses",
     ("monthlyExpenses", "monthly_expenses", "expenses")),
    ("totalAccounts", FieldType.NUMBER, "Total number of accounts", ("totalAccounts", "total_accounts")),
    ("lastActiveDate", FieldType.DATE, "Date of last account activity",
     ("lastActiveDate", "last_active_date", "lastActivityDate")),
    ("defaultCountLast3Years", FieldType.NUMBER, "Number of defaults in the last 3 years",
     ("defaultCountLast3Years", "defaultsLast3Years", "defaults_3y")),
    ("loanTypeCounts", FieldType.OBJECT, "Counts of different loan types (e.g., creditCard, personalLoan)",
     ("loanTypeCounts", "loan_type_counts")),
    ("averageDailyBalance", FieldType.NUMBER, "Average daily bank balance",
     ("averageDailyBalance", "average_daily_balance", "avgDailyBalance", "avg_daily_balance")),
    ("utilityPayments", FieldType.NUMBER, "On-time utility payment rate (0-1)",
     ("utilityPayments", "utility_payments", "onTimeUtilityPayments", "on_time_utility_payments")),
    ("rentPayments", FieldType.NUMBER, "On-time rent payment rate (0-1)",
     ("rentPayments", "rent_payments", "onTimeRentPayments", "on_time_rent_payments")),
    ("employmentStability", FieldType.STRING, "Employment stability (stable, moderate, unstable)",
     ("employmentStability", "employment_stability", "jobStability", "job_stability")),
    ("budgetingConsistency", FieldType.NUMBER, "Budgeting consistency score (0-100)",
     ("budgetingConsistency", "budgeting_consistency", "budgetScore", "budget_score")),
    ("savingsConsistencyScore", FieldType.NUMBER, "Savings consistency score (0-100)",
     ("savingsConsistencyScore", "savings_consistency_score", "savingsScore", "savings_score")),
    ("hasFinancialCourse", FieldType.BOOLEAN, "Has completed financial literacy course",
     ("hasFinancialCourse", "has_financial_course", "completedFinancialCourse", "completed_financial_course")),
    ("industryRisk", FieldType.STRING, "Industry risk level ('low', 'medium', 'high')",
     ("industryRisk", "industry_risk")),
    ("residenceStabilityMonths", FieldType.NUMBER, "Months at current residence",
     ("residenceStabilityMonths", "residence_stability_months")),
    ("jobHopsInLast2Years", FieldType.NUMBER, "Job changes in last 2 years",
     ("jobHopsInLast2Years", "job_hops_in_last_2_years")),
    ("bankruptcies", FieldType.NUMBER, "Number of bankruptcies", ("bankruptcies",)),
    ("legalIssues", FieldType.NUMBER, "Number of legal issues", ("legalIssues", "legal_issues")),
    ("collateralValue", FieldType.NUMBER, "Collateral value (ETB)", ("collateralValue", "collateral_value")),
    ("collateralType", FieldType.STRING, "Collateral type ('realEstate', 'vehicle', 'securedDeposit', 'other')",
     ("collateralType", "collateral_type")),
    ("fileUpload", FieldType.OBJECT, "File upload object (e.g., income verification PDF)",
     ("fileUpload", "file_upload")),
    ("currencyRate", FieldType.NUMBER, "Currency rate (e.g., ETB to USD)", ("currencyRate", "currency_rate")),
]


CANONICAL_FIELD_SCHEMA: CanonicalFieldSchema = MappingProxyType({
    name: FieldSpec(type=field_type, required=False, description=description, examples=examples)
    for name, field_type, description, examples in _FIELD_TABLE
})


ENGINE_LABELS: Mapping[ScoringEngine, str] = MappingProxyType({
    ScoringEngine.DEFAULT: "FF Score",
    ScoringEngine.AI: "AI Scoring",
    ScoringEngine.CREDITWORTHINESS: "TF Score",
})

# Target fields a saved profile must map before it can drive a given engine.
ENGINE_REQUIRED_FIELDS: Mapping[ScoringEngine, Tuple[str, ...]] = MappingProxyType({
    ScoringEngine.DEFAULT: (
        "creditUtilization",
        "creditAge",
        "creditMix",
        "paymentHistory",
        "totalAccounts",
    ),
    ScoringEngine.AI: (),
    ScoringEngine.CREDITWORTHINESS: (),
})


def find_target_for_source(source_field: str, schema: Optional[CanonicalFieldSchema] = None) -> Optional[str]:
    """Return the canonical field whose known examples include ``source_field`` (case-insensitive)."""
    schema = CANONICAL_FIELD_SCHEMA if schema is None else schema
    needle = source_field.strip().lower()
    if not needle:
        return None
    for name, spec in schema.items():
        if needle == name.lower() or needle in (example.lower() for example in spec.examples):
            return name
    return None

