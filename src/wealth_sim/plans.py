from __future__ import annotations

from typing import List, Optional, Sequence

from .data_structures import AnnualPlan


def generate_annual_plans(
    start_year: int,
    duration: int,
    age: int,
    income: float = 0.0,
    basic_expense: float = 0.0,
    extra_expense: float = 0.0,
    income_growth_rate: float = 0.0,
    expense_growth_rate: float = 0.0,
    existing: Optional[Sequence[AnnualPlan]] = None,
) -> List[AnnualPlan]:
    """
    Build `duration` yearly rows starting at `start_year` / `age`.

    Income and basic expense compound at their growth rates (percent).
    Rows already present in `existing` (by index) keep their amounts, so a
    hand-edited plan survives a change of horizon.
    """
    existing = list(existing or [])
    plans = []
    for i in range(max(0, duration)):
        if i < len(existing):
            prev = existing[i]
            plans.append(
                AnnualPlan(
                    year=start_year + i,
                    age=age + i,
                    income=prev.income,
                    basic_expense=prev.basic_expense,
                    extra_expense=prev.extra_expense,
                )
            )
            continue

        plans.append(
            AnnualPlan(
                year=start_year + i,
                age=age + i,
                income=income * (1 + income_growth_rate / 100) ** i,
                basic_expense=basic_expense * (1 + expense_growth_rate / 100) ** i,
                extra_expense=extra_expense,
            )
        )
    return plans


def apply_overrides(plans: Sequence[AnnualPlan], overrides: Sequence[dict]) -> List[AnnualPlan]:
    """Replace fields of the rows whose year matches an override entry."""
    by_year = {int(o["year"]): o for o in overrides}
    out = []
    for plan in plans:
        o = by_year.get(plan.year)
        if o is None:
            out.append(plan)
            continue
        out.append(
            AnnualPlan(
                year=plan.year,
                age=plan.age,
                income=float(o.get("income", plan.income)),
                basic_expense=float(o.get("basic_expense", plan.basic_expense)),
                extra_expense=float(o.get("extra_expense", plan.extra_expense)),
            )
        )
    return out
