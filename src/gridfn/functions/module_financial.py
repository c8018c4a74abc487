"""Financial functions: NPV, IRR."""

from __future__ import annotations

from typing import Any

from gridfn.arguments import FunctionDeclaration, arg
from gridfn.errors import EvaluationError
from gridfn.functions.helpers import iter_numbers, to_number


def _fn_npv(ctx: Any, discount: Any, *cashflows: Any) -> float:
    """NPV(discount, cashflow1, [cashflow2, ...]) -- net present value.

    Discounts from t=1: NPV = sum(cf_i / (1+rate)^i).  Does NOT include an
    initial investment at t=0.
    """
    rate = to_number(discount)
    if rate == -1:
        raise EvaluationError("[[FUNCTION_NAME]] discount rate must be different from -1.")
    total = 0.0
    for i, cf in enumerate(iter_numbers(*cashflows), start=1):
        total += cf / (1 + rate) ** i
    return total


def _irr_newton(cashflows: list[float], guess: float = 0.1, max_iter: int = 100, tol: float = 1e-10) -> float | None:
    """Newton-Raphson method for IRR."""
    rate = guess
    for _ in range(max_iter):
        if rate <= -1:
            return None
        npv = sum(cf / (1 + rate) ** i for i, cf in enumerate(cashflows))
        dnpv = sum(-i * cf / (1 + rate) ** (i + 1) for i, cf in enumerate(cashflows))
        if abs(dnpv) < 1e-14:
            return None
        new_rate = rate - npv / dnpv
        if abs(new_rate - rate) < tol:
            return new_rate
        rate = new_rate
    return None


def _irr_bisection(cashflows: list[float], lo: float = -0.99, hi: float = 10.0, max_iter: int = 200, tol: float = 1e-10) -> float | None:
    """Bisection fallback for IRR."""
    def npv_at(r: float) -> float:
        return sum(cf / (1 + r) ** i for i, cf in enumerate(cashflows))

    f_lo = npv_at(lo)
    f_hi = npv_at(hi)
    if f_lo * f_hi > 0:
        return None
    for _ in range(max_iter):
        mid = (lo + hi) / 2
        f_mid = npv_at(mid)
        if abs(f_mid) < tol or (hi - lo) / 2 < tol:
            return mid
        if f_lo * f_mid < 0:
            hi = mid
        else:
            lo = mid
            f_lo = f_mid
    return (lo + hi) / 2


def _fn_irr(ctx: Any, cashflow_amounts: Any, rate_guess: Any = 0.1) -> float:
    """IRR(cashflow_amounts, [rate_guess]) -- internal rate of return.

    Cashflows are at t=0, t=1, ... (equal periods).  Newton-Raphson with
    bisection fallback.
    """
    cashflows = [float(cf) for cf in iter_numbers(cashflow_amounts)]
    if not any(cf > 0 for cf in cashflows) or not any(cf < 0 for cf in cashflows):
        raise EvaluationError(
            "[[FUNCTION_NAME]] needs at least one positive and one negative cashflow."
        )
    guess = to_number(rate_guess)
    if guess <= -1:
        raise EvaluationError("The rate_guess (%s) must be strictly greater than -1." % guess)
    result = _irr_newton(cashflows, guess=guess)
    if result is None:
        result = _irr_bisection(cashflows)
    if result is None:
        raise EvaluationError("[[FUNCTION_NAME]] did not converge.")
    return result


FINANCIAL_FUNCTIONS: dict[str, FunctionDeclaration] = {
    "NPV": FunctionDeclaration(
        description="The net present value of an investment based on a series of periodic cash flows and a discount rate.",
        args=[
            arg("discount (number)", "The discount rate of the investment over one period."),
            arg("cashflow1 (number, range<number>)", "The first future cash flow."),
            arg("cashflow2 (number, range<number>, repeating)", "Additional future cash flows."),
        ],
        returns=["NUMBER"],
        compute=_fn_npv,
    ),
    "IRR": FunctionDeclaration(
        description="Internal rate of return given periodic cashflows.",
        args=[
            arg("cashflow_amounts (range<number>)", "An array or range containing the income or payments associated with the investment."),
            arg("rate_guess (number, default=0.1)", "An estimate for what the internal rate of return will be."),
        ],
        returns=["NUMBER"],
        compute=_fn_irr,
    ),
}
