"""examples/basic_usage.py - packtrace integration demo.

Demonstrates three output styles:
    Scenario A: full extended trace with a cause chain
    Scenario B: single-line trace, bounded and joined with a separator
    Scenario C: root cause first, with the logging package elided
"""

import logging

from packtrace import FilteredThrowableFormatter, ThrowableFormatter

logger = logging.getLogger("app")
logger.setLevel(logging.DEBUG)


# ---------------------------------------------------------------------------
# A small failing call chain
# ---------------------------------------------------------------------------


class PaymentError(Exception):
    """Raised when a payment cannot be completed."""


def charge(amount: int) -> None:
    raise TimeoutError(f"gateway did not answer for amount={amount}")


def pay(user_id: int, amount: int) -> None:
    logger.info(f"Payment attempt: user_id={user_id}, amount={amount}")
    try:
        charge(amount)
    except TimeoutError as exc:
        raise PaymentError(f"payment failed for user_id={user_id}") from exc


def run(formatter: logging.Formatter) -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    logger.addHandler(handler)
    try:
        pay(user_id=101, amount=5_000)
    except PaymentError:
        logger.exception("checkout failed")
    finally:
        logger.removeHandler(handler)


# ---------------------------------------------------------------------------
# Run all scenarios
# ---------------------------------------------------------------------------
if __name__ == "__main__":
    print("=" * 60)
    print("Scenario A: full extended trace")
    print("=" * 60)
    run(ThrowableFormatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s"))

    print()
    print("=" * 60)
    print("Scenario B: first three lines on one line")
    print("=" * 60)
    run(ThrowableFormatter("[%(levelname)s] %(message)s", lines=3, separator=" | "))

    print()
    print("=" * 60)
    print("Scenario C: root cause first, logging frames elided")
    print("=" * 60)
    run(
        FilteredThrowableFormatter(
            "[%(levelname)s] %(message)s",
            ignore_packages=["logging"],
            root_cause_first=True,
        )
    )
