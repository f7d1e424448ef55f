"""BDD tests for the order and payment state machines."""

from ordering.errors import IllegalTransition
from pytest_bdd import given, parsers, scenarios, then, when

scenarios("features/order_lifecycle.feature")


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(parsers.cfparse('the order was moved to "{status}"'))
def _(order, status):
    order.transition_status(status)
    order._events.clear()


@given(parsers.cfparse('the payment was moved to "{payment_status}"'))
def _(order, payment_status):
    order.transition_payment(payment_status)
    order._events.clear()


# ---------------------------------------------------------------------------
# When steps
# ---------------------------------------------------------------------------
@when(parsers.cfparse('the order moves to "{status}"'))
def _(order, status, error):
    try:
        order.transition_status(status)
    except IllegalTransition as exc:
        error["exc"] = exc


@when(parsers.cfparse('the payment moves to "{payment_status}"'))
def _(order, payment_status, error):
    try:
        order.transition_payment(payment_status)
    except IllegalTransition as exc:
        error["exc"] = exc


@when(parsers.cfparse('the tracking number is set to "{tracking_number}"'))
def _(order, tracking_number):
    order.set_tracking(tracking_number)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the tracking number is "{tracking_number}"'))
def _(order, tracking_number):
    assert order.tracking_number == tracking_number
