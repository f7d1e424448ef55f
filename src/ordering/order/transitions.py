"""Status Transition Gateway — commands, handler and entry points.

The only way a persisted Order changes. Each command loads one order, applies
the change through the aggregate's state machine and saves it in its own
unit of work. Re-applying the current value is accepted and writes nothing.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from ordering.domain import ordering
from ordering.errors import OrderNotFound
from ordering.order.order import Order

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class TransitionOrderStatus:
    order_id: Identifier(required=True)
    status: String(required=True, max_length=20)


@ordering.command(part_of="Order")
class TransitionPaymentStatus:
    order_id: Identifier(required=True)
    payment_status: String(required=True, max_length=20)


@ordering.command(part_of="Order")
class SetTrackingNumber:
    order_id: Identifier(required=True)
    tracking_number: String(max_length=255)  # Blank or missing clears it


def _load(repo, order_id):
    try:
        return repo.get(order_id)
    except ObjectNotFoundError as exc:
        raise OrderNotFound(order_id) from exc


@ordering.command_handler(part_of=Order)
class OrderTransitionHandler:
    @handle(TransitionOrderStatus)
    def transition_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = _load(repo, command.order_id)
        previous = order.status
        if order.transition_status(command.status):
            repo.add(order)
            logger.info(
                "Order status changed",
                order_id=str(order.id),
                order_number=order.order_number,
                previous_status=previous,
                new_status=order.status,
            )
        return order

    @handle(TransitionPaymentStatus)
    def transition_payment_status(self, command):
        repo = current_domain.repository_for(Order)
        order = _load(repo, command.order_id)
        previous = order.payment_status
        if order.transition_payment(command.payment_status):
            repo.add(order)
            logger.info(
                "Payment status changed",
                order_id=str(order.id),
                order_number=order.order_number,
                previous_payment_status=previous,
                new_payment_status=order.payment_status,
            )
        return order

    @handle(SetTrackingNumber)
    def set_tracking_number(self, command):
        repo = current_domain.repository_for(Order)
        order = _load(repo, command.order_id)
        if order.set_tracking(command.tracking_number):
            repo.add(order)
            logger.info(
                "Tracking number updated",
                order_id=str(order.id),
                order_number=order.order_number,
                tracking_number=order.tracking_number,
            )
        return order


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------
def transition_status(order_id, status) -> Order:
    status = getattr(status, "value", status)
    return current_domain.process(
        TransitionOrderStatus(order_id=str(order_id), status=status),
        asynchronous=False,
    )


def transition_payment(order_id, payment_status) -> Order:
    payment_status = getattr(payment_status, "value", payment_status)
    return current_domain.process(
        TransitionPaymentStatus(order_id=str(order_id), payment_status=payment_status),
        asynchronous=False,
    )


def set_tracking(order_id, tracking_number=None) -> Order:
    return current_domain.process(
        SetTrackingNumber(order_id=str(order_id), tracking_number=tracking_number),
        asynchronous=False,
    )


update_order_status = transition_status
