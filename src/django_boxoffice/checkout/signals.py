"""Custom signals for the checkout app.

Signals:
    order_completed: Sent when an order reaches COMPLETED, whether paid
        online, free, or confirmed by staff after a cash payment.
        Sender: The ``Order`` class.
        Kwargs:
            order: The completed ``Order`` instance.
    order_cash_pending: Sent when a buyer chooses to pay cash at the door.
        Sender: The ``Order`` class.
        Kwargs:
            order: The ``Order`` instance now awaiting cash.
    order_expired: Sent when the expiry sweep releases an unpaid order.
        Sender: The ``Order`` class.
        Kwargs:
            order: The expired ``Order`` instance.
"""

from django.dispatch import Signal

order_completed = Signal()
order_cash_pending = Signal()
order_expired = Signal()
