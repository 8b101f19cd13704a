# orders/management/commands/set_order_status.py

"""
PATH: orders/management/commands/set_order_status.py

Operator bulk status update.

    python manage.py set_order_status SHIPPED <order-id> [<order-id> ...]
    python manage.py set_order_status CANCELLED --from-status ORDERED

- Best effort: each order is updated independently; failures are listed.
- Prints "n of N updated".
"""

from __future__ import annotations

from django.core.management.base import BaseCommand, CommandError

from orders.models import Order
from orders.services.order_lifecycle import UnknownOrderStatusError, normalize_order_status
from orders.services.status_updates import set_order_status_bulk


class Command(BaseCommand):
    help = "Set the status of many orders at once (not transactional)."

    def add_arguments(self, parser):
        parser.add_argument("status", help="Target order status, e.g. SHIPPED")
        parser.add_argument("order_ids", nargs="*", help="Order ids to update")
        parser.add_argument(
            "--from-status",
            dest="from_status",
            default="",
            help="Select every order currently in this status instead of listing ids",
        )
        parser.add_argument(
            "--sequential",
            action="store_true",
            help="Update one order at a time instead of fanning out",
        )

    def handle(self, *args, **options):
        try:
            status = normalize_order_status(options["status"])
            from_status = (
                normalize_order_status(options["from_status"]) if options["from_status"] else ""
            )
        except UnknownOrderStatusError as exc:
            raise CommandError(str(exc)) from exc

        order_ids = list(options["order_ids"])
        if from_status:
            order_ids.extend(
                str(pk) for pk in Order.objects.filter(status=from_status).values_list("id", flat=True)
            )

        if not order_ids:
            raise CommandError("No orders selected. Pass order ids or --from-status.")

        result = set_order_status_bulk(
            order_ids=order_ids,
            status=status,
            parallel=False if options["sequential"] else None,
        )

        for failure in result.failures:
            self.stderr.write(self.style.ERROR(f"{failure.order_id}: {failure.error}"))

        style = self.style.SUCCESS if not result.failures else self.style.WARNING
        self.stdout.write(style(result.summary))
