"""Operations CLI for the ordering, payments and notifications services.

Usage:
    python src/manage.py setup-db                          # Create all tables
    python src/manage.py drop-db --service payments        # Drop one service's table
    python src/manage.py retry --service payments --id ID  # Retry one failed payment
    python src/manage.py retry-eligible --service notifications --limit 10
    python src/manage.py history --id ORDER_ID             # Status changes of one order
"""

import argparse
import sys

from eventbus.settings import BrokerSettings
from shared.sql_store import SqlStore
from shared.utils.logging import add_context, clear_context, configure_logging
from wiring import SERVICES, build_service, get_domain, get_store

RETRYABLE_SERVICES = ("payments", "notifications")


def _sql_stores(services):
    for name in services or SERVICES:
        store = get_store(name)
        if not isinstance(store, SqlStore):
            print(f"  {name}: STORE_URL is not a database URL, nothing to do.")
            continue
        yield name, store


def setup_databases(services=None):
    """Create tables for the specified (or all) services."""
    for name, store in _sql_stores(services):
        print(f"Creating {name} table...")
        store.create_schema()
    print("Done.")


def drop_databases(services=None):
    """Drop tables for the specified (or all) services."""
    for name, store in _sql_stores(services):
        print(f"Dropping {name} table...")
        store.drop_schema()
    print("Done.")


def retry(service_name, entity_id=None, limit=10):
    """Retry one failed entity, or a batch of eligible ones."""
    settings = BrokerSettings.from_env()
    domain = get_domain(service_name)
    add_context(service=service_name, entity_id=entity_id)

    try:
        with domain.domain_context():
            service, publisher = build_service(service_name, settings)
            try:
                if entity_id:
                    entity = service.retry_controller.retry(entity_id)
                    print(f"{entity_id}: {entity.status} (retries={entity.retries})")
                else:
                    retried = service.retry_controller.retry_eligible(limit)
                    for entity in retried:
                        print(f"{entity.id}: {entity.status} (retries={entity.retries})")
                    print(f"Retried {len(retried)} {service_name}.")
            finally:
                if publisher is not None:
                    publisher.close()
    finally:
        clear_context()


def show_history(order_id):
    """Print the status changes of one order."""
    domain = get_domain("ordering")
    with domain.domain_context():
        order = get_store("ordering").get(order_id)
        for entry in order.history:
            reason = f" ({entry['reason']})" if entry["reason"] else ""
            print(
                f"{entry['changed_at']}  {entry['from_status']} -> {entry['to_status']}"
                f"  by {entry['changed_by']}{reason}"
            )


def main():
    parser = argparse.ArgumentParser(description="Service operations")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for command, help_text in (("setup-db", "Create database tables"), ("drop-db", "Drop database tables")):
        sub = subparsers.add_parser(command, help=help_text)
        sub.add_argument(
            "--service",
            choices=SERVICES,
            nargs="*",
            help="Specific service(s) (default: all)",
        )

    retry_parser = subparsers.add_parser("retry", help="Retry one failed payment or notification")
    retry_parser.add_argument("--service", choices=RETRYABLE_SERVICES, required=True)
    retry_parser.add_argument("--id", dest="entity_id", required=True)

    batch_parser = subparsers.add_parser("retry-eligible", help="Retry failed entities that have retries left")
    batch_parser.add_argument("--service", choices=RETRYABLE_SERVICES, required=True)
    batch_parser.add_argument("--limit", type=int, default=10)

    history_parser = subparsers.add_parser("history", help="Show the status changes of an order")
    history_parser.add_argument("--id", dest="order_id", required=True)

    args = parser.parse_args()
    configure_logging("manage")

    if args.command == "setup-db":
        setup_databases(args.service)
    elif args.command == "drop-db":
        drop_databases(args.service)
    elif args.command == "retry":
        retry(args.service, entity_id=args.entity_id)
    elif args.command == "retry-eligible":
        retry(args.service, limit=args.limit)
    elif args.command == "history":
        show_history(args.order_id)
    else:
        parser.print_help()
        sys.exit(1)


if __name__ == "__main__":
    main()
