"""Consumer runner for the ordering, payments and notifications services.

Each service runs in its own process with one blocking consumer; scale out
by starting more processes for the same service.

Usage:
    python src/server.py --service payments
    python src/server.py --service notifications
"""

import argparse

import structlog

from eventbus.connection import BrokerConnection
from eventbus.settings import BrokerSettings
from shared.utils.logging import add_context, clear_context, configure_logging
from wiring import SERVICES, build_service, get_domain

logger = structlog.get_logger(__name__)


def run(name: str) -> None:
    settings = BrokerSettings.from_env()
    domain = get_domain(name)

    with domain.domain_context():
        service, publisher = build_service(name, settings)
        consumer = service.consumer(BrokerConnection(settings.url), settings)
        try:
            consumer.connect()
            consumer.start_consuming()
        except KeyboardInterrupt:
            logger.info("consumer_interrupted", service=name)
            consumer.stop()
        finally:
            consumer.close()
            if publisher is not None:
                publisher.close()


def main():
    parser = argparse.ArgumentParser(description="Event consumer runner")
    parser.add_argument("--service", choices=SERVICES, required=True, help="Service to run")
    args = parser.parse_args()

    configure_logging(args.service)
    add_context(service=args.service)
    try:
        run(args.service)
    finally:
        clear_context()


if __name__ == "__main__":
    main()
