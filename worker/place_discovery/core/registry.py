"""Writer for the customer registry that job snapshots are imported into."""

import logging
from contextlib import contextmanager
from typing import Iterator

from place_discovery.core import db
from place_discovery.core.models import RegistryRecord

logger = logging.getLogger(__name__)

_INSERT_CUSTOMER = """
INSERT INTO customers (name, city, category, site, phone_1, status)
VALUES (%(name)s, %(city)s, %(category)s, %(site)s, %(phone)s, %(status)s);
"""


class RegistryWriter:
    def __init__(self, cursor) -> None:
        self._cursor = cursor

    def insert(self, record: RegistryRecord) -> None:
        self._cursor.execute(
            _INSERT_CUSTOMER,
            {
                "name": record.name,
                "city": record.locality,
                "category": record.category,
                "site": record.website,
                "phone": record.phone,
                "status": record.status,
            },
        )


class PostgresRegistry:
    """Inserts into the ``customers`` table, one transaction per import."""

    @contextmanager
    def transaction(self) -> Iterator[RegistryWriter]:
        with db.transaction() as conn:
            with conn.cursor() as cur:
                yield RegistryWriter(cur)
