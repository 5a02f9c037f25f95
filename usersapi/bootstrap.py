"""Schema creation and demo data for a fresh user store."""
from __future__ import annotations

import logging
from typing import List

from .crud import create_record, list_records
from .models import Record
from .store import StoreGateway

logger = logging.getLogger("usersapi.bootstrap")

SEED_RECORDS = (
    Record(username="bash", email="anakobembash@gmail.com", firstname="Bashir", lastname="Anakobe", sex="male"),
    Record(username="teemah", email="teemah247@gmail.com", firstname="Fatimah", lastname="Muhammed", sex="female"),
    Record(username="wasman", email="wasman01@gmail.com", firstname="Abdulwasiu", lastname="Anakobe", sex="male"),
    Record(username="medo", email="ahmed123@gmail.com", firstname="Ahmed", lastname="Ibrahim", sex="male"),
    Record(username="zain", email="zainyray@gmail.com", firstname="Zainab", lastname="Idris", sex="female"),
    Record(username="stacia", email="cheerfulann@gmail.com", firstname="Anastasia", lastname="Ugwu", sex="female"),
)


def bootstrap(gateway: StoreGateway, *, reset: bool = False, seed: bool = False) -> List[Record]:
    """Prepare the ``users`` table and return its current contents.

    ``reset`` drops any existing table first; ``seed`` inserts
    :data:`SEED_RECORDS` in a single unit of work.
    """

    gateway.initialize(reset=reset)
    logger.info("users table %s", "recreated" if reset else "ready")

    with gateway.acquire() as handle:
        if seed:
            for record in SEED_RECORDS:
                create_record(handle, record)
            logger.info("Inserted %d seed users", len(SEED_RECORDS))
        return list_records(handle)


__all__ = ["SEED_RECORDS", "bootstrap"]
