import time

import structlog

from .logging_config import performance_log
from .models import OddsRecord
from .store import OddsStore, OddsFilter

logger = structlog.get_logger(__name__)


class BatchLoader:
    """
    Loads odds records with their creator attached, in one query.

    The creator is fetched through the eager join in
    ``OddsStore.find_with_creators``; records never go back to the store to
    resolve ``created_by`` one by one.
    """

    def __init__(self, store: OddsStore):
        self.store = store

    def load_with_creators(self, flt: OddsFilter | None = None) -> list[OddsRecord]:
        flt = flt or OddsFilter()
        start = time.perf_counter()
        records = self.store.find_with_creators(flt)
        performance_log.info(
            "batch_load", count=len(records),
            duration_ms=round((time.perf_counter() - start) * 1000, 3),
        )
        logger.debug("odds_loaded_with_creators", count=len(records), sport=flt.sport, active=flt.active)
        return records
