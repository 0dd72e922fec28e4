"""External places provider contract consumed by the aggregator."""

from __future__ import annotations

import abc
import logging
from typing import Any, Callable, Dict, Iterable, List, Optional

from bitebase.core.errors import InvalidParameterError
from bitebase.core.models import Coordinates, RestaurantRecord

logger = logging.getLogger(__name__)


class ExternalProvider(abc.ABC):
    """Nearby search against a third-party places API.

    Results are tagged ``external`` and carry ``metadata.externalId``.
    Network, auth and quota failures raise ProviderUnavailableError.
    """

    name = "abstract"

    @abc.abstractmethod
    def nearby_search(
        self, center: Coordinates, radius_meters: float, keyword: Optional[str] = None
    ) -> List[RestaurantRecord]:
        raise NotImplementedError


class NullProvider(ExternalProvider):
    """Provider used when no external API is configured."""

    name = "none"

    def nearby_search(
        self, center: Coordinates, radius_meters: float, keyword: Optional[str] = None
    ) -> List[RestaurantRecord]:
        return []


def build_records(
    items: Iterable[Dict[str, Any]],
    builder: Callable[[Dict[str, Any]], RestaurantRecord],
    provider_name: str,
) -> List[RestaurantRecord]:
    """Convert raw provider items, rejecting rows with bad ids, names or coordinates."""
    records: List[RestaurantRecord] = []
    skipped = 0
    for item in items:
        try:
            records.append(builder(item))
        except InvalidParameterError as exc:
            skipped += 1
            logger.debug("Skipping %s result %s: %s", provider_name, item.get("name") or item.get("title"), exc)
    if skipped:
        logger.info("Rejected %d %s results with invalid data", skipped, provider_name)
    return records
