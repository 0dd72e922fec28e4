import sys
from pathlib import Path

import pytest

# Ensure the `bitebase` package is importable when running pytest from the repo root.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from bitebase.core.models import DATA_SOURCE_LOCAL, Coordinates, RestaurantRecord  # noqa: E402


@pytest.fixture
def make_record():
    def _make(
        id="r1",
        name="Somewhere",
        lat=13.7563,
        lng=100.5018,
        data_source=DATA_SOURCE_LOCAL,
        **kwargs,
    ):
        return RestaurantRecord(
            id=id,
            name=name,
            coordinates=Coordinates(lat, lng),
            data_source=data_source,
            **kwargs,
        )

    return _make
