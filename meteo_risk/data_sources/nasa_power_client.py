"""NASA POWER daily point API (MERRA-2 / GPM derived) for single historical days."""
from __future__ import annotations

import datetime as dt
from typing import Any, Mapping, Optional

from meteo_risk.config import settings
from meteo_risk.domain import DailyObservation
from meteo_risk.http_session import build_session
from utils.logging_utils import get_tagged_logger

logger = get_tagged_logger(__name__, tag="nasa_power_client")

session = build_session()

NASA_POWER_DAILY_URL = "https://power.larc.nasa.gov/api/temporal/daily/point"
POWER_PARAMETERS = ("PRECTOTCORR", "T2M", "WS10M")
POWER_FILL_VALUE = -999.0


def _parameter_container(payload: Mapping[str, Any]) -> Mapping[str, Any]:
    """POWER has shipped the parameter block under three different paths."""
    for path in (("properties", "parameter"), ("parameters",), ("data", "parameters")):
        node: Any = payload
        for key in path:
            node = node.get(key) if isinstance(node, Mapping) else None
        if isinstance(node, Mapping):
            return node
    return {}


def _to_number(value: Any) -> Optional[float]:
    """Coerce a POWER cell to float; blanks and the fill value become None."""
    if value is None or value == "":
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if number <= POWER_FILL_VALUE:
        return None
    return number


def fetch_power_day(latitude: float, longitude: float, day: dt.date) -> DailyObservation:
    """Fetch PRECTOTCORR (mm/day), T2M (°C) and WS10M (m/s) for one day."""
    ymd = day.strftime("%Y%m%d")
    params = {
        "parameters": ",".join(POWER_PARAMETERS),
        "start": ymd,
        "end": ymd,
        "latitude": latitude,
        "longitude": longitude,
        "format": "JSON",
        "community": "ag",
    }
    logger.debug("Requesting POWER day", extra={"stage": "dispatch", "date": ymd})
    resp = session.get(NASA_POWER_DAILY_URL, params=params, timeout=settings.request_timeout_seconds)
    resp.raise_for_status()
    container = _parameter_container(resp.json())

    def _cell(name: str) -> Optional[float]:
        series = container.get(name)
        return _to_number(series.get(ymd)) if isinstance(series, Mapping) else None

    return DailyObservation(
        precip_mm=_cell("PRECTOTCORR"),
        temp_c=_cell("T2M"),
        wind_ms=_cell("WS10M"),
    )
