"""
market_value.py - Player market value history.

The history comes from the site's graph endpoint as JSON, fetched through
the HTTP client. A missing history is not worth failing a roster over:
exhausted retries and malformed bodies degrade to an empty list.
"""

import json
import logging
from typing import List, Optional, Union

from pydantic import BaseModel, Field, ValidationError

from backend.app import schemas
from .exceptions import NavigationFailure
from .navigator import ResilientNavigator
from .parsing import parse_date, parse_market_value, parse_int, id_from_image_url

logger = logging.getLogger(__name__)


class MarketValueItem(BaseModel):
    """One point of the graph payload, with the endpoint's field names."""
    y: Optional[float] = None
    mw: Optional[str] = None
    datum_mw: Optional[str] = None
    verein: Optional[str] = None
    age: Optional[Union[int, str]] = None
    wappen: Optional[str] = None


class MarketValueGraph(BaseModel):
    items: List[MarketValueItem] = Field(default_factory=list, alias='list')


class MarketValueService:
    def __init__(self, navigator: ResilientNavigator, market_value_path: str):
        self._navigator = navigator
        self._market_value_path = market_value_path.rstrip('/')

    async def get_market_values(self, player_id: str) -> List[schemas.MarketValue]:
        """
        Fetch a player's market value history.

        Returns:
            Points in payload order; [] when the history is unavailable
        """
        uri = f"{self._market_value_path}/{player_id}"
        try:
            result = await self._navigator.fetch_http(uri)
        except NavigationFailure as e:
            logger.warning(f"Market values of player {player_id} unavailable: {e}")
            return []

        try:
            graph = MarketValueGraph.model_validate(json.loads(result.text))
        except (ValueError, ValidationError) as e:
            logger.warning(f"Unreadable market value payload for player {player_id} at {result.url}: {e}")
            return []

        market_values = []
        for item in graph.items:
            value_date = parse_date(item.datum_mw)
            if value_date is None:
                logger.warning(f"Skipping market value point with date '{item.datum_mw}' for player {player_id}")
                continue

            value = parse_market_value(item.mw)
            if value is None:
                value = item.y or 0.0

            market_values.append(schemas.MarketValue(
                date=value_date,
                value=value,
                age=parse_int(str(item.age)) if item.age is not None else None,
                club_name=item.verein,
                club_transfermarkt_id=id_from_image_url(item.wappen) or None,
                club_crest=item.wappen,
            ))

        return market_values
