"""
wbtariffs_pipeline.sources — data source adapters.

  WildberriesSource — WB common API, GET /tariffs/box?date=YYYY-MM-DD
"""

from wbtariffs_pipeline.sources.wildberries import WildberriesSource

__all__ = [
    "WildberriesSource",
]
