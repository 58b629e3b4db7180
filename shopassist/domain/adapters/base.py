# shopassist/domain/adapters/base.py
from __future__ import annotations

import abc
from typing import List

import httpx

from shopassist.domain.models.product import Product


class CatalogAdapter(abc.ABC):
    """
    One upstream product source. `search` may raise on any upstream problem;
    the aggregator isolates failures per adapter.
    """

    #: adapter id, also stamped on every Product as `source_id`
    source_id: str = ""

    def __init__(self, http: httpx.AsyncClient):
        self.http = http

    @abc.abstractmethod
    async def search(self, query: str, limit: int) -> List[Product]:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} source_id={self.source_id!r}>"
