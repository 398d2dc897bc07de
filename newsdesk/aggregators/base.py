"""
Base fetcher interface
"""
from abc import ABC, abstractmethod
from typing import List

from newsdesk.utils.models import RawArticle, Source


class BaseFetcher(ABC):
    """Base class for source fetchers"""

    def __init__(self, http_client):
        self.http_client = http_client

    @abstractmethod
    async def fetch(self, source: Source) -> List[RawArticle]:
        """Collect raw articles from the source; raises FetchError on failure"""
        pass
