from .async_utils import run_sync
from .client import OmnivoreClient, SearchPage

__all__ = ["OmnivoreClient", "SearchPage", "run_sync"]
