"""Services for swarm_uploader."""
from .fetcher import SourceFetcher
from .gateway import BeeGatewayClient
from .resolver import InputResolver, infer_name, is_valid_url
from .result_logger import ResultLogger

__all__ = [
    "BeeGatewayClient",
    "InputResolver",
    "ResultLogger",
    "SourceFetcher",
    "infer_name",
    "is_valid_url",
]
