"""Documents domain - generic collection storage behind an async gateway"""

from .cursor import InvalidCursor, decode_cursor, encode_cursor
from .gateway import DocumentGateway, QueryResult, get_gateway
from .repository import DocumentNotFound, DocumentRepository

__all__ = [
    "DocumentGateway",
    "DocumentNotFound",
    "DocumentRepository",
    "InvalidCursor",
    "QueryResult",
    "decode_cursor",
    "encode_cursor",
    "get_gateway",
]
