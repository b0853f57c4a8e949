from .json_rpc import LspMessageParser, encode_lsp_message
from .lsp_client import LspClient, ProtocolError

__all__ = [
    "LspClient",
    "LspMessageParser",
    "ProtocolError",
    "encode_lsp_message",
]
