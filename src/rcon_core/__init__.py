# src/rcon_core/__init__.py
"""
RCON-Core v0.3.0
Source RCON 协议族 (Source / Minecraft / Factorio / Battlefield 3) 的异步客户端核心库。
"""

# 暴露核心配置
from .config import (
    RconConfig,
    create_config_from_dict,
    load_config_from_env,
    load_config_from_toml,
)

# 暴露连接引擎与状态
from .core import RconConnection

# 暴露异常体系 (方便上层 try-except)
from .exceptions import (
    AuthError,
    CommandTooLongError,
    InvalidCommandError,
    ConfigError,
    MalformedPacketError,
    ProtocolError,
    RconError,
    StateError,
    TransportError,
)
from .network import TcpTransport, Transport
from .protocols import GameVariant, ResponseMode, VariantPolicy, get_policy
from .state import ConnectionState, ConnectionStatus

__version__ = "0.3.0"

__all__ = [
    "RconConnection",
    "RconConfig",
    "ConnectionState",
    "ConnectionStatus",
    "GameVariant",
    "ResponseMode",
    "VariantPolicy",
    "get_policy",
    "Transport",
    "TcpTransport",
    "create_config_from_dict",
    "load_config_from_env",
    "load_config_from_toml",
    "RconError",
    "ConfigError",
    "TransportError",
    "AuthError",
    "ProtocolError",
    "MalformedPacketError",
    "InvalidCommandError",
    "CommandTooLongError",
    "StateError",
]
