# src/rcon_core/protocols/__init__.py
"""
RCON 协议层 (Protocol Layer)

本包负责协议数据包的纯粹编码 (Encode) 与解码 (Decode)，以及各游戏变体的策略表。

- 不包含任何 socket 操作 (读包只依赖抽象的 Transport)。
- 不包含任何会话状态 (State)。
- 不依赖于 core 层。
"""

from . import constants
from .base import BaseCodec
from .battlefield3 import Battlefield3Codec
from .constants import GameVariant
from .packet import Packet, PacketType
from .policy import (
    POLICIES,
    ResponseMode,
    VariantPolicy,
    advance_id_int32,
    advance_id_masked,
    get_codec,
    get_policy,
)
from .source import FactorioCodec, SourceCodec

# 公共 API
__all__ = [
    "constants",
    "GameVariant",
    "Packet",
    "PacketType",
    "BaseCodec",
    "SourceCodec",
    "FactorioCodec",
    "Battlefield3Codec",
    "POLICIES",
    "ResponseMode",
    "VariantPolicy",
    "advance_id_int32",
    "advance_id_masked",
    "get_codec",
    "get_policy",
]
