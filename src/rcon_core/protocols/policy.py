# File: src/rcon_core/protocols/policy.py
"""
RCON 变体策略表 (Variant Policy)

用一张策略表参数化连接状态机，避免为每个游戏复制一份状态机。
编解码器与策略使用同一个 GameVariant 作为键。
"""

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from enum import Enum

from ..state import INITIAL_PACKET_ID
from . import constants
from .base import BaseCodec
from .battlefield3 import Battlefield3Codec
from .constants import GameVariant
from .source import FactorioCodec, SourceCodec


class ResponseMode(str, Enum):
    """响应重组策略。"""

    MULTI_PACKET_SENTINEL = "multi-packet-sentinel"
    """命令后追加一个空命令作为结束标记，读到其回显为止。"""

    SINGLE_PACKET = "single-packet"
    """只读取一个包，其包体即完整响应。"""


# =========================================================================
# Id 推进规则
# =========================================================================


def advance_id_int32(current: int) -> int:
    """自增 1，int32 溢出时回绕到初始值。

    只使用正数 id，因为服务器用负数 id 表示认证失败。
    """
    if current >= constants.INT32_MAX:
        return INITIAL_PACKET_ID
    return current + 1


def advance_id_masked(current: int) -> int:
    """自增 1，超出 0x3fff 时回绕到初始值。"""
    nxt = current + 1
    if nxt & ~constants.WRAPPED_ID_MASK:
        return INITIAL_PACKET_ID
    return nxt


# =========================================================================
# 策略
# =========================================================================


@dataclass(frozen=True)
class VariantPolicy:
    """单个游戏变体的行为参数 (Quirks)。

    Attributes:
        game: 所属游戏变体。
        max_payload_size: 命令最大字节数，None 表示不限制。
        response_mode: 响应重组策略。
        auth_is_mandatory: 为 True 时空密码也必须走认证流程；
            为 False 时空密码直接跳过认证。
        inter_command_delay: 发送命令后、读取响应前的等待秒数，None 表示不等待。
        id_advance_rule: 由当前 id 计算下一个 id 的函数。
    """

    game: GameVariant
    max_payload_size: int | None = None
    response_mode: ResponseMode = ResponseMode.MULTI_PACKET_SENTINEL
    auth_is_mandatory: bool = False
    inter_command_delay: float | None = None
    id_advance_rule: Callable[[int], int] = field(
        default=advance_id_int32, compare=False
    )

    def with_overrides(self, **overrides) -> "VariantPolicy":
        """返回应用了覆盖项的新策略副本。"""
        return replace(self, **overrides)

    def skips_auth(self, password: str) -> bool:
        return password == "" and not self.auth_is_mandatory


POLICIES: dict[GameVariant, VariantPolicy] = {
    GameVariant.SOURCE: VariantPolicy(
        game=GameVariant.SOURCE,
        max_payload_size=None,
        response_mode=ResponseMode.MULTI_PACKET_SENTINEL,
        auth_is_mandatory=False,
        inter_command_delay=None,
        id_advance_rule=advance_id_int32,
    ),
    GameVariant.MINECRAFT: VariantPolicy(
        game=GameVariant.MINECRAFT,
        # 超过该长度服务器会直接断开连接
        max_payload_size=1413,
        response_mode=ResponseMode.MULTI_PACKET_SENTINEL,
        auth_is_mandatory=False,
        # 连续快速发包时服务器不稳定
        inter_command_delay=0.003,
        id_advance_rule=advance_id_masked,
    ),
    GameVariant.FACTORIO: VariantPolicy(
        game=GameVariant.FACTORIO,
        max_payload_size=None,
        response_mode=ResponseMode.SINGLE_PACKET,
        auth_is_mandatory=True,
        inter_command_delay=None,
        id_advance_rule=advance_id_masked,
    ),
    GameVariant.BATTLEFIELD3: VariantPolicy(
        game=GameVariant.BATTLEFIELD3,
        max_payload_size=16384,
        response_mode=ResponseMode.SINGLE_PACKET,
        auth_is_mandatory=False,
        inter_command_delay=None,
        id_advance_rule=advance_id_masked,
    ),
}

_CODECS: dict[GameVariant, type[BaseCodec]] = {
    GameVariant.SOURCE: SourceCodec,
    GameVariant.MINECRAFT: SourceCodec,
    GameVariant.FACTORIO: FactorioCodec,
    GameVariant.BATTLEFIELD3: Battlefield3Codec,
}


def get_policy(game: GameVariant | str) -> VariantPolicy:
    """获取游戏变体的默认策略。

    Raises:
        ValueError: 未知的游戏变体。
    """
    return POLICIES[GameVariant(game)]


def get_codec(game: GameVariant | str) -> BaseCodec:
    """实例化游戏变体对应的编解码器。"""
    return _CODECS[GameVariant(game)]()
