# src/rcon_core/protocols/constants.py
"""
RCON 协议族常量表 (Constants)

仅定义协议的结构性常量（如类型码、头部长度、位掩码）。
各游戏的策略参数（最大负载、延迟等）由 policy 模块定义。
"""

from enum import Enum


class GameVariant(str, Enum):
    """支持的游戏服务器变体。"""

    SOURCE = "source"
    MINECRAFT = "minecraft"
    FACTORIO = "factorio"
    BATTLEFIELD3 = "battlefield3"


# =========================================================================
# 通用限制
# =========================================================================
# 任何声明长度超过此值的包都视为畸形，避免按线上字段盲目分配内存
MAX_PACKET_SIZE = 0x100000  # 1 MiB

INT32_MAX = 0x7FFFFFFF


# =========================================================================
# Source / Minecraft / Factorio
# =========================================================================
class SourceType:
    """Source 协议包头部的 type 字段定义"""

    AUTH = 3  # 认证请求 (Client -> Server)
    AUTH_RESPONSE = 2  # 认证响应 (Server -> Client)
    EXECCOMMAND = 2  # 执行命令 (Client -> Server)
    RESPONSE_VALUE = 0  # 命令响应 (Server -> Client)


# length 字段本身不计入: id(4) + type(4) + 两个终止符(2)
SOURCE_LENGTH_OVERHEAD = 10
SOURCE_LENGTH_FIELD_SIZE = 4
SOURCE_TERMINATOR = b"\x00\x00"

# 服务器以 -1 作为 id 表示认证失败
SOURCE_AUTH_FAILED_ID = -1


# =========================================================================
# Battlefield 3 (单词式协议)
# =========================================================================
# sequence(4) + packet_size(4) + word_count(4)
BF3_HEADER_SIZE = 12
# word_size(4) + 终止符(1)
BF3_WORD_OVERHEAD = 5
BF3_WORD_TERMINATOR = b"\x00"

# sequence 位布局: [0..28] id, [29..30] type, [31] origin
BF3_ID_MASK = 0x1FFFFFFF
BF3_RESPONSE_BITS = 3 << 29
BF3_RESPONSE_FLAG = 1 << 30
BF3_ORIGIN_FLAG = 1 << 31

BF3_LOGIN_COMMAND = "login.PlainText"
BF3_OK = "OK"


# =========================================================================
# Id 回绕
# =========================================================================
# Minecraft / Factorio / Battlefield 3 的 id 超出该掩码即回绕到初始值
WRAPPED_ID_MASK = 0x3FFF
