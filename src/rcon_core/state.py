# File: src/rcon_core/state.py
"""
RCON 核心库 - 状态模块

负责定义和存储单个连接的易变会话状态。
本模块不包含业务逻辑，仅作为数据容器供 Connection 读写。
"""

from dataclasses import dataclass
from enum import Enum, auto

INITIAL_PACKET_ID = 1


class ConnectionStatus(Enum):
    """连接的生命周期状态枚举。

    状态流转示意:
    CONNECTING -> AUTHENTICATING -> READY <-> AWAITING_RESPONSE
                        |             |              |
                        v             v              v
                      ERROR         CLOSED         ERROR
    """

    CONNECTING = auto()
    """正在建立传输层连接。"""

    AUTHENTICATING = auto()
    """已发送认证包，正在等待 AuthResponse。"""

    READY = auto()
    """空闲，可以发送下一条命令。"""

    AWAITING_RESPONSE = auto()
    """命令已发出，正在读取 (可能多包的) 响应。"""

    CLOSED = auto()
    """连接已关闭。"""

    ERROR = auto()
    """发生了致命的传输或协议错误，连接不可再用。"""


@dataclass
class ConnectionState:
    """存储 RCON 会话的易变状态数据。

    该对象是非持久化的，每个连接独占一份，重连时应重新实例化。

    Attributes:
        status: 当前连接状态。
        next_id: 下一个要使用的包 id。
        last_error: 最近一次发生的错误信息描述。
        commands_sent: 已成功完成的命令数量。
    """

    status: ConnectionStatus = ConnectionStatus.CONNECTING
    next_id: int = INITIAL_PACKET_ID
    last_error: str = ""
    commands_sent: int = 0

    @property
    def is_usable(self) -> bool:
        """判断当前是否可以发送命令。"""
        return self.status is ConnectionStatus.READY
