# src/rcon_core/protocols/packet.py
"""
RCON 数据包模型 (Packet Model)

与线上编码解耦的包表示。包在发送前或接收后立即构造，之后不再修改。
"""

from dataclasses import dataclass
from enum import Enum, auto


class PacketType(Enum):
    """与具体变体无关的包类型。各编解码器负责与线上类型码互相转换。"""

    AUTH = auto()
    AUTH_RESPONSE = auto()
    COMMAND = auto()
    COMMAND_RESPONSE = auto()

    @property
    def is_response(self) -> bool:
        return self in (PacketType.AUTH_RESPONSE, PacketType.COMMAND_RESPONSE)


@dataclass(frozen=True)
class Packet:
    """单个 RCON 数据包。

    请不要直接构造，使用 `codec.build_packet()` 以保证 declared_length
    与当前变体的实际序列化长度一致。

    Attributes:
        id: 序列号 / 关联号 (int32)。
        type: 包类型。
        body: 命令或响应文本。
        declared_length: 线上的长度字段。
    """

    id: int
    type: PacketType
    body: str
    declared_length: int

    @property
    def is_response(self) -> bool:
        return self.type.is_response

    @property
    def words(self) -> list[str]:
        """按空白切分的单词列表 (Battlefield 3 的线上表示)。"""
        return self.body.split()

    def __repr__(self) -> str:
        return (
            f"<Packet id={self.id} type={self.type.name} "
            f"len={self.declared_length} body={self.body!r}>"
        )
