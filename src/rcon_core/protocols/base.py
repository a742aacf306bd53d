"""
RCON 编解码器基类 (Base Codec)

定义所有变体编解码器必须实现的抽象接口。
编解码器是无状态的，不持有连接或会话信息。
"""

import abc
import logging
import struct
from typing import TYPE_CHECKING

from ..exceptions import MalformedPacketError
from .constants import MAX_PACKET_SIZE
from .packet import Packet, PacketType

if TYPE_CHECKING:
    from ..network import Transport


class BaseCodec(abc.ABC):
    """编解码器抽象基类。

    子类负责单个变体的逐位精确序列化，以及从流中切出一个完整帧。
    状态机只通过本类的接口与线上格式打交道。
    """

    #: 读取帧长度前需要先读入的固定头部字节数
    prefix_size: int = 4

    def __init__(self) -> None:
        self.logger = logging.getLogger(self.__class__.__name__)

    # ---------------------------------------------------------------------
    # 构建 / 编解码
    # ---------------------------------------------------------------------

    @abc.abstractmethod
    def declared_length_for(self, body: str) -> int:
        """[Abstract] 计算给定包体在该变体下的长度字段值。"""
        raise NotImplementedError

    def build_packet(self, packet_id: int, ptype: PacketType, body: str) -> Packet:
        """构造一个长度字段已计算好的包。

        Args:
            packet_id: 包 id。
            ptype: 包类型。
            body: 包体文本。

        Returns:
            Packet: 不可变的包对象。
        """
        return Packet(packet_id, ptype, body, self.declared_length_for(body))

    @abc.abstractmethod
    def encode(self, packet: Packet) -> bytes:
        """[Abstract] 将包序列化为线上字节。

        长度字段总是根据包体重新计算，不信任调用方传入的值。
        """
        raise NotImplementedError

    @abc.abstractmethod
    def decode(self, frame: bytes, is_response: bool = True) -> Packet:
        """[Abstract] 解析一个完整的帧。

        Args:
            frame: 恰好一个包的全部字节。
            is_response: 是否为服务器发出的包 (影响部分变体的类型码解释)。

        Raises:
            MalformedPacketError: 帧不符合该变体的封包约定。
        """
        raise NotImplementedError

    @abc.abstractmethod
    def frame_size(self, prefix: bytes) -> int:
        """[Abstract] 根据已读入的固定头部，返回整个帧的总字节数。

        Raises:
            MalformedPacketError: 声明的长度不合理。
        """
        raise NotImplementedError

    async def read_packet(self, transport: "Transport") -> Packet:
        """从传输流中读取并解析一个包。

        先读固定头部并校验声明长度，再读取剩余字节，绝不按线上字段盲目分配。

        Raises:
            MalformedPacketError: 帧不合法。
            TransportError: 底层读失败。
        """
        prefix = await transport.read_exactly(self.prefix_size)
        total = self.frame_size(prefix)
        rest = await transport.read_exactly(total - self.prefix_size)
        packet = self.decode(prefix + rest)
        self.logger.debug(f"<- {packet!r}")
        return packet

    # ---------------------------------------------------------------------
    # 认证钩子 (供状态机调用)
    # ---------------------------------------------------------------------

    @abc.abstractmethod
    def auth_packet(self, packet_id: int, password: str) -> Packet:
        """[Abstract] 构造认证请求包。"""
        raise NotImplementedError

    @abc.abstractmethod
    def is_auth_response(self, packet: Packet) -> bool:
        """[Abstract] 该包是否为对认证请求的应答。"""
        raise NotImplementedError

    @abc.abstractmethod
    def is_auth_error(self, packet: Packet) -> bool:
        """[Abstract] 该认证应答是否表示认证失败。"""
        raise NotImplementedError

    # ---------------------------------------------------------------------
    # 工具
    # ---------------------------------------------------------------------

    @staticmethod
    def _check_size(size: int, minimum: int, what: str) -> None:
        if size < minimum or size > MAX_PACKET_SIZE:
            raise MalformedPacketError(
                f"{what} 越界: {size} (允许范围 {minimum}..{MAX_PACKET_SIZE})"
            )

    @staticmethod
    def _unpack_i32(data: bytes, offset: int) -> int:
        try:
            return struct.unpack_from("<i", data, offset)[0]
        except struct.error as e:
            raise MalformedPacketError(f"数据长度不足，无法读取偏移 {offset} 处的字段") from e
