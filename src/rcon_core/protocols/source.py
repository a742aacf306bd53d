# File: src/rcon_core/protocols/source.py
"""
Source RCON 封包编解码器 (Source / Minecraft / Factorio)

线上格式 (均为小端 int32):
    length | id | type | body (utf-8) | 0x00 | 0x00

length 不包含自身，等于 10 + body 字节数。
"""

import struct

from ..exceptions import MalformedPacketError
from . import constants
from .base import BaseCodec
from .packet import Packet, PacketType

_HEADER = struct.Struct("<iii")

# 发送方向: 抽象类型 -> 线上类型码
_TYPE_TO_WIRE = {
    PacketType.AUTH: constants.SourceType.AUTH,
    PacketType.AUTH_RESPONSE: constants.SourceType.AUTH_RESPONSE,
    PacketType.COMMAND: constants.SourceType.EXECCOMMAND,
    PacketType.COMMAND_RESPONSE: constants.SourceType.RESPONSE_VALUE,
}


class SourceCodec(BaseCodec):
    """Source 引擎 / Minecraft 的编解码器。

    类型码 2 的含义取决于方向: 服务器发出时为 AUTH_RESPONSE，
    客户端发出时为 EXECCOMMAND。
    """

    prefix_size = constants.SOURCE_LENGTH_FIELD_SIZE

    # 接收方向: 线上类型码 -> 抽象类型
    RESPONSE_TYPES: dict[int, PacketType] = {
        constants.SourceType.RESPONSE_VALUE: PacketType.COMMAND_RESPONSE,
        constants.SourceType.AUTH_RESPONSE: PacketType.AUTH_RESPONSE,
        constants.SourceType.AUTH: PacketType.AUTH,
    }
    REQUEST_TYPES: dict[int, PacketType] = {
        constants.SourceType.EXECCOMMAND: PacketType.COMMAND,
        constants.SourceType.AUTH: PacketType.AUTH,
        constants.SourceType.RESPONSE_VALUE: PacketType.COMMAND_RESPONSE,
    }

    def declared_length_for(self, body: str) -> int:
        return constants.SOURCE_LENGTH_OVERHEAD + len(body.encode("utf-8"))

    def encode(self, packet: Packet) -> bytes:
        body = packet.body.encode("utf-8")
        length = constants.SOURCE_LENGTH_OVERHEAD + len(body)
        try:
            header = _HEADER.pack(length, packet.id, _TYPE_TO_WIRE[packet.type])
        except struct.error as e:
            raise MalformedPacketError(f"id 超出 int32 范围: {packet.id}") from e
        return header + body + constants.SOURCE_TERMINATOR

    def frame_size(self, prefix: bytes) -> int:
        length = self._unpack_i32(prefix, 0)
        self._check_size(length, constants.SOURCE_LENGTH_OVERHEAD, "length")
        return constants.SOURCE_LENGTH_FIELD_SIZE + length

    def decode(self, frame: bytes, is_response: bool = True) -> Packet:
        if len(frame) < _HEADER.size + len(constants.SOURCE_TERMINATOR):
            raise MalformedPacketError(f"帧过短: {len(frame)} 字节")

        length, packet_id, wire_type = _HEADER.unpack_from(frame, 0)
        self._check_size(length, constants.SOURCE_LENGTH_OVERHEAD, "length")
        if len(frame) != constants.SOURCE_LENGTH_FIELD_SIZE + length:
            raise MalformedPacketError(
                f"长度字段 ({length}) 与实际帧长 ({len(frame)} - 4) 不符"
            )

        if frame[-2:] != constants.SOURCE_TERMINATOR:
            raise MalformedPacketError(f"缺少结尾终止符: {frame[-2:].hex()}")

        table = self.RESPONSE_TYPES if is_response else self.REQUEST_TYPES
        try:
            ptype = table[wire_type]
        except KeyError:
            raise MalformedPacketError(f"未知的类型码: {wire_type}") from None

        try:
            body = frame[_HEADER.size : -2].decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedPacketError(f"包体不是合法的 UTF-8: {e}") from e

        return Packet(packet_id, ptype, body, length)

    def auth_packet(self, packet_id: int, password: str) -> Packet:
        return self.build_packet(packet_id, PacketType.AUTH, password)

    def is_auth_response(self, packet: Packet) -> bool:
        return packet.type is PacketType.AUTH_RESPONSE

    def is_auth_error(self, packet: Packet) -> bool:
        return packet.id < 0


class FactorioCodec(SourceCodec):
    """Factorio 的编解码器。

    线上形状与 Source 完全一致，但服务器只会发出 RESPONSE_VALUE (0)
    与 AUTH_RESPONSE (2)，其余类型码一律视为畸形包。
    """

    RESPONSE_TYPES: dict[int, PacketType] = {
        constants.SourceType.RESPONSE_VALUE: PacketType.COMMAND_RESPONSE,
        constants.SourceType.AUTH_RESPONSE: PacketType.AUTH_RESPONSE,
    }
    REQUEST_TYPES: dict[int, PacketType] = {
        constants.SourceType.EXECCOMMAND: PacketType.COMMAND,
        constants.SourceType.AUTH: PacketType.AUTH,
    }
