# File: src/rcon_core/protocols/battlefield3.py
"""
Battlefield 3 RCON 封包编解码器 (单词式协议)

线上格式 (均为小端 int32):
    sequence | packet_size | word_count | { word_size | word (ascii) | 0x00 } * word_count

sequence 位布局:
    [0..28] id    [29..30] type    [31] origin

包体在内存中以空格连接的字符串表示，发送时按空白切分为单词。
word_size 不包含结尾的 0x00。
"""

import struct

from ..exceptions import MalformedPacketError
from . import constants
from .base import BaseCodec
from .packet import Packet, PacketType

_HEADER = struct.Struct("<Iii")
_WORD_SIZE = struct.Struct("<i")


class Battlefield3Codec(BaseCodec):
    """Battlefield 3 的编解码器。"""

    prefix_size = constants.BF3_HEADER_SIZE

    def declared_length_for(self, body: str) -> int:
        return constants.BF3_HEADER_SIZE + sum(
            constants.BF3_WORD_OVERHEAD + len(word) for word in body.split()
        )

    def encode(self, packet: Packet) -> bytes:
        if not 0 <= packet.id <= constants.BF3_ID_MASK:
            raise MalformedPacketError(f"id 超出 29 位范围: {packet.id}")

        sequence = packet.id
        if packet.is_response:
            sequence |= constants.BF3_RESPONSE_BITS

        try:
            words = [word.encode("ascii") for word in packet.body.split()]
        except UnicodeEncodeError as e:
            raise MalformedPacketError(f"Battlefield 3 单词只能包含 ASCII 字符: {e}") from e

        buf = bytearray()
        packet_size = constants.BF3_HEADER_SIZE + sum(
            constants.BF3_WORD_OVERHEAD + len(w) for w in words
        )
        buf.extend(_HEADER.pack(sequence, packet_size, len(words)))
        for word in words:
            buf.extend(_WORD_SIZE.pack(len(word)))
            buf.extend(word)
            buf.extend(constants.BF3_WORD_TERMINATOR)

        return bytes(buf)

    def frame_size(self, prefix: bytes) -> int:
        packet_size = self._unpack_i32(prefix, 4)
        self._check_size(packet_size, constants.BF3_HEADER_SIZE, "packet_size")
        return packet_size

    def decode(self, frame: bytes, is_response: bool = True) -> Packet:
        # 方向由 sequence 的 type 位决定，is_response 参数仅为接口兼容
        if len(frame) < constants.BF3_HEADER_SIZE:
            raise MalformedPacketError(f"帧过短: {len(frame)} 字节")

        sequence, packet_size, word_count = _HEADER.unpack_from(frame, 0)
        self._check_size(packet_size, constants.BF3_HEADER_SIZE, "packet_size")
        if len(frame) != packet_size:
            raise MalformedPacketError(
                f"packet_size ({packet_size}) 与实际帧长 ({len(frame)}) 不符"
            )

        # 每个单词至少占 5 字节，先用声明长度约束 word_count
        max_words = (packet_size - constants.BF3_HEADER_SIZE) // constants.BF3_WORD_OVERHEAD
        if not 0 <= word_count <= max_words:
            raise MalformedPacketError(
                f"word_count 越界: {word_count} (该包最多容纳 {max_words} 个单词)"
            )

        words = []
        offset = constants.BF3_HEADER_SIZE
        for _ in range(word_count):
            if offset + _WORD_SIZE.size > packet_size:
                raise MalformedPacketError(f"单词头部超出包尾 (偏移 {offset})")
            (word_size,) = _WORD_SIZE.unpack_from(frame, offset)
            offset += _WORD_SIZE.size
            end = offset + word_size
            if word_size < 0 or end + 1 > packet_size:
                raise MalformedPacketError(f"word_size 越界: {word_size}")
            if frame[end : end + 1] != constants.BF3_WORD_TERMINATOR:
                raise MalformedPacketError(f"单词缺少 0x00 终止符 (偏移 {end})")
            try:
                words.append(frame[offset:end].decode("ascii"))
            except UnicodeDecodeError as e:
                raise MalformedPacketError(f"单词不是合法的 ASCII: {e}") from e
            offset = end + 1

        if offset != packet_size:
            raise MalformedPacketError(
                f"单词总长 ({offset}) 与 packet_size ({packet_size}) 不符"
            )

        if sequence & constants.BF3_RESPONSE_FLAG:
            ptype = PacketType.COMMAND_RESPONSE
        else:
            ptype = PacketType.COMMAND

        return Packet(
            sequence & constants.BF3_ID_MASK, ptype, " ".join(words), packet_size
        )

    def auth_packet(self, packet_id: int, password: str) -> Packet:
        return self.build_packet(
            packet_id, PacketType.COMMAND, f"{constants.BF3_LOGIN_COMMAND} {password}"
        )

    def is_auth_response(self, packet: Packet) -> bool:
        return packet.is_response

    def is_auth_error(self, packet: Packet) -> bool:
        words = packet.words
        return not words or words[0] != constants.BF3_OK
