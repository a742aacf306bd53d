# tests/conftest.py
import sys
from pathlib import Path

import pytest

# 确保 src 目录在 sys.path 中
src_path = Path(__file__).resolve().parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

from rcon_core.exceptions import TransportError
from rcon_core.protocols import get_codec
from rcon_core.protocols.packet import PacketType


class FakeTransport:
    """内存中的假字节流：回放预置的服务器字节，并记录所有写入。"""

    def __init__(self, incoming: bytes = b"") -> None:
        self.incoming = bytearray(incoming)
        self.writes: list[bytes] = []
        self.closed = False

    def feed(self, data: bytes) -> None:
        self.incoming.extend(data)

    @property
    def written(self) -> bytes:
        return b"".join(self.writes)

    async def read_exactly(self, n: int) -> bytes:
        if len(self.incoming) < n:
            raise TransportError(f"EOF (期望 {n} 字节，剩余 {len(self.incoming)} 字节)")
        data = bytes(self.incoming[:n])
        del self.incoming[:n]
        return data

    async def write(self, data: bytes) -> None:
        self.writes.append(bytes(data))

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_transport():
    """[Fixture] 返回一个空的假字节流。"""
    return FakeTransport()


@pytest.fixture
def server_bytes():
    """
    [Fixture] 构造服务器发出的 Source 包字节的辅助函数。

    用法: server_bytes(id, PacketType.COMMAND_RESPONSE, "body", game="source")
    """

    def _build(packet_id, ptype=PacketType.COMMAND_RESPONSE, body="", game="source"):
        codec = get_codec(game)
        return codec.encode(codec.build_packet(packet_id, ptype, body))

    return _build


@pytest.fixture
def no_sleep():
    """[Fixture] 记录调用参数但不真正等待的延迟函数。"""
    calls: list[float] = []

    async def _sleep(seconds: float) -> None:
        calls.append(seconds)

    _sleep.calls = calls
    return _sleep
