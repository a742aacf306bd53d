# src/rcon_core/network.py
"""
RCON 核心库 - 网络模块 (Network) [Asyncio Edition]

定义引擎所需的传输能力 (Transport)，并提供基于 asyncio Streams 的 TCP 实现。
引擎只依赖有序、可靠的字节流读写，不关心底层是否为 TCP。
"""

import asyncio
import logging
from typing import Protocol, runtime_checkable

from .exceptions import TransportError

logger = logging.getLogger(__name__)


@runtime_checkable
class Transport(Protocol):
    """双向字节流传输能力。

    任何实现了以下三个协程方法的对象都可以被 RconConnection 使用，
    例如测试中的内存假流、TLS 隧道或串口桥接。
    """

    async def read_exactly(self, n: int) -> bytes:
        """读取恰好 n 个字节，不足时抛出 TransportError。"""
        ...

    async def write(self, data: bytes) -> None:
        """写入全部字节并刷新。"""
        ...

    async def close(self) -> None:
        """释放底层资源，重复调用应无副作用。"""
        ...


class TcpTransport:
    """
    封装 asyncio TCP 流的传输实现。
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        timeout: float | None = None,
    ) -> None:
        """
        Args:
            reader: asyncio 流读取端。
            writer: asyncio 流写入端。
            timeout: 单次读写的超时秒数，None 表示不限时。
        """
        self.reader = reader
        self.writer = writer
        self.timeout = timeout

    @classmethod
    async def open(
        cls, host: str, port: int, timeout: float | None = None
    ) -> "TcpTransport":
        """
        建立 TCP 连接。

        Raises:
            TransportError: 连接失败或超时。
        """
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(host, port), timeout=timeout
            )
        except asyncio.TimeoutError as e:
            raise TransportError(f"连接超时 {host}:{port} ({timeout}s)", e) from e
        except OSError as e:
            raise TransportError(f"连接失败 {host}:{port}: {e}", e) from e

        logger.debug(f"TCP 连接已建立: {host}:{port}")
        return cls(reader, writer, timeout)

    @property
    def is_closing(self) -> bool:
        return self.writer.is_closing()

    async def read_exactly(self, n: int) -> bytes:
        """
        读取恰好 n 个字节 (Async)。

        使用 asyncio.wait_for 实现超时控制。
        """
        try:
            return await asyncio.wait_for(
                self.reader.readexactly(n), timeout=self.timeout
            )
        except asyncio.IncompleteReadError as e:
            raise TransportError(
                f"连接在读取中途关闭 (期望 {n} 字节，实际 {len(e.partial)} 字节)", e
            ) from e
        except asyncio.TimeoutError as e:
            raise TransportError(f"接收超时 ({self.timeout}s)", e) from e
        except OSError as e:
            raise TransportError(f"接收错误: {e}", e) from e

    async def write(self, data: bytes) -> None:
        """
        发送字节并等待缓冲区排空。
        """
        if self.writer.is_closing():
            raise TransportError("Transport 已关闭")

        try:
            self.writer.write(data)
            await asyncio.wait_for(self.writer.drain(), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise TransportError(f"发送超时 ({self.timeout}s)", e) from e
        except OSError as e:
            raise TransportError(f"发送失败: {e}", e) from e

    async def close(self) -> None:
        """关闭 Transport"""
        if self.writer.is_closing():
            return
        self.writer.close()
        try:
            await self.writer.wait_closed()
        except OSError as e:
            # 对端已重置连接，本地关闭仍然视为完成
            logger.debug(f"关闭连接时对端异常: {e}")
        logger.debug("TCP Transport 已关闭")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
