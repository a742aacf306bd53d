# File: src/rcon_core/core.py
"""
RCON 连接状态机 (Connection Engine)

职责：
1. 资源组装：Transport + Codec + Policy + State。
2. 握手：Connecting -> Authenticating -> Ready。
3. 命令循环：Ready -> AwaitingResponse -> Ready，按策略重组多包响应。
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .config import RconConfig
from .exceptions import (
    AuthError,
    CommandTooLongError,
    InvalidCommandError,
    MalformedPacketError,
    StateError,
    TransportError,
)
from .network import TcpTransport, Transport
from .protocols.base import BaseCodec
from .protocols.constants import GameVariant
from .protocols.packet import Packet, PacketType
from .protocols.policy import ResponseMode, VariantPolicy, get_codec, get_policy
from .state import ConnectionState, ConnectionStatus

logger = logging.getLogger(__name__)

# 可注入的延迟函数：接收秒数，返回可等待对象
SleepFunc = Callable[[float], Awaitable[None]]


class RconConnection:
    """RCON 连接 (Async)。

    一个连接独占一个 Transport，同一时刻最多只有一条命令在途。
    引擎本身不加锁，多个调用方共享连接时需要自行串行化。

    推荐通过 `connect()` 或 `handshake()` 获取实例，而不是直接构造。
    """

    def __init__(
        self,
        transport: Transport,
        policy: VariantPolicy,
        codec: BaseCodec | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        """
        Args:
            transport: 已建立的字节流，由本连接独占。
            policy: 变体策略。
            codec: 编解码器，默认按 policy.game 选择。
            sleep: 命令间延迟使用的等待函数。
        """
        self.transport = transport
        self.policy = policy
        self.codec = codec or get_codec(policy.game)
        self._sleep = sleep
        self._state = ConnectionState()
        self._update_status(ConnectionStatus.CONNECTING, f"{policy.game.value} 连接已建立")

    # =========================================================================
    # 构造入口
    # =========================================================================

    @classmethod
    async def connect(
        cls,
        host: str,
        port: int,
        password: str,
        game: GameVariant | str = GameVariant.MINECRAFT,
        *,
        policy: VariantPolicy | None = None,
        timeout: float | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "RconConnection":
        """建立 TCP 连接并完成握手。

        Args:
            host: 服务器地址。
            port: RCON 端口。
            password: RCON 密码。
            game: 游戏变体，policy 为 None 时用于选择默认策略。
            policy: 自定义策略，优先于 game。
            timeout: 连接与单次读写的超时秒数。
            sleep: 命令间延迟使用的等待函数。

        Returns:
            RconConnection: 已处于 READY 状态的连接。

        Raises:
            AuthError: 认证被拒绝。
            TransportError: 网络通信异常。
            MalformedPacketError: 服务器返回了畸形包。
        """
        transport = await TcpTransport.open(host, port, timeout or None)
        return await cls.handshake(
            transport, password, game, policy=policy, sleep=sleep
        )

    @classmethod
    async def connect_with_config(
        cls, config: RconConfig, sleep: SleepFunc = asyncio.sleep
    ) -> "RconConnection":
        """使用 RconConfig 建立连接。"""
        logger.debug(f"使用配置连接: {config!r}")
        return await cls.connect(
            config.host,
            config.port,
            config.password,
            config.game,
            policy=config.policy(),
            timeout=config.timeout,
            sleep=sleep,
        )

    @classmethod
    async def handshake(
        cls,
        transport: Transport,
        password: str,
        game: GameVariant | str = GameVariant.MINECRAFT,
        *,
        policy: VariantPolicy | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> "RconConnection":
        """在已建立的 Transport 上执行认证。

        认证失败或出错时会关闭 Transport，不返回连接对象。
        """
        conn = cls(transport, policy or get_policy(game), sleep=sleep)
        try:
            await conn._authenticate(password)
        except BaseException:
            await conn.close()
            raise
        return conn

    # =========================================================================
    # 公共 API
    # =========================================================================

    @property
    def state(self) -> ConnectionState:
        """当前会话状态 (只读使用)。"""
        return self._state

    @property
    def status(self) -> ConnectionStatus:
        return self._state.status

    async def run_command(self, command: str) -> str:
        """发送一条命令并返回完整响应。

        Args:
            command: 命令文本。

        Returns:
            str: 服务器响应文本 (多包响应已拼接)。

        Raises:
            StateError: 连接不处于 READY 状态。
            InvalidCommandError: 命令无法编码，未发送任何字节，连接仍可用。
            CommandTooLongError: 命令超出最大负载，未发送任何字节，连接仍可用。
            TransportError: 网络通信异常，连接随之不可用。
            MalformedPacketError: 收到畸形包，连接随之不可用。
        """
        if not self._state.is_usable:
            raise StateError(f"连接不可用 (当前状态: {self._state.status.name})")

        command_out, sentinel_out = self._prepare_command(command)

        self._update_status(ConnectionStatus.AWAITING_RESPONSE, f"执行命令: {command!r}")
        try:
            await self._send(*command_out)
            await self._delay()

            if sentinel_out is not None:
                # 服务器按序处理，追加一个空命令，其回显即为响应结束标记
                end_id = await self._send(*sentinel_out)
                response = await self._receive_until(end_id)
            else:
                response = (await self._receive()).body

        except (TransportError, MalformedPacketError) as e:
            self._fail(e)
            raise
        except asyncio.CancelledError as e:
            # 响应可能已部分到达，流的位置不再可信
            self._fail(e)
            raise

        self._state.commands_sent += 1
        self._update_status(ConnectionStatus.READY, f"响应 {len(response)} 字符")
        return response

    async def close(self) -> None:
        """关闭连接，重复调用无副作用。"""
        if self._state.status is ConnectionStatus.CLOSED:
            return
        try:
            await self.transport.close()
        finally:
            self._update_status(ConnectionStatus.CLOSED, "连接已关闭")

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # =========================================================================
    # 内部实现
    # =========================================================================

    async def _authenticate(self, password: str) -> None:
        """执行认证握手。

        Raises:
            AuthError: 服务器拒绝认证。
        """
        if self.policy.skips_auth(password):
            self._update_status(ConnectionStatus.READY, "空密码，跳过认证")
            return

        self._update_status(ConnectionStatus.AUTHENTICATING, "正在认证...")
        try:
            packet = self.codec.auth_packet(self._allocate_id(), password)
            await self._write(packet, redact=True)

            while True:
                received = await self._receive()
                if self.codec.is_auth_response(received):
                    break
                logger.warning(f"认证阶段丢弃非认证响应包: {received!r}")

        except (TransportError, MalformedPacketError) as e:
            self._fail(e)
            raise

        if self.codec.is_auth_error(received):
            err = AuthError("认证失败", received.body or None)
            self._fail(err)
            raise err

        self._update_status(ConnectionStatus.READY, "认证成功")

    def _prepare_command(
        self, command: str
    ) -> tuple[tuple[Packet, bytes], tuple[Packet, bytes] | None]:
        """在离开 READY 之前完成本地校验与编码，不改动任何状态。

        返回命令包及其字节；多包模式下还有结束标记包及其字节。
        两者使用的 id 与随后 `_allocate_id()` 分配的一致。

        Raises:
            InvalidCommandError: 命令无法编码。
            CommandTooLongError: 命令超出最大负载。
        """
        try:
            length = len(command.encode("utf-8"))
        except UnicodeEncodeError as e:
            raise InvalidCommandError(f"命令无法编码为 UTF-8: {e}") from e

        limit = self.policy.max_payload_size
        if limit is not None and length > limit:
            raise CommandTooLongError(length, limit)

        command_id = self._state.next_id
        packets = [self.codec.build_packet(command_id, PacketType.COMMAND, command)]
        if self.policy.response_mode is ResponseMode.MULTI_PACKET_SENTINEL:
            end_id = self.policy.id_advance_rule(command_id)
            packets.append(self.codec.build_packet(end_id, PacketType.COMMAND, ""))

        try:
            encoded = [(packet, self.codec.encode(packet)) for packet in packets]
        except MalformedPacketError as e:
            raise InvalidCommandError(f"命令无法编码: {e}") from e

        return encoded[0], encoded[1] if len(encoded) > 1 else None

    async def _send(self, packet: Packet, frame: bytes) -> int:
        """发送已编码的包并推进 id，返回所用 id。"""
        self._allocate_id()
        await self._write(packet, frame=frame)
        return packet.id

    async def _write(
        self, packet: Packet, redact: bool = False, frame: bytes | None = None
    ) -> None:
        if redact:
            logger.debug(f"-> <Packet id={packet.id} type={packet.type.name} body=******>")
        else:
            logger.debug(f"-> {packet!r}")
        if frame is None:
            frame = self.codec.encode(packet)
        await self.transport.write(frame)

    async def _receive(self) -> Packet:
        return await self.codec.read_packet(self.transport)

    async def _receive_until(self, end_id: int) -> str:
        """读取并拼接包体，直到收到结束标记 id 的包 (其包体丢弃)。"""
        parts: list[str] = []
        while True:
            packet = await self._receive()
            if packet.id == end_id:
                break
            parts.append(packet.body)

        if len(parts) > 1:
            logger.debug(f"多包响应已重组: {len(parts)} 个分片")
        return "".join(parts)

    async def _delay(self) -> None:
        if self.policy.inter_command_delay:
            await self._sleep(self.policy.inter_command_delay)

    def _allocate_id(self) -> int:
        """取出当前 id 并按策略推进。id 回绕不是错误。"""
        packet_id = self._state.next_id
        self._state.next_id = self.policy.id_advance_rule(packet_id)
        return packet_id

    def _fail(self, error: BaseException) -> None:
        self._state.last_error = str(error) or type(error).__name__
        self._update_status(ConnectionStatus.ERROR, f"连接不可用: {self._state.last_error}")

    def _update_status(self, status: ConnectionStatus, msg: str) -> None:
        """更新内部状态并记录日志。"""
        self._state.status = status
        if status is ConnectionStatus.ERROR:
            logger.error(f"[{status.name}] {msg}")
        elif status in (ConnectionStatus.AWAITING_RESPONSE, ConnectionStatus.READY):
            logger.debug(f"[{status.name}] {msg}")
        else:
            logger.info(f"[{status.name}] {msg}")
