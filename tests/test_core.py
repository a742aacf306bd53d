# tests/test_core.py
"""
测试 RconConnection 状态机 [Asyncio Edition]。
覆盖 src/rcon_core/core.py

核心测试方法是注入内存假流 (FakeTransport)，预置服务器字节并检查写出的字节。
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from rcon_core import (
    AuthError,
    CommandTooLongError,
    ConnectionStatus,
    GameVariant,
    InvalidCommandError,
    MalformedPacketError,
    RconConnection,
    StateError,
    TransportError,
    create_config_from_dict,
)
from rcon_core.protocols import get_codec, get_policy
from rcon_core.protocols.packet import PacketType


def _decode_writes(transport, game="source"):
    """辅助函数：把客户端写出的字节解码为包列表 (每次 write 恰好一个包)"""
    codec = get_codec(game)
    return [codec.decode(w, is_response=False) for w in transport.writes]


async def _ready_source(transport, sleep):
    """辅助函数：空密码跳过认证，直接得到 READY 的 Source 连接"""
    return await RconConnection.handshake(transport, "", GameVariant.SOURCE, sleep=sleep)


# =========================================================================
# 握手 (Handshake)
# =========================================================================


@pytest.mark.asyncio
async def test_handshake_success(fake_transport, server_bytes, no_sleep):
    fake_transport.feed(server_bytes(1, PacketType.AUTH_RESPONSE))

    conn = await RconConnection.handshake(fake_transport, "secret", "minecraft", sleep=no_sleep)

    assert conn.status is ConnectionStatus.READY
    (auth,) = _decode_writes(fake_transport)
    assert (auth.id, auth.type, auth.body) == (1, PacketType.AUTH, "secret")
    assert conn.state.next_id == 2


@pytest.mark.asyncio
async def test_handshake_discards_non_auth_packets(fake_transport, server_bytes, no_sleep):
    """Source 服务器会先回一个空的 RESPONSE_VALUE，再回 AUTH_RESPONSE"""
    fake_transport.feed(
        server_bytes(1, PacketType.COMMAND_RESPONSE, "")
        + server_bytes(1, PacketType.AUTH_RESPONSE)
    )

    conn = await RconConnection.handshake(fake_transport, "secret", "source", sleep=no_sleep)

    assert conn.status is ConnectionStatus.READY
    assert not fake_transport.incoming


@pytest.mark.asyncio
async def test_handshake_negative_id_is_auth_error(fake_transport, server_bytes, no_sleep):
    fake_transport.feed(server_bytes(-1, PacketType.AUTH_RESPONSE))

    with pytest.raises(AuthError):
        await RconConnection.handshake(fake_transport, "wrong", "minecraft", sleep=no_sleep)

    # 认证失败时 Transport 被关闭
    assert fake_transport.closed


@pytest.mark.asyncio
async def test_empty_password_skips_auth(fake_transport, no_sleep):
    conn = await RconConnection.handshake(fake_transport, "", "minecraft", sleep=no_sleep)

    assert conn.status is ConnectionStatus.READY
    assert fake_transport.writes == []


@pytest.mark.asyncio
async def test_factorio_empty_password_still_authenticates(fake_transport, server_bytes, no_sleep):
    fake_transport.feed(server_bytes(1, PacketType.AUTH_RESPONSE, game="factorio"))

    conn = await RconConnection.handshake(fake_transport, "", "factorio", sleep=no_sleep)

    assert conn.status is ConnectionStatus.READY
    (auth,) = _decode_writes(fake_transport, "factorio")
    assert auth.type is PacketType.AUTH
    assert auth.body == ""


@pytest.mark.asyncio
async def test_handshake_transport_failure(fake_transport, no_sleep):
    """认证阶段连接中断: 抛出 TransportError 并关闭连接"""
    with pytest.raises(TransportError):
        await RconConnection.handshake(fake_transport, "secret", "source", sleep=no_sleep)
    assert fake_transport.closed


# =========================================================================
# 命令 (Multi-packet sentinel)
# =========================================================================


@pytest.mark.asyncio
async def test_multi_packet_reassembly(fake_transport, server_bytes, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    # 命令 id = 1，结束标记 id = 2
    fake_transport.feed(
        server_bytes(1, body="Hello, ")
        + server_bytes(1, body="World!")
        + server_bytes(2, body="")
    )

    assert await conn.run_command("status") == "Hello, World!"

    cmd, sentinel = _decode_writes(fake_transport)
    assert (cmd.id, cmd.type, cmd.body) == (1, PacketType.COMMAND, "status")
    assert (sentinel.id, sentinel.type, sentinel.body) == (2, PacketType.COMMAND, "")
    assert conn.status is ConnectionStatus.READY
    assert conn.state.commands_sent == 1


@pytest.mark.asyncio
async def test_sentinel_body_is_discarded(fake_transport, server_bytes, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    fake_transport.feed(server_bytes(1, body="pong") + server_bytes(2, body="junk"))

    assert await conn.run_command("ping") == "pong"


@pytest.mark.asyncio
async def test_consecutive_commands_use_fresh_ids(fake_transport, server_bytes, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    fake_transport.feed(server_bytes(1, body="a") + server_bytes(2))
    fake_transport.feed(server_bytes(3, body="b") + server_bytes(4))

    assert await conn.run_command("one") == "a"
    assert await conn.run_command("two") == "b"
    assert [p.id for p in _decode_writes(fake_transport)] == [1, 2, 3, 4]


@pytest.mark.asyncio
async def test_minecraft_id_wrap(fake_transport, server_bytes, no_sleep):
    """id 到达 0x3fff 后回绕到 1，回绕本身不是错误"""
    conn = await RconConnection.handshake(fake_transport, "", "minecraft", sleep=no_sleep)
    conn.state.next_id = 0x3FFF
    fake_transport.feed(server_bytes(0x3FFF, body="ok") + server_bytes(1))

    assert await conn.run_command("list") == "ok"
    assert [p.id for p in _decode_writes(fake_transport)] == [0x3FFF, 1]
    assert conn.state.next_id == 2


@pytest.mark.asyncio
async def test_minecraft_delay_between_send_and_read(fake_transport, server_bytes, no_sleep):
    conn = await RconConnection.handshake(fake_transport, "", "minecraft", sleep=no_sleep)
    fake_transport.feed(server_bytes(1, body="x") + server_bytes(2))

    await conn.run_command("list")
    assert no_sleep.calls == [pytest.approx(0.003)]


@pytest.mark.asyncio
async def test_source_has_no_delay(fake_transport, server_bytes, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    fake_transport.feed(server_bytes(1, body="x") + server_bytes(2))

    await conn.run_command("status")
    assert no_sleep.calls == []


# =========================================================================
# 命令 (Single packet)
# =========================================================================


@pytest.mark.asyncio
async def test_factorio_single_packet_response(fake_transport, server_bytes, no_sleep):
    fake_transport.feed(server_bytes(1, PacketType.AUTH_RESPONSE, game="factorio"))
    conn = await RconConnection.handshake(fake_transport, "pw", "factorio", sleep=no_sleep)
    fake_transport.feed(server_bytes(2, body="hello", game="factorio"))

    assert await conn.run_command("/c rcon.print('hello')") == "hello"
    # 认证包 + 命令包，没有结束标记
    assert len(fake_transport.writes) == 2


@pytest.mark.asyncio
async def test_battlefield3_login_and_command(fake_transport, server_bytes, no_sleep):
    fake_transport.feed(server_bytes(1, body="OK", game="battlefield3"))
    conn = await RconConnection.handshake(fake_transport, "root", "battlefield3", sleep=no_sleep)

    fake_transport.feed(server_bytes(2, body="OK MyServer 12 64", game="battlefield3"))
    assert await conn.run_command("serverInfo") == "OK MyServer 12 64"

    login, cmd = _decode_writes(fake_transport, "battlefield3")
    assert login.words == ["login.PlainText", "root"]
    assert (cmd.id, cmd.body) == (2, "serverInfo")


@pytest.mark.asyncio
async def test_battlefield3_login_rejected(fake_transport, server_bytes, no_sleep):
    fake_transport.feed(server_bytes(1, body="InvalidPassword", game="battlefield3"))

    with pytest.raises(AuthError) as exc_info:
        await RconConnection.handshake(fake_transport, "bad", "battlefield3", sleep=no_sleep)

    assert exc_info.value.response == "InvalidPassword"


@pytest.mark.asyncio
async def test_battlefield3_empty_password_skips_login(fake_transport, no_sleep):
    conn = await RconConnection.handshake(fake_transport, "", "battlefield3", sleep=no_sleep)
    assert conn.status is ConnectionStatus.READY
    assert fake_transport.writes == []


# =========================================================================
# 错误处理
# =========================================================================


@pytest.mark.asyncio
async def test_command_too_long_sends_nothing(fake_transport, server_bytes, no_sleep):
    conn = await RconConnection.handshake(fake_transport, "", "minecraft", sleep=no_sleep)

    with pytest.raises(CommandTooLongError) as exc_info:
        await conn.run_command("a" * 1414)

    assert exc_info.value.limit == 1413
    assert fake_transport.writes == []
    # 连接仍可用
    assert conn.status is ConnectionStatus.READY
    fake_transport.feed(server_bytes(1, body="ok") + server_bytes(2))
    assert await conn.run_command("a" * 1413) == "ok"


@pytest.mark.asyncio
async def test_battlefield3_non_ascii_command_keeps_connection_ready(
    fake_transport, server_bytes, no_sleep
):
    conn = await RconConnection.handshake(fake_transport, "", "battlefield3", sleep=no_sleep)

    with pytest.raises(InvalidCommandError, match="ASCII"):
        await conn.run_command("admin.say héllo all")

    assert fake_transport.writes == []
    assert conn.status is ConnectionStatus.READY
    assert conn.state.next_id == 1
    assert conn.state.last_error == ""

    # id 未被消耗，下一条命令照常使用 1
    fake_transport.feed(server_bytes(1, body="OK", game="battlefield3"))
    assert await conn.run_command("admin.say hello all") == "OK"
    (cmd,) = _decode_writes(fake_transport, "battlefield3")
    assert cmd.id == 1


@pytest.mark.asyncio
async def test_unencodable_command_raises_invalid_command(fake_transport, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)

    with pytest.raises(InvalidCommandError, match="UTF-8"):
        await conn.run_command("say \ud800")

    assert fake_transport.writes == []
    assert conn.status is ConnectionStatus.READY
    assert conn.state.next_id == 1


@pytest.mark.asyncio
async def test_cancelled_command_marks_connection_broken(fake_transport, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)

    async def _never(n):
        await asyncio.Event().wait()

    fake_transport.read_exactly = _never

    with pytest.raises(asyncio.TimeoutError):
        await asyncio.wait_for(conn.run_command("status"), timeout=0.01)

    assert conn.status is ConnectionStatus.ERROR
    assert conn.state.last_error == "CancelledError"
    with pytest.raises(StateError):
        await conn.run_command("status")


@pytest.mark.asyncio
async def test_transport_failure_makes_connection_unusable(fake_transport, server_bytes, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    # 只给出命令响应，没有结束标记，随后 EOF
    fake_transport.feed(server_bytes(1, body="partial"))

    with pytest.raises(TransportError):
        await conn.run_command("status")

    assert conn.status is ConnectionStatus.ERROR
    assert conn.state.last_error
    with pytest.raises(StateError):
        await conn.run_command("status")


@pytest.mark.asyncio
async def test_malformed_packet_makes_connection_unusable(fake_transport, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    # length=10, id=1, type=7 (未知)
    fake_transport.feed(b"\x0a\x00\x00\x00\x01\x00\x00\x00\x07\x00\x00\x00\x00\x00")

    with pytest.raises(MalformedPacketError):
        await conn.run_command("status")
    assert conn.status is ConnectionStatus.ERROR


@pytest.mark.asyncio
async def test_command_after_close(fake_transport, no_sleep):
    conn = await _ready_source(fake_transport, no_sleep)
    await conn.close()
    await conn.close()

    assert fake_transport.closed
    assert conn.status is ConnectionStatus.CLOSED
    with pytest.raises(StateError):
        await conn.run_command("status")


@pytest.mark.asyncio
async def test_async_context_manager_closes(fake_transport, no_sleep):
    async with await _ready_source(fake_transport, no_sleep) as conn:
        assert conn.status is ConnectionStatus.READY
    assert fake_transport.closed


# =========================================================================
# connect 入口
# =========================================================================


@pytest.mark.asyncio
async def test_connect_opens_tcp_transport(mocker, fake_transport, no_sleep):
    open_mock = mocker.patch(
        "rcon_core.core.TcpTransport.open", new=AsyncMock(return_value=fake_transport)
    )

    conn = await RconConnection.connect("127.0.0.1", 25575, "", timeout=2.0, sleep=no_sleep)

    open_mock.assert_awaited_once_with("127.0.0.1", 25575, 2.0)
    assert conn.policy == get_policy(GameVariant.MINECRAFT)
    assert conn.status is ConnectionStatus.READY


@pytest.mark.asyncio
async def test_connect_with_config_applies_overrides(mocker, fake_transport, server_bytes, no_sleep):
    mocker.patch(
        "rcon_core.core.TcpTransport.open", new=AsyncMock(return_value=fake_transport)
    )
    config = create_config_from_dict(
        {
            "host": "127.0.0.1",
            "password": "",
            "game": "minecraft",
            "max_payload_size": "unbounded",
            "inter_command_delay": 0,
            "response_mode": "single-packet",
        }
    )

    conn = await RconConnection.connect_with_config(config, sleep=no_sleep)
    fake_transport.feed(server_bytes(1, body="done"))

    assert await conn.run_command("x" * 2000) == "done"
    assert no_sleep.calls == []
    assert len(fake_transport.writes) == 1
