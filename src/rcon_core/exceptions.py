# File: src/rcon_core/exceptions.py
"""
RCON 核心库 - 异常体系 (Exceptions)

定义库内统一使用的异常类，以便上层应用（如 CLI/Bot）能进行精细的错误处理。
所有异常都不会在库内部被重试，直接抛给调用方。
"""


class RconError(Exception):
    """RCON 核心库的所有内部异常的基类。

    上层应用可以通过捕获此异常来处理所有由 rcon-core 抛出的已知错误。
    """

    pass


class ConfigError(RconError):
    """配置加载或校验失败。

    触发场景:
    1. 缺少必要字段 (如 host/password)。
    2. 字段格式错误 (如端口越界、未知的游戏类型)。
    3. 找不到配置文件或环境变量。
    """

    pass


class TransportError(RconError):
    """传输层错误 (I/O 级别)。

    触发场景:
    1. TCP 连接失败或被拒绝。
    2. 读写超时。
    3. 对端在包中途关闭连接。

    注意: 在认证或等待响应阶段发生此错误后，连接不可再用，
    调用方需要丢弃连接并自行重连。
    """

    def __init__(self, message: str, original: BaseException | None = None) -> None:
        """初始化传输错误。

        Args:
            message: 错误描述信息。
            original: 底层传输抛出的原始异常 (如 OSError)。
        """
        super().__init__(message)
        self.original = original


class ProtocolError(RconError):
    """协议交互错误 (逻辑级别)。"""

    pass


class MalformedPacketError(ProtocolError):
    """收到的数据违反了当前变体的封包约定。

    触发场景:
    1. 长度字段与实际字节数不符，或超出合理上限。
    2. 包体不是合法的文本 (UTF-8 / ASCII)。
    3. 类型标签不在该变体的已知编码范围内。
    4. 结尾的 0x00 终止符缺失。
    """

    pass


class AuthError(RconError):
    """认证被服务器拒绝。

    Source / Minecraft / Factorio 通过负数 id 表示失败，
    Battlefield 3 通过非 "OK" 的响应表示失败。
    """

    def __init__(self, message: str, response: str | None = None) -> None:
        """初始化认证错误。

        Args:
            message: 错误描述信息。
            response: 服务器返回的原始响应文本 (若有)。
        """
        if response:
            message = f"{message} (服务器响应: {response!r})"
        super().__init__(message)
        self.response = response


class InvalidCommandError(RconError):
    """命令无法在当前变体下编码 (本地前置检查)。

    触发场景:
    1. 命令包含无法编码为 UTF-8 的字符 (如孤立的代理码位)。
    2. Battlefield 3 命令包含非 ASCII 字符。

    不会向服务器发送任何字节，连接仍然可用。
    """

    pass


class CommandTooLongError(InvalidCommandError):
    """命令超出当前变体允许的最大负载长度。

    这是本地前置检查失败，不会向服务器发送任何字节，连接仍然可用。
    """

    def __init__(self, length: int, limit: int) -> None:
        super().__init__(f"命令过长: {length} 字节 (上限 {limit} 字节)")
        self.length = length
        self.limit = limit


class StateError(RconError):
    """状态机错误 (FSM Violation)。

    触发场景:
    1. 在已关闭的连接上执行命令。
    2. 在发生致命错误 (ERROR) 的连接上执行命令。
    3. 上一条命令的响应尚未读完时发起新命令。
    """

    pass
