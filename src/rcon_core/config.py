"""
RCON 核心库 - 配置模块

负责配置的加载、解析与强类型转换。
支持从 TOML 文件、环境变量或字典中加载配置，并自动适配各游戏变体的默认策略。
"""

import logging
import os
import tomllib
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from .exceptions import ConfigError
from .protocols.constants import GameVariant
from .protocols.policy import ResponseMode, VariantPolicy, get_policy

logger = logging.getLogger(__name__)

# 各游戏 RCON 的常用默认端口
DEFAULT_PORTS: dict[GameVariant, int] = {
    GameVariant.SOURCE: 27015,
    GameVariant.MINECRAFT: 25575,
    GameVariant.FACTORIO: 27015,
    GameVariant.BATTLEFIELD3: 47200,
}

_UNBOUNDED = ("0", "none", "unbounded", "unlimited")


@dataclass(frozen=True)
class RconConfig:
    """RconConnection 的强类型配置对象。

    所有字段均为只读 (frozen=True)，确保配置在运行时不可变。
    策略覆盖项为 None 时沿用游戏变体的默认值。

    Attributes:
        host: 服务器地址。
        port: RCON 端口。
        password: RCON 密码，空字符串在允许的变体下跳过认证。
        game: 游戏变体。
        timeout: 连接与单次读写的超时秒数，None 表示不限时。
        max_payload_size: 覆盖最大命令长度，0 表示不限制。
        response_mode: 覆盖响应重组策略。
        inter_command_delay: 覆盖命令间延迟秒数，0 表示不等待。
        auth_is_mandatory: 覆盖空密码时是否仍然认证。
    """

    host: str
    port: int
    password: str
    game: GameVariant = GameVariant.MINECRAFT
    timeout: float | None = None

    # --- 策略覆盖 (Quirks) ---
    max_payload_size: int | None = None
    response_mode: ResponseMode | None = None
    inter_command_delay: float | None = None
    auth_is_mandatory: bool | None = None

    def policy(self) -> VariantPolicy:
        """生成应用了覆盖项的变体策略。"""
        overrides: dict[str, Any] = {}
        if self.max_payload_size is not None:
            overrides["max_payload_size"] = self.max_payload_size or None
        if self.response_mode is not None:
            overrides["response_mode"] = self.response_mode
        if self.inter_command_delay is not None:
            overrides["inter_command_delay"] = self.inter_command_delay or None
        if self.auth_is_mandatory is not None:
            overrides["auth_is_mandatory"] = self.auth_is_mandatory
        return get_policy(self.game).with_overrides(**overrides)

    def __repr__(self) -> str:
        """
        覆盖默认的 repr，隐藏密码字段，防止日志泄露敏感信息。
        """
        return (
            f"<{self.__class__.__name__} "
            f"server={self.host}:{self.port}, "
            f"password='******', "
            f"game={self.game.value}>"
        )


def create_config_from_dict(raw_data: dict[str, Any]) -> RconConfig:
    """通用工厂：将字典转换为强类型配置对象。

    负责字段的清洗、默认值注入和类型转换。

    Args:
        raw_data: 原始配置字典 (来自 TOML 或 Env)。

    Returns:
        RconConfig: 验证并转换后的配置对象。

    Raises:
        ConfigError: 当必要字段缺失或格式错误时抛出。
    """
    try:
        # --- 内部辅助函数 ---
        def _req(key: str) -> Any:
            """获取必要字段，缺失则报错"""
            if key not in raw_data:
                raise ConfigError(f"配置缺失: 缺少必要字段 '{key}'")
            return raw_data[key]

        def _to_game(key: str) -> GameVariant:
            val = str(raw_data.get(key, GameVariant.MINECRAFT.value)).strip().lower()
            try:
                return GameVariant(val)
            except ValueError:
                choices = ", ".join(g.value for g in GameVariant)
                raise ConfigError(f"未知的游戏类型 '{val}' (可选: {choices})")

        def _to_port(key: str, default: int) -> int:
            val = raw_data.get(key, default)
            try:
                port = int(val)
            except (TypeError, ValueError):
                raise ConfigError(f"端口格式无效 '{key}': {val}")
            if not 0 < port < 65536:
                raise ConfigError(f"端口越界 '{key}': {port}")
            return port

        def _to_float(key: str) -> float | None:
            if raw_data.get(key) in (None, ""):
                return None
            val = raw_data[key]
            try:
                num = float(val)
            except (TypeError, ValueError):
                raise ConfigError(f"数值格式无效 '{key}': {val}")
            if num < 0:
                raise ConfigError(f"数值不能为负 '{key}': {num}")
            return num

        def _to_payload_size(key: str) -> int | None:
            if raw_data.get(key) in (None, ""):
                return None
            val = raw_data[key]
            if str(val).strip().lower() in _UNBOUNDED:
                return 0
            try:
                size = int(val)
            except (TypeError, ValueError):
                raise ConfigError(f"负载上限格式无效 '{key}': {val}")
            if size < 0:
                raise ConfigError(f"负载上限不能为负 '{key}': {size}")
            return size

        def _to_mode(key: str) -> ResponseMode | None:
            if raw_data.get(key) in (None, ""):
                return None
            val = str(raw_data[key]).strip().lower().replace("_", "-")
            try:
                return ResponseMode(val)
            except ValueError:
                raise ConfigError(f"未知的响应模式 '{key}': {val}")

        def _to_bool(key: str) -> bool | None:
            if raw_data.get(key) in (None, ""):
                return None
            val = raw_data[key]
            if isinstance(val, bool):
                return val
            text = str(val).strip().lower()
            if text in ("true", "1", "yes", "t", "on"):
                return True
            if text in ("false", "0", "no", "f", "off"):
                return False
            raise ConfigError(f"布尔值格式无效 '{key}': {val}")

        # --- 构建对象 ---
        game = _to_game("game")
        host = str(_req("host")).strip()
        if not host:
            raise ConfigError("配置缺失: 'host' 不能为空")

        return RconConfig(
            host=host,
            port=_to_port("port", DEFAULT_PORTS[game]),
            password=str(_req("password")),
            game=game,
            timeout=_to_float("timeout"),
            max_payload_size=_to_payload_size("max_payload_size"),
            response_mode=_to_mode("response_mode"),
            inter_command_delay=_to_float("inter_command_delay"),
            auth_is_mandatory=_to_bool("auth_is_mandatory"),
        )

    except Exception as e:
        if isinstance(e, ConfigError):
            raise
        raise ConfigError(f"配置生成失败: {e}") from e


def load_config_from_toml(file_path: Path, profile: str = "default") -> RconConfig:
    """从 TOML 文件加载配置。

    支持多层级查找策略:
    1. [profile.xxx]: 优先查找指定的 profile 块。
    2. [rcon]: 单服务器配置块。
    3. Root: 兼容根目录直接配置。

    Args:
        file_path: TOML 文件路径。
        profile: 配置预设名。默认为 "default"。

    Returns:
        RconConfig: 配置对象。

    Raises:
        ConfigError: 文件读取失败或 Profile 不存在。
    """
    if not file_path.exists():
        raise ConfigError(f"配置文件未找到: {file_path}")

    try:
        with open(file_path, "rb") as f:
            data = tomllib.load(f)
    except Exception as e:
        raise ConfigError(f"读取 TOML 失败: {e}") from e

    if "profile" in data:
        if profile not in data["profile"]:
            raise ConfigError(f"未找到预设: [profile.{profile}]")
        raw_config = data["profile"][profile]
    elif "rcon" in data:
        if profile != "default":
            logger.warning(f"配置仅包含 [rcon] 节，忽略 profile='{profile}'。")
        raw_config = data["rcon"]
    else:
        raw_config = data

    return create_config_from_dict(raw_config)


def load_config_from_env() -> RconConfig:
    """从环境变量加载配置 (Docker/Cloud Friendly)。

    自动读取所有以 `RCON_` 开头的相关环境变量，并映射到配置字段。
    例如: `RCON_HOST` -> `host`。

    Returns:
        RconConfig: 配置对象。

    Raises:
        ConfigError: 未检测到任何相关环境变量。
    """
    # 字段映射表 (Config Field -> Env Suffix)
    env_map = {
        "host": "HOST",
        "port": "PORT",
        "password": "PASSWORD",
        "game": "GAME",
        "timeout": "TIMEOUT",
        "max_payload_size": "MAX_PAYLOAD_SIZE",
        "response_mode": "RESPONSE_MODE",
        "inter_command_delay": "INTER_COMMAND_DELAY",
        "auth_is_mandatory": "AUTH_IS_MANDATORY",
    }

    raw_data = {}

    for cfg_key, env_suffix in env_map.items():
        env_key = f"RCON_{env_suffix}"
        val = os.environ.get(env_key)
        if val is not None:
            raw_data[cfg_key] = val

    if not raw_data:
        raise ConfigError("未检测到 RCON_ 前缀的环境变量")

    return create_config_from_dict(raw_data)
