# src/rcon_core/main.py
"""
RCON 命令行工具 (CLI)

演示如何将 rcon-core 作为库调用：加载配置 -> 握手 -> 逐条执行命令。
不带命令参数运行时进入交互模式。

    rcon-cli "list" "say hello"
    rcon-cli --config servers.toml --profile factorio "/c print('hi')"
"""

import argparse
import asyncio
import logging
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from . import __version__
from .config import RconConfig, load_config_from_env, load_config_from_toml
from .core import RconConnection
from .exceptions import AuthError, ConfigError, InvalidCommandError, RconError
from .protocols.constants import GameVariant

logger = logging.getLogger("RconCLI")

EXIT_COMMANDS = ("exit", "quit", ":q")


def load_cli_config(args: argparse.Namespace) -> RconConfig:
    """
    为 CLI 工具加载配置。
    指定了 --config 时读取 TOML，否则读取 .env 与 RCON_ 环境变量。
    """
    if args.config:
        config = load_config_from_toml(Path(args.config), args.profile)
    else:
        config = _load_env_config()

    if args.game:
        # 只替换变体，端口保持配置中的值
        config = replace(config, game=GameVariant(args.game))
    return config


def _load_env_config() -> RconConfig:
    # 优先从当前工作目录加载 .env
    env_path = Path.cwd() / ".env"
    if env_path.exists():
        load_dotenv(dotenv_path=env_path, override=False)
        logger.debug(f"已加载配置文件: {env_path}")
    else:
        logger.debug(f"在 {Path.cwd()} 未找到 .env 文件，仅使用环境变量。")

    return load_config_from_env()


async def run(config: RconConfig, commands: list[str]) -> None:
    """握手并执行命令，未提供命令时进入交互模式。"""
    async with await RconConnection.connect_with_config(config) as conn:
        if commands:
            for command in commands:
                print(await conn.run_command(command))
            return

        print(f"已连接 {config.host}:{config.port} ({config.game.value})，输入 exit 退出。")
        loop = asyncio.get_running_loop()
        while True:
            try:
                line = await loop.run_in_executor(None, input, "> ")
            except EOFError:
                break
            line = line.strip()
            if not line:
                continue
            if line in EXIT_COMMANDS:
                break
            try:
                print(await conn.run_command(line))
            except InvalidCommandError as e:
                # 命令未发出，连接仍可用
                logger.warning(f"命令被拒绝: {e}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rcon-cli", description="Source RCON 协议族命令行客户端"
    )
    parser.add_argument("commands", nargs="*", help="要执行的命令，省略则进入交互模式")
    parser.add_argument("-c", "--config", help="TOML 配置文件路径")
    parser.add_argument("-p", "--profile", default="default", help="TOML 配置预设名")
    parser.add_argument(
        "-g",
        "--game",
        choices=[g.value for g in GameVariant],
        help="覆盖配置中的游戏变体",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="输出调试日志")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: list[str] | None = None) -> int:
    """
    程序主入口点。

    Returns:
        int: 进程退出码。
    """
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        config = load_cli_config(args)
        asyncio.run(run(config, args.commands))
    except ConfigError as ce:
        logger.error(f"配置错误: {ce}")
        return 1
    except AuthError as ae:
        logger.error(f"认证被拒绝: {ae}")
        return 1
    except RconError as e:
        logger.error(f"运行时异常: {e}")
        return 1
    except KeyboardInterrupt:
        logger.info("收到用户中断信号 (Ctrl+C)，退出。")
    return 0


# 程序入口
if __name__ == "__main__":
    sys.exit(main())
