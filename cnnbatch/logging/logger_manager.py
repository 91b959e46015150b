"""
cnnbatch.logging.logger_manager: ログ管理マネージャー.

colorlogを使用したオブジェクト指向のログ管理システム.
デモCLIの ``--debug`` 指定でファイル名と行番号付きの詳細形式に切り替わる.
"""

import logging
from enum import Enum
from typing import Dict, Optional

try:
    import colorlog

    COLORLOG_AVAILABLE = True
except ImportError:
    COLORLOG_AVAILABLE = False

DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# (通常形式, 詳細形式)
COLOR_FORMATS = (
    "%(asctime)s|%(log_color)s%(levelname)-5.5s%(reset)s| %(message)s",
    "%(asctime)s|%(log_color)s%(levelname)-5.5s%(reset)s|"
    "%(filename)-24s|%(lineno)03d| %(message)s",
)
PLAIN_FORMATS = (
    "%(asctime)s|%(levelname)-5.5s| %(message)s",
    "%(asctime)s|%(levelname)-5.5s|%(filename)-24s|%(lineno)03d| %(message)s",
)

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARN": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}


class DemoLogFormatter(logging.Formatter):
    """通常形式と詳細形式を切り替えられるログ整形.

    Attributes:
        detailed (bool): Trueならファイル名と行番号を含む詳細形式で出力
    """

    def __init__(self, use_color: bool, detailed: bool = False) -> None:
        """ログ整形の初期化.

        Args:
            use_color (bool): colorlogで色付けするか
            detailed (bool): 詳細形式で出力するか
        """
        super().__init__(datefmt=DATE_FORMAT)
        self.detailed = detailed
        if use_color:
            self._formatters = tuple(
                colorlog.ColoredFormatter(fmt, datefmt=DATE_FORMAT, log_colors=LOG_COLORS)
                for fmt in COLOR_FORMATS
            )
        else:
            self._formatters = tuple(
                logging.Formatter(fmt, datefmt=DATE_FORMAT) for fmt in PLAIN_FORMATS
            )

    def format(self, record: logging.LogRecord) -> str:
        """ログレコードを整形. WARNINGはWARNと短縮する."""
        if record.levelname == "WARNING":
            record.levelname = "WARN"
        return str(self._formatters[int(self.detailed)].format(record))


class LogLevel(Enum):
    """ログレベル列挙型."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class LoggerManager:
    """
    ログ管理マネージャークラス.

    推論デモ全体で一貫したログ設定を提供するシングルトン.
    モジュールごとに名前付きロガーを払い出し, 親ロガーへは伝播させない.

    Attributes:
        _loggers (Dict[str, logging.Logger]): 管理されているロガーの辞書
        _default_level (LogLevel): 新規ロガーに適用するログレベル
    """

    _instance: Optional["LoggerManager"] = None
    _loggers: Dict[str, logging.Logger] = {}

    def __new__(cls) -> "LoggerManager":
        """シングルトンパターンの実装."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self) -> None:
        """LoggerManagerを初期化."""
        if hasattr(self, "_initialized"):
            return
        self._default_level = LogLevel.INFO
        self._detailed = False
        self._initialized = True

    def get_logger(self, name: str, level: Optional[LogLevel] = None) -> logging.Logger:
        """
        指定された名前のロガーを取得または作成.

        Args:
            name (str): ロガー名
            level (LogLevel, optional): ログレベル. 省略時はデフォルトレベル

        Returns:
            logging.Logger: 設定されたロガー

        Examples:
            >>> logger = LoggerManager().get_logger("cnnbatch.inference")
            >>> logger.info("Latency: 12.3 ms")
        """
        if name not in self._loggers:
            self._loggers[name] = self._create_logger(name, level or self._default_level)
        return self._loggers[name]

    def _create_logger(self, name: str, level: LogLevel) -> logging.Logger:
        """ハンドラー付きのロガーを作成. 既にハンドラーがあればそのまま使う."""
        logger = logging.getLogger(name)
        if logger.handlers:
            return logger

        handler: logging.Handler = (
            colorlog.StreamHandler() if COLORLOG_AVAILABLE else logging.StreamHandler()
        )
        handler.setFormatter(DemoLogFormatter(COLORLOG_AVAILABLE, detailed=self._detailed))

        logger.setLevel(getattr(logging, level.value))
        logger.addHandler(handler)
        logger.propagate = False
        return logger

    def set_default_level(self, level: LogLevel) -> None:
        """
        デフォルトのログレベルを設定.

        DEBUG指定時は管理中の全ハンドラーを詳細形式に切り替える.

        Args:
            level (LogLevel): 新しいデフォルトレベル
        """
        self._default_level = level
        self._detailed = level == LogLevel.DEBUG
        for logger in self._loggers.values():
            for handler in logger.handlers:
                if isinstance(handler.formatter, DemoLogFormatter):
                    handler.formatter.detailed = self._detailed

    def set_logger_level(self, name: str, level: LogLevel) -> None:
        """特定のロガーのレベルを設定. 未管理の名前は無視する."""
        if name in self._loggers:
            self._loggers[name].setLevel(getattr(logging, level.value))

    def configure(self, debug: bool = False) -> LogLevel:
        """CLI向けに全ロガーのレベルを一括設定する.

        Args:
            debug: DEBUGレベルと詳細形式を有効化するか

        Returns:
            設定したログレベル
        """
        level = LogLevel.DEBUG if debug else LogLevel.INFO
        self.set_default_level(level)
        for name in self._loggers:
            self.set_logger_level(name, level)
        return level

    def get_available_loggers(self) -> list[str]:
        """管理されているロガーの名前一覧を取得."""
        return list(self._loggers.keys())

    def is_colorlog_available(self) -> bool:
        """colorlogが利用可能かチェック."""
        return COLORLOG_AVAILABLE

    @classmethod
    def reset(cls) -> None:
        """シングルトンインスタンスをリセット（主にテスト用）."""
        cls._instance = None
        cls._loggers.clear()
