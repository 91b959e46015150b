"""cnnbatch.errors: デモ全体で共有する例外定義.

致命的なエラーは全てCLIのエントリーポイントまで伝播し,
ログ出力の後に終了コード1で終了する.
"""


class ConfigurationError(ValueError):
    """CLI引数または設定ファイルの不備.

    エントリーポイントで捕捉され, 使い方を表示して終了コード0で終了する.
    """


class LoadError(RuntimeError):
    """モデルファイルの欠落やネットワーク構成の非互換."""


class OutputBlobError(RuntimeError):
    """推論後に要求された出力ブロブが存在しない."""


class LogicError(RuntimeError):
    """不変条件の違反 (範囲外のバッチインデックスなど)."""
