"""cnnbatch.cli: コマンドラインインターフェース."""
