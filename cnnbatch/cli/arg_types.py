"""argparse用のカスタム型バリデーション関数."""

import argparse


def positive_int(value: str) -> int:
    """argparse用の正の整数バリデーション.

    Args:
        value (str): コマンドライン引数の文字列値

    Returns:
        int: 変換された正の整数

    Raises:
        argparse.ArgumentTypeError: 整数でない, または値が1未満の場合
    """
    try:
        int_value = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"整数を指定してください: {value}")
    if int_value < 1:
        raise argparse.ArgumentTypeError(f"1以上の整数を指定してください: {value}")
    return int_value


def unit_float(value: str) -> float:
    """argparse用の0以上1以下の実数バリデーション.

    Args:
        value (str): コマンドライン引数の文字列値

    Returns:
        float: 変換された実数

    Raises:
        argparse.ArgumentTypeError: 実数でない, または範囲外の場合
    """
    try:
        float_value = float(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"実数を指定してください: {value}")
    if not 0.0 <= float_value <= 1.0:
        raise argparse.ArgumentTypeError(f"0以上1以下の値を指定してください: {value}")
    return float_value
