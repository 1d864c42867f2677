from datetime import datetime
from typing import Optional, Union


def format_points(value: Union[int, float], precision: int = 2) -> str:
    """Форматирование очков: без лишних нулей после запятой"""
    formatted = f"{float(value):.{precision}f}".rstrip('0').rstrip('.')
    if formatted in ("", "-0"):
        return "0"
    return formatted


def format_percentage(value: Union[int, float], precision: int = 2) -> str:
    """Форматирование процентного значения"""
    return f"{float(value):.{precision}f}%"


def format_timestamp(dt: Optional[datetime], empty: str = "—") -> str:
    """Форматирование времени для статусного сообщения"""
    if dt is None:
        return empty
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def mask_credential(credential: str, visible: int = 12) -> str:
    """Сокращает токен для логов, чтобы не светить его целиком"""
    if not credential:
        return "<empty>"
    if len(credential) <= visible * 2:
        return credential[:visible] + "..."
    return f"{credential[:visible]}...{credential[-4:]}"
