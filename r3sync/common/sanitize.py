from __future__ import annotations

import re

_SECRET_PAIR = re.compile(r"(?i)\b(password|pwd)\s*=\s*[^;]*")


def maskConnectionString(value: str | None) -> str | None:
    """
    Назначение:
        Маскирует пароль в строке подключения для безопасного вывода в stdout/logs.

    Входные данные:
        value: str | None
            Путь к SQLite-файлу или строка вида "Data Source=...;Password=...".

    Выходные данные:
        str | None
            Та же строка, где значения Password/Pwd заменены на '***'.
    """
    if value is None:
        return None
    return _SECRET_PAIR.sub(lambda m: f"{m.group(1)}=***", value)


def truncateText(value: str | None, limit: int = 500) -> str | None:
    """
    Ограничивает длину текста (сообщения об ошибках в отчёте).
    """
    if value is None:
        return None
    if len(value) <= limit:
        return value
    suffix = "..." if limit > 3 else ""
    return value[: limit - len(suffix)] + suffix
