from __future__ import annotations

import re

_QUALIFIER_SEPARATORS = re.compile(r"[\\/]")


def bare_account_name(identity: str) -> str:
    """
    Назначение:
        Отбрасывает квалификатор домена/хоста: 'CORP\\jdoe' -> 'jdoe'.
    """
    return _QUALIFIER_SEPARATORS.split(identity.strip())[-1]


def fold(name: str) -> str:
    """
    Ключ регистронезависимого сравнения учётных записей.
    """
    return name.casefold()
