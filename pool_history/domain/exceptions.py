from __future__ import annotations


class DomainError(Exception):
    """Base para erros de dominio."""


class PoolHistoryInputError(DomainError):
    """Parametros invalidos para o backfill do historico da pool."""


class UnsupportedFeeTierError(DomainError):
    """Fee tier sem tick spacing conhecido."""


class HistoryAlignmentError(DomainError):
    """Series de OHLC e de liquidez nao alinham."""
