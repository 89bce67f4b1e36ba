"""
Исключения движка закрытия аукционов

Все исключения наследуются от SettlementError. Конфликт захвата аукциона
исключением не является: координатор просто возвращает None.
"""


class SettlementError(Exception):
    """Базовое исключение движка"""

    def __init__(self, message: str = "Ошибка закрытия аукциона"):
        self.message = message
        super().__init__(self.message)


class ScanError(SettlementError):
    """Не удалось получить список аукционов к закрытию"""

    def __init__(self, cause: Exception):
        self.cause = cause
        super().__init__(f"Ошибка поиска завершившихся аукционов: {cause!r}")


class AuctionNotFoundError(SettlementError):
    """Аукцион не найден"""

    def __init__(self, auction_id: int):
        self.auction_id = auction_id
        super().__init__(f"Аукцион не найден: {auction_id}")


class WinnerConflictError(SettlementError):
    """У закрытого аукциона уже записан другой победитель"""

    def __init__(self, auction_id: int):
        self.auction_id = auction_id
        super().__init__(f"У аукциона {auction_id} уже записан другой победитель")


class ClosureIncompleteError(SettlementError):
    """
    Аукцион захвачен (ended), но закрытие не доведено до конца

    stage - шаг, на котором произошел сбой: resolve, record_winner,
    order, won_record, inventory, settle.
    """

    def __init__(self, auction_id: int, stage: str, cause: BaseException):
        self.auction_id = auction_id
        self.stage = stage
        self.cause = cause
        super().__init__(
            f"Закрытие аукциона {auction_id} не завершено на шаге {stage}: {cause!r}"
        )
