"""
Ошибки доменного движка.

Все они штатные: операция отклонена, вызывающий показывает сообщение
человеку и сам решает, повторять ли (например, ставка повыше).
"""

from __future__ import annotations


class LiftonError(Exception):
    code = "lifton_error"
    status_code = 400

    def __init__(self, message: str | None = None, **extra):
        self.message = message or self.default_message()
        self.extra = extra
        super().__init__(self.message)

    def default_message(self) -> str:
        return "Операция отклонена"

    def to_dict(self) -> dict:
        return {"ok": False, "error": self.code, "detail": self.message, **self.extra}


class InvalidDistance(LiftonError):
    code = "invalid_distance"
    status_code = 422

    def default_message(self) -> str:
        return "Расстояние должно быть больше нуля"


class NoPricingConfigured(LiftonError):
    code = "no_pricing_configured"
    status_code = 409

    def __init__(self, service_type: str):
        super().__init__(
            f"Для услуги {service_type} не настроен активный тариф",
            service_type=service_type,
        )


class InvalidAmount(LiftonError):
    code = "invalid_amount"
    status_code = 422

    def default_message(self) -> str:
        return "Укажите корректную цену"


class DuplicateBid(LiftonError):
    code = "duplicate_bid"
    status_code = 409

    def default_message(self) -> str:
        return "Вы уже сделали ставку на эту заявку"


class BidBelowMinimum(LiftonError):
    code = "bid_below_minimum"
    status_code = 422

    def __init__(self, minimum: int):
        self.minimum = minimum
        super().__init__(f"Ставка слишком низкая. Минимальная ставка: ₹{minimum}", minimum=minimum)


class BidNotPending(LiftonError):
    code = "bid_not_pending"
    status_code = 409

    def default_message(self) -> str:
        return "Ставка уже недоступна: принята другая, отклонена или истекла"


class NothingToAccept(LiftonError):
    code = "nothing_to_accept"
    status_code = 409

    def default_message(self) -> str:
        return "Другая сторона ещё не предложила цену"


class AlreadyTerminal(LiftonError):
    code = "already_terminal"
    status_code = 409

    def __init__(self, status: str):
        super().__init__(f"Переговоры уже завершены ({status})", status=status)


class BargainChanged(LiftonError):
    code = "bargain_changed"
    status_code = 409

    def default_message(self) -> str:
        return "Предложение изменилось, обновите экран"


class BookingNotEligible(LiftonError):
    code = "booking_not_eligible"
    status_code = 409

    def __init__(self, status: str):
        super().__init__(f"Заявка в статусе {status} не принимает предложений", status=status)


class NotParticipant(LiftonError):
    code = "not_participant"
    status_code = 403

    def default_message(self) -> str:
        return "Вы не участвуете в этих переговорах"


class InvalidTransition(LiftonError):
    code = "invalid_transition"
    status_code = 409

    def __init__(self, current: str, target: str):
        super().__init__(
            f"Недопустимый переход из {current} в {target}", current=current, target=target
        )
