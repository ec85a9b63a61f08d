from enum import StrEnum


class AgentName(StrEnum):
    STORE_FINDER = "store_finder"
    MENU = "menu"
    PAYMENT = "payment"
    SIMULATED_HUMAN = "simulated_human"


class MenuCategoryName(StrEnum):
    PIZZAS = "Pizzas"
    SIDES = "Sides"
    DRINKS = "Drinks"
    DESSERTS = "Desserts"
    OTHER = "Other"


class PaymentMethod(StrEnum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    PAYPAL = "paypal"
    CASH = "cash"


class ResultStatus(StrEnum):
    AUTHORITATIVE = "authoritative"
    DEGRADED = "degraded"


class PaymentStatus(StrEnum):
    COMPLETED = "completed"
