# payments/constants.py

METHOD_CASH = "cash"
METHOD_CARD = "card"
METHOD_MOBILE_MONEY = "mobile_money"
METHOD_BANK_TRANSFER = "bank_transfer"
METHOD_CHECK = "check"
METHOD_GIFT_CARD = "gift_card"
METHOD_CREDIT = "credit"

METHOD_CHOICES = [
    (METHOD_CASH, "Cash"),
    (METHOD_CARD, "Card"),
    (METHOD_MOBILE_MONEY, "Mobile Money"),
    (METHOD_BANK_TRANSFER, "Bank Transfer"),
    (METHOD_CHECK, "Check"),
    (METHOD_GIFT_CARD, "Gift Card"),
    (METHOD_CREDIT, "Credit Sale (Pay Later)"),
]

PAYMENT_METHODS = frozenset(value for value, _ in METHOD_CHOICES)

# Legacy spellings still sent by older tills.
METHOD_ALIASES = {
    "mpesa": METHOD_MOBILE_MONEY,
    "m-pesa": METHOD_MOBILE_MONEY,
    "digital": METHOD_MOBILE_MONEY,
    "bank": METHOD_BANK_TRANSFER,
    "transfer": METHOD_BANK_TRANSFER,
    "cheque": METHOD_CHECK,
}
