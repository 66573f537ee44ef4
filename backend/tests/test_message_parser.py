"""
Message Parser Tests.

Table of free-text inputs and the intents they parse to.
"""

from decimal import Decimal

import pytest

from backend.app.domain.agent.message_parser import (
    Command, classify_reply, detect_command, extract_amount, parse, score, suggest_category
)
from backend.app.models.ledger_enums import Currency, TransactionKind


@pytest.mark.parametrize("text,kind,amount,currency,account", [
    ("25k essence", TransactionKind.EXPENSE, Decimal("25000"), Currency.CDF, "Cash Bureau"),
    ("500$ vente mpesa", TransactionKind.REVENUE, Decimal("500"), Currency.USD, "M-Pesa"),
    ("reçu 120 usd client airtel", TransactionKind.REVENUE, Decimal("120"), Currency.USD, "Airtel Money"),
    ("dépense 15000 repas équipe", TransactionKind.EXPENSE, Decimal("15000"), Currency.CDF, "Cash Bureau"),
    ("payé loyer 300 dollars rawbank", TransactionKind.EXPENSE, Decimal("300"), Currency.USD, "Rawbank"),
    ("client a payé 2,5k orange", TransactionKind.REVENUE, Decimal("2500"), Currency.CDF, "Orange Money"),
])
def test_parse_table(text, kind, amount, currency, account):
    intent = parse(text)
    assert intent.kind == kind
    assert intent.amount == amount
    assert intent.currency == currency
    assert intent.account == account
    assert not intent.is_question


def test_parse_essence_proposal():
    intent = parse("25k essence")
    assert intent.motif == "essence"
    assert intent.category == "62 - Transport"
    assert intent.confidence == 0.8


def test_parse_question():
    intent = parse("Quel est mon solde ?")
    assert intent.is_question
    assert intent.kind is None


def test_parse_without_amount_has_low_confidence():
    intent = parse("acheté du papier")
    assert intent.kind == TransactionKind.EXPENSE
    assert intent.amount is None
    assert intent.confidence < 0.5


def test_parse_uses_defaults():
    intent = parse("40 divers trucs", default_account="Caisse", default_currency=Currency.USD)
    assert intent.account == "Caisse"
    assert intent.currency == Currency.USD


def test_parse_is_pure():
    assert parse("25k essence") == parse("25k essence")


@pytest.mark.parametrize("text,expected", [
    ("25k", Decimal("25000")),
    ("12500k", Decimal("12500")),
    ("3.5 usd", Decimal("3.5")),
    ("pas de montant", None),
    ("0 franc", None),
])
def test_extract_amount(text, expected):
    assert extract_amount(text) == expected


def test_score_penalties():
    assert score(TransactionKind.EXPENSE, Decimal("1"), "essence") == 0.8
    assert score(None, Decimal("1"), "essence") == 0.5
    assert score(TransactionKind.EXPENSE, None, "Divers") == 0.2


def test_suggest_category_falls_back():
    assert suggest_category("loyer bureau") == "65 - Fournitures bureau"
    assert suggest_category("cadeau") == "68 - Charges diverses"


@pytest.mark.parametrize("text,expected", [
    ("/solde", Command(name="/solde")),
    ("/historique 10", Command(name="/historique", params="10")),
    ("aide", Command(name="/aide")),
    ("mes soldes", Command(name="/solde")),
    ("25k essence", None),
])
def test_detect_command(text, expected):
    assert detect_command(text) == expected


def test_classify_reply():
    assert classify_reply("Oui") == (True, False)
    assert classify_reply(" annuler ") == (False, True)
    assert classify_reply("oui mais non") == (False, False)
