"""
Free-text transaction parser.

Best-effort heuristic classifier for messages such as "25k essence" or
"500$ vente mpesa". Pure functions over immutable keyword tables; no
I/O and no shared mutable state.
"""

import re
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Optional, Tuple

from backend.app.models.ledger_enums import Currency, TransactionKind

DEFAULT_ACCOUNT = "Cash Bureau"
DEFAULT_MOTIF = "Divers"
DEFAULT_CATEGORY = "68 - Charges diverses"

QUESTION_KEYWORDS = ("solde", "bilan", "combien", "balance")

REVENUE_KEYWORDS = (
    "revenu", "reçu", "recu", "vente", "paiement facture", "paiement client",
    "entrée", "entree", "encaissement", "client a payé", "client a paye",
    "received", "income",
)

EXPENSE_KEYWORDS = ("dépense", "depense", "acheté", "achete", "frais", "expense", "bought")

# "payé"/"paid" only mean expense when nothing marked the message as revenue
WEAK_EXPENSE_KEYWORDS = ("payé", "paye", "paid")

ACCOUNT_KEYWORDS = (
    (("m-pesa", "mpesa"), "M-Pesa"),
    (("airtel",), "Airtel Money"),
    (("illico",), "Illicocash"),
    (("orange",), "Orange Money"),
    (("rawbank",), "Rawbank"),
    (("alipay",), "Alipay"),
)

CATEGORY_PATTERNS = (
    (re.compile(r"essence|carburant|gasoil|taxi|transport|bus|moto"), "62 - Transport"),
    (re.compile(r"repas|restaurant|bouffe|nourriture|déjeuner|diner"), "63 - Frais repas"),
    (re.compile(r"téléphone|telephone|crédit|credit|communication|airtime"), "64 - Télécom"),
    (re.compile(r"course|marché|marche|alimentation|supermarché|achat"), "61 - Achats"),
    (re.compile(r"bureau|papeterie|matériel|materiel|imprimante|ordinateur"), "65 - Fournitures bureau"),
    (re.compile(r"entrepôt|entrepot|stockage|douane|transit"), "66 - Logistique"),
    (re.compile(r"banque|frais bancaire|retrait|transfert"), "67 - Frais bancaires"),
    (re.compile(r"salaire|employé|employe|personnel|agent"), "68 - Salaires"),
    (re.compile(r"loyer|location|bail"), "69 - Loyer"),
    (re.compile(r"fournisseur|1688|alibaba|taobao"), "60 - Achats fournisseurs"),
)

AMOUNT_RE = re.compile(r"(\d+(?:[.,]\d+)?)(?!\d)\s*(k(?![a-z])|cdf|usd|\$)?", re.IGNORECASE)

_TYPE_WORDS_RE = re.compile(
    r"\b(reçu|recu|revenu|dépense|depense|acheté|achete|payé|paye|encaissement|entrée|entree|vente)\b",
    re.IGNORECASE,
)
_ACCOUNT_WORDS_RE = re.compile(
    r"\b(mpesa|m-pesa|airtel|illico|illicocash|orange|rawbank|alipay|cash)\b",
    re.IGNORECASE,
)

AFFIRMATIVE_REPLIES = frozenset({"oui", "ok", "yes", "confirmer"})
NEGATIVE_REPLIES = frozenset({"non", "annuler", "cancel"})

COMMAND_KEYWORDS = (
    (("solde", "soldes", "bilan", "combien"), "/solde"),
    (("aide", "help", "commandes"), "/aide"),
    (("historique", "historiques", "dernières"), "/historique"),
)


@dataclass(frozen=True)
class ParsedIntent:
    """
    Result of parsing one message.
    
    kind is None when the message did not look like a transaction;
    is_question marks balance questions.
    """
    kind: Optional[TransactionKind]
    amount: Optional[Decimal]
    currency: Currency
    motif: str
    account: str
    category: str
    confidence: float
    is_question: bool = False


@dataclass(frozen=True)
class Command:
    name: str
    params: str = ""


def _contains_any(text: str, keywords) -> bool:
    return any(keyword in text for keyword in keywords)


def detect_kind(lowered: str, has_digits: bool) -> Optional[TransactionKind]:
    if _contains_any(lowered, REVENUE_KEYWORDS):
        return TransactionKind.REVENUE
    if _contains_any(lowered, EXPENSE_KEYWORDS) or _contains_any(lowered, WEAK_EXPENSE_KEYWORDS):
        return TransactionKind.EXPENSE
    if has_digits:
        return TransactionKind.EXPENSE
    return None


def detect_currency(lowered: str, default: Currency = Currency.CDF) -> Currency:
    if "usd" in lowered or "$" in lowered or "dollar" in lowered:
        return Currency.USD
    return default


def extract_amount(text: str) -> Optional[Decimal]:
    """First number in the message; a trailing "k" multiplies amounts below 10 000 by 1000."""
    match = AMOUNT_RE.search(text)
    if not match:
        return None
    try:
        amount = Decimal(match.group(1).replace(",", "."))
    except InvalidOperation:
        return None
    suffix = (match.group(2) or "").lower()
    if suffix == "k" and amount < 10000:
        amount = amount * 1000
    return amount if amount > 0 else None


def extract_motif(text: str) -> str:
    cleaned = AMOUNT_RE.sub("", text)
    cleaned = _TYPE_WORDS_RE.sub("", cleaned)
    cleaned = _ACCOUNT_WORDS_RE.sub("", cleaned)
    cleaned = re.sub(r"[-–—]", " ", cleaned)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()
    if len(cleaned) > 1:
        return cleaned
    return DEFAULT_MOTIF


def detect_account(lowered: str, default: str = DEFAULT_ACCOUNT) -> str:
    for keywords, account in ACCOUNT_KEYWORDS:
        if _contains_any(lowered, keywords):
            return account
    return default


def suggest_category(motif: str) -> str:
    lowered = motif.lower()
    for pattern, category in CATEGORY_PATTERNS:
        if pattern.search(lowered):
            return category
    return DEFAULT_CATEGORY


def score(kind: Optional[TransactionKind], amount: Optional[Decimal], motif: str) -> float:
    confidence = 0.8
    if kind is None:
        confidence -= 0.3
    if amount is None:
        confidence -= 0.5
    if motif == DEFAULT_MOTIF:
        confidence -= 0.1
    return round(max(0.0, confidence), 2)


def parse(
    text: str,
    default_account: str = DEFAULT_ACCOUNT,
    default_currency: Currency = Currency.CDF
) -> ParsedIntent:
    """
    Parse a free-text message into a proposed transaction.
    
    Examples:
        "25k essence"      → expense 25000 CDF, motif "essence", Transport
        "500$ vente mpesa" → revenue 500 USD on M-Pesa
        "solde ?"          → balance question
    """
    lowered = text.lower().strip()
    
    if _contains_any(lowered, QUESTION_KEYWORDS):
        return ParsedIntent(
            kind=None, amount=None, currency=default_currency, motif="", account="",
            category="", confidence=1.0, is_question=True
        )
    
    kind = detect_kind(lowered, has_digits=any(ch.isdigit() for ch in text))
    amount = extract_amount(text)
    motif = extract_motif(text)
    
    return ParsedIntent(
        kind=kind,
        amount=amount,
        currency=detect_currency(lowered, default_currency),
        motif=motif,
        account=detect_account(lowered, default_account),
        category=suggest_category(motif),
        confidence=score(kind, amount, motif)
    )


def detect_command(text: str) -> Optional[Command]:
    """
    Recognise slash commands, and very short messages (at most three
    words) containing a command keyword.
    """
    lowered = text.lower().strip()
    if lowered.startswith("/"):
        parts = lowered.split()
        return Command(name=parts[0], params=" ".join(parts[1:]))
    
    if len(lowered.split()) <= 3:
        for keywords, name in COMMAND_KEYWORDS:
            if _contains_any(lowered, keywords):
                return Command(name=name)
    return None


def classify_reply(text: str) -> Tuple[bool, bool]:
    """(is_affirmative, is_negative) for a confirmation reply."""
    lowered = text.lower().strip()
    return lowered in AFFIRMATIVE_REPLIES, lowered in NEGATIVE_REPLIES
