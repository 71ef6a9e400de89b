"""Co-occurrence product recommendations.

Products are parsed from each transaction's free-text product field and
collected into a per-customer set. Two products co-occur when the same
customer bought both (in any orders). Candidates for a customer are scored by
summing the co-occurrence counts from every product they already own.

Quick Start
-----------
>>> parse_products("Feed×2, Vaccine")
['Feed', 'Vaccine']
"""

from __future__ import annotations

import logging
import re
from typing import Mapping, Sequence

from customer_analytics.foundation.records import TransactionRecord

logger = logging.getLogger(__name__)

DEFAULT_RECOMMENDATION_LIMIT = 5

# "×" separates a product from its quantity; "Ã—" is the same character after
# a UTF-8 export has been decoded as cp1252, and a lone "—" is split on too.
# A lone "Ã" is part of a name.
_PRODUCT_DELIMITERS = re.compile(r"Ã?—|[×,|]")
_DIGIT = re.compile(r"\d")


def parse_products(text: str) -> list[str]:
    """Split a product field into distinct product names, in order.

    Tokens containing a digit are quantity or unit noise and are dropped.

    >>> parse_products("Layer Mash | Grower Pellets ×3 | Layer Mash")
    ['Layer Mash', 'Grower Pellets']
    >>> parse_products("")
    []
    """
    products: dict[str, None] = {}
    for token in _PRODUCT_DELIMITERS.split(text or ""):
        name = token.strip()
        if not name or _DIGIT.search(name):
            continue
        products[name] = None
    return list(products)


def build_customer_products(
    transactions: Sequence[TransactionRecord],
) -> dict[str, dict[str, None]]:
    """Distinct products per customer, preserving first-seen order.

    Every customer with at least one transaction gets an entry, even when
    none of their product tokens survive parsing.
    """
    customer_products: dict[str, dict[str, None]] = {}
    for transaction in transactions:
        owned = customer_products.setdefault(transaction.customer_id, {})
        for product in parse_products(transaction.products):
            owned[product] = None
    return customer_products


def build_cooccurrence(
    customer_products: Mapping[str, Mapping[str, None]],
) -> dict[str, dict[str, int]]:
    """Count, for every product pair, how many customers own both.

    The counts are symmetric: ``counts[a][b] == counts[b][a]``.
    """
    cooccurrence: dict[str, dict[str, int]] = {}
    for products in customer_products.values():
        owned = list(products)
        for product in owned:
            related = cooccurrence.setdefault(product, {})
            for other in owned:
                if other != product:
                    related[other] = related.get(other, 0) + 1
    return cooccurrence


def recommend_for_customer(
    owned: Mapping[str, None],
    cooccurrence: Mapping[str, Mapping[str, int]],
    limit: int = DEFAULT_RECOMMENDATION_LIMIT,
) -> list[str]:
    """Top ``limit`` products not in ``owned``, ranked by summed co-occurrence.

    Equal scores keep the order in which candidates were first encountered.
    """
    scores: dict[str, int] = {}
    for product in owned:
        for related, count in cooccurrence.get(product, {}).items():
            if related not in owned:
                scores[related] = scores.get(related, 0) + count

    ranked = sorted(scores.items(), key=lambda item: item[1], reverse=True)
    return [product for product, _ in ranked[:limit]]


def generate_recommendations(
    transactions: Sequence[TransactionRecord],
    limit: int = DEFAULT_RECOMMENDATION_LIMIT,
) -> dict[str, list[str]]:
    """Recommendation list per customer.

    Parameters
    ----------
    transactions:
        Completed transactions.
    limit:
        Maximum recommendations per customer (default 5).

    Returns
    -------
    dict[str, list[str]]
        customer_id -> ranked product names. Customers without any parsed
        product map to an empty list.
    """
    if limit < 0:
        raise ValueError(f"limit cannot be negative: {limit}")

    customer_products = build_customer_products(transactions)
    cooccurrence = build_cooccurrence(customer_products)
    logger.debug(
        f"Built co-occurrence model over {len(cooccurrence)} products "
        f"for {len(customer_products)} customers"
    )
    return {
        customer_id: recommend_for_customer(owned, cooccurrence, limit)
        for customer_id, owned in customer_products.items()
    }
