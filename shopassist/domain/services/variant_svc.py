# shopassist/domain/services/variant_svc.py
"""
Variant/option normalization and selection matching.

Catalogs describe variants in several shapes:
  - explicit option lists:     {"selectedOptions": [{"name": "Size", "value": "M"}]}
                               {"options": [{"name": ..., "value": ...}]}
  - positional fields:         {"option1": "M", "option2": "Blue"}
  - attribute maps:            {"attributes": {"size": "M"}}
  - free-text titles:          {"title": "M / Blue"}

Everything is reduced to `Variant.options: List[VariantOption]`, deduplicated by
(name, value) case-insensitively. Matching and option groups only ever look at that list.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from shopassist.domain.models.product import SourceKind, Variant, VariantOption
from shopassist.domain.services.constants import TITLE_OPTION_NAMES

logger = logging.getLogger(__name__)

Selection = Mapping[str, str]


def _key(name: str, value: str) -> Tuple[str, str]:
    return name.strip().casefold(), value.strip().casefold()


def _options_from_title(title: str) -> List[VariantOption]:
    """'Small / Blue' -> Size=Small, Color=Blue; a single non-default title -> Option=<title>."""
    parts = [p.strip() for p in title.split("/") if p.strip()]
    if len(parts) > 1:
        out = []
        for i, part in enumerate(parts):
            name = TITLE_OPTION_NAMES[i] if i < len(TITLE_OPTION_NAMES) else f"Option {i + 1}"
            out.append(VariantOption(name=name, value=part))
        return out
    if title.strip() and title.strip().lower() not in ("default", "default title"):
        return [VariantOption(name="Option", value=title.strip())]
    return []


def normalize_options(raw: Mapping[str, Any]) -> List[VariantOption]:
    """Collect options from every known raw shape, first occurrence wins on duplicates."""
    found: List[VariantOption] = []

    for list_key in ("selectedOptions", "options"):
        items = raw.get(list_key)
        if isinstance(items, list):
            for o in items:
                if isinstance(o, Mapping) and o.get("name") and o.get("value") not in (None, ""):
                    found.append(VariantOption(name=str(o["name"]), value=str(o["value"])))

    for i in (1, 2, 3):
        val = raw.get(f"option{i}")
        if val not in (None, ""):
            found.append(VariantOption(name=f"Option {i}", value=str(val)))

    attrs = raw.get("attributes")
    if isinstance(attrs, Mapping):
        for k, val in attrs.items():
            if val is not None:
                found.append(VariantOption(name=str(k), value=str(val)))

    title = raw.get("title")
    if not found and isinstance(title, str) and "/" in title:
        found.extend(_options_from_title(title))

    return dedupe_options(found)


def dedupe_options(options: Iterable[VariantOption]) -> List[VariantOption]:
    seen = set()
    out: List[VariantOption] = []
    for o in options:
        k = _key(o.name, o.value)
        if k in seen:
            continue
        seen.add(k)
        out.append(o)
    return out


def _format_price(raw_price: Any) -> Optional[str]:
    if raw_price is None or raw_price == "":
        return None
    if isinstance(raw_price, Mapping):
        if raw_price.get("amountSubunits") is not None:
            return f"${raw_price['amountSubunits'] / 100:.2f}"
        if raw_price.get("displayValue"):
            return str(raw_price["displayValue"])
        if raw_price.get("amount") is not None:
            try:
                return f"${float(raw_price['amount']):.2f}"
            except (TypeError, ValueError):
                return None
        return None
    if isinstance(raw_price, (int, float)):
        return f"${raw_price:.2f}"
    return str(raw_price)


def normalize_variant(
    raw: Mapping[str, Any],
    *,
    source_kind: SourceKind = "storefront",
    default_price: Optional[str] = None,
    default_currency: Optional[str] = None,
) -> Variant:
    """
    Build a Variant from any raw catalog shape.
    Marketplace variants keep their title as a single 'Variant' option since each
    one is its own listing.
    """
    title = str(raw.get("title") or raw.get("name") or "Default")
    if source_kind == "marketplace":
        options = [] if title == "Default" else [VariantOption(name="Variant", value=title)]
    else:
        options = normalize_options(raw)
        if not options:
            options = _options_from_title(title)

    raw_price = raw.get("price")
    currency = raw.get("currencyCode") or (raw_price.get("currencyCode") if isinstance(raw_price, Mapping) else None)

    available = raw.get("available")
    if available is None:
        available = raw.get("availableForSale", raw.get("inStock", True))

    return Variant(
        id=str(raw.get("id") or raw.get("variantId") or raw.get("sku") or ""),
        title=title,
        options=options,
        available=bool(available),
        price=_format_price(raw_price) or default_price,
        currency_code=currency or default_currency,
        source_kind=source_kind,
    )


def normalize_variants(raws: Iterable[Mapping[str, Any]], **kw) -> List[Variant]:
    out = []
    for raw in raws or []:
        if not isinstance(raw, Mapping):
            continue
        v = normalize_variant(raw, **kw)
        if v.id or v.options or v.title:
            out.append(v)
    return out


def build_option_groups(variants: Iterable[Variant]) -> Dict[str, List[str]]:
    """
    Option name -> distinct values in first-seen order.
    Marketplace variants are left out: callers render a listing picker for those,
    never attribute pills.
    """
    groups: Dict[str, List[str]] = {}
    seen: Dict[str, set] = {}
    for v in variants:
        if not v.selectable:
            continue
        for o in v.options:
            if not o.name or not o.value:
                continue
            bucket = groups.setdefault(o.name, [])
            marks = seen.setdefault(o.name, set())
            k = o.value.strip().casefold()
            if k not in marks:
                marks.add(k)
                bucket.append(o.value)
    return groups


def _carries(variant: Variant, name: str, value: str) -> bool:
    want = _key(name, value)
    return any(_key(o.name, o.value) == want for o in variant.options)


def match_variant(variants: Iterable[Variant], selection: Selection) -> Optional[Variant]:
    """First variant carrying every selected (name, value) pair, or None."""
    for v in variants:
        if all(_carries(v, name, value) for name, value in selection.items()):
            return v
    return None


def is_choice_available(variants: List[Variant], selection: Selection, name: str, value: str) -> bool:
    """Whether switching `name` to `value` in the current selection still matches a variant."""
    hypothetical = {**selection, name: value}
    return match_variant(variants, hypothetical) is not None


def initial_selection(variants: List[Variant]) -> Tuple[Optional[Variant], Dict[str, str]]:
    """Preselect the first available variant (else the first one) and its options."""
    if not variants:
        return None, {}
    first = next((v for v in variants if v.available), variants[0])
    return first, {o.name: o.value for o in first.options if o.name and o.value}
