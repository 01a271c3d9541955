"""
Autocomplete aggregates over past sessions.
"""
from collections import Counter
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from tracker.core.utils import split_companions
from tracker.models.session import ConsumptionSession
from tracker.schemas.session import NameCount, StrainEntry, VesselCategoryEntry, VesselTreeResponse


def _contains(needle: Optional[str], value: str) -> bool:
    return not needle or needle.lower() in value.lower()


def _top(counter: Counter, limit: int) -> List[NameCount]:
    # most_common keeps first-seen order among equal counts
    return [NameCount(name=name, count=count) for name, count in counter.most_common(limit)]


def get_strain_entries(
    db: Session,
    query: Optional[str] = None,
    vessel: Optional[str] = None,
    limit: int = 10,
) -> List[StrainEntry]:
    """
    Strain names logged so far, most recently used first.
    
    The search ignores case and whitespace; the vessel filter is an exact
    case-insensitive match.
    """
    rows = db.query(ConsumptionSession.strain_name, ConsumptionSession.created_at)
    if vessel and vessel.strip():
        rows = rows.filter(func.lower(ConsumptionSession.vessel) == vessel.strip().lower())
    
    needle = "".join((query or "").split()).lower()
    counts: Counter = Counter()
    last_used: Dict[str, object] = {}
    for strain_name, created_at in rows.all():
        name = (strain_name or "").strip()
        if not name or needle not in "".join(name.split()).lower():
            continue
        counts[name] += 1
        if name not in last_used or created_at > last_used[name]:
            last_used[name] = created_at
    
    names = sorted(counts, key=lambda name: last_used[name], reverse=True)[:limit]
    return [StrainEntry(name=name, count=counts[name], last_used=last_used[name]) for name in names]


def get_companion_counts(db: Session, query: Optional[str] = None, limit: int = 10) -> List[NameCount]:
    """Individual companion names split out of the stored lists."""
    counts: Counter = Counter()
    for (who_with,) in db.query(ConsumptionSession.who_with).all():
        for name in split_companions(who_with):
            if _contains(query, name):
                counts[name] += 1
    return _top(counts, limit)


def get_vessel_tree(
    db: Session,
    category: Optional[str] = None,
    query: Optional[str] = None,
    limit: int = 20,
) -> VesselTreeResponse:
    """
    Vessels logged so far.
    
    With a category: the vessels used under it. Without: every category
    with its vessels nested.
    """
    rows = db.query(
        ConsumptionSession.vessel_category,
        ConsumptionSession.vessel,
        func.count(ConsumptionSession.id),
    ).group_by(ConsumptionSession.vessel_category, ConsumptionSession.vessel)
    if category:
        rows = rows.filter(ConsumptionSession.vessel_category == category)
    
    tree: Dict[str, Counter] = {}
    for vessel_category, vessel, count in rows.all():
        if not vessel or not _contains(query, vessel):
            continue
        tree.setdefault(vessel_category, Counter())[vessel] += count
    
    if category:
        vessels = _top(tree.get(category, Counter()), limit)
        return VesselTreeResponse(category=category, vessels=vessels, total=len(vessels))
    
    categories = sorted(
        (
            VesselCategoryEntry(
                category=name,
                count=sum(vessels.values()),
                vessels=_top(vessels, limit),
            )
            for name, vessels in tree.items()
        ),
        key=lambda entry: entry.count,
        reverse=True,
    )
    return VesselTreeResponse(categories=categories, total=len(categories))


def get_accessory_counts(
    db: Session,
    query: Optional[str] = None,
    vessel: Optional[str] = None,
    limit: int = 10,
) -> List[NameCount]:
    """Accessories used, optionally only with one vessel."""
    rows = db.query(ConsumptionSession.accessory_used, func.count(ConsumptionSession.id)).filter(
        ConsumptionSession.accessory_used != "N/A"
    )
    if vessel:
        rows = rows.filter(ConsumptionSession.vessel == vessel)
    
    counts: Counter = Counter()
    for accessory, count in rows.group_by(ConsumptionSession.accessory_used).all():
        if accessory and _contains(query, accessory):
            counts[accessory] += count
    return _top(counts, limit)


def get_tobacco_counts(db: Session, query: Optional[str] = None, limit: int = 10) -> List[NameCount]:
    """Named tobacco products mixed into sessions."""
    rows = db.query(ConsumptionSession.tobacco_product, func.count(ConsumptionSession.id)).filter(
        ConsumptionSession.tobacco.is_(True),
        ConsumptionSession.tobacco_product.isnot(None),
    ).group_by(ConsumptionSession.tobacco_product)
    
    counts: Counter = Counter()
    for product, count in rows.all():
        product = (product or "").strip()
        if product and _contains(query, product):
            counts[product] += count
    return _top(counts, limit)
