import logging
from typing import Dict, Iterable, List, Mapping, Optional

from pydantic import BaseModel, Field

from karigardesk.models.order import OrderBase, OrderRead
from karigardesk.services.normalizer import normalize_design_code

logger = logging.getLogger(__name__)


class ResolvedNames(BaseModel):
    generic_name: Optional[str] = None
    karigar_name: Optional[str] = None


class UnmappedGroup(BaseModel):
    design_code: str
    order_count: int = 0
    order_nos: List[str] = Field(default_factory=list)
    missing_generic_name: bool = False
    missing_karigar_name: bool = False


def _present(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def index_mappings(mappings: Iterable) -> Dict[str, object]:
    """Key mapping records by normalized design code; later records win."""
    indexed: Dict[str, object] = {}
    for m in mappings:
        indexed[normalize_design_code(m.design_code)] = m
    return indexed


def resolve_design(design_code: str, mappings: Mapping[str, object]) -> Optional[ResolvedNames]:
    """Look up the names for ``design_code``; None means the code is unmapped."""
    mapping = mappings.get(normalize_design_code(design_code))
    if mapping is None:
        return None
    return ResolvedNames(generic_name=mapping.generic_name, karigar_name=mapping.karigar_name)


def enrich_order(order: OrderBase, mappings: Mapping[str, object]) -> OrderBase:
    """Return a copy of ``order`` with missing names filled from the mapping table.

    Names already on the order always win; each field is filled on its own.
    The stored order is not modified.
    """
    if isinstance(order, OrderRead):
        enriched = order.model_copy()
    else:
        enriched = OrderRead.model_validate(order, from_attributes=True)
    resolved = resolve_design(order.design, mappings)
    if resolved is None:
        return enriched
    if not _present(enriched.generic_name) and _present(resolved.generic_name):
        enriched.generic_name = resolved.generic_name
    if not _present(enriched.karigar_name) and _present(resolved.karigar_name):
        enriched.karigar_name = resolved.karigar_name
    return enriched


def enrich_orders(orders: Iterable[OrderBase], mappings: Iterable) -> List[OrderBase]:
    indexed = index_mappings(mappings)
    return [enrich_order(o, indexed) for o in orders]


def is_unmapped(order: OrderBase) -> bool:
    return not _present(order.generic_name) or not _present(order.karigar_name)


def group_unmapped(orders: Iterable[OrderBase]) -> List[UnmappedGroup]:
    """Group already-enriched orders that still lack a name, one group per design code."""
    groups: Dict[str, UnmappedGroup] = {}
    for order in orders:
        if not is_unmapped(order):
            continue
        code = normalize_design_code(order.design)
        group = groups.get(code)
        if group is None:
            group = groups[code] = UnmappedGroup(design_code=code)
        group.order_count += 1
        if order.order_no not in group.order_nos:
            group.order_nos.append(order.order_no)
        if not _present(order.generic_name):
            group.missing_generic_name = True
        if not _present(order.karigar_name):
            group.missing_karigar_name = True
    if groups:
        logger.debug("Unmapped design codes: %s", sorted(groups))
    return [groups[code] for code in sorted(groups)]
