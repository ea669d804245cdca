# Overview: Service-layer operations for stock allocation; turns a requested line into lot debits.

"""
Allocation Invariants (authoritative)

- Quantities on a sale line are in packs; lots hold base units.
  required = quantity * units_per_pack(pack_size).
- Unpinned lines take lots FIFO-by-expiry, greedily, min(remaining, still_needed).
- Pinned lines take the pinned lot only, never any other lot of the SKU.
- Either the full requirement is covered or InsufficientStock is raised;
  there is no partial allocation.
- Allocation only plans. The caller applies the debits (lot_service.debit),
  which re-check sufficiency at write time.
- Quantity 0 allocates nothing and skips the sufficiency check.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from ..models import Lot
from ..pack_utils import parse_pack_size
from .errors import InsufficientStock, InvalidLineItem
from .lot_service import (
    find_lot_by_batch,
    get_lot,
    list_lots_for_sku,
    LotNotFoundError,
    LOT_STATUS_ACTIVE,
)

_PI_REFERENCE = re.compile(r"^PI#(\d+)$", re.IGNORECASE)


@dataclass(frozen=True)
class LotDebit:
    lot_id: int
    base_units: int
    reference: str


@dataclass(frozen=True)
class Allocation:
    """Planned debits for one sale line."""
    sku: str
    quantity: int
    units_per_pack: int
    base_units: int
    debits: tuple[LotDebit, ...] = ()
    pinned: bool = False

    @property
    def lot_reference(self) -> str | None:
        """Comma-joined lot references, as printed on the invoice line."""
        if not self.debits:
            return None
        return ",".join(d.reference for d in self.debits)


def resolve_lot_reference(sku: str, ref, *, line_number: int | None = None) -> Lot:
    """
    Find the lot a line pins.

    Accepted forms: a lot id (int or digit string), "PI#<id>", or a batch
    number of a lot belonging to the same SKU.
    """
    lot = None
    if isinstance(ref, bool):
        ref = None
    if isinstance(ref, int):
        lot_id = ref
    else:
        text = str(ref or "").strip()
        if not text:
            raise InvalidLineItem("Pinned lot reference is empty", line_number=line_number, sku=sku)
        m = _PI_REFERENCE.match(text)
        if m:
            lot_id = int(m.group(1))
        elif text.isdigit():
            lot_id = int(text)
        else:
            lot_id = None
            lot = find_lot_by_batch(sku, text)

    if lot_id is not None:
        try:
            lot = get_lot(lot_id)
        except LotNotFoundError:
            lot = None

    if lot is None or lot.sku != sku:
        raise InvalidLineItem(f"Unknown lot {ref!r} for SKU {sku}", line_number=line_number, sku=sku)
    return lot


def allocate(
    sku: str,
    quantity: int,
    pack_size: str | None = None,
    *,
    pinned_lot: Lot | None = None,
    reserved: dict[int, int] | None = None,
    line_number: int | None = None,
) -> Allocation:
    """
    Plan the lot debits for one line.

    reserved maps lot_id -> base units already planned by earlier lines of
    the same sale; it is updated in place so repeated SKUs allocate
    cumulatively.

    Raises:
        InvalidLineItem: negative quantity, zero-unit pack size, or a
            pinned lot with a non-positive quantity
        InsufficientStock: the lots (or the pinned lot) cannot cover the line
    """
    if reserved is None:
        reserved = {}
    if isinstance(quantity, bool) or not isinstance(quantity, int):
        raise InvalidLineItem("quantity must be an integer", line_number=line_number, sku=sku)
    if quantity < 0:
        raise InvalidLineItem("quantity cannot be negative", line_number=line_number, sku=sku)

    units_per_pack = parse_pack_size(pack_size)
    if units_per_pack <= 0:
        raise InvalidLineItem(f"Pack size {pack_size!r} has zero units", line_number=line_number, sku=sku)

    if pinned_lot is not None and quantity == 0:
        raise InvalidLineItem("Pinned lot requires a positive quantity", line_number=line_number, sku=sku)

    required = quantity * units_per_pack
    if required == 0:
        return Allocation(sku=sku, quantity=0, units_per_pack=units_per_pack, base_units=0)

    if pinned_lot is not None:
        available = 0
        if pinned_lot.status == LOT_STATUS_ACTIVE:
            available = pinned_lot.quantity_remaining - reserved.get(pinned_lot.id, 0)
        if available < required:
            raise InsufficientStock(sku, required, max(available, 0), lot_id=pinned_lot.id)
        reserved[pinned_lot.id] = reserved.get(pinned_lot.id, 0) + required
        return Allocation(
            sku=sku,
            quantity=quantity,
            units_per_pack=units_per_pack,
            base_units=required,
            debits=(LotDebit(pinned_lot.id, required, pinned_lot.reference),),
            pinned=True,
        )

    debits = []
    still_needed = required
    total_available = 0
    for lot in list_lots_for_sku(sku, lock=True):
        free = lot.quantity_remaining - reserved.get(lot.id, 0)
        if free <= 0:
            continue
        total_available += free
        take = min(free, still_needed)
        debits.append(LotDebit(lot.id, take, lot.reference))
        still_needed -= take
        if still_needed == 0:
            break

    if still_needed > 0:
        raise InsufficientStock(sku, required, total_available)

    for d in debits:
        reserved[d.lot_id] = reserved.get(d.lot_id, 0) + d.base_units

    return Allocation(
        sku=sku,
        quantity=quantity,
        units_per_pack=units_per_pack,
        base_units=required,
        debits=tuple(debits),
    )
