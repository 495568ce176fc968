"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The inventory transaction table is an audit ledger: replaying it must
reproduce every stock level.  A single edited delta or deleted row silently
breaks that.  Adjustment documents, completed transfers and voided sales are
likewise historical facts; later corrections are new documents, never edits.

SQLAlchemy fires events before UPDATE/DELETE operations reach the database.
We register listeners that intercept these events and check the rules:

    session.flush()
         |
         v
    [before_update event] --> _check_*() --> ImmutabilityViolationError
         |
         v
    [before_delete event] --> _check_*_delete() --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity                  | When Immutable                    | Why
------------------------|-----------------------------------|--------------------------------
InventoryTransaction    | ALWAYS (from creation)            | Replay source of truth
StockAdjustment         | ALWAYS (from creation)            | One-shot document
StockAdjustmentItem     | ALWAYS (from creation)            | Part of the document
StockTransfer           | Once COMPLETED or CANCELLED       | Terminal state
StockTransferItem       | Once parent COMPLETED/CANCELLED   | Part of the document
Sale                    | Once VOIDED                       | Terminal state
StockLevel (delete)     | While quantity != 0               | Would orphan stock

===============================================================================
DESIGN DECISIONS
===============================================================================

1. updated_at / updated_by_id are audit metadata and are always allowed to
   change.

2. Status-gated entities are checked against the status they had BEFORE
   this flush.  The transition INTO a terminal status (completing a
   transfer, voiding a sale) is the one write that is still allowed.

3. Listeners are registered explicitly (register_immutability_listeners)
   so tests can unregister them to prove detection works.
"""

from sqlalchemy import event, inspect
from sqlalchemy.orm.attributes import get_history

from stock_kernel.exceptions import ImmutabilityViolationError
from stock_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

_AUDIT_FIELDS = frozenset({"updated_at", "updated_by_id"})


def _changed_fields(target) -> list[str]:
    """Column attributes with pending changes, excluding audit metadata.

    Relationship collections are ignored: appending a line marks the
    header dirty without changing any of its columns.
    """
    state = inspect(target)
    changed = []
    for column_attr in state.mapper.column_attrs:
        if column_attr.key in _AUDIT_FIELDS:
            continue
        if state.attrs[column_attr.key].history.has_changes():
            changed.append(column_attr.key)
    return changed


def _status_before_flush(target, attr: str = "status") -> str | None:
    """Status value as it was loaded from the database, as a plain string."""
    history = get_history(target, attr)
    if history.deleted:
        old = history.deleted[0]
    elif not history.added:
        old = getattr(target, attr)
    else:
        # Pending INSERT: no prior status
        return None
    return getattr(old, "value", old)


def _block(entity_type: str, target, operation: str, reason: str, field: str | None = None):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": operation,
            "field": field,
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=reason,
    )


# ---------------------------------------------------------------------------
# Always-immutable records
# ---------------------------------------------------------------------------


def _make_append_only_checks(entity_type: str):
    def _check_update(mapper, connection, target):
        changed = _changed_fields(target)
        if changed:
            _block(
                entity_type,
                target,
                "UPDATE",
                f"{entity_type} records are immutable (field '{changed[0]}')",
                field=changed[0],
            )

    def _check_delete(mapper, connection, target):
        _block(entity_type, target, "DELETE", f"{entity_type} records cannot be deleted")

    _check_update.__name__ = f"_check_{entity_type.lower()}_update"
    _check_delete.__name__ = f"_check_{entity_type.lower()}_delete"
    return _check_update, _check_delete


_check_transaction_update, _check_transaction_delete = _make_append_only_checks(
    "InventoryTransaction"
)
_check_adjustment_update, _check_adjustment_delete = _make_append_only_checks(
    "StockAdjustment"
)
_check_adjustment_item_update, _check_adjustment_item_delete = _make_append_only_checks(
    "StockAdjustmentItem"
)


# ---------------------------------------------------------------------------
# Status-gated records
# ---------------------------------------------------------------------------

_TERMINAL_TRANSFER = frozenset({"completed", "cancelled"})


def _check_transfer_immutability(mapper, connection, target):
    """Block changes to a transfer that was already completed or cancelled."""
    status = _status_before_flush(target)
    if status in _TERMINAL_TRANSFER:
        changed = _changed_fields(target)
        if changed:
            _block(
                "StockTransfer",
                target,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on {status} transfer",
                field=changed[0],
            )


def _check_transfer_delete(mapper, connection, target):
    status = _status_before_flush(target)
    if status in _TERMINAL_TRANSFER:
        _block("StockTransfer", target, "DELETE", f"Cannot delete {status} transfer")


def _check_transfer_item_immutability(mapper, connection, target):
    """Block changes to lines of a transfer that was already terminal."""
    parent = target.transfer
    if parent is None:
        return
    status = _status_before_flush(parent)
    if status in _TERMINAL_TRANSFER:
        changed = _changed_fields(target)
        if changed:
            _block(
                "StockTransferItem",
                target,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on line of {status} transfer",
                field=changed[0],
            )


def _check_sale_immutability(mapper, connection, target):
    """Block changes to a sale that was already voided."""
    if _status_before_flush(target) == "voided":
        changed = _changed_fields(target)
        if changed:
            _block(
                "Sale",
                target,
                "UPDATE",
                f"Cannot modify field '{changed[0]}' on voided sale",
                field=changed[0],
            )


def _check_stock_level_delete(mapper, connection, target):
    """Stock levels holding stock cannot be deleted."""
    if target.quantity != 0:
        _block(
            "StockLevel",
            target,
            "DELETE",
            f"Cannot delete stock level with quantity {target.quantity}",
        )


# ---------------------------------------------------------------------------
# Registration
# ---------------------------------------------------------------------------


def _listener_table():
    from stock_kernel.models.inventory_transaction import InventoryTransaction
    from stock_kernel.models.sale import Sale
    from stock_kernel.models.stock_adjustment import StockAdjustment, StockAdjustmentItem
    from stock_kernel.models.stock_level import StockLevel
    from stock_kernel.models.stock_transfer import StockTransfer, StockTransferItem

    return [
        (InventoryTransaction, "before_update", _check_transaction_update),
        (InventoryTransaction, "before_delete", _check_transaction_delete),
        (StockAdjustment, "before_update", _check_adjustment_update),
        (StockAdjustment, "before_delete", _check_adjustment_delete),
        (StockAdjustmentItem, "before_update", _check_adjustment_item_update),
        (StockAdjustmentItem, "before_delete", _check_adjustment_item_delete),
        (StockTransfer, "before_update", _check_transfer_immutability),
        (StockTransfer, "before_delete", _check_transfer_delete),
        (StockTransferItem, "before_update", _check_transfer_item_immutability),
        (Sale, "before_update", _check_sale_immutability),
        (StockLevel, "before_delete", _check_stock_level_delete),
    ]


def register_immutability_listeners():
    """
    Register all immutability enforcement event listeners.

    Call after models are importable and before any ledger writes.
    Idempotent: already-registered listeners are skipped.
    """
    for target, event_name, listener_fn in _listener_table():
        if not event.contains(target, event_name, listener_fn):
            event.listen(target, event_name, listener_fn)


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring it if it was never registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners():
    """
    Remove immutability enforcement event listeners.

    WARNING: Only use this in tests that intentionally violate immutability
    rules to verify detection.
    """
    for target, event_name, listener_fn in _listener_table():
        _safe_remove_listener(target, event_name, listener_fn)
