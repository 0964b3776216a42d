import logging
from sqlalchemy import event
from sqlalchemy.orm.attributes import NO_VALUE

from .. import models

logger = logging.getLogger(__name__)

_registered = False


def _status_change(target, value, oldvalue, initiator):  # noqa: ANN001
    if oldvalue is NO_VALUE or oldvalue is None or oldvalue == value:
        return value
    logger.info(
        "Booking id=%s barber_id=%s status changed from %s to %s",
        getattr(target, "id", "unknown"),
        getattr(target, "barber_id", "unknown"),
        getattr(oldvalue, "value", oldvalue),
        getattr(value, "value", value),
    )
    return value


def register_status_listeners() -> None:
    """Log every booking status change at INFO level (idempotent)."""
    global _registered
    if _registered:
        return
    event.listen(
        models.Booking.status,  # type: ignore[arg-type]
        "set",
        _status_change,
        retval=False,
        propagate=True,
    )
    _registered = True
