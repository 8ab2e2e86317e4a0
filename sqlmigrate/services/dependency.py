"""Foreign key dependency ordering for table creation."""

import logging
from typing import Dict, List, Sequence

from ..models.schema import TableDescriptor

logger = logging.getLogger(__name__)


def order_tables(descriptors: Sequence[TableDescriptor]) -> List[TableDescriptor]:
    """
    Order tables so every referenced table comes before the tables that reference it.

    The order is stable: among tables whose dependencies are satisfied, the one
    declared first is emitted first. Self-references and references to tables
    outside ``descriptors`` do not constrain the order. Tables involved in a
    dependency cycle are appended in declared order.

    Args:
        descriptors: Table descriptors in declared (export) order

    Returns:
        Descriptors in creation order
    """
    # Table names compare case-insensitively, as in SQLite
    by_name: Dict[str, TableDescriptor] = {d.name.lower(): d for d in descriptors}
    pending: Dict[str, set] = {
        d.name.lower(): {dep.lower() for dep in d.dependencies if dep.lower() in by_name}
        for d in descriptors
    }

    ordered: List[TableDescriptor] = []
    remaining = [d.name.lower() for d in descriptors]

    while remaining:
        ready = next((name for name in remaining if not pending[name]), None)
        if ready is None:
            logger.warning(
                f"Foreign key cycle between tables {[by_name[n].name for n in remaining]}; "
                f"creating them in declared order"
            )
            ordered.extend(by_name[name] for name in remaining)
            break

        ordered.append(by_name[ready])
        remaining.remove(ready)
        for name in remaining:
            pending[name].discard(ready)

    return ordered
