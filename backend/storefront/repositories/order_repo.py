import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple

from sqlalchemy import func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from storefront.errors import Conflict
from storefront.models.order import Order, OrderLine
from storefront.utils.transactions import smart_transaction

log = logging.getLogger(__name__)


@dataclass
class OrderFilter:
    user_id: Optional[int] = None
    status: Optional[str] = None
    search: Optional[str] = None  # order number, customer name or email
    page: int = 1
    size: int = 10

    def clauses(self) -> list:
        clauses = []
        if self.user_id is not None:
            clauses.append(Order.user_id == self.user_id)
        if self.status and self.status != "all":
            clauses.append(Order.status == self.status)
        if self.search:
            like = f"%{self.search}%"
            clauses.append(
                or_(
                    Order.order_number.ilike(like),
                    Order.first_name.ilike(like),
                    Order.last_name.ilike(like),
                    Order.email.ilike(like),
                )
            )
        return clauses


class OrderRepository:
    def __init__(self, db: Session):
        self.db = db

    def get(self, order_id: int) -> Optional[Order]:
        return self.db.get(Order, order_id)

    def get_for_user(self, order_id: int, user_id: int) -> Optional[Order]:
        return self.db.execute(
            select(Order).where(Order.id == order_id, Order.user_id == user_id)
        ).scalar_one_or_none()

    def list(self, filters: OrderFilter) -> Tuple[List[Tuple[Order, int]], int]:
        """Return (order, item_count) pairs, newest first, plus the unpaged total."""
        clauses = filters.clauses()
        total = self.db.execute(
            select(func.count()).select_from(Order).where(*clauses)
        ).scalar_one()
        item_count = (
            select(func.count(OrderLine.id))
            .where(OrderLine.order_id == Order.id)
            .correlate(Order)
            .scalar_subquery()
        )
        rows = self.db.execute(
            select(Order, item_count)
            .where(*clauses)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset((filters.page - 1) * filters.size)
            .limit(filters.size)
        ).all()
        return [(o, n) for o, n in rows], total

    def insert_with_unique_number(
        self, order: Order, number_factory: Callable[[], str], attempts: int
    ) -> Order:
        """
        Insert the order header, drawing a fresh order number when the unique
        index rejects one. Each attempt runs in its own SAVEPOINT so a collision
        leaves the surrounding transaction usable.
        """
        for attempt in range(1, attempts + 1):
            order.order_number = number_factory()
            try:
                with smart_transaction(self.db):
                    self.db.add(order)
                    self.db.flush()
                return order
            except IntegrityError:
                log.warning(
                    "order number collision on %s (attempt %d/%d)",
                    order.order_number,
                    attempt,
                    attempts,
                )
                if order in self.db:
                    self.db.expunge(order)
        raise Conflict("Could not allocate a unique order number, please retry")

    def add_line(self, order: Order, line: OrderLine) -> OrderLine:
        line.order_id = order.id
        order.lines.append(line)
        self.db.flush()
        return line

    def transition(self, order_id: int, from_statuses: Iterable[str], to_status: str) -> bool:
        """
        Compare-and-set on the status column. Returns False when the order was
        not in one of from_statuses by the time the row was written.
        """
        res = self.db.execute(
            update(Order)
            .where(Order.id == order_id, Order.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=func.now())
            .execution_options(synchronize_session=False)
        )
        return res.rowcount == 1
