import logging
from datetime import date, datetime, timedelta, timezone
from typing import Iterable, List, Optional

from sqlalchemy import delete, func, or_
from sqlmodel import Session, select

from karigardesk import config
from karigardesk.db.session import get_engine
from karigardesk.errors import IllegalTransitionError, NotFoundError
from karigardesk.models.design import (
    DesignImage,
    DesignImageBlob,
    DesignImageInfo,
    DesignMapping,
    DesignMappingRead,
    Karigar,
)
from karigardesk.models.order import Order, OrderBase, OrderRead, OrderStatus, OrderType, as_utc, utcnow
from karigardesk.services import images, lifecycle
from karigardesk.services.normalizer import normalize_design_code

logger = logging.getLogger(__name__)

# Fields a re-saved Pending order may overwrite
DESCRIPTIVE_FIELDS = (
    "order_no", "order_type", "product", "design", "weight", "size",
    "quantity", "remarks", "order_date", "generic_name", "karigar_name",
)


def _read(order: Order) -> OrderRead:
    return OrderRead.model_validate(order, from_attributes=True)


def _image_info(image: DesignImage) -> DesignImageInfo:
    return DesignImageInfo(
        design_code=image.design_code,
        filename=image.filename,
        content_type=image.content_type,
        width=image.width,
        height=image.height,
        size=len(image.data or b""),
        uploaded_at=image.uploaded_at,
    )


def day_start(day: date) -> datetime:
    if isinstance(day, datetime):
        day = as_utc(day).date()
    return datetime(day.year, day.month, day.day, tzinfo=timezone.utc)


class OrderStore:
    """Storage collaborator backed by the local SQLModel database.

    Every call opens its own session and commits on its own, so a bulk
    operation built from these calls is atomic per order, never per batch.
    """

    def __init__(self, engine=None):
        self.engine = engine or get_engine()

    # --- orders -------------------------------------------------------------

    def create_or_update_order(self, order: OrderBase) -> str:
        """Insert ``order`` or refresh an existing one with the same id.

        Only a Pending order that has not been split may be refreshed; its
        status and lifecycle fields stay put. Anything further along raises
        ``IllegalTransitionError`` and is left as it was.
        """
        incoming = OrderRead.model_validate(order, from_attributes=True)
        with Session(self.engine) as session:
            existing = session.get(Order, incoming.order_id)
            if existing is None:
                data = incoming.model_dump()
                data["design"] = normalize_design_code(data.get("design"))
                session.add(Order(**data))
                logger.info("Created order order_id=%s design=%s qty=%s", incoming.order_id, data["design"], incoming.quantity)
            else:
                self._check_refreshable(session, existing)
                for name in DESCRIPTIVE_FIELDS:
                    setattr(existing, name, getattr(incoming, name))
                existing.design = normalize_design_code(existing.design)
                existing.updated_at = utcnow()
                session.add(existing)
                logger.info("Updated order order_id=%s status=%s", incoming.order_id, existing.status.value)
            session.commit()
        return incoming.order_id

    @staticmethod
    def _check_refreshable(session: Session, existing: Order) -> None:
        if existing.status != OrderStatus.PENDING:
            raise IllegalTransitionError(
                f"Order {existing.order_id} is {existing.status.value}; only Pending orders can be re-saved"
            )
        split_child = session.exec(
            select(Order.order_id).where(Order.original_order_id == existing.order_id)
        ).first()
        if existing.original_order_id or split_child is not None:
            raise IllegalTransitionError(
                f"Order {existing.order_id} has been split; its quantity and details are fixed"
            )

    def get_order(self, order_id: str) -> OrderRead:
        with Session(self.engine) as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            return _read(order)

    def list_orders(
        self,
        status: Optional[OrderStatus] = None,
        order_type: Optional[OrderType] = None,
        search: Optional[str] = None,
        ready_from: Optional[date] = None,
        ready_to: Optional[date] = None,
    ) -> List[OrderRead]:
        """List orders, oldest first.

        ``ready_from``/``ready_to`` are inclusive calendar days (UTC) matched
        against ``ready_date``; orders never marked ready drop out of a ranged
        query.
        """
        if ready_from is not None and ready_to is not None and day_start(ready_from) > day_start(ready_to):
            raise ValueError(f"ready_from {ready_from} is after ready_to {ready_to}")
        stmt = select(Order)
        if ready_from is not None:
            stmt = stmt.where(Order.ready_date >= day_start(ready_from))
        if ready_to is not None:
            stmt = stmt.where(Order.ready_date < day_start(ready_to) + timedelta(days=1))
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status))
        if order_type is not None:
            stmt = stmt.where(Order.order_type == OrderType(order_type))
        if search and search.strip():
            pattern = f"%{search.strip().lower()}%"
            stmt = stmt.where(
                or_(
                    func.lower(Order.order_no).like(pattern),
                    func.lower(Order.design).like(pattern),
                    func.lower(Order.product).like(pattern),
                    func.lower(func.coalesce(Order.karigar_name, "")).like(pattern),
                    func.lower(func.coalesce(Order.generic_name, "")).like(pattern),
                )
            )
        stmt = stmt.order_by(Order.created_at, Order.order_id)
        with Session(self.engine) as session:
            return [_read(o) for o in session.exec(stmt).all()]

    def apply_status_transition(self, order_id: str, transition: lifecycle.Transition, **params) -> List[OrderRead]:
        """Apply one lifecycle transition to one order inside one transaction.

        Returns the orders that were changed or created (a split yields two).
        """
        with Session(self.engine) as session:
            order = session.get(Order, order_id)
            if order is None:
                raise NotFoundError(f"Order {order_id} not found")
            # guards run before any mutation, so a failure leaves nothing to roll back
            result = lifecycle.apply_transition(order, transition, **params)
            for changed in result.orders:
                session.add(changed)
            if transition == lifecycle.Transition.REASSIGN_KARIGAR:
                self._ensure_karigar(session, order.karigar_name)
            session.commit()
            for changed in result.orders:
                session.refresh(changed)
            touched = [_read(o) for o in result.orders]
        logger.info("Applied %s to order_id=%s -> %s", lifecycle.Transition(transition).value, order_id, [o.order_id for o in touched])
        return touched

    def bulk_delete_by_status(self, statuses: Iterable[OrderStatus]) -> int:
        wanted = lifecycle.check_resettable(statuses)
        with Session(self.engine) as session:
            result = session.execute(delete(Order).where(Order.status.in_(wanted)))
            session.commit()
            count = result.rowcount or 0
        logger.warning("Bulk reset deleted %s orders with status %s", count, [s.value for s in wanted])
        return count

    # --- design mappings ----------------------------------------------------

    def list_design_mappings(self) -> List[DesignMappingRead]:
        with Session(self.engine) as session:
            rows = session.exec(select(DesignMapping).order_by(DesignMapping.design_code)).all()
            return [DesignMappingRead.model_validate(m, from_attributes=True) for m in rows]

    def upsert_design_mapping(self, design_code: str, generic_name: str, karigar_name: str) -> None:
        code = normalize_design_code(design_code)
        if not code:
            raise ValueError("design_code is required")
        with Session(self.engine) as session:
            mapping = session.get(DesignMapping, code)
            if mapping is None:
                mapping = DesignMapping(design_code=code, generic_name=generic_name.strip(), karigar_name=karigar_name.strip())
            else:
                mapping.generic_name = generic_name.strip()
                mapping.karigar_name = karigar_name.strip()
                mapping.updated_at = utcnow()
            session.add(mapping)
            self._ensure_karigar(session, mapping.karigar_name)
            session.commit()
        logger.info("Saved design mapping %s -> %s / %s", code, generic_name, karigar_name)

    def clear_design_mappings(self) -> int:
        with Session(self.engine) as session:
            result = session.execute(delete(DesignMapping))
            session.commit()
            count = result.rowcount or 0
        logger.warning("Cleared %s design mappings", count)
        return count

    def reassign_design(self, design_code: str, karigar_name: str) -> int:
        """Point a design at a new karigar and move its Pending orders along.

        Orders past Pending keep the karigar who made them. Returns the number
        of orders that changed.
        """
        code = normalize_design_code(design_code)
        name = (karigar_name or "").strip()
        if not name:
            raise ValueError("karigar_name is required")
        with Session(self.engine) as session:
            mapping = session.get(DesignMapping, code)
            if mapping is None:
                raise NotFoundError(f"No design mapping for {code}")
            mapping.karigar_name = name
            mapping.updated_at = utcnow()
            session.add(mapping)
            self._ensure_karigar(session, name)

            pending = session.exec(
                select(Order).where(Order.design == code, Order.status == OrderStatus.PENDING)
            ).all()
            for order in pending:
                lifecycle.reassign_karigar(order, name)
                session.add(order)
            session.commit()
        logger.info("Reassigned design %s to %s (%s pending orders)", code, name, len(pending))
        return len(pending)

    # --- design images ------------------------------------------------------

    def save_design_image(self, design_code: str, content: bytes, filename: str = "") -> DesignImageInfo:
        code = normalize_design_code(design_code)
        if not code:
            raise ValueError("design_code is required")
        info = images.inspect_image(content)
        with Session(self.engine) as session:
            image = session.get(DesignImage, code) or DesignImage(design_code=code, content_type=info.content_type, data=b"")
            image.filename = filename or ""
            image.content_type = info.content_type
            image.width = info.width
            image.height = info.height
            image.data = content
            image.uploaded_at = utcnow()
            session.add(image)
            session.commit()
            session.refresh(image)
            saved = _image_info(image)
        logger.info("Saved design image %s (%s, %sx%s)", code, info.content_type, info.width, info.height)
        return saved

    def get_design_image(self, design_code: str) -> DesignImageBlob:
        code = normalize_design_code(design_code)
        with Session(self.engine) as session:
            image = session.get(DesignImage, code)
            if image is None:
                raise NotFoundError(f"No image for design {code}")
            return DesignImageBlob(design_code=code, content_type=image.content_type, data=image.data)

    def list_design_images(self) -> List[DesignImageInfo]:
        with Session(self.engine) as session:
            rows = session.exec(select(DesignImage).order_by(DesignImage.design_code)).all()
            return [_image_info(i) for i in rows]

    # --- karigars -----------------------------------------------------------

    def _ensure_karigar(self, session: Session, name: Optional[str]) -> None:
        name = (name or "").strip()
        if name and session.get(Karigar, name) is None:
            session.add(Karigar(name=name))
            logger.info("Registered karigar %s", name)

    def add_karigar(self, name: str) -> None:
        if not (name or "").strip():
            raise ValueError("karigar name is required")
        with Session(self.engine) as session:
            self._ensure_karigar(session, name)
            session.commit()

    def list_karigars(self) -> List[str]:
        with Session(self.engine) as session:
            return list(session.exec(select(Karigar.name).order_by(Karigar.name)).all())


def get_store():
    """FastAPI dependency: the configured storage collaborator."""
    if config.STORAGE_URL:
        from karigardesk.services.remote_store import RemoteOrderStore

        return RemoteOrderStore(config.STORAGE_URL)
    return OrderStore()
