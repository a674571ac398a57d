from __future__ import annotations

from datetime import date, datetime, time, timezone
from enum import Enum

from flask_login import UserMixin
from sqlalchemy import Enum as SAEnum, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.orm import Mapped, mapped_column, relationship
from werkzeug.security import generate_password_hash

from app.core.extensions import db

LIVE_ROWS = text("deleted_at IS NULL")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _live_unique_index(name: str, *columns: str) -> Index:
    return Index(
        name,
        *columns,
        unique=True,
        sqlite_where=LIVE_ROWS,
        postgresql_where=LIVE_ROWS,
    )


class LotStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class HistoryAction(str, Enum):
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ActObservation(str, Enum):
    SIN_OBSERVACIONES = "SIN_OBSERVACIONES"
    MEDIDOR_PROFUNDO = "MEDIDOR_PROFUNDO"
    RECHAZADO = "RECHAZADO"
    BRONCE = "BRONCE"


class YesNo(str, Enum):
    SI = "SI"
    NO = "NO"


class PropertyType(str, Enum):
    DOMESTICO = "DOMESTICO"
    COMERCIAL = "COMERCIAL"


class BoxLocation(str, Enum):
    EXTERIOR = "EXTERIOR"
    INTERIOR = "INTERIOR"


class ElementState(str, Enum):
    BUENO = "BUENO"
    MALO = "MALO"


class Permission(db.Model):
    __tablename__ = "permission"

    id: Mapped[int] = mapped_column(primary_key=True)
    key: Mapped[str] = mapped_column(db.String(60), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    description: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")


class Role(db.Model):
    __tablename__ = "role"
    __table_args__ = (_live_unique_index("ix_role_name_live", "name"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(80), nullable=False)
    description: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    permission_links = relationship("RolePermission", back_populates="role", cascade="all, delete-orphan")
    users = relationship("User", back_populates="role")

    @property
    def permissions(self) -> list[Permission]:
        return [link.permission for link in self.permission_links]


class RolePermission(db.Model):
    __tablename__ = "role_permission"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uq_role_permission"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    role_id: Mapped[int] = mapped_column(ForeignKey("role.id"), nullable=False, index=True)
    permission_id: Mapped[int] = mapped_column(ForeignKey("permission.id"), nullable=False)

    role = relationship("Role", back_populates="permission_links")
    permission = relationship("Permission")


class User(UserMixin, db.Model):
    __tablename__ = "user_account"
    __table_args__ = (_live_unique_index("ix_user_username_live", "username"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    names: Mapped[str] = mapped_column(db.String(120), nullable=False, default="")
    username: Mapped[str] = mapped_column(db.String(60), nullable=False)
    password_hash: Mapped[str] = mapped_column(db.String(255), nullable=False)
    status: Mapped[UserStatus] = mapped_column(
        SAEnum(UserStatus, name="user_status"),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    role_id: Mapped[int | None] = mapped_column(ForeignKey("role.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    role = relationship("Role", back_populates="users")

    @property
    def is_active(self) -> bool:
        return self.status == UserStatus.ACTIVE and self.deleted_at is None

    @property
    def permission_keys(self) -> set[str]:
        if self.role is None or self.role.deleted_at is not None:
            return set()
        return {p.key for p in self.role.permissions}


class Lot(db.Model):
    __tablename__ = "lot"
    __table_args__ = (
        _live_unique_index("ix_lot_name_live", "name"),
        Index(
            "ix_lot_single_active",
            "status",
            unique=True,
            sqlite_where=text("status = 'ACTIVE' AND deleted_at IS NULL"),
            postgresql_where=text("status = 'ACTIVE' AND deleted_at IS NULL"),
        ),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(80), nullable=False)
    start_date: Mapped[date] = mapped_column(nullable=False)
    end_date: Mapped[date] = mapped_column(nullable=False)
    status: Mapped[LotStatus] = mapped_column(
        SAEnum(LotStatus, name="lot_status"),
        nullable=False,
        default=LotStatus.INACTIVE,
    )
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)


class Customer(db.Model):
    __tablename__ = "customer"

    id: Mapped[int] = mapped_column(primary_key=True)
    inscription: Mapped[str] = mapped_column(db.String(30), unique=True, nullable=False)
    address: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")
    customer_name: Mapped[str] = mapped_column(db.String(160), nullable=False, default="")
    old_meter: Mapped[str] = mapped_column(db.String(40), nullable=False, default="")
    observation: Mapped[str] = mapped_column(db.String(255), nullable=False, default="")


class Technician(db.Model):
    __tablename__ = "technician"
    __table_args__ = (_live_unique_index("ix_technician_dni_live", "dni"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    dni: Mapped[str] = mapped_column(db.String(15), nullable=False)
    name: Mapped[str] = mapped_column(db.String(120), nullable=False)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)


class MeterRenovation(db.Model):
    __tablename__ = "meter_renovation"

    id: Mapped[int] = mapped_column(primary_key=True)
    meter_number: Mapped[str] = mapped_column(db.String(40), unique=True, nullable=False)
    verification_code: Mapped[str] = mapped_column(db.String(40), nullable=False, default="")


class Act(db.Model):
    __tablename__ = "act"
    __table_args__ = (
        _live_unique_index("ix_act_file_number_live", "file_number"),
        _live_unique_index("ix_act_customer_live", "customer_id"),
        _live_unique_index("ix_act_meter_live", "meter_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lot.id"), nullable=False, index=True)
    file_number: Mapped[str] = mapped_column(db.String(20), nullable=False)
    file_date: Mapped[date] = mapped_column(nullable=False)
    file_time: Mapped[time | None] = mapped_column(nullable=True)
    reading: Mapped[str] = mapped_column(db.String(20), nullable=False, default="")
    observations: Mapped[ActObservation] = mapped_column(
        SAEnum(ActObservation, name="act_observation"),
        nullable=False,
        default=ActObservation.SIN_OBSERVACIONES,
    )
    rotating_pointer: Mapped[YesNo | None] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=True)
    meter_security_seal: Mapped[YesNo | None] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=True)
    reading_impossibility_viewer: Mapped[YesNo | None] = mapped_column(
        SAEnum(YesNo, name="yes_no"), nullable=True
    )
    customer_id: Mapped[int] = mapped_column(ForeignKey("customer.id"), nullable=False)
    technician_id: Mapped[int] = mapped_column(ForeignKey("technician.id"), nullable=False, index=True)
    meter_id: Mapped[int] = mapped_column(ForeignKey("meter_renovation.id"), nullable=False)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lot = relationship("Lot")
    customer = relationship("Customer")
    technician = relationship("Technician")
    meter = relationship("MeterRenovation")
    histories = relationship(
        "ActHistory",
        back_populates="act",
        order_by="ActHistory.id.desc()",
    )


class ActHistory(db.Model):
    __tablename__ = "act_history"
    __table_args__ = (Index("ix_act_history_act_at", "act_id", "updated_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    act_id: Mapped[int] = mapped_column(ForeignKey("act.id"), nullable=False)
    action: Mapped[HistoryAction] = mapped_column(SAEnum(HistoryAction, name="history_action"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    details: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")

    act = relationship("Act", back_populates="histories")
    user = relationship("User")


class PreCatastral(db.Model):
    __tablename__ = "pre_catastral"
    __table_args__ = (
        _live_unique_index("ix_pre_catastral_file_number_live", "file_number"),
        _live_unique_index("ix_pre_catastral_customer_live", "customer_id"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lot.id"), nullable=False, index=True)
    file_number: Mapped[str] = mapped_column(db.String(20), nullable=False)
    property: Mapped[PropertyType] = mapped_column(SAEnum(PropertyType, name="property_type"), nullable=False)
    is_located: Mapped[YesNo | None] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=True)
    located_box: Mapped[BoxLocation] = mapped_column(SAEnum(BoxLocation, name="box_location"), nullable=False)
    buried_connection: Mapped[YesNo] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=False)
    has_meter: Mapped[YesNo] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=False)
    reading: Mapped[str] = mapped_column(db.String(20), nullable=False, default="")
    has_cover: Mapped[YesNo] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=False)
    cover_state: Mapped[ElementState] = mapped_column(SAEnum(ElementState, name="element_state"), nullable=False)
    has_box: Mapped[YesNo] = mapped_column(SAEnum(YesNo, name="yes_no"), nullable=False)
    box_state: Mapped[ElementState] = mapped_column(SAEnum(ElementState, name="element_state"), nullable=False)
    keys: Mapped[str] = mapped_column(db.String(1), nullable=False, default="0")
    cover_material: Mapped[str] = mapped_column(db.String(60), nullable=False, default="")
    observations: Mapped[ActObservation] = mapped_column(
        SAEnum(ActObservation, name="act_observation"),
        nullable=False,
        default=ActObservation.SIN_OBSERVACIONES,
    )
    customer_id: Mapped[int] = mapped_column(ForeignKey("customer.id"), nullable=False)
    technician_id: Mapped[int] = mapped_column(ForeignKey("technician.id"), nullable=False, index=True)
    created_by: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, onupdate=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lot = relationship("Lot")
    customer = relationship("Customer")
    technician = relationship("Technician")
    histories = relationship(
        "PreCatastralHistory",
        back_populates="pre_catastral",
        order_by="PreCatastralHistory.id.desc()",
    )


class PreCatastralHistory(db.Model):
    __tablename__ = "pre_catastral_history"
    __table_args__ = (Index("ix_pre_catastral_history_at", "pre_catastral_id", "updated_at"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    pre_catastral_id: Mapped[int] = mapped_column(ForeignKey("pre_catastral.id"), nullable=False)
    action: Mapped[HistoryAction] = mapped_column(SAEnum(HistoryAction, name="history_action"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True, index=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    details: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")

    pre_catastral = relationship("PreCatastral", back_populates="histories")
    user = relationship("User")


class Labeled(db.Model):
    # Caja física que agrupa medidores retirados
    __tablename__ = "labeled"
    __table_args__ = (_live_unique_index("ix_labeled_name_live", "name"),)

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(db.String(80), nullable=False)
    lot_id: Mapped[int] = mapped_column(ForeignKey("lot.id"), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(nullable=True)

    lot = relationship("Lot")
    meters = relationship(
        "MeterLabeled",
        back_populates="labeled",
        cascade="all, delete-orphan",
        order_by="MeterLabeled.id",
    )
    histories = relationship(
        "LabeledHistory",
        back_populates="labeled",
        order_by="LabeledHistory.id.desc()",
    )


class MeterLabeled(db.Model):
    __tablename__ = "meter_labeled"

    id: Mapped[int] = mapped_column(primary_key=True)
    labeled_id: Mapped[int] = mapped_column(ForeignKey("labeled.id"), nullable=False, index=True)
    old_meter: Mapped[str] = mapped_column(db.String(40), nullable=False)
    reading: Mapped[str] = mapped_column(db.String(20), nullable=False)

    labeled = relationship("Labeled", back_populates="meters")


class LabeledHistory(db.Model):
    __tablename__ = "labeled_history"

    id: Mapped[int] = mapped_column(primary_key=True)
    labeled_id: Mapped[int] = mapped_column(ForeignKey("labeled.id"), nullable=False, index=True)
    action: Mapped[HistoryAction] = mapped_column(SAEnum(HistoryAction, name="history_action"), nullable=False)
    updated_by: Mapped[int | None] = mapped_column(ForeignKey("user_account.id"), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(default=utcnow, nullable=False)
    details: Mapped[str] = mapped_column(db.String(500), nullable=False, default="")

    labeled = relationship("Labeled", back_populates="histories")
    user = relationship("User")


PERMISSION_MODULES: tuple[tuple[str, str], ...] = (
    ("lots", "Lotes"),
    ("roles", "Roles"),
    ("users", "Usuarios"),
    ("labeled", "Rotulado"),
    ("technician", "Técnicos"),
    ("acts", "Actas"),
    ("precatastral", "Precatastrales"),
)

PERMISSION_ACTIONS: tuple[tuple[str, str], ...] = (
    ("manage", "Gestión de"),
    ("create", "Crear"),
    ("update", "Editar"),
    ("delete", "Eliminar"),
)

ROLE_PERMISSION_KEYS: dict[str, tuple[str, ...]] = {
    "Digitador": ("acts.manage", "acts.create", "precatastral.manage", "precatastral.create"),
    "Almacenero": ("labeled.manage", "labeled.create", "labeled.update"),
}


def seed_permissions(session) -> list[Permission]:
    permissions = []
    for module, label in PERMISSION_MODULES:
        for action, verb in PERMISSION_ACTIONS:
            permissions.append(
                Permission(
                    key=f"{module}.{action}",
                    name=f"{verb} {label}",
                    description=f"{verb} {label.lower()} del sistema",
                )
            )
    permissions.append(
        Permission(key="reports.generate", name="Generar Reportes", description="Generar reportes del sistema")
    )
    session.add_all(permissions)
    session.flush()
    return permissions


def seed_demo_data(session) -> None:
    permissions = seed_permissions(session)

    admin_role = Role(name="Administrador", description="Acceso completo al sistema.")
    digitador_role = Role(name="Digitador", description="Puede crear y ver actas y precatastrales.")
    almacenero_role = Role(name="Almacenero", description="Puede administrar solo rotulado.")
    session.add_all([admin_role, digitador_role, almacenero_role])
    session.flush()

    by_key = {p.key: p for p in permissions}
    links = [RolePermission(role_id=admin_role.id, permission_id=p.id) for p in permissions]
    for role in (digitador_role, almacenero_role):
        links.extend(
            RolePermission(role_id=role.id, permission_id=by_key[key].id)
            for key in ROLE_PERMISSION_KEYS[role.name]
        )
    session.add_all(links)

    session.add_all(
        [
            Lot(
                name="Lote 1",
                start_date=date(2024, 2, 24),
                end_date=date(2024, 3, 24),
                status=LotStatus.INACTIVE,
            ),
            Lot(
                name="Lote 2",
                start_date=date(2024, 3, 24),
                end_date=date(2024, 4, 24),
                status=LotStatus.ACTIVE,
            ),
        ]
    )

    session.add_all(
        [
            User(
                names="Administrador General",
                username="admin",
                password_hash=generate_password_hash("admin123"),
                role_id=admin_role.id,
            ),
            User(
                names="Digitador Campo",
                username="digitador",
                password_hash=generate_password_hash("digitador123"),
                role_id=digitador_role.id,
            ),
            User(
                names="Almacenero Central",
                username="almacenero",
                password_hash=generate_password_hash("almacenero123"),
                role_id=almacenero_role.id,
            ),
        ]
    )

    session.add_all(
        [
            Technician(dni="12345678", name="Juan Pérez"),
            Technician(dni="87654321", name="María García"),
        ]
    )

    session.add_all(
        [
            Customer(
                inscription=f"0123456{idx}",
                address=f"Calle Principal {100 + idx}",
                customer_name=f"Cliente Ejemplo {idx}",
                old_meter=f"MET-00{idx}",
            )
            for idx in range(1, 5)
        ]
    )
    session.add_all(
        [
            MeterRenovation(meter_number=f"DA2400000{idx}", verification_code=f"VC00{idx}")
            for idx in range(1, 5)
        ]
    )
    session.commit()
