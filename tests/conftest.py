"""Pytest bootstrap configuration.

Mandatory environment variables are set before any application module is
imported; service tests run against a throwaway SQLite database.
"""
import os

os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("DATABASE__URL", "sqlite+aiosqlite:///:memory:")
os.environ.pop("PAYMENT__STRIPE__SECRET_KEY", None)

from decimal import Decimal  # noqa: E402
from functools import partial  # noqa: E402
from itertools import count  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402

from application.dtos.payments import (  # noqa: E402
    ChargeDetails,
    ChargeHandle,
    CreateCharge,
    RefundRequest,
    RefundResult,
)
from domain.common.money import to_minor_units  # noqa: E402
from infrastructure.database import Database  # noqa: E402
from infrastructure.models import (  # noqa: E402
    CartItemModel,
    CourseModel,
    LessonPackageModel,
    TeacherProfileModel,
)
from infrastructure.unit_of_work import SQLAlchemyUnitOfWork  # noqa: E402
from shared.codes.payment_codes import CHARGE_SUCCEEDED  # noqa: E402


class StubGateway:
    """In-memory gateway: charges succeed unless told otherwise."""

    provider = "stub"

    def __init__(self) -> None:
        self._ids = count(1)
        self.charges: dict[str, ChargeDetails] = {}
        self.refunds: list[RefundRequest] = []
        self.refund_error: Optional[Exception] = None

    async def create_charge(self, req: CreateCharge) -> ChargeHandle:
        charge_id = f"pi_{next(self._ids)}"
        self.charges[charge_id] = ChargeDetails(
            charge_id=charge_id,
            status=CHARGE_SUCCEEDED,
            amount_minor=to_minor_units(req.amount, req.currency),
            currency=req.currency,
            metadata=dict(req.metadata),
            provider=self.provider,
        )
        return ChargeHandle(
            charge_id=charge_id,
            status="pending",
            client_secret=f"{charge_id}_secret",
            provider=self.provider,
        )

    async def retrieve_charge(self, charge_id: str) -> ChargeDetails:
        return self.charges[charge_id]

    async def refund(self, req: RefundRequest) -> RefundResult:
        if self.refund_error is not None:
            raise self.refund_error
        self.refunds.append(req)
        return RefundResult(
            refund_id=f"re_{len(self.refunds)}",
            status="succeeded",
            provider=self.provider,
            amount=req.amount,
        )

    def update_charge(self, charge_id: str, **fields) -> None:
        self.charges[charge_id] = self.charges[charge_id].model_copy(update=fields)

    def set_status(self, charge_id: str, status: str) -> None:
        self.update_charge(charge_id, status=status)


@pytest_asyncio.fixture
async def db(tmp_path):
    database = Database(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}", echo=False)
    await database.create_tables()
    yield database
    await database.dispose()


@pytest.fixture
def uow_factory(db):
    return partial(SQLAlchemyUnitOfWork, db.session_factory)


@pytest.fixture
def gateway():
    return StubGateway()


class Seeder:
    """Inserts catalog rows the service itself never writes."""

    def __init__(self, db: Database) -> None:
        self.db = db

    async def teacher(self, user_id: int, commission_rate: Optional[str] = None) -> int:
        async with self.db.session_factory() as session:
            model = TeacherProfileModel(
                user_id=user_id,
                commission_rate=Decimal(commission_rate) if commission_rate is not None else None,
                total_students=0,
                total_earnings=Decimal("0"),
            )
            session.add(model)
            await session.commit()
            return model.id

    async def course(self, teacher_profile_id: int, title: str = "Course", published: bool = True) -> int:
        async with self.db.session_factory() as session:
            model = CourseModel(teacher_profile_id=teacher_profile_id, title=title, is_published=published)
            session.add(model)
            await session.commit()
            return model.id

    async def package(
        self,
        course_id: int,
        final_price: str,
        *,
        price: Optional[str] = None,
        discount: str = "0",
        duration_days: Optional[int] = None,
        active: bool = True,
    ) -> int:
        async with self.db.session_factory() as session:
            model = LessonPackageModel(
                course_id=course_id,
                name=f"Package {final_price}",
                price=Decimal(price or final_price),
                discount=Decimal(discount),
                final_price=Decimal(final_price),
                duration_days=duration_days,
                is_active=active,
            )
            session.add(model)
            await session.commit()
            return model.id

    async def listing(self, teacher_user_id: int, final_price: str, commission_rate: Optional[str] = None):
        """teacher + published course + package; returns (teacher_profile_id, course_id, package_id)"""
        teacher_id = await self.teacher(teacher_user_id, commission_rate)
        course_id = await self.course(teacher_id)
        package_id = await self.package(course_id, final_price)
        return teacher_id, course_id, package_id

    async def cart_item(self, user_id: int, package_id: int) -> None:
        async with self.db.session_factory() as session:
            session.add(CartItemModel(user_id=user_id, package_id=package_id, quantity=1))
            await session.commit()


@pytest.fixture
def seed(db):
    return Seeder(db)
