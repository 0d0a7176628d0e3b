from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from .. import schemas
from ..database import get_db
from ..security import RequirePermission
from ..services.analytics import AnalyticsService, DEFAULT_PERIOD
from netcharge_common.security import Permissions, UserPayload

router = APIRouter(prefix="/analytics", tags=["Analytics"])


@router.get("/revenue", response_model=schemas.RevenueStats)
async def revenue_stats(
    period: str = DEFAULT_PERIOD,     # 7days | 30days | 12months
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.revenue_stats(db, period)


@router.get("/customers", response_model=schemas.CustomerGrowth)
async def customer_growth(
    period: str = DEFAULT_PERIOD,
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.customer_growth(db, period)


@router.get("/payments", response_model=schemas.AnalyticsPaymentStats)
async def payment_stats(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.payment_stats(db)


@router.get("/summary", response_model=schemas.DashboardSummary)
async def dashboard_summary(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.dashboard_summary(db)


@router.get("/top-customers", response_model=List[schemas.TopCustomer])
async def top_customers(
    limit: int = Query(5, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.top_customers(db, limit)


@router.get("/recent-activities", response_model=List[schemas.Activity])
async def recent_activities(
    limit: int = Query(10, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.recent_activities(db, limit)


@router.get("/status-distribution", response_model=schemas.StatusDistribution)
async def status_distribution(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.status_distribution(db)


@router.get("/trends", response_model=schemas.TrendComparison)
async def trend_comparison(
    db: AsyncSession = Depends(get_db),
    user: UserPayload = Depends(RequirePermission(Permissions.REPORTS_VIEW))
):
    return await AnalyticsService.trend_comparison(db)
