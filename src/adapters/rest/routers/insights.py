"""Insights endpoints — range summary, chart series and the doctor summary."""

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_current_user, get_date_range, CurrentUser
from adapters.rest.schemas import InsightsReportOut, InsightsSummaryOut
from domain.models import DateRange

router = APIRouter(prefix="/insights", tags=["insights"])


@router.get("", response_model=InsightsReportOut)
async def get_insights(
    date_range: DateRange = Depends(get_date_range),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """
    Everything the insights page renders for one range:
    - summary statistics (average, severe days, time/weekday ranking,
      functional impact, medication efficacy)
    - the chart series (hourly points for a single day, daily means otherwise)
    - the entries themselves
    """
    service = factory.create_insights_service()
    return InsightsReportOut.from_report(await service.report(user.user_id, date_range))


@router.get("/summary", response_model=InsightsSummaryOut)
async def get_summary(
    date_range: DateRange = Depends(get_date_range),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_insights_service()
    report = await service.report(user.user_id, date_range)
    return InsightsSummaryOut.from_summary(report.summary)


@router.get("/doctor-summary", response_class=PlainTextResponse)
async def get_doctor_summary(
    date_range: DateRange = Depends(get_date_range),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Plain-text summary ready to copy into a message to a clinician."""
    service = factory.create_insights_service()
    return await service.doctor_summary(user.user_id, date_range)
