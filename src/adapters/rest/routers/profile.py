"""Profile endpoints — snapshot, onboarding and condition defaults."""

from fastapi import APIRouter, Depends, Query

from factory import ServiceFactory
from adapters.rest.dependencies import get_factory, get_current_user, CurrentUser
from adapters.rest.schemas import (
    ConditionDefaultsOut,
    OnboardingBody,
    ProfileMedicationIn,
    ProfileOut,
)
from domain.entities import ProfileMedication

router = APIRouter(prefix="/profile", tags=["profile"])


@router.get("", response_model=ProfileOut)
async def get_profile(
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    service = factory.create_profile_service()
    return ProfileOut.from_entity(await service.require_snapshot(user.user_id))


@router.get("/defaults", response_model=ConditionDefaultsOut)
async def get_condition_defaults(
    diagnosis: str = Query(default=""),
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Suggested onboarding answers: the user's own history first, then the diagnosis."""
    insights = factory.create_insights_service()
    return ConditionDefaultsOut.from_defaults(
        await insights.onboarding_defaults(user.user_id, diagnosis)
    )


@router.put("/onboarding", response_model=ProfileOut)
async def complete_onboarding(
    body: OnboardingBody,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    insights = factory.create_insights_service()
    service = factory.create_profile_service()
    profile = await service.complete_onboarding(
        user.user_id,
        body.diagnosis,
        pain_locations=body.pain_locations,
        pain_is_consistent=body.pain_is_consistent,
        medications=[
            ProfileMedication(name=m.name, dosage=m.dosage, frequency=m.frequency)
            for m in body.medications
        ],
        patterns=await insights.patterns(user.user_id),
    )
    return ProfileOut.from_entity(profile)


@router.post("/medications")
async def add_medication(
    body: ProfileMedicationIn,
    user: CurrentUser = Depends(get_current_user),
    factory: ServiceFactory = Depends(get_factory),
):
    """Add a medication to the profile unless it is already listed."""
    repo = factory.create_profile_repository()
    added = await repo.append_medication(
        user.user_id,
        ProfileMedication(name=body.name.strip(), dosage=body.dosage, frequency=body.frequency),
    )
    return {"added": added}
