"""
Home, dashboard and setup-guide pages.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from pydantic import BaseModel

from app.auth.dependencies import get_current_session, get_identity_service, get_record_store
from app.auth.flow import ERROR_NOTICES
from app.connectors.protocols import IdentityService, RecordStore
from app.core.errors import OperationError
from app.models.auth import AuthMode, AuthSession, FlowVariant
from app.models.wardrobe import DashboardResponse
from app.services.profiles import ProfileService
from app.services.wardrobe import WardrobeItemManager

router = APIRouter()

SETUP_STATE_KEY = "setup_completed"


class SetupStep(BaseModel):
    id: int
    title: str
    description: str
    priority: str
    instructions: List[str]
    link: str
    link_text: str
    completed: bool = False


class SetupGuide(BaseModel):
    steps: List[SetupStep]
    completed: int
    total: int
    finished: bool


SETUP_STEPS = [
    SetupStep(
        id=1,
        title="Enable Email Confirmations (REQUIRED)",
        description="Turn on email verification for secure account creation",
        priority="high",
        instructions=[
            "Go to your Supabase Dashboard",
            "Navigate to Authentication → Settings",
            "Find 'Enable email confirmations' toggle",
            "Turn it ON and save",
        ],
        link="https://supabase.com/dashboard",
        link_text="Open Supabase Dashboard",
    ),
    SetupStep(
        id=2,
        title="Configure Email Sending",
        description="Ensure Supabase can send confirmation emails and login codes",
        priority="medium",
        instructions=[
            "In Supabase Dashboard, go to Authentication → Settings",
            "Check the 'SMTP Settings' section",
            "The built-in sender is rate limited; use custom SMTP in production",
            "Sign up with a real address to confirm emails arrive",
        ],
        link="https://supabase.com/docs/guides/auth/auth-smtp",
        link_text="SMTP Setup Guide",
    ),
    SetupStep(
        id=3,
        title="Create Tables and Policies",
        description="Ensure the profiles and clothes tables exist with row-level security",
        priority="medium",
        instructions=[
            "Go to Supabase Dashboard → SQL Editor",
            "Create the profiles and clothes tables",
            "Enable RLS so each user only sees their own rows",
        ],
        link="https://supabase.com/dashboard",
        link_text="Open SQL Editor",
    ),
    SetupStep(
        id=4,
        title="Test Complete Flow",
        description="Try the full signup, confirmation, and login process",
        priority="low",
        instructions=[
            "Create a test account with a real email",
            "Click the confirmation link in the email",
            "Sign in and add a few clothes on the dashboard",
        ],
        link="/auth/link/signup",
        link_text="Test Signup",
    ),
]


def _completed_steps(request: Request) -> List[int]:
    return list(request.session.get(SETUP_STATE_KEY, []))


def _setup_guide(completed: List[int]) -> SetupGuide:
    steps = [step.model_copy(update={"completed": step.id in completed}) for step in SETUP_STEPS]
    done = sum(1 for step in steps if step.completed)
    return SetupGuide(steps=steps, completed=done, total=len(steps), finished=done == len(steps))


@router.get("/")
async def home(error: Optional[str] = Query(None)):
    """Landing page: what the app does and where each sign-in flow lives."""
    return {
        "message": "ClothTracker backend up",
        "description": "Organize your wardrobe efficiently with secure cloud storage",
        "error": ERROR_NOTICES.get(error or ""),
        "flows": {
            variant.value: {mode.value: f"/auth/{variant.value}/{mode.value}" for mode in AuthMode}
            for variant in FlowVariant
        },
        "setup_guide": "/setup",
    }


@router.get("/dashboard", response_model=DashboardResponse)
async def dashboard(
    session: AuthSession = Depends(get_current_session),
    store: RecordStore = Depends(get_record_store),
    identity: IdentityService = Depends(get_identity_service),
):
    """The signed-in user's profile (created on first visit) and wardrobe."""
    try:
        profile = ProfileService(store=store, identity=identity).ensure_profile(session)
        wardrobe = WardrobeItemManager(store=store, session=session).list_items()
    except OperationError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return DashboardResponse(user=profile, wardrobe=wardrobe)


@router.get("/setup", response_model=SetupGuide)
async def setup_guide(request: Request):
    return _setup_guide(_completed_steps(request))


@router.post("/setup/steps/{step_id}/toggle", response_model=SetupGuide)
async def toggle_setup_step(step_id: int, request: Request):
    """Mark a setup step complete, or incomplete again."""
    if step_id not in {step.id for step in SETUP_STEPS}:
        raise HTTPException(status_code=404, detail="Unknown setup step")
    completed = _completed_steps(request)
    if step_id in completed:
        completed.remove(step_id)
    else:
        completed.append(step_id)
    request.session[SETUP_STATE_KEY] = completed
    return _setup_guide(completed)
