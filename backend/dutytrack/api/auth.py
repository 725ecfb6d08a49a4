from fastapi import APIRouter, Depends, Query, status

from dutytrack.core.dependencies import get_duty_registry, get_identity
from dutytrack.core.errors import PreconditionFailed
from dutytrack.core.middleware import get_current_subject
from dutytrack.core.roles import Capability, Role, Subject
from dutytrack.core.security import create_access_token
from dutytrack.identity import IdentityProvider
from dutytrack.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from dutytrack.schemas.user import UserResponse
from dutytrack.services.duty import DutySessionRegistry

router = APIRouter()


@router.post(
    "/register",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Register a company administrator",
)
async def register(
    body: RegisterRequest,
    identity: IdentityProvider = Depends(get_identity),
) -> UserResponse:
    user = await identity.sign_up(
        body.email,
        body.password,
        role=Role.ADMIN,
        full_name=body.full_name,
        company_name=body.company_name,
    )
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, summary="Sign in with email and password")
async def login(
    body: LoginRequest,
    identity: IdentityProvider = Depends(get_identity),
) -> TokenResponse:
    user = await identity.sign_in(body.email, body.password)
    access_token = create_access_token({"sub": str(user.id)})
    return TokenResponse(access_token=access_token, role=user.role)


@router.post(
    "/logout",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Sign out; an on-duty employee must confirm ending duty",
)
async def logout(
    confirm_end_duty: bool = Query(
        default=False,
        description="Answer to the 'end duty and sign out?' prompt shown while on duty",
    ),
    subject: Subject = Depends(get_current_subject),
    identity: IdentityProvider = Depends(get_identity),
    registry: DutySessionRegistry = Depends(get_duty_registry),
) -> None:
    if not subject.can(Capability.TRACK_DUTY):
        await identity.sign_out(subject.id)
        return

    async def confirm() -> bool:
        return confirm_end_duty

    async with registry.use(subject) as session:
        signed_out = await session.sign_out(identity, confirm)
    if not signed_out:
        raise PreconditionFailed(
            "You are on duty. Confirm to end duty and sign out."
        )
