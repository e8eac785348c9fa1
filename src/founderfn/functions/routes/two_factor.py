"""Two-factor authentication endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from founderfn.auth.two_factor import TwoFactorService
from founderfn.config import TwoFactorAction, VerifyMode
from founderfn.errors import ValidationError
from founderfn.functions.deps import get_two_factor
from founderfn.models import CodeRequest, TwoFactorRequest, TwoFactorResponse

router = APIRouter(prefix="/functions", tags=["2fa"])


def _require_code(code: str | None) -> str:
    if not code:
        raise ValidationError("Verification code is required")
    return code


@router.post("/verify-2fa", response_model=TwoFactorResponse, response_model_exclude_none=True)
async def two_factor(body: TwoFactorRequest, service: TwoFactorService = Depends(get_two_factor)):
    """Single entry point dispatching on `action`."""
    if body.action == TwoFactorAction.SETUP:
        setup = await service.setup(body.user_id, body.code)
        return TwoFactorResponse(
            success=True,
            secret=setup.secret,
            qr_code_url=setup.qr_code_url,
            provisioning_uri=setup.provisioning_uri,
        )

    if body.action == TwoFactorAction.VERIFY:
        # Older clients send the secret back during setup instead of a mode.
        mode = body.mode or (VerifyMode.SETUP if body.secret else VerifyMode.LOGIN)
        result = await service.verify(body.user_id, _require_code(body.code), mode)
        return TwoFactorResponse(success=result.success)

    if body.action == TwoFactorAction.DISABLE:
        if await service.status(body.user_id):
            result = await service.verify(body.user_id, _require_code(body.code), VerifyMode.LOGIN)
            if not result.success:
                raise ValidationError("Invalid verification code")
        await service.disable(body.user_id)
        return TwoFactorResponse(success=True)

    return TwoFactorResponse(success=True, is_enabled=await service.status(body.user_id))


@router.post("/verify-2fa-setup", response_model=TwoFactorResponse, response_model_exclude_none=True)
async def verify_setup(body: CodeRequest, service: TwoFactorService = Depends(get_two_factor)):
    result = await service.verify(body.user_id, body.code, VerifyMode.SETUP)
    if not result.success:
        raise ValidationError("Invalid verification code")
    return TwoFactorResponse(success=True)


@router.post("/verify-2fa-login", response_model=TwoFactorResponse, response_model_exclude_none=True)
async def verify_login(body: CodeRequest, service: TwoFactorService = Depends(get_two_factor)):
    result = await service.verify(body.user_id, body.code, VerifyMode.LOGIN)
    return TwoFactorResponse(success=result.success)
