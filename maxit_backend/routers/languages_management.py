from typing import Annotated

from fastapi import APIRouter, Depends

from maxit_backend.dependencies.auth import Admin
from maxit_backend.schemas.common import APIResponse, success
from maxit_backend.schemas.submission import LanguageConfigDetailed
from maxit_backend.services.language import LanguageService

router = APIRouter(prefix="/languages-management/languages", tags=["languages-management"])


@router.get("/", summary="List every language version, disabled ones included")
def get_languages(
    _user: Admin, language_service: Annotated[LanguageService, Depends()]
) -> APIResponse[list[LanguageConfigDetailed]]:
    languages = language_service.get_all()
    return success([LanguageConfigDetailed.model_validate(language) for language in languages])


@router.patch("/{language_id}", summary="Enable or disable a language version")
def toggle_language(
    language_id: int, _user: Admin, language_service: Annotated[LanguageService, Depends()]
) -> APIResponse[LanguageConfigDetailed]:
    return success(LanguageConfigDetailed.model_validate(language_service.toggle(language_id)))
