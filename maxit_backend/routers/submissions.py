from http import HTTPStatus
from typing import Annotated

from fastapi import APIRouter, Depends, File, Form, UploadFile

from maxit_backend.dependencies.auth import CurrentUser, get_current_user
from maxit_backend.dependencies.pagination import Pagination
from maxit_backend.schemas.common import APIResponse, IDResponse, created_id, success
from maxit_backend.schemas.submission import (
    LanguageConfigPublic,
    SubmissionPublic,
    SubmissionShort,
)
from maxit_backend.services.language import LanguageService
from maxit_backend.services.submission import SubmissionService

router = APIRouter(
    prefix="/submissions", tags=["submissions"], dependencies=[Depends(get_current_user)]
)


@router.get("/", summary="List submissions visible to the current user")
def get_submissions(
    pagination: Pagination,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(submission_service.get_all(user, pagination))


@router.post("/submit", summary="Submit a solution", status_code=HTTPStatus.CREATED)
def submit_solution(
    task_id: Annotated[int, Form()],
    language_id: Annotated[int, Form()],
    solution: Annotated[UploadFile, File()],
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
    contest_id: Annotated[int | None, Form()] = None,
) -> APIResponse[IDResponse]:
    submission = submission_service.submit(user, task_id, language_id, solution, contest_id)
    return created_id(submission.id)


@router.get("/languages", summary="List enabled languages")
def get_languages(
    language_service: Annotated[LanguageService, Depends()],
) -> APIResponse[list[LanguageConfigPublic]]:
    languages = language_service.get_all_enabled()
    return success([LanguageConfigPublic.model_validate(language) for language in languages])


@router.get("/users/{user_id}", summary="List submissions of a user")
def get_user_submissions(
    user_id: int,
    pagination: Pagination,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(submission_service.get_all_for_user(user, user_id, pagination))


@router.get("/users/{user_id}/short", summary="List a user's submissions with pass counts only")
def get_user_submissions_short(
    user_id: int,
    pagination: Pagination,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionShort]]:
    return success(submission_service.get_all_for_user_short(user, user_id, pagination))


@router.get("/groups/{group_id}", summary="List submissions of a group's members")
def get_group_submissions(
    group_id: int,
    pagination: Pagination,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(submission_service.get_all_for_group(user, group_id, pagination))


@router.get("/tasks/{task_id}", summary="List submissions for a task")
def get_task_submissions(
    task_id: int,
    pagination: Pagination,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[list[SubmissionPublic]]:
    return success(submission_service.get_all_for_task(user, task_id, pagination))


@router.get("/{submission_id}", summary="Get a submission with its result")
def get_submission(
    submission_id: int,
    user: CurrentUser,
    submission_service: Annotated[SubmissionService, Depends()],
) -> APIResponse[SubmissionPublic]:
    return success(submission_service.get(user, submission_id))
