"""Wiki endpoints: revisions, merge jobs, contributors, document graph."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Request
from pydantic import BaseModel, ConfigDict, Field

from forumwiki.api.identity import get_actor
from forumwiki.service.forum import Actor, ForumService

router = APIRouter(prefix="/api/topics/{topic_id}", tags=["wiki"])


def _service(request: Request) -> ForumService:
    return request.app.state.forum_service


# -- Revisions -----------------------------------------------------------------


class RevisionCreateRequest(BaseModel):
    title: str = Field(min_length=2, max_length=180)
    document: str = Field(min_length=2, max_length=200000)
    summary: str = Field(default="", max_length=500)


class RevisionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    topic_id: str
    editor_id: str
    title: str
    document: str
    summary: str
    parent_revision_id: str | None = None
    created_at: datetime


class CurrentWikiResponse(BaseModel):
    topic_id: str
    revision: RevisionResponse | None = None


class RevisionListResponse(BaseModel):
    revisions: list[RevisionResponse]


@router.get("/wiki", response_model=CurrentWikiResponse)
async def get_current_wiki(topic_id: str, request: Request) -> CurrentWikiResponse:
    """The current revision; ``revision`` is null before the first edit."""
    revision = await _service(request).get_current_wiki(topic_id)
    return CurrentWikiResponse(
        topic_id=topic_id,
        revision=RevisionResponse.model_validate(revision) if revision else None,
    )


@router.post("/wiki/revisions", response_model=RevisionResponse, status_code=201)
async def create_revision(
    topic_id: str,
    body: RevisionCreateRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> RevisionResponse:
    revision = await _service(request).create_wiki_revision(
        topic_id, actor.user_id, body.title, body.document, body.summary
    )
    return RevisionResponse.model_validate(revision)


@router.get("/wiki/revisions", response_model=RevisionListResponse)
async def list_revisions(topic_id: str, request: Request) -> RevisionListResponse:
    """Revision history, newest first."""
    revisions = await _service(request).list_wiki_revisions(topic_id)
    return RevisionListResponse(
        revisions=[RevisionResponse.model_validate(r) for r in revisions]
    )


# -- Merge jobs ----------------------------------------------------------------


class MergeJobCreateRequest(BaseModel):
    post_ids: list[str] = Field(min_length=1)
    summary: str = Field(default="", max_length=500)


class MergeJobApplyRequest(BaseModel):
    title: str = Field(min_length=2, max_length=180)
    document: str = Field(min_length=2, max_length=200000)
    summary: str = Field(default="", max_length=500)
    contribution_weight: int = 1
    reviewer_id: str | None = None


class MergeJobResponse(BaseModel):
    id: str
    topic_id: str
    creator_id: str
    reviewer_id: str | None = None
    status: str
    summary: str
    post_ids: list[str]
    applied_revision_id: str | None = None
    applied_at: datetime | None = None
    created_at: datetime


def _job_response(job) -> MergeJobResponse:  # type: ignore[no-untyped-def]
    return MergeJobResponse(
        id=job.id,
        topic_id=job.topic_id,
        creator_id=job.creator_id,
        reviewer_id=job.reviewer_id,
        status=job.status,
        summary=job.summary,
        post_ids=[ref.post_id for ref in job.post_refs],
        applied_revision_id=job.applied_revision_id,
        applied_at=job.applied_at,
        created_at=job.created_at,
    )


@router.post("/merge-jobs", response_model=MergeJobResponse, status_code=201)
async def create_merge_job(
    topic_id: str,
    body: MergeJobCreateRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> MergeJobResponse:
    """Propose merging posts of this topic into its wiki."""
    job = await _service(request).create_merge_job(
        topic_id, actor.user_id, body.post_ids, body.summary
    )
    return _job_response(job)


@router.get("/merge-jobs/{job_id}", response_model=MergeJobResponse)
async def get_merge_job(
    topic_id: str, job_id: str, request: Request
) -> MergeJobResponse:
    job = await _service(request).get_merge_job(topic_id, job_id)
    return _job_response(job)


@router.post("/merge-jobs/{job_id}/review", response_model=MergeJobResponse)
async def review_merge_job(
    topic_id: str,
    job_id: str,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> MergeJobResponse:
    job = await _service(request).review_merge_job(topic_id, job_id, actor)
    return _job_response(job)


@router.post("/merge-jobs/{job_id}/apply", response_model=RevisionResponse)
async def apply_merge_job(
    topic_id: str,
    job_id: str,
    body: MergeJobApplyRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> RevisionResponse:
    """Apply a merge job. Retrying an applied job returns the same revision."""
    revision = await _service(request).apply_merge_job(
        topic_id,
        job_id,
        actor,
        title=body.title,
        document=body.document,
        summary=body.summary,
        contribution_weight=body.contribution_weight,
        reviewer_id=body.reviewer_id,
    )
    return RevisionResponse.model_validate(revision)


# -- Contributors --------------------------------------------------------------


class ContributorResponse(BaseModel):
    user_id: str
    total_weight: int


class ContributorListResponse(BaseModel):
    topic_id: str
    contributors: list[ContributorResponse]


@router.get("/contributors", response_model=ContributorListResponse)
async def list_contributors(
    topic_id: str, request: Request
) -> ContributorListResponse:
    stats = await _service(request).list_contributors(topic_id)
    return ContributorListResponse(
        topic_id=topic_id,
        contributors=[
            ContributorResponse(user_id=s.user_id, total_weight=s.total_weight)
            for s in stats
        ],
    )


# -- Document graph ------------------------------------------------------------


class LinkCreateRequest(BaseModel):
    target_topic_id: str = Field(min_length=1)
    link_type: str | None = None


class LinkResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    source_topic_id: str
    target_topic_id: str
    link_type: str


class GraphResponse(BaseModel):
    root_topic_id: str
    depth: int
    nodes: list[str]
    edges: list[LinkResponse]


@router.post("/links", response_model=LinkResponse, status_code=201)
async def add_link(
    topic_id: str,
    body: LinkCreateRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> LinkResponse:
    link = await _service(request).add_doc_link(
        topic_id, body.target_topic_id, body.link_type
    )
    return LinkResponse.model_validate(link)


@router.get("/graph", response_model=GraphResponse)
async def get_graph(
    topic_id: str, request: Request, depth: int | None = None
) -> GraphResponse:
    """Topics reachable from this one; depth defaults to 2, capped at 5."""
    service = _service(request)
    graph = await service.get_doc_graph(topic_id, depth)
    return GraphResponse(
        root_topic_id=topic_id,
        depth=service.graph_depth(depth),
        nodes=graph.nodes,
        edges=[LinkResponse.model_validate(e) for e in graph.edges],
    )
