"""Forum endpoints: boards, topics, posts, solutions, votes."""

from __future__ import annotations

from datetime import datetime

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from forumwiki.api.identity import get_actor
from forumwiki.service.forum import Actor, ForumService

router = APIRouter(prefix="/api", tags=["forum"])


def _service(request: Request) -> ForumService:
    return request.app.state.forum_service


# -- Boards --------------------------------------------------------------------


class BoardCreateRequest(BaseModel):
    slug: str = Field(min_length=2, max_length=100)
    name: str = Field(min_length=2, max_length=120)
    description: str = Field(default="", max_length=500)


class BoardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    slug: str
    name: str
    description: str
    status: str
    creator_id: str
    created_at: datetime


@router.post("/boards", response_model=BoardResponse, status_code=201)
async def create_board(
    body: BoardCreateRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> BoardResponse:
    """Create a board (moderators and admins only)."""
    board = await _service(request).create_board(
        actor, body.slug, body.name, body.description
    )
    return BoardResponse.model_validate(board)


@router.get("/boards/{board_id}", response_model=BoardResponse)
async def get_board(board_id: str, request: Request) -> BoardResponse:
    board = await _service(request).get_board(board_id)
    return BoardResponse.model_validate(board)


# -- Topics --------------------------------------------------------------------


class TopicCreateRequest(BaseModel):
    title: str = Field(min_length=2, max_length=180)
    topic_kind: str = "discussion"
    is_wiki_enabled: bool = False


class TopicResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    board_id: str
    user_id: str
    title: str
    topic_kind: str
    is_wiki_enabled: bool
    status: str
    current_wiki_revision_id: str | None = None
    solved_post_id: str | None = None
    last_post_id: str | None = None
    post_count: int
    vote_count: int
    created_at: datetime


class TopicListResponse(BaseModel):
    topics: list[TopicResponse]
    total: int
    page: int
    page_size: int


@router.post(
    "/boards/{board_id}/topics", response_model=TopicResponse, status_code=201
)
async def create_topic(
    board_id: str,
    body: TopicCreateRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> TopicResponse:
    topic = await _service(request).create_topic(
        board_id,
        actor.user_id,
        body.title,
        body.topic_kind,
        wiki_enabled=body.is_wiki_enabled,
    )
    return TopicResponse.model_validate(topic)


@router.get("/boards/{board_id}/topics", response_model=TopicListResponse)
async def list_topics(
    board_id: str,
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> TopicListResponse:
    """Topics of a board, newest first."""
    result = await _service(request).list_topics(board_id, page, page_size)
    return TopicListResponse(
        topics=[TopicResponse.model_validate(t) for t in result.items],
        total=result.total,
        page=result.page,
        page_size=result.page_size,
    )


@router.get("/topics/{topic_id}", response_model=TopicResponse)
async def get_topic(topic_id: str, request: Request) -> TopicResponse:
    topic = await _service(request).get_topic(topic_id)
    return TopicResponse.model_validate(topic)


# -- Posts ---------------------------------------------------------------------


class PostCreateRequest(BaseModel):
    text: str = Field(min_length=2, max_length=20000)


class PostResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    topic_id: str
    user_id: str
    original_text: str
    parsed_text: str
    merge_state: str
    vote_count: int
    created_at: datetime
    archived_at: datetime | None = None


class PostListResponse(BaseModel):
    posts: list[PostResponse]


@router.post(
    "/topics/{topic_id}/posts", response_model=PostResponse, status_code=201
)
async def create_post(
    topic_id: str,
    body: PostCreateRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> PostResponse:
    post = await _service(request).create_post(topic_id, actor.user_id, body.text)
    return PostResponse.model_validate(post)


@router.get("/topics/{topic_id}/posts", response_model=PostListResponse)
async def list_posts(
    topic_id: str,
    request: Request,
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
) -> PostListResponse:
    posts = await _service(request).list_posts(topic_id, page, page_size)
    return PostListResponse(posts=[PostResponse.model_validate(p) for p in posts])


# -- Solutions -----------------------------------------------------------------


class SolutionRequest(BaseModel):
    post_id: str = Field(min_length=1)


class SolutionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    topic_id: str
    post_id: str
    set_by_user_id: str


@router.put("/topics/{topic_id}/solution", response_model=SolutionResponse)
async def set_solution(
    topic_id: str,
    body: SolutionRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> SolutionResponse:
    """Mark a post as the topic's accepted answer, replacing any previous one."""
    solution = await _service(request).set_topic_solution(
        topic_id, actor.user_id, body.post_id
    )
    return SolutionResponse.model_validate(solution)


# -- Votes ---------------------------------------------------------------------


class VoteRequest(BaseModel):
    value: int


class VoteResponse(BaseModel):
    target_id: str
    value: int
    delta: int
    vote_count: int


@router.post("/topics/{topic_id}/votes", response_model=VoteResponse)
async def vote_topic(
    topic_id: str,
    body: VoteRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> VoteResponse:
    """Cast or change the caller's vote (+1 or -1) on a topic."""
    result = await _service(request).vote_topic(topic_id, actor.user_id, body.value)
    return VoteResponse(
        target_id=result.target_id,
        value=result.value,
        delta=result.delta,
        vote_count=result.vote_count,
    )


@router.post("/posts/{post_id}/votes", response_model=VoteResponse)
async def vote_post(
    post_id: str,
    body: VoteRequest,
    request: Request,
    actor: Actor = Depends(get_actor),  # noqa: B008
) -> VoteResponse:
    """Cast or change the caller's vote (+1 or -1) on a post."""
    result = await _service(request).vote_post(post_id, actor.user_id, body.value)
    return VoteResponse(
        target_id=result.target_id,
        value=result.value,
        delta=result.delta,
        vote_count=result.vote_count,
    )
