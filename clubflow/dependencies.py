"""FastAPI dependencies that hand request handlers their collaborators."""
from fastapi import BackgroundTasks, Depends, Request
from sqlalchemy.orm import Session

from clubflow.database import get_db
from clubflow.services.coordinator import WorkflowCoordinator
from clubflow.services.side_effects import PostCommitHooks, SideEffectPipeline


def get_side_effects(request: Request) -> SideEffectPipeline:
    return request.app.state.side_effects


def _close_then_run(db: Session, hooks: PostCommitHooks) -> None:
    # Serializing the response may have reopened a transaction on the request
    # session; on SQLite that holds the write lock the hooks need.
    db.close()
    hooks.run()


def get_post_commit_hooks(background_tasks: BackgroundTasks, db: Session = Depends(get_db)) -> PostCommitHooks:
    """Hooks that run after the response is sent, once the request session is closed."""
    hooks = PostCommitHooks()
    background_tasks.add_task(_close_then_run, db, hooks)
    return hooks


def get_coordinator(
    db: Session = Depends(get_db),
    pipeline: SideEffectPipeline = Depends(get_side_effects),
    hooks: PostCommitHooks = Depends(get_post_commit_hooks),
) -> WorkflowCoordinator:
    return WorkflowCoordinator(db, pipeline, hooks)
