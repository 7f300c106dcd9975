"""
Study Service Factory
Centralizes the wiring of adapters and scheduling components from config.
"""

from cadence.application.adaptive import AdaptiveDifficultyEngine
from cadence.application.config import AppConfig
from cadence.application.scheduler import ReviewScheduler
from cadence.application.study_service import StudyService
from cadence.domain.errors import ConfigurationError
from cadence.domain.ports import ContentStore, ProgressRepository
from cadence.infrastructure.content import YamlContentStore
from cadence.infrastructure.progress import JsonProgressRepository


def get_content_store(config: AppConfig) -> ContentStore:
    """
    Returns the content store for the configured deck.
    """
    if config.deck_path is None:
        raise ConfigurationError(
            "No deck configured. Pass --deck or set CADENCE_DECK_PATH."
        )
    return YamlContentStore(config.deck_path)


def get_progress_repository(config: AppConfig) -> ProgressRepository:
    """
    Returns the progress repository rooted at the configured data directory.
    """
    return JsonProgressRepository(config.data_dir)


def get_study_service(
    config: AppConfig,
    content: ContentStore | None = None,
    progress_repo: ProgressRepository | None = None,
) -> StudyService:
    """
    Returns a StudyService whose scheduler and adaptive engine honour config.
    """
    return StudyService(
        progress_repo=progress_repo or get_progress_repository(config),
        content=content or get_content_store(config),
        scheduler=ReviewScheduler(
            mastery_interval=config.mastery_interval_days,
            max_interval=config.max_interval_days,
        ),
        adaptive=AdaptiveDifficultyEngine(
            window=config.adaptive_window,
            promotion_threshold=config.promotion_threshold,
        ),
        session_size=config.session_size,
    )
