from __future__ import annotations

from dependency_injector import containers, providers  # type: ignore[import-not-found]

from chatmind.event_bus import EventBus
from chatmind.providers import GeminiClient, OpenAIClient, post_json_request
from chatmind.repositories import ConfigRepository, InMemoryStorageGateway
from chatmind.services import (
    AIResponder,
    AITurnService,
    RoomDirectory,
    RoomSynchronizer,
    SessionService,
)
from chatmind.ui import MentionCompleter


class ChatMindContainer(containers.DeclarativeContainer):
    config_repository = providers.Singleton(ConfigRepository)
    sync_settings = providers.Singleton(
        lambda repository: repository.load_sync_settings(), config_repository
    )
    ai_config = providers.Singleton(
        lambda repository: repository.load_ai_config(), config_repository
    )

    gateway = providers.Singleton(
        InMemoryStorageGateway,
        presence_window_seconds=providers.Callable(
            lambda settings: settings.presence_window_seconds, sync_settings
        ),
    )
    event_bus = providers.Singleton(EventBus, maxsize=512, publish_timeout_seconds=0.1)

    ai_provider_clients = providers.Callable(
        lambda gemini, openai: {"gemini": gemini, "openai": openai},
        gemini=providers.Factory(GeminiClient),
        openai=providers.Factory(OpenAIClient),
    )
    ai_responder = providers.Singleton(
        AIResponder,
        ai_config=ai_config,
        provider_clients=ai_provider_clients,
        post_json=providers.Object(post_json_request),
        request_timeout_seconds=providers.Callable(
            lambda settings: settings.ai_request_timeout_seconds, sync_settings
        ),
        probe_timeout_seconds=providers.Callable(
            lambda settings: settings.ai_probe_timeout_seconds, sync_settings
        ),
        save_config=config_repository.provided.save_ai_config,
    )
    ai_turns = providers.Singleton(
        AITurnService,
        gateway=gateway,
        responder=ai_responder,
        settings=sync_settings,
    )

    synchronizer = providers.Singleton(
        RoomSynchronizer,
        gateway=gateway,
        event_bus=event_bus,
        ai_turns=ai_turns,
        settings=sync_settings,
    )
    directory = providers.Singleton(RoomDirectory, gateway=gateway, settings=sync_settings)
    session = providers.Singleton(
        SessionService,
        gateway=gateway,
        synchronizer=synchronizer,
        directory=directory,
    )
    mention_completer = providers.Factory(MentionCompleter, session=session)
