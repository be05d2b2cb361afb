from ai_task_manager.io.settings import (
    SETTINGS_FILE,
    ProjectSettings,
    build_installation_config,
    load_project_settings,
)

__all__ = [
    "SETTINGS_FILE",
    "ProjectSettings",
    "build_installation_config",
    "load_project_settings",
]
