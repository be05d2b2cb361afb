"""ai-task-manager: Workspace installer for AI assistant task management.

For external tool integration, use the filesystem manager:
    from ai_task_manager.filesystem.manager import FileSystemManager

Import from submodules:
- version: __version__
- filesystem: detection, conflict resolution, atomic installation
- sources: bundled template and command catalogs
"""

from ai_task_manager.version import __version__ as __version__
