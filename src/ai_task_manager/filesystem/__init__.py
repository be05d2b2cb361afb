"""Installation and conflict resolution engine.

Import from submodules:
- utils: filesystem primitives and atomic staging contexts
- detector: InstallationDetector
- conflicts: conflict resolvers and ConflictResolutionManager
- atomic: AtomicInstaller
- verifier: InstallationVerifier (MANIFEST.json)
- events: EventBus, FileSystemEvent
- manager: FileSystemManager (orchestrator)
"""
