"""Data models for ai-task-manager.

Import from submodules:
- files: FileInfo, FileConflict, IntegrityIssue
- conflicts: ConflictResolution, PlannedResolution, ApplicationOutcome, ResolvedConflict
- config: InstallationConfig, FilePermissions
- assistant: AssistantConfig, AssistantInstallationTarget
- operations: InstallationOperation, AtomicContext, InstallationResult
- status: DetectionResult, InstallationStatus, VerificationResult
"""
