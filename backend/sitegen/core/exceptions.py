class SiteGenError(Exception):
    """Base exception for the site generation backend."""

    pass


class GenerationBackendError(SiteGenError):
    """Raised when the generation service returns nothing usable."""

    pass


class DesignSystemParseError(GenerationBackendError):
    """Raised when the design system response cannot be parsed or validated."""

    pass


class BlueprintParseError(GenerationBackendError):
    """Raised when the page blueprint response cannot be parsed or validated."""

    pass


class PersistenceError(SiteGenError):
    """Raised when a generation run cannot be committed to the datastore."""

    def __init__(self, version_id: str, message: str):
        self.version_id = version_id
        super().__init__(f"Failed to persist version {version_id}: {message}")


class VersionLockTimeoutError(SiteGenError):
    """Raised when the per-project version lock cannot be acquired in time."""

    def __init__(self, project_id: str, waited_seconds: int):
        self.project_id = project_id
        self.waited_seconds = waited_seconds
        super().__init__(f"Timed out after {waited_seconds}s waiting for version lock on project {project_id}")


class MergeError(SiteGenError):
    """Base class for visual edit merge failures."""

    pass


class NoCompletedVersionError(MergeError):
    """Raised when a project has no completed version to merge edits into."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"No completed version found for project {project_id}")


class MergePersistenceError(MergeError):
    """Raised when the merged file set could not be saved (new version rolled back)."""

    pass


class GenerationRequestError(SiteGenError):
    """Raised client-side when the invocation endpoint answers with a non-stream error."""

    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


class ProjectNotFoundError(SiteGenError):
    """Raised when a project does not exist or is not owned by the caller."""

    def __init__(self, project_id: str):
        self.project_id = project_id
        super().__init__(f"Project {project_id} not found")
