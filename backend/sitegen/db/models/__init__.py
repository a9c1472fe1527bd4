"""Re-export all models so Base.metadata sees them."""

from sitegen.db.models.generated_file import GeneratedFile
from sitegen.db.models.generation_version import GenerationVersion
from sitegen.db.models.project import Project
from sitegen.db.models.user_settings import UserSettings

__all__ = [
    "GeneratedFile",
    "GenerationVersion",
    "Project",
    "UserSettings",
]
