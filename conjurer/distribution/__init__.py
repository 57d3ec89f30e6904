from .extractor import ExtractedDistribution, extract
from .launcher import LauncherInfo, analyze

__all__ = ["ExtractedDistribution", "extract", "LauncherInfo", "analyze"]
