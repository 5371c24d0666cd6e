"""linkscribe - resolve a URL into the best available text for an LLM prompt."""

from linkscribe.content.diagnostics import ContentFetchDiagnostics
from linkscribe.content.models import ResolvedContent, ResolveOptions
from linkscribe.content.resolver import LinkContentResolver
from linkscribe.deps import LinkResolverDeps, ProgressEvent, ProgressKind
from linkscribe.factory import build_deps, default_options

__version__ = "0.1.0"

__all__ = [
    "ContentFetchDiagnostics",
    "LinkContentResolver",
    "LinkResolverDeps",
    "ProgressEvent",
    "ProgressKind",
    "ResolveOptions",
    "ResolvedContent",
    "build_deps",
    "default_options",
]
