"""
Timeline aggregation package.

Usage: `from analyzer.services.timeline import build_timeline`

Module structure:
- builder.py: build_timeline entry point and TimelineBuilder
- merge_request_enricher.py: Merge request commits + diff
- commit_enricher.py: Commit diff, commit ordering
- orphan_filter.py: Commits not covered by any merge request
- assembler.py: Final ordering into a Timeline
- concurrency.py: Limiter and join helpers
- source.py: RemoteSource protocol
- types.py: Enriched records and Timeline
"""

from analyzer.services.timeline.assembler import assemble_timeline
from analyzer.services.timeline.builder import (
    InvalidWindowError,
    TimelineBuilder,
    build_timeline,
    timeline_builder,
)
from analyzer.services.timeline.commit_enricher import enrich_commit
from analyzer.services.timeline.concurrency import ConcurrencyLimiter
from analyzer.services.timeline.merge_request_enricher import enrich_merge_request
from analyzer.services.timeline.orphan_filter import (
    collect_merge_request_shas,
    enrich_orphans,
    filter_orphans,
)
from analyzer.services.timeline.source import RemoteSource
from analyzer.services.timeline.types import (
    EnrichedCommit,
    EnrichedMergeRequest,
    EnrichmentFailure,
    FailurePolicy,
    MergeRequestRow,
    Timeline,
)

__all__ = [
    # Entry points
    "build_timeline",
    "TimelineBuilder",
    "timeline_builder",
    # Stages
    "enrich_commit",
    "enrich_merge_request",
    "collect_merge_request_shas",
    "filter_orphans",
    "enrich_orphans",
    "assemble_timeline",
    # Concurrency
    "ConcurrencyLimiter",
    # Protocol
    "RemoteSource",
    # Exceptions
    "InvalidWindowError",
    # Types
    "EnrichedCommit",
    "EnrichedMergeRequest",
    "EnrichmentFailure",
    "FailurePolicy",
    "MergeRequestRow",
    "Timeline",
]
