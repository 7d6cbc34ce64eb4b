"""
Result aggregation.

Merges the partial results of a run into the report published with
cycle:finished.
"""

from collections.abc import Iterable

from fc_common.models import AggregateReport, Job, PartialResult


def aggregate(results: Iterable[PartialResult], job: Job) -> AggregateReport:
    """
    Merge partial results into one report for a job.

    Error and warning counts are summed. Information mappings are merged in
    sequence order, later keys overwriting earlier ones. Every non-null
    issue is collected, preserving order.

    Args:
        results: Partial results, one per hook
        job: The job the results belong to

    Returns:
        AggregateReport stamped with the job's cycle, project and release ids
    """
    report = AggregateReport(
        cycle=job.cycle_id,
        project=job.project_id,
        release=job.release_id,
    )

    for result in results:
        report.errors += result.errors
        report.warnings += result.warnings
        report.information.update(result.information)
        if result.issue is not None:
            report.issues.append(result.issue)

    return report
