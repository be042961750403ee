"""
Core Deduplication Logic
-----------------------
This module contains the batch detection pass that finds likely-duplicate
contacts. Contacts are blocked by their owning scope (event) to bound the
O(N^2) candidate space, candidate pairs are scored in parallel chunks, and the
pairs reaching the detection threshold are persisted as pending duplicates.
"""

import itertools
import logging
from concurrent.futures import Executor, ThreadPoolExecutor, as_completed
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from contact_dedup.core.exceptions import InvalidInputError
from contact_dedup.core.lifecycle import DuplicatePairManager
from contact_dedup.core.scoring import score_contacts
from contact_dedup.models.data_models import (
    CONFIDENCE_THRESHOLDS,
    ConfidenceThresholds,
    Contact,
    DuplicateScanResult,
    ScoredPair,
)

logger = logging.getLogger(__name__)

ContactPair = Tuple[Contact, Contact]
SkippedPair = Tuple[str, str, str]


def block_by_scope(contacts: Iterable[Contact]) -> Dict[Optional[str], List[Contact]]:
    """Group contacts by event id; only contacts sharing a scope are compared."""
    blocks: Dict[Optional[str], List[Contact]] = {}
    for contact in contacts:
        blocks.setdefault(contact.event_id, []).append(contact)
    return blocks


def candidate_pairs(blocks: Dict[Optional[str], List[Contact]]) -> Iterator[ContactPair]:
    """Yield every unordered pair of distinct contacts within each block."""
    for block in blocks.values():
        for c1, c2 in itertools.combinations(block, 2):
            yield c1, c2


def _chunked(pairs: Iterable[ContactPair], chunk_size: int) -> Iterator[List[ContactPair]]:
    iterator = iter(pairs)
    while True:
        chunk = list(itertools.islice(iterator, chunk_size))
        if not chunk:
            return
        yield chunk


def score_chunk(
    chunk: Sequence[ContactPair],
    threshold: int,
    thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS,
) -> Tuple[List[ScoredPair], List[SkippedPair]]:
    """
    Score one chunk of candidate pairs.

    This is the unit of work handed to the pool. It has no side effects, so it
    can run in a thread or a separate process.

    Returns:
        Tuple of the pairs at or above threshold and the (id1, id2, reason)
        tuples of pairs skipped for invalid input
    """
    scored: List[ScoredPair] = []
    skipped: List[SkippedPair] = []
    for c1, c2 in chunk:
        try:
            result = score_contacts(c1, c2, thresholds=thresholds)
        except InvalidInputError as e:
            skipped.append((c1.id, c2.id, str(e)))
            continue
        if result.score >= threshold:
            scored.append(ScoredPair(
                event_id=c1.event_id,
                contact_id_1=c1.id,
                contact_id_2=c2.id,
                score=result.score,
                match_type=result.match_type,
            ))
    return scored, skipped


def find_duplicates(
    contacts: Sequence[Contact],
    threshold: Optional[int] = None,
    thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS,
    max_workers: Optional[int] = None,
    chunk_size: int = 500,
    executor: Optional[Executor] = None,
) -> Tuple[List[ScoredPair], Dict[str, Any]]:
    """
    Score all candidate pairs of a contact set and keep the likely duplicates.

    Candidate pairs are split into chunks and fanned out over a worker pool;
    results are gathered without any ordering requirement and then sorted by
    score (highest first) for a stable output.

    Args:
        contacts: Contacts to scan
        threshold: Minimum confidence to report (default: the medium level)
        thresholds: Score boundaries used by the classifier
        max_workers: Pool size when no executor is given
        chunk_size: Number of pairs per unit of work
        executor: Optional pool to use instead of a private thread pool, e.g. a
            ProcessPoolExecutor to spread scoring across cores

    Returns:
        Tuple[List[ScoredPair], Dict[str, Any]]: Duplicates found and scan statistics
    """
    if threshold is None:
        threshold = thresholds.medium
    if chunk_size < 1:
        raise InvalidInputError("chunk_size must be at least 1")

    blocks = block_by_scope(contacts)
    block_sizes = [len(b) for b in blocks.values()]
    total_pairs = sum(n * (n - 1) // 2 for n in block_sizes)

    scored: List[ScoredPair] = []
    skipped: List[SkippedPair] = []

    pool = executor or ThreadPoolExecutor(max_workers=max_workers)
    try:
        futures = [
            pool.submit(score_chunk, chunk, threshold, thresholds)
            for chunk in _chunked(candidate_pairs(blocks), chunk_size)
        ]
        for future in as_completed(futures):
            chunk_scored, chunk_skipped = future.result()
            scored.extend(chunk_scored)
            skipped.extend(chunk_skipped)
    finally:
        if executor is None:
            pool.shutdown(wait=True)

    for id1, id2, reason in skipped:
        logger.warning("Skipping pair (%s, %s): %s", id1, id2, reason)

    scored.sort(key=lambda p: (-p.score, p.contact_id_1, p.contact_id_2))

    stats = {
        "scanned_contacts": len(contacts),
        "total_blocks": len(blocks),
        "max_block_size": max(block_sizes) if block_sizes else 0,
        "candidate_pairs": total_pairs,
        "duplicates_found": len(scored),
        "skipped_pairs": len(skipped),
    }
    return scored, stats


def scan_for_duplicates(
    contacts: Sequence[Contact],
    manager: DuplicatePairManager,
    threshold: Optional[int] = None,
    thresholds: ConfidenceThresholds = CONFIDENCE_THRESHOLDS,
    max_workers: Optional[int] = None,
    chunk_size: int = 500,
    executor: Optional[Executor] = None,
) -> DuplicateScanResult:
    """
    Run a detection pass and persist the new duplicate pairs.

    Persistence goes through the manager's atomic insert-if-absent, so running
    the scan again over unchanged contacts creates no new records. A failure
    part-way through leaves the already persisted pairs in place.

    Returns:
        DuplicateScanResult: Counts of scanned contacts, pairs found and pairs created
    """
    scored, stats = find_duplicates(
        contacts,
        threshold=threshold,
        thresholds=thresholds,
        max_workers=max_workers,
        chunk_size=chunk_size,
        executor=executor,
    )

    new_pairs = 0
    for scored_pair in scored:
        if manager.register(scored_pair) is not None:
            new_pairs += 1

    logger.info(
        "Scanned %d contacts (%d candidate pairs): %d duplicates, %d new pairs, %d skipped",
        stats["scanned_contacts"], stats["candidate_pairs"],
        stats["duplicates_found"], new_pairs, stats["skipped_pairs"],
    )

    return DuplicateScanResult(
        scanned_contacts=stats["scanned_contacts"],
        candidate_pairs=stats["candidate_pairs"],
        duplicates_found=stats["duplicates_found"],
        new_pairs=new_pairs,
        skipped_pairs=stats["skipped_pairs"],
    )
