"""Reciprocal Rank Fusion of keyword and semantic result lists."""

from __future__ import annotations

from typing import Dict, List, Sequence

from vaultindex.models import SearchHit

RRF_K = 60


def sort_hits(hits: List[SearchHit]) -> List[SearchHit]:
    """Sort hits by score descending; ties keep their path order."""
    return sorted(hits, key=lambda hit: (-hit.score, hit.path))


def reciprocal_rank_fusion(
    lexical: Sequence[SearchHit],
    semantic: Sequence[SearchHit],
    *,
    limit: int,
    k: int = RRF_K,
) -> List[SearchHit]:
    """Fuse two ranked lists by summing ``1 / (k + rank)`` per membership.

    Ranks are 1-based. Titles come from whichever list first supplies one;
    snippets only come from the lexical list.
    """
    scores: Dict[str, float] = {}
    titles: Dict[str, str] = {}
    snippets: Dict[str, str] = {}

    for rank, hit in enumerate(lexical, start=1):
        scores[hit.path] = scores.get(hit.path, 0.0) + 1.0 / (k + rank)
        titles.setdefault(hit.path, hit.title)
        snippets[hit.path] = hit.snippet

    for rank, hit in enumerate(semantic, start=1):
        scores[hit.path] = scores.get(hit.path, 0.0) + 1.0 / (k + rank)
        if not titles.get(hit.path):
            titles[hit.path] = hit.title

    fused = [
        SearchHit(
            path=path,
            title=titles.get(path, ""),
            score=score,
            snippet=snippets.get(path, ""),
        )
        for path, score in scores.items()
    ]
    return sort_hits(fused)[: max(limit, 0)]
