"""Comparison and commonality clouds across several documents."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
from sklearn.feature_extraction.text import TfidfVectorizer

from litcloud_core import (
    CloudResult,
    EmptyInputError,
    WordCloudConfig,
    extract_tokens,
    generate_cloud,
    group_color_map,
)
from litcloud_layout import TextMeasurer

logger = logging.getLogger(__name__)

COMPARISON_MODES: Tuple[str, ...] = ("dominant", "difference", "commonality")

DocumentWeights = Mapping[str, Mapping[str, float]]


@dataclass
class ComparisonTable:
    weights: Dict[str, float] = field(default_factory=dict)
    groups: Dict[str, str] = field(default_factory=dict)
    documents: List[str] = field(default_factory=list)


def _identity(tokens: Sequence[str]) -> Sequence[str]:
    return tokens


def tfidf_weights(documents: Mapping[str, Sequence[str]]) -> Dict[str, Dict[str, float]]:
    """Score each document's tokens by TF-IDF against the other documents."""
    names = list(documents.keys())
    if not names:
        return {}
    if not any(documents[name] for name in names):
        # TfidfVectorizer refuses an empty vocabulary.
        return {name: {} for name in names}
    vectorizer = TfidfVectorizer(analyzer=_identity, lowercase=False)
    matrix = vectorizer.fit_transform([list(documents[name]) for name in names])
    features = vectorizer.get_feature_names_out()

    scores: Dict[str, Dict[str, float]] = {}
    for row, name in enumerate(names):
        vector = matrix[row]
        scores[name] = {str(features[col]): float(value) for col, value in zip(vector.indices, vector.data)}
    return scores


def weight_matrix(
    doc_weights: DocumentWeights, *, min_freq: float = 0.0
) -> Tuple[List[str], List[str], np.ndarray]:
    """Stack per-document weights into a documents x tokens array.

    Tokens keep their first-appearance order across documents. Weights below
    ``min_freq`` count as zero, i.e. absent from that document.
    """
    documents = list(doc_weights.keys())
    tokens: List[str] = []
    seen = set()
    for name in documents:
        for token in doc_weights[name]:
            if token not in seen:
                seen.add(token)
                tokens.append(token)

    index = {token: col for col, token in enumerate(tokens)}
    matrix = np.zeros((len(documents), len(tokens)), dtype=float)
    for row, name in enumerate(documents):
        for token, weight in doc_weights[name].items():
            if weight < 0:
                raise ValueError(f"weight for {token!r} in {name!r} must be non-negative, got {weight}")
            matrix[row, index[token]] = weight
    matrix[matrix < min_freq] = 0.0
    return documents, tokens, matrix


def comparison_weights(
    doc_weights: DocumentWeights,
    *,
    mode: str = "dominant",
    min_freq: float = 0.0,
) -> ComparisonTable:
    """Collapse per-document weights to one weight and one owning document per token.

    ``dominant`` keeps the largest weight and the document holding it.
    ``difference`` compares each document's share of a token against the mean
    share across documents and keeps the largest positive excess.
    """
    if mode not in ("dominant", "difference"):
        raise ValueError(f"mode must be 'dominant' or 'difference', got {mode!r}")
    documents, tokens, matrix = weight_matrix(doc_weights, min_freq=min_freq)
    table = ComparisonTable(documents=documents)
    if not tokens:
        return table

    if mode == "difference":
        totals = matrix.sum(axis=1, keepdims=True)
        totals[totals == 0] = 1.0
        shares = matrix / totals
        scores = shares - shares.mean(axis=0, keepdims=True)
    else:
        scores = matrix

    owners = scores.argmax(axis=0)
    best = scores.max(axis=0)
    for col, token in enumerate(tokens):
        if best[col] <= 0:
            continue
        table.weights[token] = float(best[col])
        table.groups[token] = documents[int(owners[col])]
    return table


def commonality_weights(doc_weights: DocumentWeights, *, min_freq: float = 0.0) -> ComparisonTable:
    """Tokens present in every document, weighted by their smallest weight."""
    documents, tokens, matrix = weight_matrix(doc_weights, min_freq=min_freq)
    table = ComparisonTable(documents=documents)
    if not tokens:
        return table
    floor = matrix.min(axis=0)
    for col, token in enumerate(tokens):
        if floor[col] > 0:
            table.weights[token] = float(floor[col])
    return table


def sub_cloud(doc_weights: DocumentWeights, name: str) -> Dict[str, float]:
    if name not in doc_weights:
        raise KeyError(f"unknown document: {name!r}")
    return {token: float(weight) for token, weight in doc_weights[name].items() if weight > 0}


def document_weights_from_texts(
    texts: Mapping[str, str],
    *,
    config: WordCloudConfig,
    tfidf: bool = False,
) -> Dict[str, Dict[str, float]]:
    documents = {name: extract_tokens(text, config=config) for name, text in texts.items()}
    if tfidf:
        return tfidf_weights(documents)
    counts: Dict[str, Dict[str, float]] = {}
    for name, tokens in documents.items():
        tally: Dict[str, float] = {}
        for token in tokens:
            tally[token] = tally.get(token, 0.0) + 1.0
        counts[name] = tally
    return counts


def generate_comparison_cloud(
    doc_weights: DocumentWeights,
    *,
    config: WordCloudConfig,
    mode: str = "dominant",
    measurer: Optional[TextMeasurer] = None,
    rng: Optional[np.random.Generator] = None,
) -> CloudResult:
    """Lay out one cloud for several documents, coloured by owning document."""
    if mode not in COMPARISON_MODES:
        raise ValueError(f"mode must be one of {COMPARISON_MODES}, got {mode!r}")
    if mode == "commonality":
        table = commonality_weights(doc_weights, min_freq=config.min_freq)
    else:
        table = comparison_weights(doc_weights, mode=mode, min_freq=config.min_freq)
    if not table.weights:
        raise EmptyInputError(f"no tokens left for a {mode} cloud")

    logger.info("Comparison cloud (%s) over %d documents: %d tokens", mode, len(table.documents), len(table.weights))
    colours = group_color_map(table.documents, config.group_palette) if table.groups else None
    # min_freq was already applied per document.
    filtered = replace(config, min_freq=0)
    return generate_cloud(
        table.weights,
        config=filtered,
        measurer=measurer,
        rng=rng,
        groups=table.groups or None,
        group_colors=colours,
    )
