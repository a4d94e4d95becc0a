"""Core utilities for turning literary text into laid-out word cloud data."""
from __future__ import annotations

import collections
import html
import json
import logging
import math
import re
import warnings
from collections.abc import Mapping as MappingABC, Sequence as SequenceABC
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Set, Tuple, Union

import numpy as np

from litcloud_layout import (
    COLLISION_MODES,
    LayoutResult,
    PlacedWord,
    TextMeasurer,
    layout_words,
)

logger = logging.getLogger(__name__)


class EmptyInputError(ValueError):
    """No tokens survived filtering, so there is nothing to lay out."""


class CanvasExhaustedWarning(UserWarning):
    """Some tokens could not be placed on the canvas."""


BASE_STOP = set("""a about above after again against all am an and any are as at be because been before being below
between both but by can did do does doing down during each few for from further had has have having he her here hers
herself him himself his how i if in into is it its itself just let me more most my myself no nor not of off on once only
or other our ours ourselves out over own same she should so some such than that the their theirs them themselves then
there these they this those through to too under until up very was we were what when where which while who whom why will
with you your yours yourself yourselves would could upon""".split())

CONTRACTIONS = {
    "dont","doesnt","didnt","isnt","arent","wasnt","werent",
    "cant","couldnt","shouldnt","wouldnt","wont",
    "im","ive","youre","weve","theyre","thats",
    "ill","youll","theyll","hes","shes","tis","twas",
    "ve","re","ll","d","m","s","t",
}

ARCHAIC = {
    "thee","thou","thy","thine","ye","hath","doth","hast","dost","art","shalt","wilt","wouldst","couldst",
    "shouldst","hither","thither","whither","whence","thence","hence","ere","oft","nay","yea","aye",
}

FILLERS = {
    "really","quite","bit","lot","maybe","perhaps","sort","kind","thing","things","like","well","just","still","also",
    "yes","ok","okay","oh","ah","please","much","many","little","first","last","next","even","ever","never",
}

BOILERPLATE = {
    "project","gutenberg","ebook","ebooks","etext","license","licence","copyright","trademark","donate","donation",
    "archive","foundation","chapter","volume","contents","illustration","transcriber","produced","www","http","https",
}

DIALOGUE = {
    "said","says","say","replied","asked","cried","answered","exclaimed","went","came","come","go","get","got",
    "one","two","upon","now","made","make","know","see","shall","may","might","must","us","mr","mrs","miss",
}

KEEP_SHORT = {"god","sea","war","love","eye","man","sun","joy","sin","art"}

STOP_GROUPS: Mapping[str, Set[str]] = {
    "base": BASE_STOP,
    "contractions": CONTRACTIONS,
    "archaic": ARCHAIC,
    "fillers": FILLERS,
    "boilerplate": BOILERPLATE,
    "dialogue": DIALOGUE,
}

DEFAULT_STOP_GROUPS: Tuple[str, ...] = tuple(STOP_GROUPS.keys())

THEME_PRESETS: Mapping[str, Sequence[str]] = {
    "muted": (
        "#0f172a","#334155","#475569","#64748b","#94a3b8",
        "#0b3d3a","#116a63","#2a8c82","#7fb3ad",
        "#4a5b3f","#6b7f5a","#8fa37b",
        "#6b5e57","#8a7a70",
        "#5b5b7a","#7a7aa0",
    ),
    "dark2": (
        "#1b9e77","#d95f02","#7570b3","#e7298a","#66a61e","#e6ab02","#a6761d","#666666",
    ),
    "forest": (
        "#102418","#1f3f2b","#325c3b","#4a7d4d","#6a9f5f","#8fc172",
    ),
    "sunrise": (
        "#1c1a4a","#3b3170","#6d3f9f","#a54bb7","#d855a8","#f26a7f","#ffa86e",
    ),
    "grayscale": (
        "#0f172a","#1f2937","#374151","#4b5563","#6b7280","#9ca3af",
    ),
    "ocean": (
        "#0b1f3a","#123c69","#1c5a8f","#2877b5","#3495db","#3fb3ff",
    ),
}

DEFAULT_PALETTE: Sequence[str] = tuple(THEME_PRESETS["muted"])
DEFAULT_GROUP_PALETTE: Sequence[str] = tuple(THEME_PRESETS["dark2"])
DEFAULT_JSON_KEYS: Tuple[str, ...] = (
    "plaintext",
    "text",
    "body",
    "content",
    "chapter",
    "paragraphs",
)

DEFAULT_WEIGHT_BREAKS: Tuple[Tuple[float, str], ...] = (
    (0.04, "900"),
    (0.12, "800"),
    (0.30, "700"),
    (0.60, "600"),
)

SIZE_SCALES: Tuple[str, ...] = ("linear", "log", "rank")
COLOR_MODES: Tuple[str, ...] = ("cycle", "weight")

Lemmatizer = Callable[[str], str]
WeightItems = Union[Mapping[str, float], Iterable[str], Iterable[Tuple[str, float]]]


@dataclass
class WordCloudConfig:
    """Configuration for tokenising, weighting, sizing and laying out a cloud."""

    enabled_stop_groups: Set[str] = field(default_factory=lambda: set(DEFAULT_STOP_GROUPS))
    extra_stopwords: Set[str] = field(default_factory=set)
    remove_stopwords: Set[str] = field(default_factory=set)
    keep_short_extra: Set[str] = field(default_factory=set)
    min_token_length: int = 3
    ngram: int = 1
    lemmatize: bool = False
    boost_map: Dict[str, float] = field(default_factory=dict)
    manual_weight_adjustments: Dict[str, float] = field(default_factory=dict)
    json_text_keys: Optional[Set[str]] = None
    collect_all_json_strings: bool = False

    max_words: Optional[int] = None
    min_freq: float = 1

    scale_range: Tuple[float, float] = (10.0, 90.0)
    size_scale: str = "linear"
    size_curve_power: float = 0.75
    weight_breaks: Tuple[Tuple[float, str], ...] = DEFAULT_WEIGHT_BREAKS

    canvas_size: Tuple[int, int] = (800, 600)
    rotation_fraction: float = 0.1
    random_order: bool = False
    padding: int = 2
    max_attempts: int = 20000
    spiral_theta_step: float = 0.1
    spiral_spacing: float = 4.0
    collision: str = "mask"
    seed: Optional[int] = None

    color_palette: Sequence[str] = field(default_factory=lambda: tuple(DEFAULT_PALETTE))
    group_palette: Sequence[str] = field(default_factory=lambda: tuple(DEFAULT_GROUP_PALETTE))
    color_mode: str = "cycle"

    def stopwords(self) -> Set[str]:
        stopwords: Set[str] = set()
        for name in self.enabled_stop_groups:
            stopwords.update(STOP_GROUPS.get(name, set()))
        stopwords.update(word.strip().lower() for word in self.extra_stopwords if word.strip())
        stopwords.difference_update(word.strip().lower() for word in self.remove_stopwords if word.strip())
        return stopwords

    def keep_short(self) -> Set[str]:
        keep: Set[str] = set(KEEP_SHORT)
        keep.update(word.strip().lower() for word in self.keep_short_extra if word.strip())
        return keep

    def resolved_json_keys(self) -> Set[str]:
        if self.collect_all_json_strings:
            return set()
        if self.json_text_keys:
            return {word.strip().lower() for word in self.json_text_keys if word.strip()}
        return {key.lower() for key in DEFAULT_JSON_KEYS}

    def rng(self) -> np.random.Generator:
        return np.random.default_rng(self.seed)

    def validate(self) -> None:
        if self.max_words is not None and self.max_words < 1:
            raise ValueError(f"max_words must be at least 1, got {self.max_words}")
        if self.min_freq < 0:
            raise ValueError(f"min_freq must be non-negative, got {self.min_freq}")
        validate_scale_range(self.scale_range)
        if self.size_scale not in SIZE_SCALES:
            raise ValueError(f"size_scale must be one of {SIZE_SCALES}, got {self.size_scale!r}")
        if not 0.0 <= self.rotation_fraction <= 1.0:
            raise ValueError(f"rotation_fraction must be within [0, 1], got {self.rotation_fraction}")
        width, height = self.canvas_size
        if width <= 0 or height <= 0:
            raise ValueError(f"canvas_size must be positive, got {width}x{height}")
        if self.collision not in COLLISION_MODES:
            raise ValueError(f"collision must be one of {COLLISION_MODES}, got {self.collision!r}")
        if self.color_mode not in COLOR_MODES:
            raise ValueError(f"color_mode must be one of {COLOR_MODES}, got {self.color_mode!r}")
        if self.ngram not in (1, 2, 3):
            raise ValueError(f"ngram must be 1, 2 or 3, got {self.ngram}")
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")
        if self.spiral_theta_step <= 0 or self.spiral_spacing <= 0:
            raise ValueError("spiral step and spacing must be positive")
        if not self.color_palette:
            raise ValueError("color_palette must contain at least one colour")


@dataclass
class WordCountStat:
    key: str
    base_count: int
    bigram_count: int
    boost_multiplier: float
    manual_adjustment: float
    final_count: int


@dataclass
class CloudResult:
    layout: LayoutResult
    frequencies: Dict[str, float]
    sizes: Dict[str, float]

    @property
    def placed(self) -> List[PlacedWord]:
        return self.layout.placed

    @property
    def dropped(self) -> List[str]:
        return self.layout.dropped

    def to_dict(self) -> Dict[str, object]:
        payload = self.layout.to_dict()
        payload["frequencies"] = {key: float(value) for key, value in self.frequencies.items()}
        return payload


def split_weird_token(token: str) -> List[str]:
    adjusted = re.sub(r"([a-z])([A-Z])", r"\1 \2", token)
    adjusted = re.sub(r"([a-z])([0-9])", r"\1 \2", adjusted)
    adjusted = re.sub(r"([0-9])([a-z])", r"\1 \2", adjusted)
    return [piece for piece in adjusted.split() if piece]


def tokenize_text(body: str, *, stopwords: Set[str], keep_short: Set[str], min_length: int) -> List[str]:
    # Camel-case splitting has to see the original casing.
    raw_tokens: List[str] = []
    for token in body.split():
        raw_tokens.extend(split_weird_token(token))

    text = " ".join(raw_tokens).lower()
    text = re.sub(r"https?://\S+|www\.\S+", " ", text)
    text = re.sub(r"[_*`~^<>|\\]", " ", text)
    text = re.sub(r"\[[^\]]*\]\([^)]+\)", " ", text)
    text = text.replace("’", "'").replace("‘", "'")
    text = re.sub(r"[^a-z0-9\s\'-]", " ", text)
    text = re.sub(r"\s+", " ", text).strip()

    cleaned: List[str] = []
    for token in text.split():
        token = token.strip("-'")
        if token.endswith("'s"):
            token = token[:-2]
        token = token.replace("'", "")
        if not token:
            continue
        if token in stopwords:
            continue
        if not re.fullmatch(r"[a-z]+", token):
            continue
        if len(token) < min_length and token not in keep_short:
            continue
        cleaned.append(token)
    return cleaned


def ngrams(tokens: Sequence[str], n: int) -> List[str]:
    if n < 1:
        raise ValueError(f"n must be positive, got {n}")
    if n == 1:
        return list(tokens)
    return [" ".join(tokens[i:i + n]) for i in range(len(tokens) - n + 1)]


_lemmatizer: Optional[Lemmatizer] = None


def wordnet_lemmatizer() -> Lemmatizer:
    """NLTK's WordNet lemmatiser, downloading the corpus on first use."""
    global _lemmatizer
    if _lemmatizer is None:
        import nltk
        from nltk.stem import WordNetLemmatizer

        try:
            nltk.data.find("corpora/wordnet")
        except LookupError:
            logger.info("Downloading WordNet corpus for lemmatisation")
            nltk.download("wordnet", quiet=True)
        _lemmatizer = WordNetLemmatizer().lemmatize
    return _lemmatizer


def lemmatize_tokens(tokens: Iterable[str], lemmatizer: Lemmatizer) -> List[str]:
    return [lemmatizer(token) for token in tokens]


def extract_tokens(text: str, *, config: WordCloudConfig, lemmatizer: Optional[Lemmatizer] = None) -> List[str]:
    tokens = tokenize_text(
        text,
        stopwords=config.stopwords(),
        keep_short=config.keep_short(),
        min_length=config.min_token_length,
    )
    if config.lemmatize or lemmatizer is not None:
        tokens = lemmatize_tokens(tokens, lemmatizer or wordnet_lemmatizer())
    return ngrams(tokens, config.ngram)


def compute_word_weights(
    tokens: Sequence[str],
    *,
    boost_map: Mapping[str, float],
    manual_adjustments: Optional[Mapping[str, float]] = None,
) -> tuple[Dict[str, int], Dict[str, WordCountStat]]:
    base_counts = collections.Counter(tokens)
    counts = base_counts.copy()

    bigrams = collections.Counter()
    for left, right in zip(tokens, tokens[1:]):
        phrase = f"{left} {right}"
        if phrase in boost_map:
            bigrams[phrase] += 1
            counts[phrase] = counts.get(phrase, 0) + 1

    manual_adjustments = manual_adjustments or {}
    final_counts: Dict[str, int] = dict(counts)
    stats: Dict[str, WordCountStat] = {}

    all_keys = list(final_counts.keys())
    all_keys.extend(str(key) for key in manual_adjustments.keys() if str(key) not in final_counts)

    for key in all_keys:
        base = base_counts.get(key, 0)
        bigram_count = bigrams.get(key, 0)
        current = final_counts.get(key, 0)
        lowered = key.lower()
        boost_multiplier = float(boost_map.get(lowered, 1.0))
        if boost_multiplier != 1.0:
            current = int(round(current * boost_multiplier))

        manual_adjustment = float(
            manual_adjustments.get(key, manual_adjustments.get(lowered, 0.0))
        )
        if manual_adjustment:
            current = max(0, int(round(current + manual_adjustment)))

        final_counts[key] = current
        stats[key] = WordCountStat(
            key=key,
            base_count=base,
            bigram_count=bigram_count,
            boost_multiplier=boost_multiplier,
            manual_adjustment=manual_adjustment,
            final_count=current,
        )

    return final_counts, stats


def build_frequency_table(
    items: WeightItems,
    *,
    max_words: Optional[int] = None,
    min_freq: float = 1,
) -> Dict[str, float]:
    """Aggregate tokens or (token, weight) pairs into a ranked weight table.

    The result is ordered by descending weight with ties in first-appearance
    order, filtered to ``weight >= min_freq`` and capped at ``max_words``.
    Raises ``EmptyInputError`` when nothing survives.
    """
    totals: Dict[str, float] = {}
    if isinstance(items, MappingABC):
        pairs: Iterable = items.items()
    else:
        pairs = items

    for item in pairs:
        if isinstance(item, str):
            token, weight = item, 1.0
        else:
            token, weight = item
            weight = float(weight)
        if weight < 0 or math.isnan(weight):
            raise ValueError(f"weight for {token!r} must be non-negative, got {weight}")
        totals[token] = totals.get(token, 0.0) + weight

    ranked = sorted(
        ((token, weight) for token, weight in totals.items() if weight >= min_freq),
        key=lambda pair: pair[1],
        reverse=True,
    )
    if max_words is not None:
        ranked = ranked[:max_words]
    if not ranked:
        raise EmptyInputError("no tokens left after frequency filtering")
    return dict(ranked)


def validate_scale_range(scale_range: Sequence[float]) -> Tuple[float, float]:
    if len(scale_range) != 2:
        raise ValueError(f"scale_range needs exactly two values, got {scale_range!r}")
    low, high = float(scale_range[0]), float(scale_range[1])
    if low <= 0 or high <= 0:
        raise ValueError(f"scale_range values must be positive, got {scale_range!r}")
    if low > high:
        raise ValueError(f"scale_range must be (min, max), got {scale_range!r}")
    return low, high


def map_sizes(
    weights: Mapping[str, float],
    *,
    scale_range: Sequence[float],
    scale: str = "linear",
    curve_power: float = 0.75,
) -> Dict[str, float]:
    """Interpolate a font size for each token between the scale bounds."""
    low, high = validate_scale_range(scale_range)
    if scale not in SIZE_SCALES:
        raise ValueError(f"scale must be one of {SIZE_SCALES}, got {scale!r}")
    if not weights:
        return {}

    tokens = list(weights.keys())
    values = np.array([float(weights[token]) for token in tokens], dtype=float)
    if values.max() == values.min():
        return {token: (low + high) / 2.0 for token in tokens}

    if scale == "rank":
        # Ties share the rank of their first occurrence in descending order.
        order = np.argsort(-values, kind="stable")
        ranks = np.empty(len(values), dtype=float)
        previous = None
        for position, index in enumerate(order):
            if previous is None or values[index] != previous[1]:
                previous = (position, values[index])
            ranks[index] = previous[0]
        curve = 1.0 - (ranks / max(len(values) - 1, 1)) ** curve_power
    else:
        if scale == "log":
            values = np.log1p(values)
        curve = (values - values.min()) / (values.max() - values.min())

    sizes = low + (high - low) * curve
    return {token: float(size) for token, size in zip(tokens, sizes)}


def font_weight_for(rank: int, total: int, breaks: Sequence[Tuple[float, str]]) -> str:
    if total <= 1:
        return "600"
    fraction = rank / max(total - 1, 1)
    for threshold, weight in breaks:
        if fraction < threshold:
            return weight
    return "500"


def assign_colors(
    placed: Sequence[PlacedWord],
    *,
    palette: Sequence[str],
    mode: str = "cycle",
    group_colors: Optional[Mapping[str, str]] = None,
) -> List[PlacedWord]:
    """Return copies of the placed words with a colour filled in.

    ``cycle`` walks the palette in placement order; ``weight`` maps the
    heaviest words to the first palette entry. Words with a group take their
    group's colour.
    """
    if not placed:
        return []
    top_weight = max(word.weight for word in placed) or 1.0
    count = len(palette)
    coloured = []
    for index, word in enumerate(placed):
        if group_colors and word.group is not None and word.group in group_colors:
            colour = group_colors[word.group]
        elif mode == "weight":
            bucket = min(int(math.ceil(count * word.weight / top_weight)), count) - 1
            colour = palette[count - 1 - max(0, bucket)]
        else:
            colour = palette[index % count]
        coloured.append(replace(word, color=colour))
    return coloured


def group_color_map(groups: Sequence[str], palette: Sequence[str]) -> Dict[str, str]:
    return {group: palette[index % len(palette)] for index, group in enumerate(groups)}


def report_dropped(layout: LayoutResult) -> None:
    if not layout.dropped:
        return
    message = (
        f"{len(layout.dropped)} word(s) did not fit on the "
        f"{layout.canvas_size[0]}x{layout.canvas_size[1]} canvas: "
        + ", ".join(layout.dropped[:10])
        + (" ..." if len(layout.dropped) > 10 else "")
    )
    logger.warning(message)
    warnings.warn(message, CanvasExhaustedWarning, stacklevel=3)


def generate_cloud(
    items: WeightItems,
    *,
    config: WordCloudConfig,
    measurer: Optional[TextMeasurer] = None,
    rng: Optional[np.random.Generator] = None,
    groups: Optional[Mapping[str, str]] = None,
    group_colors: Optional[Mapping[str, str]] = None,
) -> CloudResult:
    config.validate()
    frequencies = build_frequency_table(items, max_words=config.max_words, min_freq=config.min_freq)
    sizes = map_sizes(
        frequencies,
        scale_range=config.scale_range,
        scale=config.size_scale,
        curve_power=config.size_curve_power,
    )
    layout = layout_words(
        sizes,
        canvas_size=config.canvas_size,
        weights=frequencies,
        groups=groups,
        measurer=measurer,
        rng=rng if rng is not None else config.rng(),
        rotation_fraction=config.rotation_fraction,
        random_order=config.random_order,
        padding=config.padding,
        max_attempts=config.max_attempts,
        theta_step=config.spiral_theta_step,
        spacing=config.spiral_spacing,
        collision=config.collision,
    )
    layout.placed = assign_colors(
        layout.placed,
        palette=config.color_palette,
        mode=config.color_mode,
        group_colors=group_colors,
    )
    report_dropped(layout)
    return CloudResult(layout=layout, frequencies=frequencies, sizes=sizes)


def prepare_word_data(
    text: str,
    *,
    config: WordCloudConfig,
    tokens: Optional[Sequence[str]] = None,
) -> tuple[Dict[str, int], Dict[str, WordCountStat], List[str]]:
    if tokens is None:
        tokens = extract_tokens(text, config=config)
    weights, stats = compute_word_weights(
        list(tokens),
        boost_map=config.boost_map,
        manual_adjustments=config.manual_weight_adjustments,
    )
    return weights, stats, list(tokens)


def generate_cloud_from_tokens(
    tokens: Sequence[str],
    *,
    config: WordCloudConfig,
    measurer: Optional[TextMeasurer] = None,
) -> tuple[CloudResult, Dict[str, WordCountStat]]:
    weights, stats, _ = prepare_word_data("", config=config, tokens=tokens)
    return generate_cloud(weights, config=config, measurer=measurer), stats


def generate_cloud_from_text(
    text: str,
    *,
    config: WordCloudConfig,
    measurer: Optional[TextMeasurer] = None,
) -> tuple[CloudResult, Dict[str, WordCountStat]]:
    weights, stats, _ = prepare_word_data(text, config=config)
    return generate_cloud(weights, config=config, measurer=measurer), stats


def _iter_json_strings(value: object, *, keys: Set[str], collect_all: bool, include: bool = False) -> Iterable[str]:
    if isinstance(value, str):
        if collect_all or include or not keys:
            yield value
        return

    if isinstance(value, MappingABC):
        for raw_key, child in value.items():
            key_lower = str(raw_key).lower()
            child_include = collect_all or key_lower in keys or include
            yield from _iter_json_strings(child, keys=keys, collect_all=collect_all, include=child_include)
        return

    if isinstance(value, SequenceABC) and not isinstance(value, (str, bytes, bytearray)):
        for child in value:
            yield from _iter_json_strings(child, keys=keys, collect_all=collect_all, include=include)


def extract_text_from_json_payload(payload: object, *, config: WordCloudConfig) -> str:
    keys = config.resolved_json_keys()
    strings = list(_iter_json_strings(payload, keys=keys, collect_all=config.collect_all_json_strings))
    return " \n".join(s for s in strings if s)


def load_text(path: Path | str, *, config: WordCloudConfig, file_type: Optional[str] = None) -> str:
    target = Path(path)
    kind = (file_type or "auto").lower()
    if kind not in {"auto", "json", "text"}:
        kind = "auto"
    if kind == "auto":
        kind = "json" if target.suffix.lower() == ".json" else "text"

    if kind == "json":
        with target.open("r", encoding="utf-8") as infile:
            payload = json.load(infile)
        return extract_text_from_json_payload(payload, config=config)
    return target.read_text(encoding="utf-8")


def generate_cloud_from_file(
    path: Path | str,
    *,
    config: WordCloudConfig,
    file_type: Optional[str] = None,
    prepared: Optional[Dict[str, object]] = None,
    measurer: Optional[TextMeasurer] = None,
) -> tuple[CloudResult, Dict[str, WordCountStat]]:
    """Build a cloud from a text or JSON file.

    ``prepared`` is an optional cache entry: when it already holds ``tokens``
    the file is not re-read, and when it is an empty dict it is filled in.
    """
    tokens = prepared.get("tokens") if prepared else None
    if tokens is not None:
        return generate_cloud_from_tokens(tokens, config=config, measurer=measurer)  # type: ignore[arg-type]

    text = load_text(path, config=config, file_type=file_type)
    tokens = extract_tokens(text, config=config)
    if prepared is not None:
        prepared["tokens"] = list(tokens)
    return generate_cloud_from_tokens(tokens, config=config, measurer=measurer)


HTML_TEMPLATE = """<!DOCTYPE html>
<html lang=\"en\">
<head>
<meta charset=\"utf-8\"/>
<meta name=\"viewport\" content=\"width=device-width, initial-scale=1\"/>
<title>{title}</title>
<style>
  :root {{ --bg:{background}; --border:#e6e6ea; --text:#111827; }}
  html, body {{ height:100%; }}
  body {{ margin:0; background:#ffffff; color:var(--text); font-family: ui-sans-serif, system-ui, -apple-system, \"Segoe UI\", Roboto, Helvetica, Arial; }}
  header {{ padding:12px 16px; font-weight:700; letter-spacing:.2px; }}
  #wrap {{ display:flex; flex-direction:column; align-items:center; gap:10px; padding:10px; }}
  canvas {{ border:1px solid var(--border); background:var(--bg); width:100%; height:auto; max-width:{max_width}px; }}
  .controls {{ display:flex; gap:8px; align-items:center; flex-wrap:wrap; }}
  button {{ padding:8px 12px; border-radius:10px; border:1px solid var(--border); background:#f8fafc; cursor:pointer; font-weight:600; }}
  button:hover {{ background:#eef2f7; }}
  .legend {{ font-size:12px; opacity:.75; }}
</style>
</head>
<body>
  <div id=\"wrap\">
    <header>{heading}</header>
    <div class=\"controls\">
      <button id=\"download\">Download PNG</button>
      <span id=\"status\" class=\"legend\">{status}</span>
    </div>
    <canvas id=\"cloud\" width=\"{width}\" height=\"{height}\"></canvas>
  </div>

  <script>
    const words = {words_js};
    const canvas = document.getElementById('cloud');
    const ctx = canvas.getContext('2d');
    const fontFamily = {font_family_js};

    ctx.clearRect(0, 0, canvas.width, canvas.height);
    ctx.textAlign = "center";
    ctx.textBaseline = "middle";
    words.forEach((d) => {{
      ctx.save();
      ctx.translate(d.x + d.width / 2, d.y + d.height / 2);
      ctx.rotate(-d.rotation * Math.PI / 180);
      ctx.font = `${{d.weight}} ${{d.size}}px ${{fontFamily}}`;
      ctx.fillStyle = d.color;
      ctx.fillText(d.text, 0, 0);
      ctx.restore();
    }});

    document.getElementById('download').addEventListener('click', () => {{
      const url = canvas.toDataURL("image/png");
      const a = document.createElement('a');
      a.href = url;
      a.download = {download_js};
      document.body.appendChild(a);
      a.click();
      document.body.removeChild(a);
    }});
  </script>
</body>
</html>
"""


def html_words(placed: Sequence[PlacedWord], *, breaks: Sequence[Tuple[float, str]] = DEFAULT_WEIGHT_BREAKS) -> List[Dict[str, object]]:
    total = len(placed)
    return [
        {
            "text": word.text,
            "x": word.x,
            "y": word.y,
            "width": word.width,
            "height": word.height,
            "rotation": word.rotation,
            "size": round(word.font_size, 2),
            "weight": font_weight_for(rank, total, breaks),
            "color": word.color or "#111827",
        }
        for rank, word in enumerate(placed)
    ]


def render_html(
    layout: LayoutResult,
    *,
    title: str = "Word Cloud",
    heading: str | None = None,
    background: str = "#ffffff",
    font_family: str = "Georgia, 'Times New Roman', serif",
    breaks: Sequence[Tuple[float, str]] = DEFAULT_WEIGHT_BREAKS,
    download_name: str = "wordcloud.png",
) -> str:
    width, height = layout.canvas_size
    status = f"Rendered • {len(layout.placed)} items"
    if layout.dropped:
        status += f" • {len(layout.dropped)} dropped"
    return HTML_TEMPLATE.format(
        words_js=json.dumps(html_words(layout.placed, breaks=breaks)),
        width=width,
        height=height,
        max_width=width,
        title=html.escape(title),
        heading=html.escape(heading or title),
        background=background,
        status=status,
        font_family_js=json.dumps(font_family),
        download_js=json.dumps(download_name),
    )
