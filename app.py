"""Flask application exposing word cloud layout as a JSON API."""
from __future__ import annotations

import json
import logging
import os
import time
from collections import Counter, OrderedDict
from pathlib import Path
from typing import Any, Dict, Iterable, Mapping, Optional, Sequence

from flask import Flask, jsonify, request
from werkzeug.utils import secure_filename

from litcloud_compare import COMPARISON_MODES, document_weights_from_texts, generate_comparison_cloud
from litcloud_core import (
    DEFAULT_STOP_GROUPS,
    STOP_GROUPS,
    THEME_PRESETS,
    CloudResult,
    EmptyInputError,
    WordCloudConfig,
    WordCountStat,
    generate_cloud_from_file,
    generate_cloud_from_text,
    render_html,
)

BASE_DIR = Path(__file__).resolve().parent
UPLOAD_DIR = BASE_DIR / "data" / "uploads"

logger = logging.getLogger(__name__)

app = Flask(__name__)

CACHE_ENABLED = os.environ.get("LITCLOUD_CACHE", "1").lower() not in {"0", "false", "no"}
CACHE_CAPACITY = max(1, int(os.environ.get("LITCLOUD_CACHE_MAX", "8") or 8))
TOKEN_CACHE: OrderedDict[tuple, Dict[str, object]] = OrderedDict()


def parse_stopword_groups(payload: Mapping[str, Any]) -> Iterable[str]:
    requested = payload.get("stopwordGroups")
    if requested is None:
        return DEFAULT_STOP_GROUPS
    allowed = set(STOP_GROUPS.keys())
    return [group for group in requested if group in allowed]


def parse_boosts(payload: Mapping[str, Any]) -> Dict[str, float]:
    boosts = payload.get("boosts", {})
    parsed: Dict[str, float] = {}
    if isinstance(boosts, Mapping):
        for key, value in boosts.items():
            try:
                parsed[str(key).lower()] = float(value)
            except (TypeError, ValueError):
                continue
    elif isinstance(boosts, Sequence):
        for item in boosts:
            if not isinstance(item, Mapping):
                continue
            phrase = str(item.get("phrase", "")).strip().lower()
            factor = item.get("factor")
            try:
                parsed[phrase] = float(factor)
            except (TypeError, ValueError):
                continue
    return parsed


def parse_manual_adjustments(payload: Mapping[str, Any]) -> Dict[str, float]:
    adjustments = payload.get("manualAdjustments", {})
    parsed: Dict[str, float] = {}
    if isinstance(adjustments, Mapping):
        for key, value in adjustments.items():
            key_str = str(key).strip()
            if not key_str:
                continue
            try:
                parsed[key_str] = float(value)
            except (TypeError, ValueError):
                continue
    return parsed


def parse_palette(value: Any, default: Sequence[str]) -> Sequence[str]:
    if isinstance(value, str):
        if value.lower() in THEME_PRESETS:
            return tuple(THEME_PRESETS[value.lower()])
        value = [colour.strip() for colour in value.split(",")]
    if isinstance(value, (list, tuple)):
        colours = tuple(str(colour) for colour in value if str(colour).strip())
        if colours:
            return colours
    return tuple(default)


def build_config(payload: Mapping[str, Any]) -> WordCloudConfig:
    defaults = WordCloudConfig()
    max_words = payload.get("maxWords")
    seed = payload.get("seed")
    config = WordCloudConfig(
        enabled_stop_groups=set(parse_stopword_groups(payload)),
        extra_stopwords={str(word).lower() for word in payload.get("extraStopwords", [])},
        remove_stopwords={str(word).lower() for word in payload.get("removeStopwords", [])},
        keep_short_extra={str(word).lower() for word in payload.get("keepShort", [])},
        ngram=int(payload.get("ngram", 1)),
        lemmatize=bool(payload.get("lemmatize", False)),
        max_words=int(max_words) if max_words is not None else None,
        min_freq=float(payload.get("minFreq", 1)),
        scale_range=(float(payload.get("minFont", 10)), float(payload.get("maxFont", 90))),
        size_scale=str(payload.get("scale", "linear")),
        size_curve_power=float(payload.get("curvePower", 0.75)),
        canvas_size=(int(payload.get("width", 800)), int(payload.get("height", 600))),
        rotation_fraction=float(payload.get("rotPer", 0.1)),
        random_order=bool(payload.get("randomOrder", False)),
        padding=int(payload.get("padding", 2)),
        max_attempts=int(payload.get("maxAttempts", defaults.max_attempts)),
        collision=str(payload.get("collision", "mask")),
        seed=int(seed) if seed is not None else None,
        color_palette=parse_palette(payload.get("palette"), defaults.color_palette),
        group_palette=parse_palette(payload.get("groupPalette"), defaults.group_palette),
        color_mode=str(payload.get("colorMode", "cycle")),
        collect_all_json_strings=bool(payload.get("collectAllJsonStrings", False)),
    )

    boosts = parse_boosts(payload)
    if boosts:
        config.boost_map.update(boosts)

    json_keys = payload.get("jsonKeys")
    if isinstance(json_keys, (list, tuple, set)):
        config.json_text_keys = {str(key).lower() for key in json_keys if str(key).strip()}
    elif isinstance(json_keys, str) and json_keys.strip():
        config.json_text_keys = {segment.strip().lower() for segment in json_keys.split(",") if segment.strip()}

    manual_adjustments = parse_manual_adjustments(payload)
    if manual_adjustments:
        config.manual_weight_adjustments = manual_adjustments
    return config


def build_token_cache_key(path: Path, file_type: str, config: WordCloudConfig) -> tuple:
    stat = path.stat()
    stopwords_key = tuple(sorted(config.stopwords()))
    keep_key = tuple(sorted(config.keep_short()))
    json_keys = tuple(sorted(config.json_text_keys)) if config.json_text_keys else ()
    return (
        str(path),
        file_type,
        int(stat.st_mtime_ns),
        stopwords_key,
        keep_key,
        config.min_token_length,
        config.ngram,
        config.lemmatize,
        config.collect_all_json_strings,
        json_keys,
    )


def get_cached_prepared(
    path: Path, file_type: str, config: WordCloudConfig
) -> tuple[Optional[tuple], Optional[Dict[str, object]]]:
    if not CACHE_ENABLED:
        return None, None
    try:
        key = build_token_cache_key(path, file_type, config)
    except OSError:
        return None, None
    entry = TOKEN_CACHE.get(key)
    if entry is not None:
        TOKEN_CACHE.move_to_end(key)
        return key, entry
    return key, None


def store_cache_entry(cache_key: Optional[tuple], entry: Dict[str, object]) -> None:
    if not CACHE_ENABLED or cache_key is None:
        return
    if "tokens" not in entry:
        return
    TOKEN_CACHE[cache_key] = entry
    TOKEN_CACHE.move_to_end(cache_key)
    while len(TOKEN_CACHE) > CACHE_CAPACITY:
        TOKEN_CACHE.popitem(last=False)


def build_analysis_payload(stats: Dict[str, WordCountStat], result: CloudResult) -> Dict[str, Any]:
    sorted_stats = sorted(stats.values(), key=lambda stat: stat.final_count, reverse=True)
    words_payload = [
        {
            "text": stat.key,
            "baseCount": stat.base_count,
            "bigramCount": stat.bigram_count,
            "boostMultiplier": stat.boost_multiplier,
            "manualAdjustment": stat.manual_adjustment,
            "finalCount": stat.final_count,
        }
        for stat in sorted_stats
    ]
    total_tokens = sum(stat.base_count for stat in stats.values())
    return {
        "totalTokens": int(total_tokens),
        "uniqueTokens": len(stats),
        "placedCount": len(result.placed),
        "droppedCount": len(result.dropped),
        "words": words_payload,
    }


def cloud_payload(result: CloudResult, payload: Mapping[str, Any]) -> Dict[str, Any]:
    body: Dict[str, Any] = {
        "width": result.layout.canvas_size[0],
        "height": result.layout.canvas_size[1],
        "words": [word.to_dict() for word in result.placed],
        "dropped": list(result.dropped),
    }
    if payload.get("returnHtml"):
        body["html"] = render_html(
            result.layout,
            title=str(payload.get("title", "Word Cloud")),
            heading=payload.get("heading"),
        )
    return body


def resolve_input_path(path_str: str) -> Path:
    candidate = (BASE_DIR / path_str).resolve() if not Path(path_str).is_absolute() else Path(path_str).resolve()
    if BASE_DIR not in candidate.parents and candidate != BASE_DIR:
        raise ValueError("Input path must stay within the project directory")
    if not candidate.exists():
        raise FileNotFoundError(candidate)
    return candidate


def request_payload() -> Dict[str, Any]:
    if request.mimetype == "application/json":
        return request.get_json(silent=True) or {}
    form = request.form.to_dict(flat=True)
    if "config" in form:
        try:
            payload = json.loads(form.pop("config"))
        except json.JSONDecodeError:
            payload = {}
        payload.update(form)
        return payload
    return form


@app.errorhandler(EmptyInputError)
def handle_empty_input(exc: EmptyInputError) -> Any:
    return jsonify({"error": str(exc)}), 422


@app.get("/api/options")
def options() -> Any:
    return jsonify({
        "stopGroups": list(STOP_GROUPS.keys()),
        "themes": {name: list(colours) for name, colours in THEME_PRESETS.items()},
        "compareModes": list(COMPARISON_MODES),
    })


@app.post("/api/upload")
def upload() -> Any:
    if "file" not in request.files:
        return jsonify({"error": "No file part"}), 400
    file = request.files["file"]
    if not file or file.filename == "":
        return jsonify({"error": "No selected file"}), 400

    UPLOAD_DIR.mkdir(parents=True, exist_ok=True)
    filename = secure_filename(file.filename) or f"upload-{int(time.time())}.txt"
    timestamp = int(time.time())
    stored_name = f"{timestamp}-{filename}"
    destination = UPLOAD_DIR / stored_name
    file.save(destination)
    logger.info("Stored upload %s as %s", filename, destination)

    relative_path = destination.relative_to(BASE_DIR)
    return jsonify({
        "inputPath": str(relative_path),
        "filename": filename,
        "stored": str(destination),
    })


@app.post("/api/generate")
def generate() -> Any:
    payload = request_payload()
    text = payload.get("text")
    input_path = payload.get("inputPath")
    if not text and not input_path:
        return jsonify({"error": "text or inputPath missing"}), 400

    try:
        config = build_config(payload)
        config.validate()
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    if text:
        result, stats = generate_cloud_from_text(str(text), config=config)
        return jsonify({**cloud_payload(result, payload), "analysis": build_analysis_payload(stats, result)})

    try:
        path = resolve_input_path(str(input_path))
    except FileNotFoundError:
        return jsonify({"error": f"Input file not found: {input_path}"}), 404
    except ValueError as exc:
        return jsonify({"error": str(exc)}), 400

    file_type = str(payload.get("fileType", "auto")).lower()
    if file_type not in {"auto", "json", "text"}:
        file_type = "auto"
    if file_type == "auto":
        file_type = None
    resolved_kind = file_type or ("json" if path.suffix.lower() == ".json" else "text")

    use_cache = CACHE_ENABLED and not bool(payload.get("skipCache"))
    cache_key: Optional[tuple] = None
    prepared_entry: Optional[Dict[str, object]] = None
    if use_cache:
        cache_key, prepared_entry = get_cached_prepared(path, resolved_kind, config)
        if prepared_entry is None:
            prepared_entry = {}

    result, stats = generate_cloud_from_file(path, config=config, file_type=file_type, prepared=prepared_entry)

    if use_cache and prepared_entry is not None:
        store_cache_entry(cache_key, prepared_entry)

    return jsonify({**cloud_payload(result, payload), "analysis": build_analysis_payload(stats, result)})


@app.post("/api/compare")
def compare() -> Any:
    payload = request.get_json(silent=True) or {}
    documents = payload.get("documents")
    if not isinstance(documents, Mapping) or not documents:
        return jsonify({"error": "documents must map names to text"}), 400

    mode = str(payload.get("mode", "dominant"))
    if mode not in COMPARISON_MODES:
        return jsonify({"error": f"unknown mode: {mode}"}), 400

    tfidf = bool(payload.get("tfidf"))
    try:
        config = build_config(payload)
        if tfidf and "minFreq" not in payload:
            config.min_freq = 0
        config.validate()
    except (TypeError, ValueError) as exc:
        return jsonify({"error": str(exc)}), 400

    texts = {str(name): str(body) for name, body in documents.items()}
    doc_weights = document_weights_from_texts(texts, config=config, tfidf=tfidf)
    result = generate_comparison_cloud(doc_weights, config=config, mode=mode)
    body = cloud_payload(result, payload)
    body["documents"] = list(texts.keys())
    body["groupCounts"] = dict(Counter(word.group for word in result.placed if word.group))
    return jsonify(body)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    app.run(debug=True)
