"""CLI entrypoint for laying out a word cloud and writing it as HTML or PNG."""
from __future__ import annotations

import argparse
import json
import logging
from pathlib import Path
from typing import Iterable, Optional, Sequence

from litcloud_compare import COMPARISON_MODES, document_weights_from_texts, generate_comparison_cloud
from litcloud_core import (
    DEFAULT_PALETTE,
    DEFAULT_STOP_GROUPS,
    SIZE_SCALES,
    THEME_PRESETS,
    CloudResult,
    EmptyInputError,
    WordCloudConfig,
    generate_cloud_from_file,
    load_text,
    render_html,
)
from litcloud_layout import COLLISION_MODES, PillowMeasurer, render_png

logger = logging.getLogger("litcloud")


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Lay out a word cloud from a text or JSON file.")
    parser.add_argument("input_path", help="Path to the input text or JSON file.")
    parser.add_argument(
        "output_path",
        nargs="?",
        default="output/wordcloud.html",
        help="Destination file; .png renders an image, anything else HTML.",
    )
    parser.add_argument(
        "--compare",
        action="append",
        default=[],
        metavar="PATH",
        help="Another document to compare against the input (repeatable).",
    )
    parser.add_argument(
        "--compare-mode",
        choices=COMPARISON_MODES,
        default="dominant",
        help="How per-document weights are combined in a comparison cloud.",
    )
    parser.add_argument("--tfidf", action="store_true", help="Weight comparison documents by TF-IDF instead of counts.")
    parser.add_argument("--max-words", type=int, default=None, help="Maximum number of tokens to lay out.")
    parser.add_argument("--min-freq", type=float, default=None, help="Minimum weight a token needs (default 1, 0 with --tfidf).")
    parser.add_argument("--min-font", type=float, default=10.0, help="Smallest font size in pixels.")
    parser.add_argument("--max-font", type=float, default=90.0, help="Largest font size in pixels.")
    parser.add_argument("--scale", choices=SIZE_SCALES, default="linear", help="Weight to font size mapping.")
    parser.add_argument("--curve-power", type=float, default=0.75, help="Exponent of the rank size curve.")
    parser.add_argument("--ngram", type=int, choices=(1, 2, 3), default=1, help="Token n-gram length.")
    parser.add_argument("--lemmatize", action="store_true", help="Reduce tokens to WordNet lemmas (needs nltk).")
    parser.add_argument("--rot-per", type=float, default=0.1, help="Fraction of words rotated by 90 degrees.")
    parser.add_argument("--random-order", action="store_true", help="Randomise the spiral scan of each word.")
    parser.add_argument("--padding", type=int, default=2, help="Minimum gap between words in pixels.")
    parser.add_argument("--max-attempts", type=int, default=20000, help="Spiral probes per word before it is dropped.")
    parser.add_argument("--collision", choices=COLLISION_MODES, default="mask", help="Occupancy test used for overlap checks.")
    parser.add_argument("--seed", type=int, default=None, help="Seed for rotation and scan randomness.")
    parser.add_argument(
        "--disable-stop-group",
        action="append",
        choices=DEFAULT_STOP_GROUPS,
        default=[],
        help="Disable a built-in stopword group (can be specified multiple times).",
    )
    parser.add_argument(
        "--enable-stop-group",
        action="append",
        choices=DEFAULT_STOP_GROUPS,
        default=[],
        help="Ensure a stopword group is enabled (useful if you disabled all by default).",
    )
    parser.add_argument(
        "--extra-stop",
        action="append",
        default=[],
        help="Add a custom stopword (can be specified multiple times).",
    )
    parser.add_argument(
        "--remove-stop",
        action="append",
        default=[],
        help="Remove a word from the final stop list (can be specified multiple times).",
    )
    parser.add_argument(
        "--boost",
        action="append",
        default=[],
        metavar="PHRASE=FACTOR",
        help="Multiply the count of a word or two-word phrase (e.g. 'white whale=3').",
    )
    parser.add_argument(
        "--json-key",
        action="append",
        default=[],
        metavar="KEY",
        help="JSON key whose values should be treated as text (repeatable).",
    )
    parser.add_argument(
        "--json-all-strings",
        action="store_true",
        help="Collect every string value in the JSON payload (ignores --json-key).",
    )
    parser.add_argument(
        "--input-type",
        choices=["auto", "json", "text"],
        default="auto",
        help="Force the input to be treated as JSON or plain text.",
    )
    parser.add_argument(
        "--palette",
        type=str,
        default=None,
        help="Theme name or comma-delimited list of colour hex codes.",
    )
    parser.add_argument("--color-by-weight", action="store_true", help="Pick colours by weight instead of cycling.")
    parser.add_argument("--width", type=int, default=800, help="Canvas width in pixels.")
    parser.add_argument("--height", type=int, default=600, help="Canvas height in pixels.")
    parser.add_argument("--title", type=str, default="Word Cloud", help="HTML document title.")
    parser.add_argument("--heading", type=str, default=None, help="Heading text displayed above the canvas.")
    parser.add_argument("--font-path", type=str, default=None, help="TrueType font used for measuring and PNG output.")
    parser.add_argument(
        "--dump-json",
        type=Path,
        default=None,
        help="Optional path to dump the laid-out words as JSON alongside the output.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log layout details.")
    return parser.parse_args(argv)


def parse_palette(raw: str | None) -> Sequence[str]:
    if not raw:
        return DEFAULT_PALETTE
    lower = raw.strip().lower()
    if lower in THEME_PRESETS:
        return THEME_PRESETS[lower]
    colours = [colour.strip() for colour in raw.split(",") if colour.strip()]
    return colours or DEFAULT_PALETTE


def parse_boosts(entries: Iterable[str]) -> dict[str, float]:
    overrides: dict[str, float] = {}
    for entry in entries:
        if "=" not in entry:
            logger.warning("Ignoring boost without '=': %s", entry)
            continue
        phrase, value = entry.split("=", 1)
        phrase = phrase.strip().lower()
        try:
            overrides[phrase] = float(value)
        except ValueError:
            logger.warning("Ignoring boost with non-numeric factor: %s", entry)
            continue
    return overrides


def resolved_stop_groups(disabled: Iterable[str], enabled: Iterable[str]) -> set[str]:
    groups = set(DEFAULT_STOP_GROUPS)
    groups.difference_update(disabled)
    if enabled:
        groups.update(enabled)
    return groups


def build_config(args: argparse.Namespace) -> WordCloudConfig:
    min_freq = args.min_freq
    if min_freq is None:
        min_freq = 0 if args.tfidf else 1

    config = WordCloudConfig(
        enabled_stop_groups=resolved_stop_groups(args.disable_stop_group, args.enable_stop_group),
        extra_stopwords=set(word.lower() for word in args.extra_stop),
        remove_stopwords=set(word.lower() for word in args.remove_stop),
        ngram=args.ngram,
        lemmatize=args.lemmatize,
        boost_map=parse_boosts(args.boost),
        collect_all_json_strings=args.json_all_strings,
        max_words=args.max_words,
        min_freq=min_freq,
        scale_range=(args.min_font, args.max_font),
        size_scale=args.scale,
        size_curve_power=args.curve_power,
        canvas_size=(args.width, args.height),
        rotation_fraction=args.rot_per,
        random_order=args.random_order,
        padding=args.padding,
        max_attempts=args.max_attempts,
        collision=args.collision,
        seed=args.seed,
        color_palette=tuple(parse_palette(args.palette)),
        color_mode="weight" if args.color_by_weight else "cycle",
    )
    if args.json_key:
        config.json_text_keys = {word.lower() for word in args.json_key}
    return config


def build_cloud(
    args: argparse.Namespace, config: WordCloudConfig, measurer: Optional[PillowMeasurer] = None
) -> CloudResult:
    file_type = args.input_type if args.input_type != "auto" else None

    if not args.compare:
        result, _ = generate_cloud_from_file(args.input_path, config=config, file_type=file_type, measurer=measurer)
        return result

    texts = {}
    for path in [args.input_path, *args.compare]:
        texts[Path(path).stem] = load_text(path, config=config, file_type=file_type)
    doc_weights = document_weights_from_texts(texts, config=config, tfidf=args.tfidf)
    return generate_comparison_cloud(doc_weights, config=config, mode=args.compare_mode, measurer=measurer)


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    output_path = Path(args.output_path)

    for path in [args.input_path, *args.compare]:
        if not Path(path).exists():
            raise SystemExit(f"Input file not found: {path}")

    # PNG boxes are measured with the font render_png draws with.
    is_png = output_path.suffix.lower() == ".png"
    measurer = PillowMeasurer(args.font_path) if is_png or args.font_path else None

    config = build_config(args)
    try:
        config.validate()
        result = build_cloud(args, config, measurer)
    except EmptyInputError as exc:
        raise SystemExit(f"Nothing to draw: {exc}")
    except ValueError as exc:
        raise SystemExit(f"Invalid settings: {exc}")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    if is_png:
        render_png(result.layout, output_path, measurer=measurer)
    else:
        html = render_html(
            result.layout,
            title=args.title,
            heading=args.heading,
            download_name=output_path.with_suffix(".png").name,
        )
        output_path.write_text(html, encoding="utf-8")
    print(output_path)

    if args.dump_json:
        args.dump_json.parent.mkdir(parents=True, exist_ok=True)
        args.dump_json.write_text(json.dumps(result.to_dict(), indent=2), encoding="utf-8")


if __name__ == "__main__":
    main()
