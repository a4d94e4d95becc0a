"""Tests for tokenising, n-grams, weighting and the text pipeline."""

import json

import pytest

from litcloud_core import (
    EmptyInputError,
    WordCloudConfig,
    compute_word_weights,
    extract_text_from_json_payload,
    extract_tokens,
    generate_cloud_from_file,
    generate_cloud_from_text,
    lemmatize_tokens,
    ngrams,
    tokenize_text,
)

MOBY = (
    "Call me Ishmael. Some years ago, never mind how long precisely, having little or no money "
    "in my purse, I thought I would sail about a little and see the watery part of the world. "
    "The whale! The white whale, said Ahab. The sea, the sea, and the whale."
)


def tokens_for(text, **overrides):
    config = WordCloudConfig(**overrides)
    return tokenize_text(
        text,
        stopwords=config.stopwords(),
        keep_short=config.keep_short(),
        min_length=config.min_token_length,
    )


def test_tokenize_drops_stopwords_and_punctuation():
    assert tokens_for("The whale! The WHITE whale, said Ahab.") == ["whale", "white", "whale", "ahab"]


def test_tokenize_handles_possessives_and_contractions():
    assert tokens_for("Ishmael’s boat. Don't go, Queequeg's harpoon.") == ["ishmael", "boat", "queequeg", "harpoon"]


def test_tokenize_splits_camel_case_and_digits():
    assert tokens_for("seaMonster chapter42 harpoons") == ["sea", "monster", "harpoons"]


def test_short_words_need_keep_list():
    assert tokens_for("an ox and a sea god", min_token_length=4) == ["sea", "god"]
    assert tokens_for("an ox", keep_short_extra={"ox"}) == ["ox"]


def test_stop_groups_can_be_toggled():
    text = "thou art the whale"
    assert tokens_for(text) == ["whale"]
    assert tokens_for(text, enabled_stop_groups={"base"}) == ["thou", "art", "whale"]
    assert tokens_for(text, remove_stopwords={"thou"}) == ["thou", "whale"]
    assert tokens_for(text, extra_stopwords={"whale"}) == []


def test_ngrams():
    assert ngrams(["a", "b", "c"], 1) == ["a", "b", "c"]
    assert ngrams(["a", "b", "c"], 2) == ["a b", "b c"]
    assert ngrams(["a", "b"], 3) == []
    with pytest.raises(ValueError):
        ngrams(["a"], 0)


def test_extract_tokens_builds_bigrams():
    tokens = extract_tokens("white whale white whale", config=WordCloudConfig(ngram=2))

    assert tokens == ["white whale", "whale white", "white whale"]


def test_extract_tokens_applies_given_lemmatizer():
    lemmas = {"whales": "whale", "seas": "sea"}

    tokens = extract_tokens("whales and seas", config=WordCloudConfig(), lemmatizer=lambda t: lemmas.get(t, t))

    assert tokens == ["whale", "sea"]
    assert lemmatize_tokens(["whales", "ship"], lambda t: lemmas.get(t, t)) == ["whale", "ship"]


def test_compute_word_weights_boosts_and_adjusts():
    tokens = ["white", "whale", "white", "whale", "ahab"]

    weights, stats = compute_word_weights(
        tokens,
        boost_map={"white whale": 2.0},
        manual_adjustments={"ahab": 3, "pequod": 2},
    )

    assert weights["white whale"] == 4
    assert stats["white whale"].bigram_count == 2
    assert stats["white whale"].boost_multiplier == 2.0
    assert weights["white"] == 2
    assert weights["ahab"] == 4
    assert weights["pequod"] == 2
    assert stats["pequod"].base_count == 0


def test_generate_cloud_from_text():
    result, stats = generate_cloud_from_text(MOBY, config=WordCloudConfig(seed=5))

    assert result.placed[0].text == "whale"
    assert result.frequencies["whale"] == 3
    assert stats["sea"].base_count == 2
    assert all(word.color for word in result.placed)


def test_generate_cloud_from_text_without_words():
    with pytest.raises(EmptyInputError):
        generate_cloud_from_text("the and of a", config=WordCloudConfig())


def test_weight_colour_mode_gives_heaviest_first_colour():
    config = WordCloudConfig(color_mode="weight", seed=1, color_palette=("#111111", "#222222", "#333333"))

    result, _ = generate_cloud_from_text(MOBY, config=config)

    assert result.placed[0].color == "#111111"


def test_json_payload_text_keys():
    payload = {"book": {"title": "Moby Dick", "chapters": [{"text": "whale"}, {"body": "sea"}, {"note": "skip"}]}}

    assert extract_text_from_json_payload(payload, config=WordCloudConfig()) == "whale \nsea"
    assert "skip" in extract_text_from_json_payload(payload, config=WordCloudConfig(collect_all_json_strings=True))
    assert extract_text_from_json_payload(payload, config=WordCloudConfig(json_text_keys={"note"})) == "skip"


def test_generate_cloud_from_files(tmp_path):
    text_path = tmp_path / "moby.txt"
    text_path.write_text(MOBY, encoding="utf-8")
    json_path = tmp_path / "moby.json"
    json_path.write_text(json.dumps({"chapters": [{"text": MOBY}]}), encoding="utf-8")
    config = WordCloudConfig(seed=2)

    from_text, _ = generate_cloud_from_file(text_path, config=config)
    from_json, _ = generate_cloud_from_file(json_path, config=config)

    assert from_text.placed == from_json.placed


def test_generate_cloud_from_file_fills_and_uses_cache_entry(tmp_path):
    text_path = tmp_path / "moby.txt"
    text_path.write_text(MOBY, encoding="utf-8")
    config = WordCloudConfig(seed=2)
    prepared = {}

    first, _ = generate_cloud_from_file(text_path, config=config, prepared=prepared)
    text_path.unlink()
    second, _ = generate_cloud_from_file(text_path, config=config, prepared=prepared)

    assert "whale" in prepared["tokens"]
    assert first.placed == second.placed
