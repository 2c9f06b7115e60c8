from kothaboli.dialogue import DIALOGUE_VERBS, format_dialogue, is_dialogue_line


def test_colon_line_is_dashed():
    assert format_dialogue("রহিম: কেমন আছ?") == "— রহিম: কেমন আছ?"


def test_verb_line_loses_indentation():
    assert format_dialogue("  সে বলল আমি যাব।") == "— সে বলল আমি যাব।"


def test_non_candidates_pass_through_unchanged():
    text = "\n   \n— আগেই সাজানো: হ্যাঁ\n    নদীর ধারে সন্ধ্যা নামল।"
    assert format_dialogue(text) == text


def test_line_count_preserved():
    text = "প্রথম লাইন\n\nরহিম: এসো\n\n\nকরিম বললেন, বসো।\n"
    result = format_dialogue(text)
    assert result.count("\n") == text.count("\n")
    assert result.split("\n") == [
        "প্রথম লাইন",
        "",
        "— রহিম: এসো",
        "",
        "",
        "— করিম বললেন, বসো।",
        "",
    ]


def test_formatting_twice_is_stable():
    text = "রহিম: কেমন আছ?\n  সে জিজ্ঞেস করল, কোথায়?\nআকাশে মেঘ।\n\t— আমি বলছি শোনো"
    once = format_dialogue(text)
    assert format_dialogue(once) == once


def test_lexicon_is_exact_substring_match():
    assert is_dialogue_line("আমি বলছি, থামো")
    assert not is_dialogue_line("সে কথা বলেছিল")
    assert not is_dialogue_line("")
    assert "বলল" in DIALOGUE_VERBS


def test_custom_lexicon():
    assert format_dialogue("she said hello", lexicon={"said"}) == "— she said hello"
    assert format_dialogue("she said hello", lexicon=()) == "she said hello"


def test_unrelated_colon_still_dashed():
    assert format_dialogue("সময় ১০:৩০") == "— সময় ১০:৩০"


def test_byte_order_mark_is_trimmed():
    assert format_dialogue("\ufeff— রহিম: এসো") == "\ufeff— রহিম: এসো"
    assert format_dialogue("\ufeffরহিম: এসো\nকরিম বলল, যাই।") == "— রহিম: এসো\n— করিম বলল, যাই।"
    assert not is_dialogue_line("\ufeff  ")
