from sysutild import textutil


def test_normalize_id_adds_prefix_and_uppercases():
    assert textutil.normalize_id("0bda") == "0x0BDA"
    assert textutil.normalize_id(" 0xa81a\n") == "0xA81A"
    assert textutil.normalize_id("0XA81A") == "0xA81A"


def test_normalize_id_is_idempotent():
    for raw in ("0bda", "0x10ec", "0X8812", "  a9a6 "):
        once = textutil.normalize_id(raw)
        assert textutil.normalize_id(once) == once
        assert once.startswith("0x")
        assert once[2:] == once[2:].upper()


def test_normalize_id_empty_stays_empty():
    assert textutil.normalize_id("") == ""
    assert textutil.normalize_id("   ") == ""
    assert textutil.normalize_id(None) == ""


def test_json_escape_only_escapes_known_characters():
    assert textutil.json_escape('a"b\\c\nd\re\tf') == 'a\\"b\\\\c\\nd\\re\\tf'
    assert textutil.json_escape("plain/ü") == "plain/ü"


def test_case_folding_helpers():
    assert textutil.equal_after_uppercase("rtl88x2eu_ohd", "RTL88X2EU_OHD")
    assert textutil.contains_after_uppercase("my_ATH9K_htc", "ath9k")
    assert not textutil.contains_after_uppercase("iwlwifi", "ath9k")


def test_extract_array_objects_ignores_braces_inside_strings():
    content = '{"cards": [{"name": "a}b{c", "x": 1}, {"name": "q\\"}"}]}'
    objects = textutil.extract_array_objects(content, "cards")
    assert objects == ['{"name": "a}b{c", "x": 1}', '{"name": "q\\"}"}']


def test_extract_array_objects_keeps_nested_objects_whole():
    content = '{"cards":[{"a":1,"levels_mw":{"low":5}},{"b":2}]}'
    objects = textutil.extract_array_objects(content, "cards")
    assert objects == ['{"a":1,"levels_mw":{"low":5}}', '{"b":2}']


def test_extract_array_objects_stops_at_array_end():
    content = '{"cards":[{"a":1}], "other":[{"b":2}]}'
    assert textutil.extract_array_objects(content, "cards") == ['{"a":1}']


def test_extract_array_objects_ignores_malformed_tail():
    content = '{"cards":[{"a":1},{"b":2'
    assert textutil.extract_array_objects(content, "cards") == ['{"a":1}']


def test_extract_array_objects_missing_key():
    assert textutil.extract_array_objects('{"other":[{"a":1}]}', "cards") == []
    assert textutil.extract_array_objects("", "cards") == []


def test_extract_object_field_returns_balanced_object():
    content = '{"name":"x","levels_mw":{"low":10,"deep":{"k":"}"}},"high":3}'
    assert textutil.extract_object_field(content, "levels_mw") == '{"low":10,"deep":{"k":"}"}}'


def test_extract_object_field_unterminated_is_none():
    assert textutil.extract_object_field('{"levels_mw":{"low":10', "levels_mw") is None
    assert textutil.extract_object_field('{"name":"x"}', "levels_mw") is None
