from sysutild import protocol


def test_extract_string_field_decodes_escapes():
    line = '{"type":"sysutil.wifi.update","card_name":"My \\"card\\"\\n"}'
    assert protocol.extract_string_field(line, "type") == "sysutil.wifi.update"
    assert protocol.extract_string_field(line, "card_name") == 'My "card"\n'


def test_extract_string_field_does_not_match_suffix_keys():
    line = '{"override_type":"DISABLED","type":"sysutil.wifi.update"}'
    assert protocol.extract_string_field(line, "type") == "sysutil.wifi.update"


def test_extract_string_field_type_mismatch_is_none():
    line = '{"interface":5,"action":null}'
    assert protocol.extract_string_field(line, "interface") is None
    assert protocol.extract_string_field(line, "action") is None
    assert protocol.extract_string_field(line, "missing") is None


def test_extract_string_field_allows_whitespace_and_empty_value():
    line = '{ "interface" : "" , "action" :  "set" }'
    assert protocol.extract_string_field(line, "interface") == ""
    assert protocol.extract_string_field(line, "action") == "set"


def test_extract_int_field():
    line = '{"frequency_mhz":5805,"channel_width_mhz":20.0,"mcs_index":"3","ok":true}'
    assert protocol.extract_int_field(line, "frequency_mhz") == 5805
    assert protocol.extract_int_field(line, "channel_width_mhz") == 20
    assert protocol.extract_int_field(line, "mcs_index") is None
    assert protocol.extract_int_field(line, "ok") is None


def test_extract_int_field_malformed_number_is_none():
    assert protocol.extract_int_field('{"frequency_mhz":-}', "frequency_mhz") is None


def test_extract_bool_field():
    assert protocol.extract_bool_field('{"ok":true}', "ok") is True
    assert protocol.extract_bool_field('{"ok":false,"message":"x"}', "ok") is False
    assert protocol.extract_bool_field('{"ok":"true"}', "ok") is None
    assert protocol.extract_bool_field('{"message":"x"}', "ok") is None


def test_fields_survive_trailing_garbage():
    line = '{"type":"sysutil.wifi.request"} trailing {{{'
    assert protocol.extract_string_field(line, "type") == "sysutil.wifi.request"


def test_encode_line_renders_types_in_order():
    line = protocol.encode_line(
        [
            ("type", "x"),
            ("ok", False),
            ("phy_index", -1),
            ("name", 'a"b'),
            ("cards", protocol.encode_array(['{"a":1}', '{"b":2}'])),
        ]
    )
    assert line == '{"type":"x","ok":false,"phy_index":-1,"name":"a\\"b","cards":[{"a":1},{"b":2}]}\n'


def test_encode_array_empty():
    assert protocol.encode_array([]) == "[]"
