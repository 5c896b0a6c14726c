from vbcore.core_options import (
    OPTION_DEFS_US,
    Language,
    OptionDefinition,
    legacy_variables,
    option_values_string,
    register_core_options,
)


class FakeFrontend:
    def __init__(self, version, language=None):
        self.version = version
        self.language = language
        self.intl = None
        self.variables = None

    def get_core_options_version(self):
        return self.version

    def get_language(self):
        return self.language

    def set_core_options_intl(self, us, local):
        self.intl = (us, local)

    def set_variables(self, variables):
        self.variables = variables


def _by_key(key):
    return next(d for d in OPTION_DEFS_US if d.key == key)


def test_option_keys_in_source_order():
    frontend = FakeFrontend(0)
    register_core_options(frontend)
    assert [key for key, _ in frontend.variables] == [
        "vb_3dmode",
        "vb_anaglyph_preset",
        "vb_color_mode",
        "vb_right_analog_to_digital",
        "vb_cpu_emulation",
    ]


def test_values_string_puts_default_first():
    text = option_values_string(_by_key("vb_cpu_emulation"))
    assert text == "CPU emulation  (Restart); fast|accurate"


def test_values_string_lists_every_value_once():
    for definition in OPTION_DEFS_US:
        text = option_values_string(definition)
        prefix = f"{definition.desc}; "
        assert text.startswith(prefix)
        values = text[len(prefix):].split("|")
        assert values[0] == definition.default_value
        assert sorted(values) == sorted(definition.values)


def test_values_string_unknown_default_uses_first():
    definition = OptionDefinition("k", "Thing", None, ("a", "b", "c"), "zzz")
    assert option_values_string(definition) == "Thing; a|b|c"


def test_values_string_none_without_desc_or_values():
    assert option_values_string(OptionDefinition("k", None, None, ("a",), "a")) is None
    assert option_values_string(OptionDefinition("k", "Thing", None, (), None)) is None


def test_legacy_variables_pairs():
    pairs = legacy_variables(OPTION_DEFS_US)
    assert [key for key, _ in pairs] == [d.key for d in OPTION_DEFS_US]
    assert pairs[0][1] == option_values_string(OPTION_DEFS_US[0])


def test_register_old_frontend_uses_variables():
    for version in (None, 0):
        frontend = FakeFrontend(version)
        register_core_options(frontend)
        assert frontend.intl is None
        assert frontend.variables == legacy_variables(OPTION_DEFS_US)


def test_register_new_frontend_with_translation():
    turkish = (OptionDefinition("vb_3dmode", "3D", None, ("anaglyph",), "anaglyph"),)
    frontend = FakeFrontend(1, Language.TURKISH)
    register_core_options(frontend, {Language.TURKISH: turkish})
    assert frontend.variables is None
    assert frontend.intl == (OPTION_DEFS_US, turkish)


def test_register_english_has_no_local():
    translations = {Language.ENGLISH: OPTION_DEFS_US}
    frontend = FakeFrontend(2, Language.ENGLISH)
    register_core_options(frontend, translations)
    assert frontend.intl == (OPTION_DEFS_US, None)


def test_register_out_of_range_language_has_no_local():
    frontend = FakeFrontend(1, 99)
    register_core_options(frontend, {99: OPTION_DEFS_US})
    assert frontend.intl == (OPTION_DEFS_US, None)


def test_register_missing_translation_has_no_local():
    frontend = FakeFrontend(1, Language.FRENCH)
    register_core_options(frontend, {})
    assert frontend.intl == (OPTION_DEFS_US, None)