import datetime
from dataclasses import dataclass, field

import pytest

from witness.option import (
    ConfigOption,
    OptionKind,
    bool_config_option,
    duration_config_option,
    int_config_option,
    string_config_option,
    string_slice_config_option,
)
from witness.registry import Registry


@dataclass
class TestEntity:
    int_opt: int = 0
    str_opt: str = ""
    str_slice_opt: list = field(default_factory=list)
    bool_opt: bool = False
    duration_opt: datetime.timedelta = datetime.timedelta()


def _set(attr):
    def setter(entity, value):
        setattr(entity, attr, value)
        return entity

    return setter


def test_config_options():
    entry_name = "optionTest"
    default_int = 50
    default_str = "default string"
    default_slice = ["d", "e", "f"]
    default_bool = True
    test_opts = [
        int_config_option("someint", "some int", default_int, _set("int_opt")),
        string_config_option("somestring", "some string", default_str, _set("str_opt")),
        string_slice_config_option(
            "someslice", "some slice", default_slice, _set("str_slice_opt")
        ),
        bool_config_option("somebool", "some bool", default_bool, _set("bool_opt")),
    ]

    reg = Registry()
    reg.register(entry_name, TestEntity, *test_opts)
    entity = reg.new_entity(entry_name)
    assert entity == TestEntity(
        int_opt=default_int,
        str_opt=default_str,
        str_slice_opt=default_slice,
        bool_opt=default_bool,
    )

    values = {
        OptionKind.INT: 100,
        OptionKind.STRING: "test string",
        OptionKind.STRING_SLICE: ["a", "b", "c"],
        OptionKind.BOOL: False,
    }
    opts = reg.options(entry_name)
    assert opts is not None and len(opts) == 4
    for opt in opts:
        opt.setter(entity, values[opt.kind])

    assert entity == TestEntity(
        int_opt=100, str_opt="test string", str_slice_opt=["a", "b", "c"], bool_opt=False
    )


@pytest.mark.parametrize(
    "factory, default, kind",
    [
        (int_config_option, 1, OptionKind.INT),
        (string_config_option, "s", OptionKind.STRING),
        (string_slice_config_option, ["x"], OptionKind.STRING_SLICE),
        (bool_config_option, True, OptionKind.BOOL),
        (duration_config_option, datetime.timedelta(seconds=30), OptionKind.DURATION),
    ],
)
def test_factories_record_kind_and_fields(factory, default, kind):
    opt = factory("opt", "an option", default, _set("int_opt"))
    assert isinstance(opt, ConfigOption)
    assert opt.kind is kind
    assert opt.default_val == default
    assert opt.description == "an option"


def test_name_with_and_without_prefix():
    opt = int_config_option("someint", "some int", 5, _set("int_opt"))
    assert opt.name == "someint"
    opt.set_prefix("attestor")
    assert opt.name == "attestor-someint"
    opt.set_prefix("")
    assert opt.name == "someint"


def test_duration_option_default_applied():
    reg = Registry()
    reg.register(
        "dur",
        TestEntity,
        duration_config_option(
            "timeout", "timeout", datetime.timedelta(minutes=2), _set("duration_opt")
        ),
    )
    assert reg.new_entity("dur").duration_opt == datetime.timedelta(minutes=2)