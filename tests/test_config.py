"""
Tests for the library config module

NOTE: Env var overrides are applied at import time, so they are left to
    aconfig's own tests and only the loaded defaults and the validation are
    checked here.
"""

# Third Party
import pytest

# First Party
import aconfig

# Local
from kubecfg import config
from kubecfg.config import validation
from kubecfg.config.config import library_config, validation_config
from kubecfg.config.config import validate_library_config as validate_config
from kubecfg.exceptions import ConfigError
from kubecfg.test_helpers.helpers import library_config as override_config


def test_config_keys():
    """The engine's tunables are exposed as module attributes"""
    assert isinstance(config.apply_retries, int)
    assert isinstance(config.worker_threads, int)
    assert isinstance(config.gc_tag_label, str)
    assert isinstance(config.prune_kinds, list)
    assert config.cluster.verify_ssl is True
    assert "apply_retries" in config.__all__


def test_config_unknown_key():
    with pytest.raises(AttributeError):
        config.not_a_real_key  # pylint: disable=pointless-statement


def test_config_defaults_are_valid():
    """The shipped config passes its own validation"""
    assert validation.get_invalid_params(library_config, validation_config) == []


def test_config_override_reverts():
    """The test override helper restores the previous value"""
    original = config.apply_retries
    with override_config(apply_retries=original + 3):
        assert config.apply_retries == original + 3
    assert config.apply_retries == original


@pytest.mark.parametrize(
    ["key", "value"],
    [
        ("apply_retries", -1),
        ("apply_retries", 1.5),
        ("worker_threads", True),
        ("output_format", "xml"),
        ("gc_tag_label", ""),
        ("prune_kinds", ["v1/ConfigMap", 3]),
        ("log_level", "loud"),
    ],
)
def test_invalid_library_values(key, value):
    """Bad values for the shipped keys are caught"""
    with override_config(**{key: value}):
        assert validation.get_invalid_params(library_config, validation_config) == [
            key
        ]


def test_invalid_nested_library_value():
    with override_config(cluster={**library_config.cluster, "context": 42}):
        assert validation.get_invalid_params(library_config, validation_config) == [
            "cluster.context"
        ]


########################
## get_invalid_params ##
########################


def test_get_invalid_params_all_valid_params():
    assert not validation.get_invalid_params(
        config=aconfig.Config({"key": 1}),
        validation_config=aconfig.Config({"key": {"type": "int", "min": 0, "max": 1}}),
    )


def test_get_invalid_params_some_invalid_params():
    """Only the invalid parameters are returned"""
    assert validation.get_invalid_params(
        config=aconfig.Config({"key": 3, "str": "foo"}),
        validation_config=aconfig.Config(
            {
                "key": {"type": "int", "min": 0, "max": 1},
                "str": {"type": "str", "min_len": 1},
            },
        ),
    ) == ["key"]


def test_get_invalid_params_missing_key():
    """A missing key is only valid for optional parameters"""
    assert validation.get_invalid_params(
        config=aconfig.Config({}),
        validation_config=aconfig.Config(
            {
                "required": {"type": "str"},
                "nested": {"optional": {"type": "str", "optional": True}},
            }
        ),
    ) == ["required"]


#####################
## parameter types ##
#####################


def test_number_parameter():
    """Validation cases for the numeric parameters"""
    ParamType = validation._NumberParameter

    # Valid Cases
    assert ParamType().validate(1)
    assert ParamType().validate(1.2)
    assert ParamType("int").validate(1)
    assert ParamType("float").validate(1.0)
    assert ParamType(min=0).validate(0)
    assert ParamType(max=1).validate(0.5)
    assert ParamType(optional=True).validate(None)

    # Invalid Cases
    assert not ParamType().validate("not a number")
    assert not ParamType().validate(True)
    assert not ParamType("int").validate(1.2)
    assert not ParamType("float").validate(1)
    assert not ParamType(min=0).validate(-1)
    assert not ParamType(max=1).validate(1.5)
    assert not ParamType().validate(None)


def test_str_parameter():
    ParamType = validation._StrParameter

    # Valid Cases
    assert ParamType().validate("test")
    assert ParamType(min_len=1).validate("test")
    assert ParamType(max_len=4).validate("test")
    assert ParamType(optional=True).validate(None)

    # Invalid Cases
    assert not ParamType().validate(1)
    assert not ParamType().validate(b"test")
    assert not ParamType(min_len=1).validate("")
    assert not ParamType(max_len=3).validate("test")
    assert not ParamType().validate(None)


def test_bool_parameter():
    ParamType = validation._BoolParameter
    assert ParamType().validate(True)
    assert ParamType().validate(False)
    assert ParamType(optional=True).validate(None)
    assert not ParamType().validate(1)
    assert not ParamType().validate("true")


def test_enum_parameter():
    ParamType = validation._EnumParameter

    # Invalid Construction
    with pytest.raises(AssertionError):
        ParamType(values=[])
    with pytest.raises(AssertionError):
        ParamType(values="test")

    # Valid Cases
    assert ParamType(values=[1, "two", None]).validate(1)
    assert ParamType(values=[1, "two", None]).validate("two")
    assert ParamType(values=[1, "two", None]).validate(None)
    assert ParamType(values=[1, "two"], optional=True).validate(None)

    # Invalid Cases
    assert not ParamType(values=[1, "two", None]).validate(2)
    assert not ParamType(values=[1, "two"]).validate(None)


def test_list_parameter():
    ParamType = validation._ListParameter

    # Valid Cases
    assert ParamType().validate([])
    assert ParamType().validate([1.2, "mixed"])
    assert ParamType(min_len=1).validate([1])
    assert ParamType(max_len=1).validate([0.5])
    assert ParamType(item_type="str").validate(["apps/v1/Deployment"])
    assert ParamType(optional=True).validate(None)

    # Invalid Cases
    assert not ParamType().validate("not a list")
    assert not ParamType(min_len=1).validate([])
    assert not ParamType(max_len=1).validate([1, 2])
    assert not ParamType(item_type="str").validate(["one", 2])

    # Unknown item types are a programming error
    with pytest.raises(AssertionError):
        ParamType(item_type="NotAType")


#############
## factory ##
#############


@pytest.mark.parametrize(
    ["param_args", "param_type"],
    [
        ({"type": "number"}, validation._NumberParameter),
        ({"type": "int", "min": 1}, validation._NumberParameter),
        ({"type": "float", "max": 2}, validation._NumberParameter),
        ({"type": "str", "min_len": 1}, validation._StrParameter),
        ({"type": "bool"}, validation._BoolParameter),
        ({"type": "enum", "values": [1]}, validation._EnumParameter),
        ({"type": "list", "item_type": "str"}, validation._ListParameter),
    ],
)
def test_construct_parameter_known_types(param_args, param_type):
    assert isinstance(validation._construct_parameter(param_args), param_type)


def test_construct_parameter_bad_args():
    """Unknown and missing arguments are errors"""
    with pytest.raises(TypeError):
        validation._construct_parameter({"type": "number", "foo": "bar"})
    with pytest.raises(TypeError):
        validation._construct_parameter({"type": "enum"})


def test_construct_parameter_unknown_type():
    assert validation._construct_parameter({"type": "foobar"}) is None


#############
## parsing ##
#############


def test_parse_validation_config_nested_key():
    assert list(
        validation._parse_validation_config(
            aconfig.Config({"foo": {"bar": {"baz": {"type": "int"}}}})
        ).keys()
    ) == ["foo.bar.baz"]


def test_parse_validation_config_nested_type_key():
    """A section named 'type' is a namespace, not a parameter"""
    assert list(
        validation._parse_validation_config(
            aconfig.Config({"foo": {"type": {"baz": {"type": "int"}}}})
        ).keys()
    ) == ["foo.type.baz"]


## validate_library_config #####################################################


def test_validate_library_config_defaults():
    validate_config()


def test_validate_library_config_invalid_value():
    with override_config(worker_threads=-2):
        with pytest.raises(ConfigError, match="worker_threads"):
            validate_config()


def test_validate_library_config_backoff_order():
    """The backoff base may not exceed its cap"""
    with override_config(retry_backoff_base_seconds=10, retry_backoff_max_seconds=1):
        with pytest.raises(ConfigError, match="retry_backoff_base_seconds"):
            validate_config()
