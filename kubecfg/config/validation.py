"""
Module to validate values in a loaded config against the parallel validation
file (config_validation.yaml)
"""

# Standard
from typing import Any, Dict, List, Optional, Type, Union
import abc
import builtins

# First Party
import aconfig
import alog

# Local
from .. import constants
from ..utils import nested_get  # pylint: disable=cyclic-import

log = alog.use_channel("CONFG")


## Public ######################################################################


def get_invalid_params(
    config: aconfig.Config,
    validation_config: aconfig.Config,
) -> List[str]:
    """Get a list of any params that are invalid

    Args:
        config:  aconfig.Config
            The parsed config with any override values
        validation_config:  aconfig.Config
            The parallel config holding validation setup

    Returns:
        invalid_params:  List[str]
            Nested keys ("cluster.server") of every parameter that fails
            validation
    """
    invalid_params = []
    for nested_key, validator in _parse_validation_config(validation_config).items():
        if not validator.validate(nested_get(config, nested_key)):
            log.warning("Found invalid config key [%s]", nested_key)
            invalid_params.append(nested_key)
    return invalid_params


## Parameter Types #############################################################

# pylint: disable=too-few-public-methods

_PARAMETER_TYPES: Dict[str, Type["_ValidatedParameter"]] = {}


def _register(*type_keys: str):
    """Decorator to make a parameter class available under the given type keys
    of the validation file
    """

    def decorator(param_class):
        for type_key in type_keys:
            _PARAMETER_TYPES[type_key] = param_class
        return param_class

    return decorator


class _ValidatedParameter(abc.ABC):
    """A single parameter with type and value validation"""

    def __init__(self, valid_types: List[type], optional: bool = False):
        assert valid_types, "Must specify at least one valid type"
        self.valid_types = tuple(valid_types)
        self.optional = optional

    def validate(self, value: Any) -> bool:
        """Check the type and then the value of a read config value"""
        if self.optional and value is None:
            return True
        # bool is an int subclass, so it must never pass a numeric check
        if isinstance(value, bool) and bool not in self.valid_types:
            log.warning("Invalid type <bool>")
            return False
        if not isinstance(value, self.valid_types):
            log.warning("Invalid type <%s>", type(value))
            return False
        valid_value = self._validate_value(value)
        if not valid_value:
            log.warning("Invalid value [%s]", value)
        return valid_value

    @abc.abstractmethod
    def _validate_value(self, value: Any) -> bool:
        """Type-specific value validation"""


@_register("number", "int", "float")
class _NumberParameter(_ValidatedParameter):
    """A numeric parameter with optional inclusive bounds. The type key selects
    which numeric types are accepted.
    """

    _TYPES_BY_KEY = {"number": [int, float], "int": [int], "float": [float]}

    def __init__(
        self,
        type_key: str = "number",
        *,
        min: Optional[Union[int, float]] = None,  # pylint: disable=redefined-builtin
        max: Optional[Union[int, float]] = None,  # pylint: disable=redefined-builtin
        **kwargs,
    ):
        super().__init__(valid_types=self._TYPES_BY_KEY[type_key], **kwargs)
        self._min = min
        self._max = max

    def _validate_value(self, value: Union[int, float]) -> bool:
        return (self._min is None or value >= self._min) and (
            self._max is None or value <= self._max
        )


@_register("str")
class _StrParameter(_ValidatedParameter):
    """A string parameter with optional length bounds"""

    def __init__(
        self,
        type_key: str = "str",
        *,
        min_len: Optional[int] = None,
        max_len: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(valid_types=[str], **kwargs)
        self._min_len = min_len
        self._max_len = max_len

    def _validate_value(self, value: str) -> bool:
        return (self._min_len is None or len(value) >= self._min_len) and (
            self._max_len is None or len(value) <= self._max_len
        )


@_register("bool")
class _BoolParameter(_ValidatedParameter):
    """A parameter that must be a bool"""

    def __init__(self, type_key: str = "bool", **kwargs):
        super().__init__(valid_types=[bool], **kwargs)

    def _validate_value(self, value: bool) -> bool:
        return True


@_register("enum")
class _EnumParameter(_ValidatedParameter):
    """A parameter with a fixed set of valid str or int values"""

    def __init__(
        self,
        type_key: str = "enum",
        *,
        values: List[Union[str, int, None]],
        **kwargs,
    ):
        super().__init__(valid_types=[str, int, type(None)], **kwargs)
        assert (
            isinstance(values, list) and values
        ), "Must specify at least one enum value!"
        self.values = values

    def _validate_value(self, value: Union[str, int, None]) -> bool:
        return value in self.values


@_register("list")
class _ListParameter(_ValidatedParameter):
    """A list parameter with optional length bounds and item type"""

    def __init__(
        self,
        type_key: str = "list",
        *,
        min_len: Optional[int] = None,
        max_len: Optional[int] = None,
        item_type: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(valid_types=[list], **kwargs)
        self._min_len = min_len
        self._max_len = max_len
        self._item_type = None
        if item_type is not None:
            assert hasattr(builtins, item_type), f"Unsupported item_type: {item_type}"
            self._item_type = getattr(builtins, item_type)

    def _validate_value(self, value: list) -> bool:
        return (
            (self._min_len is None or len(value) >= self._min_len)
            and (self._max_len is None or len(value) <= self._max_len)
            and (
                self._item_type is None
                or all(isinstance(item, self._item_type) for item in value)
            )
        )


# pylint: enable=too-few-public-methods

## Parsing #####################################################################


def _construct_parameter(param_args: Dict[str, Any]) -> Optional[_ValidatedParameter]:
    """Construct a parameter from the args parsed out of the validation file.
    Unknown type keys yield None so that the caller can treat the section as a
    nested namespace instead.
    """
    param_args = dict(param_args)
    type_key = param_args.pop("type")
    param_class = _PARAMETER_TYPES.get(type_key) if isinstance(type_key, str) else None
    if param_class is None:
        return None
    return param_class(type_key, **param_args)


def _parse_validation_config(
    validation_config: aconfig.Config,
    prefix_parts: Optional[List[str]] = None,
) -> Dict[str, _ValidatedParameter]:
    """Recursively parse the validation file into a flat dict from nested key
    to parameter
    """
    output_dict = {}
    prefix_parts = prefix_parts or []
    for key, val in validation_config.items():
        assert isinstance(key, str), "Only string keys allowed!"
        if not isinstance(val, dict):
            continue
        key_parts = prefix_parts + [key]
        nested_key = constants.NESTED_DICT_DELIM.join(key_parts)
        param = _construct_parameter(val) if "type" in val else None
        if param is not None:
            log.debug3("Found parameter at %s", nested_key)
            output_dict[nested_key] = param
        else:
            log.debug3("Recursing into %s", nested_key)
            output_dict.update(_parse_validation_config(val, key_parts))
    return output_dict
