# vtool/core/__init__.py
"""
Core data model for vtool.

- SignalGroup: M named signals on a common sample axis, with parallel name
  layers, units and descriptions
- Dataset: named signal groups (always including "Time") plus attributes
- SignalGroupArray / DatasetArray: homogeneous collections of cases

Validity predicates never raise; the require_* helpers turn a failed check
into an exception for the operations that need valid input.
"""

from .signal_group import SignalGroup, LAYER_SUFFIX, TIME_NAMES, ABSOLUTE_TIME_UNITS
from .dataset import Dataset, TIME_GROUP
from .arrays import SignalGroupArray, DatasetArray, as_signal_group_array, as_dataset_array
from .batch import ElementResult, apply_elementwise
from .validity import (
    is_signal_group,
    is_dataset,
    is_signal_group_array,
    is_dataset_array,
    is_valid_name,
    require_signal_group,
    require_dataset,
)
from .lookup import (
    find_name,
    get_layers,
    get_names_matrix,
    get_default_names,
    get_signal,
    get_signal_groups,
    collect_signals,
    get_data_length,
    get_num_signals,
)
from .exceptions import (
    CoreError,
    InvalidInput,
    InvalidSignalGroup,
    InvalidDataset,
    InvalidSignalGroupArray,
    InvalidDatasetArray,
    Incompatible,
    NotFound,
    SignalNotFound,
    GroupNotFound,
    LayerNotFound,
    ArrayElementError,
)


__all__ = [
    # domain objects
    "SignalGroup",
    "Dataset",
    "SignalGroupArray",
    "DatasetArray",
    "as_signal_group_array",
    "as_dataset_array",
    "LAYER_SUFFIX",
    "TIME_NAMES",
    "TIME_GROUP",
    "ABSOLUTE_TIME_UNITS",

    # batch driver
    "ElementResult",
    "apply_elementwise",

    # validity
    "is_signal_group",
    "is_dataset",
    "is_signal_group_array",
    "is_dataset_array",
    "is_valid_name",
    "require_signal_group",
    "require_dataset",

    # lookup
    "find_name",
    "get_layers",
    "get_names_matrix",
    "get_default_names",
    "get_signal",
    "get_signal_groups",
    "collect_signals",
    "get_data_length",
    "get_num_signals",

    # exceptions
    "CoreError",
    "InvalidInput",
    "InvalidSignalGroup",
    "InvalidDataset",
    "InvalidSignalGroupArray",
    "InvalidDatasetArray",
    "Incompatible",
    "NotFound",
    "SignalNotFound",
    "GroupNotFound",
    "LayerNotFound",
    "ArrayElementError",
]
